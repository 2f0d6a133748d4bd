import unittest

from incidentdesk._util import severity_rank
from incidentdesk.models import Author, Engagement, Post
from incidentdesk.scoring import (
    analyze_sentiment,
    catalogue_severity,
    catalogue_status,
    determine_severity,
    live_status,
    passes_reliability_gate,
    reliability_note,
    total_engagement,
)


def _post(pid: str, text: str, likes: int = 0, reshares: int = 0, verified: bool = False, **metrics: int) -> Post:
    return Post(
        id=pid,
        text=text,
        author=Author(username=f"u{pid}", verified=verified),
        url=f"https://twitter.com/u{pid}/status/{pid}",
        timestamp="2025-12-02T20:00:00Z",
        engagement=Engagement(likes=likes, reshares=reshares, **metrics),
    )


class TestTotals(unittest.TestCase):
    def test_sums_every_metric(self) -> None:
        totals = total_engagement(
            [_post("1", "a", 1, 2, replies=3, quotes=4, views=5), _post("2", "b", 10, 20, replies=30, quotes=40)]
        )
        self.assertEqual((totals.likes, totals.reshares, totals.replies, totals.quotes, totals.views), (11, 22, 33, 44, 5))
        self.assertEqual(totals.reactions, 33)
        self.assertEqual(totals.to_dict()["total_views"], 5)


class TestDetermineSeverity(unittest.TestCase):
    def test_cascade(self) -> None:
        cases = [
            ("Shooting downtown", 400, 200, "critical"),
            ("Shooting downtown", 100, 0, "high"),
            ("Police everywhere", 1000, 1, "critical"),
            ("Police everywhere", 600, 0, "high"),
            ("Big crowd", 1200, 0, "high"),
            ("Big crowd", 700, 0, "medium"),
            ("Big crowd", 10, 0, "low"),
        ]
        for text, likes, reshares, expected in cases:
            with self.subTest(text=text, likes=likes):
                self.assertEqual(determine_severity([_post("1", text, likes, reshares)]), expected)

    def test_swat_is_case_insensitive(self) -> None:
        self.assertEqual(determine_severity([_post("1", "SWAT team on site", 1500)]), "critical")

    def test_empty_is_low(self) -> None:
        self.assertEqual(determine_severity([]), "low")

    def test_monotonic_in_engagement(self) -> None:
        for text in ("Shooting at the mall", "police lockdown", "quiet afternoon"):
            ranks = [severity_rank(determine_severity([_post("1", text, likes)])) for likes in (0, 100, 501, 900, 1001, 5000)]
            with self.subTest(text=text):
                self.assertEqual(ranks, sorted(ranks))

    def test_idempotent(self) -> None:
        posts = [_post("1", "Shots fired near campus", 300), _post("2", "Evacuate now", 300)]
        self.assertEqual(determine_severity(posts), determine_severity(posts))
        self.assertEqual(analyze_sentiment(posts), analyze_sentiment(posts))


class TestCatalogueSeverity(unittest.TestCase):
    def test_levels(self) -> None:
        self.assertEqual(catalogue_severity("A mass shooting at a party"), "critical")
        self.assertEqual(catalogue_severity("One man was fatally shot"), "high")
        self.assertEqual(catalogue_severity("Treated for non-life-threatening wounds"), "high")
        self.assertEqual(catalogue_severity("Two people were injured"), "medium")

    def test_case_sensitive(self) -> None:
        self.assertEqual(catalogue_severity("KILLED"), "medium")


class TestSentimentAndGate(unittest.TestCase):
    def test_negative_single_post_is_dropped(self) -> None:
        report = analyze_sentiment([_post("1", "This is a hoax")])
        self.assertEqual(report.sentiment, "negative")
        self.assertFalse(passes_reliability_gate(report, 1))

    def test_two_posts_always_pass(self) -> None:
        posts = [_post("1", "fake news"), _post("2", "rumor mill")]
        report = analyze_sentiment(posts)
        self.assertEqual(report.sentiment, "negative")
        self.assertTrue(passes_reliability_gate(report, 2))

    def test_positive_and_verified(self) -> None:
        posts = [_post("1", "Confirmed by authorities", verified=True), _post("2", "official statement")]
        report = analyze_sentiment(posts)
        self.assertEqual(report.sentiment, "positive")
        self.assertEqual(report.verified_count, 1)
        self.assertEqual(report.confidence, 1.0)
        self.assertEqual(reliability_note(report), "Verified by 1 official sources. ")

    def test_high_confidence_note(self) -> None:
        report = analyze_sentiment([_post("1", "nothing"), _post("2", "still nothing")])
        self.assertEqual(report.sentiment, "neutral")
        self.assertEqual(reliability_note(report), "High confidence from multiple sources. ")


def test_status_labels() -> None:
    assert live_status("critical") == "Active Investigation"
    assert live_status("high") == "Monitoring"
    assert live_status("low") == "Verified"
    assert catalogue_status("high") == "Under Investigation"
    assert catalogue_status("critical") == "Suspect in Custody"
