import re
import unittest

from incidentdesk.models import Author, Engagement, Post
from incidentdesk.narrative import NO_INFORMATION, _pluralize, generate_title, summarize

_CITE_RE = re.compile(r"\[@([^\]]+)\]\(([^)]+)\)")


def _post(pid: str, text: str, likes: int = 0, reshares: int = 0, user: str | None = None) -> Post:
    user = user or f"u{pid}"
    return Post(
        id=pid,
        text=text,
        author=Author(username=user),
        url=f"https://twitter.com/{user}/status/{pid}",
        timestamp="2025-12-02T20:00:00Z",
        engagement=Engagement(likes=likes, reshares=reshares),
    )


class TestSummarize(unittest.TestCase):
    def test_no_posts(self) -> None:
        s = summarize([], "Anywhere")
        self.assertEqual(s.text, NO_INFORMATION)
        self.assertEqual(s.citations, ())

    def test_shooting_and_suspect_sentences(self) -> None:
        posts = [
            _post("1", "Shooting at Westfield Valley Fair, 1 person killed", 300, 100, user="abc7"),
            _post("2", "Suspect arrested after Valley Fair shooting, police say", 150, 50, user="sjpd"),
            _post("3", "Scene cleared at Westfield Valley Fair", 10, user="kron4"),
        ]
        s = summarize(posts, "Westfield Valley Fair")
        self.assertTrue(s.text.startswith("Shooting reported at Westfield Valley Fair. [@abc7]("))
        self.assertIn("reported fatalities.", s.text)
        self.assertIn("[@sjpd](https://twitter.com/sjpd/status/2) confirmed suspect in custody.", s.text)
        self.assertEqual([c.id for c in s.citations], [1, 2])
        self.assertEqual([c.username for c in s.citations], ["abc7", "sjpd"])

    def test_citation_invariant(self) -> None:
        posts = [
            _post("1", "Shooting near Stanford University, 2 injured", 500),
            _post("2", "Stanford shooting suspect in custody", 400),
            _post("3", "Another Stanford shooting update, suspect arrested", 300),
            _post("4", "Stanford police: scene cleared", 200),
        ]
        s = summarize(posts, "Stanford University")
        source_urls = {p.url for p in posts}
        inline = _CITE_RE.findall(s.text)
        self.assertTrue(inline)
        self.assertEqual([c.id for c in s.citations], list(range(1, len(s.citations) + 1)))
        self.assertEqual(len({c.url for c in s.citations}), len(s.citations))
        for c in s.citations:
            self.assertIn(c.url, source_urls)
        self.assertEqual({url for _, url in inline}, {c.url for c in s.citations})

    def test_scene_cleared(self) -> None:
        s = summarize([_post("1", "Shooting near Stanford University, scene cleared", 50)], "Stanford University")
        self.assertIn("reported the incident.", s.text)
        self.assertTrue(s.text.endswith("Scene cleared."))

    def test_no_keywords_gives_empty_summary(self) -> None:
        s = summarize([_post("1", "Traffic is slow on 101", 5)], "Palo Alto")
        self.assertEqual(s.text, "")
        self.assertEqual(s.citations, ())


class TestGenerateTitle(unittest.TestCase):
    def test_actor_action_victims(self) -> None:
        title = generate_title([_post("1", "Man shot 3 people at Santana Row", 10)], "Santana Row")
        self.assertEqual(title, "Man shoots 3 people at Santana Row")

    def test_arrest_never_carries_victims(self) -> None:
        title = generate_title([_post("1", "Teen arrested after 2 people injured", 10)], "Stanford")
        self.assertEqual(title, "Teen arrested at Stanford")

    def test_action_only(self) -> None:
        self.assertEqual(generate_title([_post("1", "Stabbing reported downtown", 1)], "San Jose"), "Stabbing at San Jose")

    def test_fallback(self) -> None:
        self.assertEqual(generate_title([_post("1", "Big police presence", 1)], "Fremont"), "Incident at Fremont")
        self.assertEqual(generate_title([], "Fremont"), "Incident at Fremont")

    def test_bare_count_is_not_an_age(self) -> None:
        title = generate_title([_post("1", "Shooting at Santana Row: 1 person injured", 5)], "Santana Row")
        self.assertEqual(title, "Person shoots 1 person at Santana Row")

    def test_age_prefixed_actor(self) -> None:
        title = generate_title([_post("1", "17-year-old suspect shot 2 victims", 5)], "Valley Fair")
        self.assertEqual(title, "17-year-old suspect shoots 2 victims at Valley Fair")


def test_pluralize() -> None:
    assert _pluralize("3", "people") == "3 people"
    assert _pluralize("4", "person") == "4 people"
    assert _pluralize("2", "victim") == "2 victims"
    assert _pluralize("1", "victim") == "1 victim"
