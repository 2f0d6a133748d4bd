"""Deterministic metrics for a cluster of posts: engagement, sentiment, severity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

from ._util import contains_any
from .models import EngagementTotals, Post, Severity

Sentiment = Literal["positive", "neutral", "negative"]

SHOOTING_KEYWORDS: tuple[str, ...] = ("shooting", "shots fired", "active shooter", "gunfire")
CRITICAL_KEYWORDS: tuple[str, ...] = ("emergency", "evacuate", "police", "swat", "lockdown")
NEGATIVE_WORDS: tuple[str, ...] = ("false", "hoax", "fake", "debunked", "unconfirmed", "rumor")
POSITIVE_WORDS: tuple[str, ...] = ("confirmed", "verified", "official", "police", "authorities")

MASS_CASUALTY_PHRASES: tuple[str, ...] = ("mass shooting", "4 people killed", "3 children killed")
FATALITY_PHRASES: tuple[str, ...] = ("fatally", "died", "killed")


def total_engagement(posts: Iterable[Post]) -> EngagementTotals:
    likes = reshares = replies = quotes = views = 0
    for p in posts:
        e = p.engagement
        likes += e.likes
        reshares += e.reshares
        replies += e.replies
        quotes += e.quotes
        views += e.views or 0
    return EngagementTotals(likes=likes, reshares=reshares, replies=replies, quotes=quotes, views=views)


@dataclass(frozen=True)
class SentimentReport:
    sentiment: Sentiment
    confidence: float
    verified_count: int
    positive: int
    negative: int
    neutral: int


def _classify(text: str) -> Sentiment:
    low = text.lower()
    if contains_any(low, NEGATIVE_WORDS):
        return "negative"
    if contains_any(low, POSITIVE_WORDS):
        return "positive"
    return "neutral"


def analyze_sentiment(posts: Sequence[Post]) -> SentimentReport:
    counts = {"positive": 0, "negative": 0, "neutral": 0}
    verified = 0
    for p in posts:
        if p.author.verified:
            verified += 1
        counts[_classify(p.text)] += 1

    pos, neg, neu = counts["positive"], counts["negative"], counts["neutral"]
    if neg > pos:
        overall: Sentiment = "negative"
    elif pos > neu:
        overall = "positive"
    else:
        overall = "neutral"
    total = len(posts)
    confidence = (max(pos, neg, neu) / total) if total else 0.0
    return SentimentReport(
        sentiment=overall,
        confidence=confidence,
        verified_count=verified,
        positive=pos,
        negative=neg,
        neutral=neu,
    )


def is_reliable(report: SentimentReport, post_count: int) -> bool:
    # post_count >= 1 holds for every non-empty cluster, so in practice only
    # negative sentiment makes a cluster unreliable.
    return report.sentiment != "negative" and (
        report.verified_count > 0 or report.confidence > 0.6 or post_count >= 1
    )


def passes_reliability_gate(report: SentimentReport, post_count: int) -> bool:
    """A cluster is dropped only when it is unreliable AND has fewer than 2 posts."""
    return is_reliable(report, post_count) or post_count >= 2


def determine_severity(posts: Sequence[Post]) -> Severity:
    """Strict priority cascade over keyword findings and likes+reshares."""
    if not posts:
        return "low"

    reactions = total_engagement(posts).reactions
    texts = [p.text.lower() for p in posts]
    has_shooting = any(contains_any(t, SHOOTING_KEYWORDS) for t in texts)
    has_critical = any(contains_any(t, CRITICAL_KEYWORDS) for t in texts)

    if has_shooting:
        return "critical" if reactions > 500 else "high"
    if has_critical and reactions > 1000:
        return "critical"
    if has_critical and reactions > 500:
        return "high"
    if reactions > 1000:
        return "high"
    if reactions > 500:
        return "medium"
    return "low"


def catalogue_severity(description: str) -> Severity:
    """Severity for a curated incident, read from its human-authored description."""
    if contains_any(description, MASS_CASUALTY_PHRASES):
        return "critical"
    if contains_any(description, FATALITY_PHRASES) or "life-threatening" in description:
        return "high"
    return "medium"


def live_status(severity: Severity) -> str:
    if severity == "critical":
        return "Active Investigation"
    if severity == "high":
        return "Monitoring"
    return "Verified"


def catalogue_status(severity: Severity) -> str:
    return "Under Investigation" if severity == "high" else "Suspect in Custody"


def reliability_note(report: SentimentReport) -> str:
    if report.verified_count > 0:
        return f"Verified by {report.verified_count} official sources. "
    if report.confidence > 0.7:
        return "High confidence from multiple sources. "
    return ""
