"""Group a batch of posts into location-bound, time-bound incident clusters.

Two passes over the batch, in input order:

- pass 1 seeds and grows clusters from posts with a confident location
  (same/containing location, compatible topics, within the recency window);
- pass 2 folds the remaining posts into existing clusters only when their
  text literally names the cluster's location.

Posts that match nothing are dropped. Clusters live in an arena (a list
indexed by cluster id) and are mutated in place until the batch is
finalized.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable

from ._util import parse_timestamp
from .location import extract_location
from .models import LocationMatch, Post
from .topics import tag_topics

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_WINDOW = timedelta(hours=24)
DEFAULT_MIN_LOCATION_CONFIDENCE = 0.5
DEFAULT_UPGRADE_CONFIDENCE = 0.8
DEFAULT_MIN_CLUSTER_POSTS = 1


@dataclass
class ClusterState:
    """Working accumulator for one cluster during a single batch."""

    cluster_id: int
    location: str
    topics: set[str]
    most_recent: datetime | None
    most_recent_raw: str
    posts: list[Post] = field(default_factory=list)
    post_ids: set[str] = field(default_factory=set)

    def add(self, post: Post) -> None:
        if post.id in self.post_ids:
            return
        self.post_ids.add(post.id)
        self.posts.append(post)


@dataclass(frozen=True)
class AnchoredCluster:
    posts: tuple[Post, ...]
    location: str
    topics: frozenset[str]
    timestamp: str


def _locations_overlap(a: str, b: str) -> bool:
    a = a.lower()
    b = b.lower()
    return a == b or a in b or b in a


def _within_window(post_time: datetime | None, cluster_time: datetime | None, window: timedelta) -> bool:
    # Unknown times never rule a post out.
    if post_time is None or cluster_time is None:
        return True
    return abs(post_time - cluster_time) <= window


class IncidentAnchoring:
    def __init__(
        self,
        *,
        recency_window: timedelta = DEFAULT_RECENCY_WINDOW,
        min_location_confidence: float = DEFAULT_MIN_LOCATION_CONFIDENCE,
        upgrade_confidence: float = DEFAULT_UPGRADE_CONFIDENCE,
        min_cluster_posts: int = DEFAULT_MIN_CLUSTER_POSTS,
        locate: Callable[[str], LocationMatch] = extract_location,
        tag: Callable[[str], frozenset[str]] = tag_topics,
    ) -> None:
        self.recency_window = recency_window
        self.min_location_confidence = float(min_location_confidence)
        self.upgrade_confidence = float(upgrade_confidence)
        self.min_cluster_posts = max(1, int(min_cluster_posts))
        self._locate = locate
        self._tag = tag

    # -- pass 1 ------------------------------------------------------------

    def _confident_match(
        self,
        clusters: list[ClusterState],
        loc: LocationMatch,
        topics: frozenset[str],
        post_time: datetime | None,
    ) -> int | None:
        for c in clusters:
            if not _locations_overlap(c.location, loc.location):
                continue
            if c.topics and topics and ("shooting" in topics or "shooting" in c.topics):
                if not c.topics.intersection(topics):
                    continue
            if not _within_window(post_time, c.most_recent, self.recency_window):
                continue
            return c.cluster_id
        return None

    # -- pass 2 ------------------------------------------------------------

    def _mention_match(
        self,
        clusters: list[ClusterState],
        text_lower: str,
        topics: frozenset[str],
        post_time: datetime | None,
    ) -> int | None:
        for c in clusters:
            if not c.location or c.location.lower() not in text_lower:
                continue
            if c.topics and topics and not c.topics.intersection(topics):
                continue
            if not _within_window(post_time, c.most_recent, self.recency_window):
                continue
            return c.cluster_id
        return None

    def anchor(self, posts: Iterable[Post]) -> list[AnchoredCluster]:
        batch = list(posts)
        clusters: list[ClusterState] = []
        processed: set[str] = set()

        for post in batch:
            if post.id in processed:
                continue
            loc = self._locate(post.text)
            if loc.confidence < self.min_location_confidence:
                continue
            topics = self._tag(post.text)
            post_time = parse_timestamp(post.timestamp)

            cid = self._confident_match(clusters, loc, topics, post_time)
            if cid is None:
                c = ClusterState(
                    cluster_id=len(clusters),
                    location=loc.location,
                    topics=set(topics),
                    most_recent=post_time,
                    most_recent_raw=post.timestamp,
                )
                c.add(post)
                clusters.append(c)
            else:
                c = clusters[cid]
                c.add(post)
                c.topics.update(topics)
                if post_time is not None and (c.most_recent is None or post_time > c.most_recent):
                    c.most_recent = post_time
                    c.most_recent_raw = post.timestamp
                if loc.confidence > self.upgrade_confidence and len(c.location) < len(loc.location):
                    c.location = loc.location
            processed.add(post.id)

        seeded = len(clusters)
        folded = 0
        for post in batch:
            if post.id in processed:
                continue
            topics = self._tag(post.text)
            post_time = parse_timestamp(post.timestamp)
            cid = self._mention_match(clusters, post.text.lower(), topics, post_time)
            if cid is None:
                continue
            c = clusters[cid]
            c.add(post)
            c.topics.update(topics)
            processed.add(post.id)
            folded += 1

        logger.debug(
            "anchoring: %d posts -> %d clusters (%d folded by mention, %d dropped)",
            len(batch),
            seeded,
            folded,
            len(batch) - len(processed),
        )

        return [
            AnchoredCluster(
                posts=tuple(c.posts),
                location=c.location,
                topics=frozenset(c.topics),
                timestamp=c.most_recent_raw,
            )
            for c in clusters
            if len(c.posts) >= self.min_cluster_posts
        ]


def anchor_posts(posts: Iterable[Post], **kwargs) -> list[AnchoredCluster]:
    """Cluster a batch of posts with default (or overridden) settings."""
    return IncidentAnchoring(**kwargs).anchor(posts)
