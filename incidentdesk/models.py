"""Records exchanged between the fetch layer, the pipeline and presentation.

Posts are read-only inputs; Incidents are built once and never mutated.
The ``from_dict`` constructors are tolerant: missing author/media/metrics
are defaulted instead of rejecting the post.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

from ._util import as_int, is_non_empty_str

Severity = Literal["critical", "high", "medium", "low"]
MediaKind = Literal["photo", "video", "gif"]

_MEDIA_KINDS: frozenset[str] = frozenset({"photo", "video", "gif"})


@dataclass(frozen=True)
class Author:
    username: str = "unknown"
    name: str = "Unknown User"
    verified: bool = False
    profile_image_url: str | None = None

    @classmethod
    def from_dict(cls, obj: Any) -> Author:
        if not isinstance(obj, dict):
            return cls()
        username = obj.get("username")
        name = obj.get("name")
        avatar = obj.get("profile_image_url", obj.get("profileImageUrl"))
        return cls(
            username=username.strip() if is_non_empty_str(username) else "unknown",
            name=name.strip() if is_non_empty_str(name) else "Unknown User",
            verified=bool(obj.get("verified") or False),
            profile_image_url=avatar if is_non_empty_str(avatar) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"username": self.username, "name": self.name, "verified": self.verified}
        if self.profile_image_url:
            out["profile_image_url"] = self.profile_image_url
        return out


@dataclass(frozen=True)
class Engagement:
    likes: int = 0
    reshares: int = 0
    replies: int = 0
    quotes: int = 0
    views: int | None = None

    @property
    def reactions(self) -> int:
        """Likes plus reshares; the engagement figure used for ranking."""
        return self.likes + self.reshares

    def is_zero(self) -> bool:
        return (
            self.likes <= 0
            and self.reshares <= 0
            and self.replies <= 0
            and self.quotes <= 0
            and (self.views or 0) <= 0
        )

    @classmethod
    def from_dict(cls, obj: Any) -> Engagement:
        if not isinstance(obj, dict):
            return cls()

        def count(*keys: str) -> int:
            for k in keys:
                v = as_int(obj.get(k))
                if v is not None:
                    return max(0, v)
            return 0

        views = None
        for k in ("views", "impression_count"):
            v = as_int(obj.get(k))
            if v is not None:
                views = max(0, v)
                break
        return cls(
            likes=count("likes", "like_count"),
            reshares=count("reshares", "retweets", "retweet_count"),
            replies=count("replies", "reply_count"),
            quotes=count("quotes", "quote_count"),
            views=views,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "likes": self.likes,
            "reshares": self.reshares,
            "replies": self.replies,
            "quotes": self.quotes,
        }
        if self.views is not None:
            out["views"] = self.views
        return out


@dataclass(frozen=True)
class Media:
    kind: MediaKind
    url: str
    preview_url: str | None = None

    @classmethod
    def from_dict(cls, obj: Any) -> Media | None:
        if not isinstance(obj, dict):
            return None
        url = obj.get("url")
        preview = obj.get("preview_url", obj.get("previewUrl"))
        if not is_non_empty_str(url):
            if not is_non_empty_str(preview):
                return None
            url = preview
        kind = obj.get("kind", obj.get("type"))
        if kind == "animated_gif":
            kind = "gif"
        if kind not in _MEDIA_KINDS:
            kind = "photo"
        return cls(kind=kind, url=url, preview_url=preview if is_non_empty_str(preview) else None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind, "url": self.url}
        if self.preview_url:
            out["preview_url"] = self.preview_url
        return out


@dataclass(frozen=True)
class Post:
    id: str
    text: str
    author: Author
    url: str
    timestamp: str
    engagement: Engagement
    media: tuple[Media, ...] = ()

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> Post:
        """Build a Post from a plain mapping.

        Raises ValueError only when the id is missing; every other field is
        defaulted (author -> unknown, media -> empty, metrics -> 0).
        """
        pid = obj.get("id")
        if isinstance(pid, int) and not isinstance(pid, bool):
            pid = str(pid)
        if not is_non_empty_str(pid):
            raise ValueError("post id is required")
        author = Author.from_dict(obj.get("author"))
        url = obj.get("url")
        if not is_non_empty_str(url):
            url = f"https://twitter.com/{author.username}/status/{pid}"
        text = obj.get("text")
        media_raw = obj.get("media")
        media: list[Media] = []
        if isinstance(media_raw, list):
            for m in media_raw:
                item = Media.from_dict(m)
                if item is not None:
                    media.append(item)
        ts = obj.get("timestamp")
        return cls(
            id=pid,
            text=text if isinstance(text, str) else "",
            author=author,
            url=url,
            timestamp=ts if isinstance(ts, str) else "",
            engagement=Engagement.from_dict(obj.get("engagement")),
            media=tuple(media),
        )

    def with_verified_author(self) -> Post:
        if self.author.verified:
            return self
        return replace(self, author=replace(self.author, verified=True))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author.to_dict(),
            "url": self.url,
            "timestamp": self.timestamp,
            "engagement": self.engagement.to_dict(),
            "media": [m.to_dict() for m in self.media],
        }


@dataclass(frozen=True)
class LocationMatch:
    location: str
    confidence: float

    @property
    def matched(self) -> bool:
        return bool(self.location) and self.confidence > 0.0


NO_LOCATION = LocationMatch(location="", confidence=0.0)


@dataclass(frozen=True)
class Citation:
    id: int
    url: str
    username: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "url": self.url, "username": self.username}


@dataclass(frozen=True)
class EngagementTotals:
    likes: int = 0
    reshares: int = 0
    replies: int = 0
    quotes: int = 0
    views: int = 0

    @property
    def reactions(self) -> int:
        return self.likes + self.reshares

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_likes": self.likes,
            "total_reshares": self.reshares,
            "total_replies": self.replies,
            "total_quotes": self.quotes,
            "total_views": self.views,
        }


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Discussion:
    status: str
    summary: str
    citations: tuple[Citation, ...]
    sources: tuple[Post, ...]
    totals: EngagementTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "summary": self.summary,
            "citations": [c.to_dict() for c in self.citations],
            "sources": [p.to_dict() for p in self.sources],
            "total_engagement": self.totals.to_dict(),
        }


@dataclass(frozen=True)
class Incident:
    id: str
    title: str
    severity: Severity
    location: str
    timestamp: str
    description: str
    discussion: Discussion
    coordinates: Coordinates | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "severity": self.severity,
            "location": self.location,
            "timestamp": self.timestamp,
            "description": self.description,
            "discussion": self.discussion.to_dict(),
        }
        if self.coordinates is not None:
            out["coordinates"] = self.coordinates.to_dict()
        return out


@dataclass(frozen=True)
class KnownIncidentDescriptor:
    """A curated incident that is re-queried and re-scored on every run."""

    title: str
    location: str
    timestamp: str
    description: str
    search_queries: tuple[str, ...] = field(default_factory=tuple)
    coordinates: Coordinates | None = None
