"""Rule-based narrative synthesis: a short cited summary and a headline.

There is a single summary routine and a single title routine; both the
catalogue path and the live path go through them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from .location import PRIMARY_POST_ALIASES, mentions_location
from .models import Citation, Post

NO_INFORMATION = "No information available."
SUMMARY_TOP_POSTS = 7

_URL_RE = re.compile(r"https?://\S+")

_SHOOTING_CLAUSE_RE = re.compile(r".{0,200}(?:shooting|shots fired|gunfire|active shooter).{0,200}", re.IGNORECASE)
_SUSPECT_CLAUSE_RE = re.compile(r".{0,200}(?:suspect|arrested|in custody|perpetrator|shooter).{0,200}", re.IGNORECASE)
_RESOLUTION_CLAUSE_RE = re.compile(
    r".{0,200}(?:resolved|cleared|evacuated|contained|under control|arrested|in custody).{0,200}",
    re.IGNORECASE,
)
_CASUALTY_CLAUSE_RE = re.compile(r".{0,200}(?:injured|killed|wounded|victim|casualty|hospitalized).{0,200}", re.IGNORECASE)
_SUSPECT_POST_RE = re.compile(r"suspect|arrested|in custody", re.IGNORECASE)


def _is_shooting_text(text: str) -> bool:
    low = text.lower()
    return "shooting" in low or "shots fired" in low


def _reactions(post: Post) -> int:
    return post.engagement.reactions


def rank_posts(posts: Sequence[Post]) -> list[Post]:
    """Shooting-related posts first, then by likes+reshares (stable)."""
    return sorted(posts, key=lambda p: (not _is_shooting_text(p.text), -_reactions(p)))


@dataclass(frozen=True)
class Findings:
    what_happened: tuple[str, ...]
    suspect_info: tuple[str, ...]
    resolution: tuple[str, ...]
    casualties: tuple[str, ...]


def extract_findings(posts: Sequence[Post]) -> Findings:
    buckets: dict[str, list[str]] = {"what": [], "suspect": [], "resolution": [], "casualties": []}
    patterns = (
        ("what", _SHOOTING_CLAUSE_RE),
        ("suspect", _SUSPECT_CLAUSE_RE),
        ("resolution", _RESOLUTION_CLAUSE_RE),
        ("casualties", _CASUALTY_CLAUSE_RE),
    )
    for post in posts:
        clean = _URL_RE.sub("", post.text).strip()
        for key, pattern in patterns:
            m = pattern.search(clean)
            if m and m.group(0) not in buckets[key]:
                buckets[key].append(m.group(0))
    return Findings(
        what_happened=tuple(buckets["what"]),
        suspect_info=tuple(buckets["suspect"]),
        resolution=tuple(buckets["resolution"]),
        casualties=tuple(buckets["casualties"]),
    )


@dataclass(frozen=True)
class Summary:
    text: str
    citations: tuple[Citation, ...]


class _CitationLog:
    def __init__(self) -> None:
        self.citations: list[Citation] = []
        self._urls: set[str] = set()

    def cite(self, post: Post) -> None:
        if post.url in self._urls:
            return
        self._urls.add(post.url)
        self.citations.append(Citation(id=len(self.citations) + 1, url=post.url, username=post.author.username))

    def used(self, post: Post) -> bool:
        return post.url in self._urls


def _casualty_phrase(casualties: Sequence[str]) -> str:
    if casualties:
        low = casualties[0].lower()
        if "killed" in low or "dead" in low:
            return "reported fatalities"
        if "injured" in low:
            return "reported injuries"
    return "reported the incident"


def summarize(posts: Sequence[Post], location: str, *, top_n: int = SUMMARY_TOP_POSTS) -> Summary:
    """Short narrative with inline ``[@handle](url)`` citations."""
    if not posts:
        return Summary(text=NO_INFORMATION, citations=())

    top = rank_posts(posts)[:top_n]
    located = [p for p in top if mentions_location(p.text, location)]
    candidates = located or top
    findings = extract_findings(candidates)
    is_shooting = any("shooting" in p.text.lower() for p in top)

    log = _CitationLog()
    parts: list[str] = []

    if findings.what_happened and is_shooting:
        primary = next(
            (
                p
                for p in candidates
                if _is_shooting_text(p.text) and mentions_location(p.text, location, aliases=PRIMARY_POST_ALIASES)
            ),
            candidates[0],
        )
        log.cite(primary)
        parts.append(
            f"Shooting reported at {location}. [@{primary.author.username}]({primary.url}) "
            f"{_casualty_phrase(findings.casualties)}. "
        )

    if findings.suspect_info:
        first = findings.suspect_info[0].lower()
        if "arrested" in first or "in custody" in first:
            matching = [p for p in candidates if _SUSPECT_POST_RE.search(p.text)]
            suspect_post = next((p for p in matching if not log.used(p)), None)
            if suspect_post is None and matching:
                suspect_post = matching[0]
            if suspect_post is None and len(candidates) > 1:
                suspect_post = candidates[1]
            if suspect_post is not None:
                log.cite(suspect_post)
                parts.append(f"[@{suspect_post.author.username}]({suspect_post.url}) confirmed suspect in custody. ")

    if findings.resolution and "cleared" in findings.resolution[0].lower():
        parts.append("Scene cleared.")

    return Summary(text="".join(parts).strip(), citations=tuple(log.citations))


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------

_ACTOR_RE = re.compile(
    r"\b(?:(\d+-year-old)\s+)?(man|woman|teen|teenager|juvenile|suspect|shooter|gunman|individual|person)\b",
    re.IGNORECASE,
)

_VICTIM_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:shot|killed|injured|wounded)\s+(\d+)\s+(people|person|victim|individual)s?", re.IGNORECASE),
    re.compile(r"(\d+)\s+(people|person|victim|individual)s?\s+(?:shot|killed|injured|wounded)", re.IGNORECASE),
    re.compile(r"(?:shot|killed|injured|wounded)\s+(?:a\s+)?(man|woman|teen|person|individual)", re.IGNORECASE),
    re.compile(r"shooting\s+(?:at\s+)?(\d+)\s+(people|victim)", re.IGNORECASE),
)

ACTION_NOUNS: dict[str, str] = {
    "shoots": "Shooting",
    "stabs": "Stabbing",
    "assaults": "Assault",
    "attacks": "Attack",
    "arrested at": "Arrest",
}


def _find_actor(text: str) -> str:
    m = _ACTOR_RE.search(text)
    if not m:
        return ""
    actor = f"{m.group(1)} {m.group(2)}" if m.group(1) else m.group(2)
    return actor[:1].upper() + actor[1:]


def _find_action(text: str) -> str:
    low = text.lower()
    if "shooting" in low or "shots fired" in low or "shot" in low:
        return "shoots"
    if "stabbing" in low or "stabbed" in low:
        return "stabs"
    if "arrested" in low:
        return "arrested at"
    if "assault" in low:
        return "assaults"
    if "attack" in low:
        return "attacks"
    return ""


def _pluralize(count: str, noun: str) -> str:
    noun = noun.lower()
    if count == "1" or noun.endswith("s") or noun == "people":
        return f"{count} {noun}"
    if noun == "person":
        return f"{count} people"
    return f"{count} {noun}s"


def _find_victims(text: str) -> str:
    for pattern in _VICTIM_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        groups = m.groups()
        if len(groups) >= 2 and groups[0] and groups[1]:
            return _pluralize(groups[0], groups[1])
        return groups[0].lower()
    return ""


def _fallback_type(text: str) -> str:
    low = text.lower()
    if "shooting" in low or "shots fired" in low:
        return "Shooting"
    if "stabbing" in low:
        return "Stabbing"
    if "arrest" in low:
        return "Arrest"
    return "Incident"


def generate_title(posts: Sequence[Post], location: str) -> str:
    """Headline in the form ``"<Actor> <action> <victims> at <location>"``."""
    ranked = sorted(posts, key=lambda p: -_reactions(p))
    actor = action = victims = ""
    for post in ranked:
        if not actor:
            actor = _find_actor(post.text)
        if not action:
            action = _find_action(post.text)
        if not victims:
            victims = _find_victims(post.text)
        if actor and action:
            break

    if actor and action:
        if action == "arrested at":
            return f"{actor} arrested at {location}"
        if victims:
            return f"{actor} {action} {victims} at {location}"
        return f"{actor} {action} at {location}"
    if action:
        return f"{ACTION_NOUNS.get(action, 'Incident')} at {location}"
    if ranked:
        return f"{_fallback_type(ranked[0].text)} at {location}"
    return f"Incident at {location}"
