from __future__ import annotations

# label -> substrings (matched against lower-cased text)
TOPIC_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("shooting", ("shooting", "shots fired")),
    ("active_shooter", ("active shooter",)),
    ("arrest", ("arrest",)),
    ("suspect", ("suspect",)),
    ("casualties", ("victim", "injured", "killed")),
    ("evacuation", ("evacuat",)),
    ("lockdown", ("lockdown",)),
)

TOPIC_LABELS: frozenset[str] = frozenset(label for label, _ in TOPIC_KEYWORDS)


def tag_topics(text: str | None) -> frozenset[str]:
    """Coarse incident-topic labels present in ``text`` (possibly empty)."""
    low = (text or "").lower()
    return frozenset(label for label, words in TOPIC_KEYWORDS if any(w in low for w in words))
