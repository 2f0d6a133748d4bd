"""Location extraction from free post text.

The extractor is an ordered cascade of independent matchers; the first one
that produces a location wins:

1. named-place catalogue (venues before cities)
2. street address
3. venue / building name
4. intersection
5. neighborhood / area

Each matcher exposes ``match(text) -> LocationMatch`` and returns
``NO_LOCATION`` when it does not fire, so the cascade can be tested one
matcher at a time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Protocol

from .models import NO_LOCATION, Coordinates, LocationMatch

TIER_VENUE = 1
TIER_CITY = 3

_TIER_CONFIDENCE = {TIER_VENUE: 0.95}
_DEFAULT_TIER_CONFIDENCE = 0.75


@dataclass(frozen=True)
class PlaceEntry:
    name: str
    keywords: tuple[str, ...]
    tier: int


# Specific venues first in spirit, but the matcher sorts by tier anyway.
PLACE_CATALOGUE: tuple[PlaceEntry, ...] = (
    PlaceEntry("Westfield Valley Fair", ("westfield valley fair", "valley fair mall", "valley fair shopping center", "valley fair"), TIER_VENUE),
    PlaceEntry("Stanford Shopping Center", ("stanford shopping center", "stanford mall"), TIER_VENUE),
    PlaceEntry("Stanford University", ("stanford university", "stanford campus"), TIER_VENUE),
    PlaceEntry("Hoover Tower", ("hoover tower",), TIER_VENUE),
    PlaceEntry("Main Quad", ("main quad",), TIER_VENUE),
    PlaceEntry("Green Library", ("green library",), TIER_VENUE),
    PlaceEntry("Santana Row", ("santana row",), TIER_VENUE),
    PlaceEntry("SAP Center", ("sap center", "sap arena", "shark tank"), TIER_VENUE),
    PlaceEntry("Levi's Stadium", ("levi's stadium", "levis stadium"), TIER_VENUE),
    PlaceEntry("Stanford Hospital", ("stanford hospital", "stanford medical center"), TIER_VENUE),
    PlaceEntry("Valley Medical Center", ("valley medical center", "vmc"), TIER_VENUE),
    PlaceEntry("Stanford", ("stanford",), TIER_CITY),
    PlaceEntry("Palo Alto", ("palo alto",), TIER_CITY),
    PlaceEntry("San Jose", ("san jose",), TIER_CITY),
    PlaceEntry("Menlo Park", ("menlo park",), TIER_CITY),
    PlaceEntry("Mountain View", ("mountain view",), TIER_CITY),
    PlaceEntry("Redwood City", ("redwood city",), TIER_CITY),
    PlaceEntry("East Palo Alto", ("east palo alto",), TIER_CITY),
    PlaceEntry("Santa Clara", ("santa clara",), TIER_CITY),
    PlaceEntry("Cupertino", ("cupertino",), TIER_CITY),
    PlaceEntry("Sunnyvale", ("sunnyvale",), TIER_CITY),
    PlaceEntry("Fremont", ("fremont",), TIER_CITY),
    PlaceEntry("Milpitas", ("milpitas",), TIER_CITY),
)


class LocationMatcher(Protocol):
    name: str

    def match(self, text: str) -> LocationMatch: ...


class PlaceCatalogueMatcher:
    """Case-insensitive keyword lookup against the named-place table."""

    name = "place_catalogue"

    def __init__(self, places: Iterable[PlaceEntry] = PLACE_CATALOGUE) -> None:
        # sorted() is stable, so table order is kept within a tier.
        self._places = tuple(sorted(places, key=lambda p: p.tier))

    def match(self, text: str) -> LocationMatch:
        low = text.lower()
        for place in self._places:
            for kw in place.keywords:
                if kw in low:
                    conf = _TIER_CONFIDENCE.get(place.tier, _DEFAULT_TIER_CONFIDENCE)
                    return LocationMatch(location=place.name, confidence=conf)
        return NO_LOCATION


_STREET_TYPES = r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Way|Lane|Ln|Circle|Cir|Court|Ct|Place|Pl)"
_STREET_BODY = rf"\d+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+{_STREET_TYPES}\b\.?"

_ADDRESS_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "at/on/near 123 Main Street"
    re.compile(rf"(?:at|on|near|in)\s+({_STREET_BODY})", re.IGNORECASE),
    # bare "123 Main St"
    re.compile(rf"({_STREET_BODY})", re.IGNORECASE),
    # "123 Main St, Palo Alto" / "123 Main St in Palo Alto"
    re.compile(rf"({_STREET_BODY}(?:,?\s+(?:in|at|near)\s+)?[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)", re.IGNORECASE),
)


class StreetAddressMatcher:
    name = "street_address"
    confidence = 0.9

    def match(self, text: str) -> LocationMatch:
        low = text.lower()
        for pattern in _ADDRESS_PATTERNS:
            m = pattern.search(text)
            if not m or not m.group(1):
                continue
            address = m.group(1).strip()
            addr_low = address.lower()
            # "Emergency Alert Street" style false positives.
            if "alert" in low and "st" not in addr_low and "street" not in addr_low:
                continue
            return LocationMatch(location=address, confidence=self.confidence)
        return NO_LOCATION


_VENUE_NOUNS = (
    r"(?:Mall|Center|Centre|Store|Shop|Restaurant|Cafe|Cafeteria|Hospital|Clinic|School|University|Campus"
    r"|Park|Plaza|Square|Stadium|Arena|Building|Tower|Hall|Library|Museum|Theater|Theatre|Hotel|Inn"
    r"|Market|Station|Terminal|Airport)"
)

_VENUE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"(?:at|in|near)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){{0,4}}\s+{_VENUE_NOUNS})", re.IGNORECASE),
    re.compile(
        r"(?:at|in|near)\s+(?:the\s+)?([A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,4}\s+(?:Building|Tower|Hall|Center|Library|Museum))",
        re.IGNORECASE,
    ),
)

VENUE_ACTION_WORDS: tuple[str, ...] = (
    "shooting",
    "arrested",
    "incident",
    "alert",
    "emergency",
    "police",
    "active",
    "reported",
)


class VenueNameMatcher:
    name = "venue_name"
    confidence = 0.85

    def match(self, text: str) -> LocationMatch:
        for pattern in _VENUE_PATTERNS:
            m = pattern.search(text)
            if not m or not m.group(1):
                continue
            venue = m.group(1).strip()
            low = venue.lower()
            if any(w in low for w in VENUE_ACTION_WORDS):
                continue
            return LocationMatch(location=venue, confidence=self.confidence)
        return NO_LOCATION


_SHORT_STREET_TYPES = r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Way|Lane|Ln)"
_INTERSECTION_RE = re.compile(
    rf"(?:at|near)\s+([A-Z][a-z]+(?:\s+{_SHORT_STREET_TYPES}\b)?)\s+(?:and|&)\s+([A-Z][a-z]+(?:\s+{_SHORT_STREET_TYPES}\b)?)",
    re.IGNORECASE,
)


class IntersectionMatcher:
    name = "intersection"
    confidence = 0.85

    def match(self, text: str) -> LocationMatch:
        m = _INTERSECTION_RE.search(text)
        if not m or not m.group(1) or not m.group(2):
            return NO_LOCATION
        return LocationMatch(location=f"{m.group(1).strip()} & {m.group(2).strip()}", confidence=self.confidence)


_NEIGHBORHOOD_RE = re.compile(
    r"(?:in|at|near)\s+(?:the\s+)?([A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,2}\s+(?:neighborhood|area|district|region|vicinity))",
    re.IGNORECASE,
)


class NeighborhoodMatcher:
    name = "neighborhood"
    confidence = 0.7

    def match(self, text: str) -> LocationMatch:
        m = _NEIGHBORHOOD_RE.search(text)
        if not m or not m.group(1):
            return NO_LOCATION
        return LocationMatch(location=m.group(1).strip(), confidence=self.confidence)


DEFAULT_MATCHERS: tuple[LocationMatcher, ...] = (
    PlaceCatalogueMatcher(),
    StreetAddressMatcher(),
    VenueNameMatcher(),
    IntersectionMatcher(),
    NeighborhoodMatcher(),
)


class LocationExtractor:
    def __init__(self, matchers: Iterable[LocationMatcher] = DEFAULT_MATCHERS) -> None:
        self.matchers = tuple(matchers)

    def extract(self, text: str | None) -> LocationMatch:
        t = text or ""
        if not t.strip():
            return NO_LOCATION
        for matcher in self.matchers:
            found = matcher.match(t)
            if found.matched:
                return found
        return NO_LOCATION


_DEFAULT_EXTRACTOR = LocationExtractor()


def extract_location(text: str | None) -> LocationMatch:
    """Best-guess place name + confidence for one post's text."""
    return _DEFAULT_EXTRACTOR.extract(text)


# ---------------------------------------------------------------------------
# Cluster-level fallbacks, aliases and coordinates
# ---------------------------------------------------------------------------

FALLBACK_CITY_KEYWORDS: tuple[str, ...] = (
    "stanford",
    "palo alto",
    "san jose",
    "menlo park",
    "mountain view",
    "redwood city",
    "east palo alto",
    "santa clara",
    "cupertino",
    "sunnyvale",
    "fremont",
    "milpitas",
    "westfield valley fair",
    "valley fair",
)

DEFAULT_REGION = "Bay Area, CA"


def dominant_location(texts: Iterable[str], *, min_confidence: float = 0.5) -> str:
    """Location with the highest summed confidence across several texts.

    Falls back to the first known city keyword mentioned (first letter
    capitalized), then to the default region.
    """
    texts = list(texts)
    scores: dict[str, float] = {}
    for t in texts:
        found = extract_location(t)
        if found.location and found.confidence > min_confidence:
            scores[found.location] = scores.get(found.location, 0.0) + found.confidence

    if scores:
        best = ""
        best_score = 0.0
        for loc, score in scores.items():
            if score > best_score:
                best = loc
                best_score = score
        return best

    found_cities: list[str] = []
    for t in texts:
        low = t.lower()
        for city in FALLBACK_CITY_KEYWORDS:
            if city in low and city not in found_cities:
                found_cities.append(city)
    if found_cities:
        first = found_cities[0]
        return first[:1].upper() + first[1:]
    return DEFAULT_REGION


# location substring -> extra text keywords that count as mentioning it
LOCATION_ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("stanford", ("stanford",)),
    ("westfield", ("westfield", "valley fair")),
    ("palo alto", ("palo alto",)),
    ("san jose", ("san jose",)),
)

# The primary shooting post is chosen with a narrower alias set.
PRIMARY_POST_ALIASES: tuple[str, ...] = ("stanford", "westfield")


def mentions_location(text: str, location: str, *, aliases: Iterable[str] | None = None) -> bool:
    """True if ``text`` names ``location`` directly or through a known alias.

    ``aliases`` restricts which alias keys are considered (default: all).
    """
    low = text.lower()
    loc = location.lower()
    if loc in low:
        return True
    allowed = set(aliases) if aliases is not None else None
    for key, words in LOCATION_ALIASES:
        if allowed is not None and key not in allowed:
            continue
        if key in loc and any(w in low for w in words):
            return True
    return False


GAZETTEER: tuple[tuple[str, Coordinates], ...] = (
    ("stanford", Coordinates(37.4275, -122.1697)),
    ("palo alto", Coordinates(37.4419, -122.1430)),
    ("valley fair", Coordinates(37.3230, -121.9465)),
    ("westfield", Coordinates(37.3230, -121.9465)),
    ("westfield valley fair", Coordinates(37.3230, -121.9465)),
    ("san jose", Coordinates(37.3382, -121.8863)),
    ("menlo park", Coordinates(37.4538, -122.1821)),
    ("mountain view", Coordinates(37.3861, -122.0839)),
    ("redwood city", Coordinates(37.4852, -122.2364)),
    ("east palo alto", Coordinates(37.4688, -122.1411)),
    ("santa clara", Coordinates(37.3541, -121.9552)),
    ("cupertino", Coordinates(37.3230, -122.0322)),
    ("sunnyvale", Coordinates(37.3688, -122.0363)),
    ("fremont", Coordinates(37.5483, -121.9886)),
    ("milpitas", Coordinates(37.4283, -121.9066)),
    ("oakland", Coordinates(37.8044, -122.2711)),
    ("san francisco", Coordinates(37.7749, -122.4194)),
    ("stockton", Coordinates(37.9577, -121.2908)),
    ("outer richmond", Coordinates(37.7715, -122.5045)),
    ("skyline high school", Coordinates(37.7894, -122.1614)),
    ("laney college", Coordinates(37.7974, -122.2653)),
)

DEFAULT_COORDINATES = Coordinates(37.4275, -122.1697)


def coordinates_for(location: str) -> Coordinates:
    low = (location or "").lower()
    for key, coords in GAZETTEER:
        if key in low:
            return coords
    return DEFAULT_COORDINATES
