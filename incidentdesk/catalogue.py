from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ._util import format_timestamp, is_non_empty_str
from .models import Coordinates, KnownIncidentDescriptor

logger = logging.getLogger(__name__)

BUNDLED_CATALOGUE = Path(__file__).resolve().parent / "data" / "known_incidents.yaml"


def _coordinates(obj: Any) -> Coordinates | None:
    if not isinstance(obj, dict):
        return None
    try:
        return Coordinates(lat=float(obj["lat"]), lng=float(obj["lng"]))
    except (KeyError, TypeError, ValueError):
        return None


def parse_catalogue(data: Any) -> tuple[KnownIncidentDescriptor, ...]:
    """Build descriptors from a parsed ``{"incidents": [...]}`` document.

    Entries without a title, location or at least one query are skipped.
    """
    if not isinstance(data, dict) or not isinstance(data.get("incidents"), list):
        return ()
    out: list[KnownIncidentDescriptor] = []
    for item in data["incidents"]:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        location = item.get("location")
        queries: list[str] = []
        for q in item.get("search_queries") or []:
            if is_non_empty_str(q) and q.strip() not in queries:
                queries.append(q.strip())
        if not (is_non_empty_str(title) and is_non_empty_str(location) and queries):
            logger.warning("catalogue: skipping incomplete entry %r", title)
            continue
        ts = item.get("timestamp")
        if isinstance(ts, datetime):
            ts = format_timestamp(ts)
        desc = item.get("description")
        out.append(
            KnownIncidentDescriptor(
                title=title.strip(),
                location=location.strip(),
                timestamp=str(ts) if ts is not None else "",
                description=desc.strip() if isinstance(desc, str) else "",
                search_queries=tuple(queries),
                coordinates=_coordinates(item.get("coordinates")),
            )
        )
    return tuple(out)


def _read(path: Path) -> tuple[KnownIncidentDescriptor, ...]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("catalogue: failed to read %s: %s", path, e)
        return ()
    return parse_catalogue(data)


def load_catalogue(path: Path | None = None) -> tuple[KnownIncidentDescriptor, ...]:
    """Load known incidents from ``path``, falling back to the bundled file."""
    if path is not None:
        if path.exists():
            entries = _read(path)
            if entries:
                return entries
        logger.warning("catalogue: %s missing or empty, using bundled catalogue", path)
    return _read(BUNDLED_CATALOGUE)
