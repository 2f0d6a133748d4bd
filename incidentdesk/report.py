from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

import jsonschema

from ._util import utc_iso
from .models import Incident

SCHEMA_VERSION = "incident_feed_v1"
SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / f"{SCHEMA_VERSION}.schema.json"


class ReportSchemaError(RuntimeError):
    pass


@lru_cache(maxsize=1)
def load_schema() -> dict[str, Any]:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def incidents_payload(incidents: Iterable[Incident], *, generated_at: str | None = None) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "generated_at": generated_at or utc_iso(),
        "incidents": [i.to_dict() for i in incidents],
    }


def _check_citations(idx: int, incident: dict[str, Any]) -> None:
    discussion = incident.get("discussion") or {}
    source_urls = {s.get("url") for s in discussion.get("sources") or [] if isinstance(s, dict)}
    for n, c in enumerate(discussion.get("citations") or [], start=1):
        if c.get("id") != n:
            raise ReportSchemaError(f"incidents[{idx}]: citation ids must ascend from 1 (got {c.get('id')} at {n})")
        if c.get("url") not in source_urls:
            raise ReportSchemaError(f"incidents[{idx}]: citation {n} url is not among the sources")


def validate_payload(payload: dict[str, Any]) -> None:
    """Validate an incident feed payload; raises ReportSchemaError."""
    try:
        jsonschema.validate(instance=payload, schema=load_schema())
    except jsonschema.ValidationError as e:
        raise ReportSchemaError(f"incident feed schema validation failed: {e.message}") from e
    for idx, incident in enumerate(payload["incidents"]):
        _check_citations(idx, incident)


def dumps_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"


def write_payload(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp.{os.getpid()}")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(dumps_payload(payload))
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)
