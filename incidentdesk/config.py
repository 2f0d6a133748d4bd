from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CITIES: tuple[str, ...] = (
    "San Jose",
    "Palo Alto",
    "Stanford",
    "Menlo Park",
    "Mountain View",
    "Redwood City",
    "East Palo Alto",
    "Santa Clara",
    "Cupertino",
    "Sunnyvale",
    "Fremont",
    "Milpitas",
    '"Westfield Valley Fair"',
    "Valley Fair",
)

DEFAULT_POLICE_ACCOUNTS: tuple[str, ...] = (
    "SJPD",
    "PaloAltoPolice",
    "StanfordDPS",
    "MenloParkPD",
    "MountainViewPD",
    "RedwoodCityPD",
    "SantaClaraPD",
    "CupertinoPD",
    "SunnyvalePD",
    "FremontPD",
    "MilpitasPD",
    "SFPD",
    "OaklandPD",
    "SFPDAlerts",
)

DEFAULT_GENERAL_QUERIES: tuple[str, ...] = (
    '(shooting OR "shots fired" OR "active shooter" OR gunfire) (Bay Area OR "San Francisco Bay" OR "SF Bay") -is:retweet lang:en',
    '(police OR emergency OR incident) (Bay Area OR "San Francisco Bay") -is:retweet lang:en',
    '(breaking OR alert) (Bay Area OR "San Francisco Bay") -is:retweet lang:en',
)

CITY_QUERY_TEMPLATES: tuple[str, ...] = (
    '(shooting OR "shots fired" OR "active shooter" OR gunfire) {city} -is:retweet lang:en',
    "(police OR emergency OR incident OR crime) {city} -is:retweet lang:en",
    '(breaking OR alert OR "police activity") {city} -is:retweet lang:en',
)

POLICE_QUERY_TEMPLATES: tuple[str, ...] = (
    'from:{account} (shooting OR "shots fired" OR "active shooter" OR homicide) -is:retweet lang:en',
    "from:{account} (incident OR emergency OR alert OR crime) -is:retweet lang:en",
)


@dataclass(frozen=True)
class PipelineConfig:
    recency_window_hours: float = 24.0
    min_location_confidence: float = 0.5
    location_upgrade_confidence: float = 0.8
    min_cluster_posts: int = 1
    max_results: int = 100
    city_query_delay_s: float = 0.2
    catalogue_query_delay_s: float = 0.1
    summary_top_posts: int = 7
    cities: tuple[str, ...] = field(default=DEFAULT_CITIES)
    police_accounts: tuple[str, ...] = field(default=DEFAULT_POLICE_ACCOUNTS)
    general_queries: tuple[str, ...] = field(default=DEFAULT_GENERAL_QUERIES)


def _coerce(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, tuple):
        if isinstance(value, (list, tuple)):
            items = tuple(str(v).strip() for v in value if isinstance(v, (str, int)) and str(v).strip())
            return items
        raise ValueError(f"{name}: expected a list")
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def _apply(cfg: PipelineConfig, overrides: dict[str, Any]) -> PipelineConfig:
    known = {f.name: getattr(cfg, f.name) for f in fields(cfg)}
    changes: dict[str, Any] = {}
    for k, v in overrides.items():
        if k not in known:
            logger.debug("config: ignoring unknown key %s", k)
            continue
        try:
            changes[k] = _coerce(k, known[k], v)
        except (TypeError, ValueError) as e:
            logger.warning("config: invalid value for %s (%s); keeping default", k, e)
    return replace(cfg, **changes) if changes else cfg


_ENV_OVERRIDES = {
    "INCIDENTDESK_MAX_RESULTS": "max_results",
    "INCIDENTDESK_QUERY_DELAY_S": "city_query_delay_s",
}


def load_config(path: Path | None = None) -> PipelineConfig:
    """Load pipeline settings from an optional YAML file plus env overrides.

    A missing or unreadable file yields the defaults.
    """
    cfg = PipelineConfig()
    if path is not None and path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning("config: failed to read %s: %s", path, e)
            data = None
        if isinstance(data, dict):
            cfg = _apply(cfg, data)

    env: dict[str, Any] = {}
    for var, key in _ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if isinstance(raw, str) and raw.strip():
            env[key] = raw.strip()
    if env:
        cfg = _apply(cfg, env)
    return cfg
