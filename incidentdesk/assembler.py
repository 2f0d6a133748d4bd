"""Turn fetched posts into a sorted list of incidents.

Two sources feed the final list:

- the catalogue of known incidents, each re-queried and re-synthesized on
  every run;
- live posts (a custom query, or the default per-city / police / general
  search plan), clustered by the anchoring engine.

Fetching runs as independent asyncio tasks (one per catalogue entry, city,
police account or general query); a failing query counts as zero posts.
Clustering, scoring and synthesis run synchronously once every fetch task
has finished. ``assemble`` always returns a list.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from datetime import timedelta
from typing import Any, Awaitable, Callable, Iterable, Sequence

from ._util import format_timestamp, parse_timestamp, severity_rank
from .anchoring import AnchoredCluster, IncidentAnchoring
from .config import CITY_QUERY_TEMPLATES, POLICE_QUERY_TEMPLATES, PipelineConfig
from .location import coordinates_for, dominant_location
from .models import Discussion, Incident, KnownIncidentDescriptor, Post
from .narrative import generate_title, summarize
from .scoring import (
    analyze_sentiment,
    catalogue_severity,
    catalogue_status,
    determine_severity,
    live_status,
    passes_reliability_gate,
    reliability_note,
    total_engagement,
)

logger = logging.getLogger(__name__)

SearchFn = Callable[[str, int], "Sequence[Post] | Awaitable[Sequence[Post]]"]


def filter_engaged(posts: Iterable[Post]) -> list[Post]:
    """Drop posts with zero engagement across every metric."""
    return [p for p in posts if not p.engagement.is_zero()]


def merge_by_id(*groups: Iterable[Post]) -> list[Post]:
    """Concatenate post groups, keeping the first occurrence of each id."""
    seen: set[str] = set()
    out: list[Post] = []
    for group in groups:
        for p in group:
            if p.id in seen:
                continue
            seen.add(p.id)
            out.append(p)
    return out


def sort_incidents(incidents: Iterable[Incident]) -> list[Incident]:
    return sorted(
        incidents,
        key=lambda i: (-severity_rank(i.severity), -i.discussion.totals.reactions),
    )


def _most_recent(posts: Sequence[Post], fallback: str) -> str:
    times = [t for t in (parse_timestamp(p.timestamp) for p in posts) if t is not None]
    if not times:
        return fallback
    return format_timestamp(max(times))


class IncidentAssembler:
    def __init__(
        self,
        search: SearchFn | None = None,
        *,
        config: PipelineConfig | None = None,
        catalogue: Sequence[KnownIncidentDescriptor] = (),
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._search = search
        self.config = config or PipelineConfig()
        self.catalogue = tuple(catalogue)
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self.anchoring = IncidentAnchoring(
            recency_window=timedelta(hours=self.config.recency_window_hours),
            min_location_confidence=self.config.min_location_confidence,
            upgrade_confidence=self.config.location_upgrade_confidence,
            min_cluster_posts=self.config.min_cluster_posts,
        )

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _search_once(self, query: str) -> list[Post]:
        if self._search is None:
            return []
        if inspect.iscoroutinefunction(self._search):
            result = await self._search(query, self.config.max_results)
        else:
            result = await asyncio.to_thread(self._search, query, self.config.max_results)
        return list(result or [])

    async def run_queries(self, queries: Sequence[str], *, delay_s: float = 0.0, label: str = "") -> list[Post]:
        """Run queries one after another, merging results by post id.

        A failing query is logged and contributes no posts.
        """
        collected: dict[str, Post] = {}
        for i, q in enumerate(queries):
            if i and delay_s > 0:
                await asyncio.sleep(delay_s)
            try:
                posts = await self._search_once(q)
            except Exception as e:
                logger.warning("search failed%s for %r: %s", f" ({label})" if label else "", q, e)
                continue
            for p in posts:
                collected.setdefault(p.id, p)
        return list(collected.values())

    async def _gather_groups(self, batches: Sequence[Sequence[str]], *, delay_s: float, label: str) -> list[list[Post]]:
        tasks = [self.run_queries(b, delay_s=delay_s, label=label) for b in batches]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def fetch_default_posts(self) -> list[Post]:
        """Default live plan: per-city, police-account and general searches."""
        cfg = self.config
        city_batches = [[t.format(city=c) for t in CITY_QUERY_TEMPLATES] for c in cfg.cities]
        police_queries = [t.format(account=a) for a in cfg.police_accounts for t in POLICE_QUERY_TEMPLATES]
        general_queries = list(cfg.general_queries)

        city_groups, police_groups, general_groups = await asyncio.gather(
            self._gather_groups(city_batches, delay_s=cfg.city_query_delay_s, label="city"),
            self._gather_groups([[q] for q in police_queries], delay_s=0.0, label="police"),
            self._gather_groups([[q] for q in general_queries], delay_s=0.0, label="general"),
        )
        city_posts = [p for g in city_groups for p in g]
        police_posts = [p.with_verified_author() for g in police_groups for p in g]
        general_posts = [p for g in general_groups for p in g]
        logger.info(
            "fetched %d city posts, %d police posts, %d general posts",
            len(city_posts),
            len(police_posts),
            len(general_posts),
        )
        return merge_by_id(city_posts, police_posts, general_posts)

    async def fetch_catalogue_posts(self, descriptor: KnownIncidentDescriptor) -> list[Post]:
        return await self.run_queries(
            descriptor.search_queries,
            delay_s=self.config.catalogue_query_delay_s,
            label=descriptor.title,
        )

    # ------------------------------------------------------------------
    # Building incidents
    # ------------------------------------------------------------------

    def build_catalogue_incident(self, descriptor: KnownIncidentDescriptor, posts: Sequence[Post]) -> Incident | None:
        """Incident for one catalogue entry, or None when no engaged posts remain."""
        kept = filter_engaged(merge_by_id(posts))
        if not kept:
            logger.warning("no posts found for known incident %r; skipping", descriptor.title)
            return None

        totals = total_engagement(kept)
        severity = catalogue_severity(descriptor.description)
        summary = summarize(kept, descriptor.location, top_n=self.config.summary_top_posts)
        return Incident(
            id=self._new_id(),
            title=descriptor.title,
            severity=severity,
            location=descriptor.location,
            timestamp=descriptor.timestamp,
            description=descriptor.description,
            coordinates=descriptor.coordinates,
            discussion=Discussion(
                status=catalogue_status(severity),
                summary=summary.text or descriptor.description,
                citations=summary.citations,
                sources=tuple(kept),
                totals=totals,
            ),
        )

    def build_cluster_incident(self, cluster: AnchoredCluster) -> Incident | None:
        posts = cluster.posts
        report = analyze_sentiment(posts)
        if not passes_reliability_gate(report, len(posts)):
            logger.info("dropping unreliable cluster at %r (%d posts)", cluster.location, len(posts))
            return None

        totals = total_engagement(posts)
        severity = determine_severity(posts)
        location = cluster.location or dominant_location(p.text for p in posts)
        summary = summarize(posts, location, top_n=self.config.summary_top_posts)
        return Incident(
            id=self._new_id(),
            title=generate_title(posts, location),
            severity=severity,
            location=location,
            timestamp=_most_recent(posts, cluster.timestamp),
            description=(
                f"{reliability_note(report)}Real-time event detected from {len(posts)} X posts "
                f"with {totals.reactions} total engagements."
            ),
            coordinates=coordinates_for(location),
            discussion=Discussion(
                status=live_status(severity),
                summary=summary.text,
                citations=summary.citations,
                sources=tuple(posts),
                totals=totals,
            ),
        )

    def build_live_incidents(self, posts: Sequence[Post]) -> list[Incident]:
        """Cluster engaged posts and build one incident per surviving cluster."""
        kept = filter_engaged(posts)
        if not kept:
            return []
        try:
            clusters = self.anchoring.anchor(kept)
        except Exception:
            logger.exception("anchoring failed for %d posts", len(kept))
            return []

        out: list[Incident] = []
        for cluster in clusters:
            try:
                incident = self.build_cluster_incident(cluster)
            except Exception:
                logger.exception("failed to build incident for cluster at %r", cluster.location)
                continue
            if incident is not None:
                out.append(incident)
        logger.info("%d engaged posts -> %d clusters -> %d incidents", len(kept), len(clusters), len(out))
        return out

    async def catalogue_incidents(self) -> list[Incident]:
        fetched = await asyncio.gather(*(self.fetch_catalogue_posts(d) for d in self.catalogue))
        out: list[Incident] = []
        for descriptor, posts in zip(self.catalogue, fetched):
            try:
                incident = self.build_catalogue_incident(descriptor, posts)
            except Exception:
                logger.exception("failed to build known incident %r", descriptor.title)
                continue
            if incident is not None:
                out.append(incident)
        return out

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def assemble(self, query: str = "") -> list[Incident]:
        query = (query or "").strip()
        if query:
            known, live_posts = await asyncio.gather(
                self.catalogue_incidents(),
                self.run_queries([query], label="custom"),
            )
            if not live_posts:
                logger.warning("custom query %r returned no posts", query)
                return []
        else:
            known, live_posts = await asyncio.gather(
                self.catalogue_incidents(),
                self.fetch_default_posts(),
            )
            if not filter_engaged(live_posts):
                logger.warning("no live posts with engagement; returning known incidents only")
                return sort_incidents(known)

        live = self.build_live_incidents(live_posts)
        logger.info("incidents: %d known, %d live", len(known), len(live))
        return sort_incidents([*known, *live])

    def assemble_posts(self, posts: Sequence[Post]) -> list[Incident]:
        """Offline path: cluster an already-fetched batch (no catalogue, no network)."""
        return sort_incidents(self.build_live_incidents(list(posts)))


def assemble_incidents(
    search: SearchFn | None,
    *,
    query: str = "",
    config: PipelineConfig | None = None,
    catalogue: Sequence[KnownIncidentDescriptor] = (),
    **kwargs: Any,
) -> list[Incident]:
    """Synchronous wrapper around ``IncidentAssembler.assemble``."""
    assembler = IncidentAssembler(search, config=config, catalogue=catalogue, **kwargs)
    return asyncio.run(assembler.assemble(query))
