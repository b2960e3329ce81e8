"""
Search pipeline.

Runs: cache lookup → concurrent source fan-out → dedupe/recency per platform
→ interleave → concurrent scoring → cache write → page slice.
"""
from __future__ import annotations

import asyncio
import copy
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from jobmirror.cache import AggregationCache, cache_key
from jobmirror.config import Settings
from jobmirror.errors import AllAdaptersFailed, CacheFailure
from jobmirror.filters import dedupe, filter_recent
from jobmirror.interleave import interleave, paginate
from jobmirror.log import get_logger
from jobmirror.models import CacheEntry, CandidateProfile, Posting, SearchQuery, SearchResult
from jobmirror.scorer import RelevanceScorer
from jobmirror.sources.base import SourceAdapter

log = get_logger(__name__)


@dataclass
class AdapterOutcome:
    name: str
    postings: list[Posting] = field(default_factory=list)
    error: str | None = None


class Aggregator:
    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        scorer: RelevanceScorer,
        cache: AggregationCache | None = None,
        *,
        profile: CandidateProfile | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        settings = settings or Settings()
        self.sources = list(sources)
        self.scorer = scorer
        self.cache = cache if cache is not None else AggregationCache(ttl=settings.cache_ttl_s)
        self.profile = profile or CandidateProfile()
        self.budget_s = settings.pipeline_budget_s
        # Fan-out stops early enough to leave scoring this much of the budget.
        self.scoring_reserve_s = min(settings.scoring_timeout_s, self.budget_s / 2)
        self.per_source_limit = settings.per_source_limit
        self.batch_size = settings.interleave_batch
        self.max_results = settings.max_results
        self.recency_days = settings.recency_days
        self.now = now

    async def search(self, query: SearchQuery) -> SearchResult:
        """Return one page of merged, scored postings for ``query``.

        Raises AllAdaptersFailed when no source could contribute. Every other
        failure is absorbed: a failing source contributes nothing and a failing
        score falls back.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.budget_s
        key = cache_key(query)

        entry = await self._cache_get(key)
        if entry is not None:
            log.info("Cache hit for %r in %r (%d postings)", query.title, query.location, len(entry.postings))
            postings = [copy.deepcopy(p) for p in entry.postings]
            return self._page(postings, query, cached=True)

        outcomes = await self._fan_out(query, deadline - self.scoring_reserve_s)
        failed = [o for o in outcomes if o.error is not None]
        if len(failed) == len(outcomes):
            raise AllAdaptersFailed({o.name: o.error or "" for o in failed})

        now = self.now()
        by_platform: dict[str, list[Posting]] = {}
        for outcome in outcomes:
            if outcome.error is not None:
                continue
            kept = filter_recent(dedupe(outcome.postings), now, self.recency_days)
            by_platform.setdefault(outcome.name, []).extend(kept)

        merged = interleave(by_platform, self.batch_size, self.max_results)
        log.info(
            "Merged %d postings from %d source(s) (%d failed)",
            len(merged), len(outcomes) - len(failed), len(failed),
        )

        remaining = max(0.0, deadline - loop.time())
        scored = await self.scorer.enrich(merged, query, self.profile, timeout_s=remaining)

        if merged and scored == 0 and self.scorer.completion is not None:
            # Every score is a fallback although a model is configured.
            log.warning("No model scores for %r, result set not cached", query.title)
        else:
            try:
                await asyncio.to_thread(self.cache.put, key, merged)
            except CacheFailure as exc:
                log.warning("Cache write skipped: %s", exc)

        yields = {o.name: len(o.postings) for o in outcomes if o.error is None}
        return self._page(merged, query, yields=yields)

    def invalidate(self, query: SearchQuery) -> None:
        """Drop the cached set for ``query`` (preferences changed)."""
        try:
            self.cache.invalidate(cache_key(query))
        except CacheFailure as exc:
            log.warning("Cache invalidation failed: %s", exc)

    async def _cache_get(self, key: str) -> CacheEntry | None:
        try:
            return await asyncio.to_thread(self.cache.get, key)
        except CacheFailure as exc:
            log.warning("Cache read failed, treating as miss: %s", exc)
            return None

    def _page(
        self,
        postings: list[Posting],
        query: SearchQuery,
        *,
        cached: bool = False,
        yields: dict[str, int] | None = None,
    ) -> SearchResult:
        page = paginate(postings, query.page, query.limit)
        return SearchResult(
            jobs=page.items,
            total=page.total,
            page=page.page,
            total_pages=page.total_pages,
            cached=cached,
            yields=yields or {},
        )

    async def _run_source(self, source: SourceAdapter, query: SearchQuery) -> AdapterOutcome:
        """Wrapper for concurrent source fetching."""
        started = time.monotonic()
        try:
            postings = await source.fetch(query, self.per_source_limit)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.error("[%s] FAILED after %.1fs: %s", source.name, time.monotonic() - started, exc)
            return AdapterOutcome(source.name, error=str(exc) or exc.__class__.__name__)
        log.info("[%s] returned %d postings in %.1fs", source.name, len(postings), time.monotonic() - started)
        return AdapterOutcome(source.name, postings)

    async def _fan_out(self, query: SearchQuery, deadline: float) -> list[AdapterOutcome]:
        active = [s for s in self.sources if s.supports(query)]
        skipped = len(self.sources) - len(active)
        if skipped:
            log.debug("%d source(s) do not serve %r", skipped, query.title)
        if not active:
            return []

        log.info("Searching %d source(s) concurrently...", len(active))
        tasks = {
            asyncio.create_task(self._run_source(source, query)): source
            for source in active
        }
        loop = asyncio.get_running_loop()
        done, pending = await asyncio.wait(tasks, timeout=max(0.0, deadline - loop.time()))
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        # Outcomes keep registration order so interleaving is deterministic.
        outcomes: list[AdapterOutcome] = []
        for task, source in tasks.items():
            if task in done:
                outcomes.append(task.result())
            else:
                log.error("[%s] FAILED: still running at the %.0fs budget, cancelled", source.name, self.budget_s)
                outcomes.append(AdapterOutcome(source.name, error="cancelled at pipeline budget"))
        return outcomes
