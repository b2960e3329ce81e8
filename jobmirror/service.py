"""Inbound boundary: request dict in, (status, body) out."""
from __future__ import annotations

from typing import Any

from jobmirror.aggregator import Aggregator
from jobmirror.browser import PlaywrightBrowser
from jobmirror.cache import AggregationCache, FileBackend, MemoryBackend
from jobmirror.completion import completion_from_env
from jobmirror.config import Settings, get_env, load_profile
from jobmirror.errors import AllAdaptersFailed
from jobmirror.log import get_logger
from jobmirror.models import SearchQuery
from jobmirror.scorer import RelevanceScorer
from jobmirror.sources import get_sources

log = get_logger(__name__)


class SearchService:
    def __init__(self, aggregator: Aggregator, *, browser: PlaywrightBrowser | None = None) -> None:
        self.aggregator = aggregator
        self.browser = browser

    async def handle(self, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        try:
            query = SearchQuery.from_request(payload)
        except ValueError as exc:
            return 400, {"error": str(exc)}

        log.info(
            "Search: title=%r city=%r page=%d limit=%d",
            query.title, query.location, query.page, query.limit,
        )
        try:
            result = await self.aggregator.search(query)
        except AllAdaptersFailed as exc:
            log.error("%s: %s", exc, exc.errors)
            return 502, {"error": "Failed to fetch jobs from any platform"}
        except Exception as exc:
            log.exception("Search failed unexpectedly")
            return 500, {"error": f"Internal error: {exc.__class__.__name__}"}

        log.info(
            "Returning %d of %d postings (page %d/%d%s)",
            len(result.jobs), result.total, result.page, result.total_pages,
            ", cached" if result.cached else "",
        )
        return 200, result.to_dict()

    def update_preferences(self, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """Drop cached results for the query a preference change affects."""
        try:
            query = SearchQuery.from_request(payload)
        except ValueError as exc:
            return 400, {"error": str(exc)}
        self.aggregator.invalidate(query)
        log.info("Invalidated cached results for %r in %r", query.title, query.location)
        return 200, {"invalidated": True}

    async def aclose(self) -> None:
        if self.browser is not None:
            await self.browser.close()


def build_service(settings: Settings | None = None) -> SearchService:
    """Wire sources, scorer and cache from the environment and config files."""
    settings = settings or Settings.from_env()

    browser = None if settings.use_mock_sources else PlaywrightBrowser(headless=settings.headless)
    sources = get_sources(settings, browser, get_env)

    scorer = RelevanceScorer(
        completion_from_env(get_env),
        timeout_s=settings.scoring_timeout_s,
        concurrency=settings.scoring_concurrency,
    )

    backend = FileBackend(settings.cache_dir) if settings.cache_dir else MemoryBackend()
    cache = AggregationCache(backend, ttl=settings.cache_ttl_s)

    aggregator = Aggregator(
        sources,
        scorer,
        cache,
        profile=load_profile(),
        settings=settings,
    )
    return SearchService(aggregator, browser=browser)
