from __future__ import annotations

from typing import Any, Callable

from .adzuna import AdzunaApiSource, AdzunaSource
from .base import SourceAdapter, SourcePage
from .browser_base import BrowserSourceAdapter
from .efinancialcareers import EFinancialCareersSource
from .indeed import IndeedSource
from .jora import JoraSource
from .linkedin import LinkedInSource
from .mock import MockSource
from .seek import SeekSource

from jobmirror.config import Settings, load_source_configs
from jobmirror.log import get_logger

log = get_logger(__name__)

__all__ = [
    "SourceAdapter", "SourcePage", "BrowserSourceAdapter", "SeekSource",
    "IndeedSource", "LinkedInSource", "JoraSource", "AdzunaSource",
    "AdzunaApiSource", "EFinancialCareersSource", "MockSource",
    "BROWSER_SOURCES", "get_sources",
]

# Registration order is the interleave order.
BROWSER_SOURCES: dict[str, type[BrowserSourceAdapter]] = {
    "linkedin": LinkedInSource,
    "indeed": IndeedSource,
    "seek": SeekSource,
    "jora": JoraSource,
    "adzuna": AdzunaSource,
    "efinancialcareers": EFinancialCareersSource,
}
MOCK_PLATFORMS = ("linkedin", "indeed", "seek")


def get_sources(
    settings: Settings,
    browser: Any,
    env_getter: Callable[[str], str],
    configs: dict[str, dict[str, Any]] | None = None,
) -> list[SourceAdapter]:
    enabled = settings.enabled_sources

    if settings.use_mock_sources:
        names = enabled or list(MOCK_PLATFORMS)
        log.info("USE_MOCK_SOURCES set, registering mock sources: %s", ", ".join(names))
        return [MockSource(name) for name in names]

    if configs is None:
        configs = load_source_configs()

    sources: list[SourceAdapter] = []
    for name, cls in BROWSER_SOURCES.items():
        if enabled and name not in enabled:
            continue

        if name == "adzuna" and env_getter("ADZUNA_APP_ID") and env_getter("ADZUNA_APP_KEY"):
            sources.append(AdzunaApiSource(env_getter, max_pages=settings.max_source_pages))
            log.info("Registered source: Adzuna (API)")
            continue

        cfg = configs.get(name)
        if not cfg:
            log.warning("No configuration for source %r, skipping", name)
            continue
        sources.append(cls(cfg, browser, settings))
        log.info("Registered source: %s", name)

    if not sources:
        log.warning("No sources registered; check ENABLED_SOURCES and config/sources.yaml")
    return sources
