"""Canned source for offline runs and tests."""
from __future__ import annotations

import asyncio
from typing import Any, Sequence

from jobmirror.log import get_logger
from jobmirror.models import SearchQuery
from jobmirror.sources.base import SourceAdapter

log = get_logger(__name__)


def sample_candidates(platform: str, count: int = 10) -> list[dict[str, Any]]:
    """Distinct raw candidates; titles carry ``platform`` so ids never collide."""
    companies = ("Atlassian", "Canva", "Xero", "REA Group", "Afterpay")
    cities = ("Sydney NSW", "Melbourne VIC", "Brisbane QLD")
    return [
        {
            "title": f"Software Engineer {i + 1} ({platform})",
            "company": companies[i % len(companies)],
            "location": cities[i % len(cities)],
            "url": f"https://example.com/{platform}/job/{i + 1}",
            "description": "Python, cloud services, distributed systems.",
            "posted_date": f"{(i % 5) + 1}d ago",
            "job_type": "Full-time",
        }
        for i in range(count)
    ]


class MockSource(SourceAdapter):
    """Serves a fixed candidate list, or fails/stalls on demand.

    ``calls`` counts fetch_page invocations so callers can check that a
    cached query never reached the source.
    """

    def __init__(
        self,
        name: str = "mock",
        candidates: Sequence[dict[str, Any]] | None = None,
        *,
        error: Exception | None = None,
        delay_s: float = 0.0,
        page_size: int | None = None,
    ) -> None:
        super().__init__(max_pages=1 if page_size is None else 100)
        self.name = name
        self.candidates = list(candidates) if candidates is not None else sample_candidates(name)
        self.error = error
        self.delay_s = delay_s
        self.page_size = page_size
        self.calls = 0

    async def _fetch_candidates(
        self, query: SearchQuery, page_number: int
    ) -> tuple[list[dict[str, Any]], bool]:
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        if self.page_size is None:
            log.info("MockSource %s serving %d sample postings", self.name, len(self.candidates))
            return list(self.candidates), False
        start = (page_number - 1) * self.page_size
        chunk = self.candidates[start:start + self.page_size]
        return list(chunk), start + self.page_size < len(self.candidates)
