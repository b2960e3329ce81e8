from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from jobmirror.errors import AdapterTimeout
from jobmirror.log import get_logger
from jobmirror.models import Posting, SearchQuery
from jobmirror.normalize import normalize_batch

log = get_logger(__name__)


@dataclass
class SourcePage:
    postings: list[Posting] = field(default_factory=list)
    has_more: bool = False


class SourceAdapter(ABC):
    """One external listing platform.

    Subclasses implement ``_fetch_candidates``, returning raw dicts for one
    results page; normalization and paging happen here.
    """

    name: str = "source"
    base_url: str | None = None

    def __init__(self, *, max_pages: int = 3) -> None:
        self.max_pages = max(1, max_pages)

    def supports(self, query: SearchQuery) -> bool:
        return True

    @abstractmethod
    async def _fetch_candidates(
        self, query: SearchQuery, page_number: int
    ) -> tuple[list[dict[str, Any]], bool]:
        """Raw candidates for one page and whether another page may follow."""

    async def fetch_page(self, query: SearchQuery, page_number: int) -> SourcePage:
        try:
            raws, has_more = await self._fetch_candidates(query, page_number)
        except AdapterTimeout as exc:
            log.warning("%s, treating page %d as empty", exc, page_number)
            return SourcePage()
        postings = normalize_batch(raws, self.name, base_url=self.base_url)
        return SourcePage(postings=postings, has_more=has_more)

    async def fetch(self, query: SearchQuery, limit: int) -> list[Posting]:
        """Walk result pages until ``limit`` postings, the last page or the page cap."""
        collected: list[Posting] = []
        for page_number in range(1, self.max_pages + 1):
            page = await self.fetch_page(query, page_number)
            collected.extend(page.postings)
            if len(collected) >= limit or not page.has_more or not page.postings:
                break
        return collected[:limit]
