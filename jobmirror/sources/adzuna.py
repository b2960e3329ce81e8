"""Adzuna Australia, either through the search pages or the REST API.

The API needs a free key pair from https://developer.adzuna.com/ (250
requests/day); when ADZUNA_APP_ID and ADZUNA_APP_KEY are set it replaces
the browser adapter.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

import requests

from jobmirror.errors import SourceError
from jobmirror.log import get_logger
from jobmirror.models import SearchQuery
from jobmirror.retry import retry
from jobmirror.sources.base import SourceAdapter
from jobmirror.sources.browser_base import BrowserSourceAdapter

log = get_logger(__name__)

# Adzuna's own location ids; unknown cities fall back to the plain name.
CITY_TO_LOCATION_CODE = {
    "sydney": "98095",
    "melbourne": "98127",
    "brisbane": "98644",
    "perth": "98111",
    "adelaide": "98518",
    "hobart": "98426",
    "darwin": "98523",
    "canberra": "98122",
    "gold coast": "98536",
    "newcastle": "98545",
}

COUNTRY = "au"
API_URL = f"https://api.adzuna.com/v1/api/jobs/{COUNTRY}/search"


def location_code(city: str) -> str:
    key = city.strip().lower()
    return CITY_TO_LOCATION_CODE.get(key, key)


class AdzunaSource(BrowserSourceAdapter):
    name = "adzuna"

    def url_params(self, query: SearchQuery, page_number: int) -> dict:
        params = super().url_params(query, page_number)
        params["location_code"] = location_code(query.location)
        return params


class AdzunaApiSource(SourceAdapter):
    name = "adzuna"
    base_url = "https://www.adzuna.com.au"

    def __init__(self, env_getter: Callable[[str], str], *, per_page: int = 50, max_pages: int = 3) -> None:
        super().__init__(max_pages=max_pages)
        self.app_id: str = env_getter("ADZUNA_APP_ID")
        self.app_key: str = env_getter("ADZUNA_APP_KEY")
        self.per_page = per_page

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.ConnectionError, requests.Timeout))
    def _get(self, query: SearchQuery, page_number: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "what": " ".join((query.title, *query.skills)),
            "where": query.location,
            "results_per_page": self.per_page,
            "max_days_old": 30,
            "content-type": "application/json",
        }
        r = requests.get(f"{API_URL}/{page_number}", params=params, timeout=15)
        r.raise_for_status()
        return r.json()

    @staticmethod
    def _to_raw(hit: dict[str, Any]) -> dict[str, Any]:
        salary_text = ""
        sal_min = hit.get("salary_min")
        sal_max = hit.get("salary_max")
        if sal_min and sal_max:
            salary_text = f"${sal_min:,.0f} - ${sal_max:,.0f}"
        elif sal_min:
            salary_text = f"${sal_min:,.0f}"

        contract_time = (hit.get("contract_time") or "").replace("_", "-").capitalize()
        category = (hit.get("category") or {}).get("label")
        return {
            "title": hit.get("title", ""),
            "company": (hit.get("company") or {}).get("display_name", ""),
            "location": (hit.get("location") or {}).get("display_name", ""),
            "description": hit.get("description", ""),
            "url": hit.get("redirect_url", ""),
            "salary": salary_text or None,
            "job_type": contract_time or None,
            "posted_date": hit.get("created"),
            "tags": [category] if category else [],
        }

    async def _fetch_candidates(
        self, query: SearchQuery, page_number: int
    ) -> tuple[list[dict[str, Any]], bool]:
        try:
            data = await asyncio.to_thread(self._get, query, page_number)
        except (requests.RequestException, ValueError) as exc:
            raise SourceError(self.name, f"API request failed: {exc}") from exc

        hits = data.get("results", [])
        log.debug("Adzuna API page=%d returned %d hits", page_number, len(hits))
        total = int(data.get("count") or 0)
        return [self._to_raw(hit) for hit in hits], page_number * self.per_page < total
