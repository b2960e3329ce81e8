"""Jora (au.jora.com). URLs need the state code: /Data-Analyst-jobs-in-Sydney-NSW."""
from __future__ import annotations

from jobmirror.models import SearchQuery
from jobmirror.sources.browser_base import BrowserSourceAdapter

CITY_TO_STATE = {
    "sydney": "NSW",
    "melbourne": "VIC",
    "brisbane": "QLD",
    "perth": "WA",
    "adelaide": "SA",
    "hobart": "TAS",
    "darwin": "NT",
    "canberra": "ACT",
    "gold coast": "QLD",
    "newcastle": "NSW",
}
DEFAULT_STATE = "NSW"


def state_for(city: str) -> str:
    return CITY_TO_STATE.get(city.strip().lower(), DEFAULT_STATE)


class JoraSource(BrowserSourceAdapter):
    name = "jora"

    def url_params(self, query: SearchQuery, page_number: int) -> dict:
        params = super().url_params(query, page_number)
        params["state"] = state_for(query.location)
        return params
