"""LinkedIn guest job search. Cards carry a <time datetime=...> posted date."""
from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit, urlunsplit

from jobmirror.browser import BrowserPage
from jobmirror.sources.browser_base import BrowserSourceAdapter


def strip_tracking(url: str) -> str:
    """Drop refId/trackingId query noise so the same job keeps one URL."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class LinkedInSource(BrowserSourceAdapter):
    name = "linkedin"

    async def _read_card(self, page: BrowserPage, element: Any, sponsored: str | None) -> dict[str, Any] | None:
        raw = await super()._read_card(page, element, sponsored)
        if raw and raw.get("url"):
            raw["url"] = strip_tracking(raw["url"])
        return raw
