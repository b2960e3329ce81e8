from __future__ import annotations

import os

# Keep test runs from writing dated log files.
os.environ.setdefault("LOG_TO_FILE", "false")

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import pytest

from jobmirror.config import Settings
from jobmirror.errors import BrowserError
from jobmirror.models import Posting, SearchQuery
from jobmirror.normalize import stable_id


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCompletion:
    """Returns canned replies (or raises) and records every prompt."""

    def __init__(self, reply: str = "", *, error: Exception | None = None, delay_s: float = 0.0) -> None:
        self.reply = reply
        self.error = error
        self.delay_s = delay_s
        self.prompts: list[str] = []

    async def complete(self, prompt: str, system: str) -> str:
        self.prompts.append(prompt)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.reply


GOOD_REPLY = """Score: 82

Highlights:
• Strong Python overlap
• Same city
• Senior level matches

List Summary:
Fintech scale-up seeking Data Analyst in Sydney

Detailed Summary:
Who we are:
A payments company.

Who we are looking for:
An analyst who likes SQL.

Benefits and Offerings:
Hybrid work.

Analysis:
Overview:
A close match on skills and level.

Strengths to Stand Out:
SQL and Python.
"""


def element(text: str = "", *, attrs: dict[str, str] | None = None,
            children: dict[str, list[dict]] | None = None, fail: bool = False) -> dict[str, Any]:
    return {"text": text, "attrs": attrs or {}, "children": children or {}, "fail": fail}


def card(title: str, company: str, location: str, href: str = "", *,
         posted: str | None = None, sponsored: bool = False, fail: bool = False) -> dict[str, Any]:
    children: dict[str, list[dict]] = {
        ".title": [element(title, fail=fail)],
        ".company": [element(company)],
        ".loc": [element(location)],
    }
    if href:
        children["a.link"] = [element(attrs={"href": href})]
    if posted:
        children["time"] = [element(attrs={"datetime": posted})]
    if sponsored:
        children[".ad"] = [element("Promoted")]
    return element(children=children)


class FakePage:
    """BrowserPage over canned content, routed by URL substring.

    Each route is ``{"selectors": {selector: [elements]}, "title": str,
    "found": bool, "error": Exception | None}``.
    """

    def __init__(self, routes: dict[str, dict[str, Any]], visited: list[str]) -> None:
        self.routes = routes
        self.visited = visited
        self.current: dict[str, Any] = {}
        self.url = ""
        self.waited_ms = 0

    async def navigate(self, url: str, wait_for: str | None = None, timeout_ms: int = 10_000) -> bool:
        self.visited.append(url)
        self.url = url
        self.current = next((r for key, r in self.routes.items() if key in url), {})
        if self.current.get("delay_s"):
            await asyncio.sleep(self.current["delay_s"])
        if self.current.get("error") is not None:
            raise self.current["error"]
        return self.current.get("found", True)

    async def query(self, selector: str, root: Any = None) -> list[Any]:
        if root is None:
            return list(self.current.get("selectors", {}).get(selector, []))
        return list(root["children"].get(selector, []))

    async def read_text(self, el: Any) -> str:
        if el.get("fail"):
            raise BrowserError("element detached")
        return el["text"]

    async def read_attribute(self, el: Any, name: str) -> str | None:
        if el.get("fail"):
            raise BrowserError("element detached")
        return el["attrs"].get(name)

    async def click(self, el: Any) -> None:
        return None

    async def wait(self, ms: int) -> None:
        self.waited_ms += ms

    async def title(self) -> str:
        return self.current.get("title", "Jobs")


class FakeBrowser:
    """Hands out FakePages; ``open_errors`` maps an open_page call index to an exception."""

    def __init__(self, routes: dict[str, dict[str, Any]], *,
                 open_errors: dict[int, Exception] | None = None) -> None:
        self.routes = routes
        self.open_errors = open_errors or {}
        self.visited: list[str] = []
        self.storage_states: list[Any] = []

    @asynccontextmanager
    async def open_page(self, storage_state: Any = None) -> AsyncIterator[FakePage]:
        index = len(self.storage_states)
        self.storage_states.append(storage_state)
        if index in self.open_errors:
            raise self.open_errors[index]
        yield FakePage(self.routes, self.visited)


TEST_SOURCE_CONFIG: dict[str, Any] = {
    "base_url": "https://jobs.example.com",
    "search_url": "https://jobs.example.com/search?q={title}&l={city}&start={start}",
    "page_size": 3,
    "batch_limit": 10,
    "results": ".card",
    "sponsored": ".ad",
    "fields": {
        "title": ".title",
        "company": ".company",
        "location": ".loc",
        "posted_date": {"selector": "time", "attribute": "datetime"},
    },
    "link": "a.link",
    "detail": {
        "ready": ".desc",
        "description": ".desc",
        "requirements": ".desc li",
        "apply": "a.apply",
    },
}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        pipeline_budget_s=5.0,
        resolve_details=False,
        sessions_dir=tmp_path / "sessions",
        max_source_pages=1,
        results_timeout_ms=100,
        detail_timeout_s=1.0,
    )


@pytest.fixture
def query() -> SearchQuery:
    return SearchQuery(
        title="Data Analyst",
        location="Sydney",
        skills=("SQL", "Python"),
        seniority="Senior",
        page=1,
        limit=15,
    )


def make_posting(title: str = "Data Analyst", company: str = "Acme", location: str = "Sydney NSW",
                 platform: str = "seek", **kwargs: Any) -> Posting:
    return Posting(
        id=stable_id(platform, title, company, location),
        title=title,
        company=company,
        location=location,
        platform=platform,
        url=kwargs.pop("url", f"https://{platform}.example.com/job"),
        **kwargs,
    )
