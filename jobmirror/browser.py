"""Page-rendering capability used by the browser source adapters.

Adapters only see the ``BrowserPage`` protocol, so tests drive them with a
fake page. ``PlaywrightBrowser`` is the real binding.
"""
from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout
from playwright.async_api import async_playwright

from jobmirror.errors import BrowserError
from jobmirror.log import get_logger

log = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 900}
NAVIGATION_TIMEOUT_MS = 30_000


class BrowserPage(Protocol):
    url: str

    async def navigate(self, url: str, wait_for: str | None = None, timeout_ms: int = 10_000) -> bool:
        """Load ``url``; True once ``wait_for`` matched, False if it never did."""
        ...

    async def query(self, selector: str, root: Any = None) -> list[Any]: ...

    async def read_text(self, element: Any) -> str: ...

    async def read_attribute(self, element: Any, name: str) -> str | None: ...

    async def click(self, element: Any) -> None: ...

    async def wait(self, ms: int) -> None: ...

    async def title(self) -> str: ...


class PlaywrightPage:
    """BrowserPage over a Playwright page. Driver errors surface as BrowserError."""

    def __init__(self, page: Any) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, wait_for: str | None = None, timeout_ms: int = 10_000) -> bool:
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        except PlaywrightTimeout as exc:
            raise BrowserError(f"Navigation to {url} timed out") from exc
        except PlaywrightError as exc:
            raise BrowserError(f"Navigation to {url} failed: {exc}") from exc
        if not wait_for:
            return True
        try:
            await self._page.wait_for_selector(wait_for, timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            return False
        except PlaywrightError as exc:
            raise BrowserError(f"Waiting for {wait_for!r} failed: {exc}") from exc

    async def query(self, selector: str, root: Any = None) -> list[Any]:
        scope = root if root is not None else self._page
        try:
            return await scope.query_selector_all(selector)
        except PlaywrightError as exc:
            raise BrowserError(f"Query {selector!r} failed: {exc}") from exc

    async def read_text(self, element: Any) -> str:
        try:
            return (await element.inner_text()) or ""
        except PlaywrightError as exc:
            raise BrowserError(f"Could not read element text: {exc}") from exc

    async def read_attribute(self, element: Any, name: str) -> str | None:
        try:
            return await element.get_attribute(name)
        except PlaywrightError as exc:
            raise BrowserError(f"Could not read attribute {name!r}: {exc}") from exc

    async def click(self, element: Any) -> None:
        try:
            await element.click()
        except PlaywrightError as exc:
            raise BrowserError(f"Click failed: {exc}") from exc

    async def wait(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)

    async def title(self) -> str:
        try:
            return await self._page.title()
        except PlaywrightError as exc:
            raise BrowserError(f"Could not read page title: {exc}") from exc


class PlaywrightBrowser:
    """One shared Chromium, launched lazily; each page gets its own context."""

    def __init__(self, *, headless: bool = True) -> None:
        self.headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Any:
        async with self._lock:
            if self._browser is None:
                # Stale sandbox paths break the browser lookup.
                pw_path = os.environ.get("PLAYWRIGHT_BROWSERS_PATH", "")
                if pw_path and not Path(pw_path).exists():
                    os.environ.pop("PLAYWRIGHT_BROWSERS_PATH", None)
                try:
                    self._playwright = await async_playwright().start()
                    self._browser = await self._playwright.chromium.launch(headless=self.headless)
                except PlaywrightError as exc:
                    raise BrowserError(f"Could not launch Chromium: {exc}") from exc
                log.info("Launched Chromium (headless=%s)", self.headless)
            return self._browser

    @asynccontextmanager
    async def open_page(self, storage_state: Path | None = None) -> AsyncIterator[PlaywrightPage]:
        browser = await self._ensure_browser()
        options: dict[str, Any] = {
            "user_agent": USER_AGENT,
            "viewport": VIEWPORT,
            "locale": "en-AU",
        }
        if storage_state is not None and Path(storage_state).exists():
            options["storage_state"] = str(storage_state)
            log.debug("Using stored session %s", storage_state)
        try:
            context = await browser.new_context(**options)
        except PlaywrightError as exc:
            raise BrowserError(f"Could not open browser context: {exc}") from exc
        try:
            try:
                page = await context.new_page()
            except PlaywrightError as exc:
                raise BrowserError(f"Could not open page: {exc}") from exc
            yield PlaywrightPage(page)
        finally:
            try:
                await context.close()
            except PlaywrightError as exc:
                log.debug("Browser context close failed: %s", exc)

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
