"""Source adapters that read listing pages through the page capability.

Each platform is described by a block in ``config/sources.yaml``:

    search_url    URL template; placeholders are filled by ``url_params``
    base_url      resolves relative links
    page_size     cards per results page on the site (for offsets/has_more)
    batch_limit   at most this many cards are read per page
    settle_ms     extra wait once the first card has rendered
    results       selector for one result card
    sponsored     selector that, found inside a card, marks it as an ad
    fields        field name -> selector, or {selector, attribute, all}
    link          selector of the card's listing link (empty: the card itself)
    detail        {ready, description, requirements, apply} on the detail page
    challenge     {selectors, title_markers} identifying a bot check
"""
from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus, urljoin

from jobmirror.browser import BrowserPage
from jobmirror.config import Settings
from jobmirror.errors import AdapterChallenge, AdapterExtraction, AdapterTimeout, BrowserError, SourceError
from jobmirror.log import get_logger
from jobmirror.models import SearchQuery
from jobmirror.normalize import clean_text
from jobmirror.sources.base import SourceAdapter

log = get_logger(__name__)

DEFAULT_CHALLENGE_MARKERS = ("just a moment", "security check", "captcha", "verify you are human")
DEFAULT_CHALLENGE_SELECTORS = ('form[action*="verify"]', 'iframe[src*="captcha"]', "#challenge-form")


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def title_words(text: str) -> str:
    """'data analyst' -> 'Data-Analyst'."""
    return "-".join(w.capitalize() for w in re.split(r"[^A-Za-z0-9]+", text) if w)


class BrowserSourceAdapter(SourceAdapter):
    def __init__(self, config: dict[str, Any], browser: Any, settings: Settings) -> None:
        super().__init__(max_pages=settings.max_source_pages)
        self.config = config
        self.browser = browser
        self.base_url = config.get("base_url")
        self.page_size = int(config.get("page_size") or 20)
        self.batch_limit = int(config.get("batch_limit") or settings.per_source_limit)
        self.results_timeout_ms = settings.results_timeout_ms
        self.resolve_details = settings.resolve_details and bool(config.get("detail"))
        self.detail_timeout_s = settings.detail_timeout_s
        self.detail_concurrency = max(1, settings.detail_concurrency)
        self.sessions_dir = Path(settings.sessions_dir)

        challenge = config.get("challenge") or {}
        self.challenge_selectors = tuple(challenge.get("selectors") or DEFAULT_CHALLENGE_SELECTORS)
        self.challenge_markers = tuple(
            m.lower() for m in (challenge.get("title_markers") or DEFAULT_CHALLENGE_MARKERS)
        )

    @property
    def session_file(self) -> Path:
        return self.sessions_dir / f"{self.name}.json"

    def url_params(self, query: SearchQuery, page_number: int) -> dict[str, Any]:
        return {
            "title": quote_plus(query.title),
            "city": quote_plus(query.location),
            "keywords": quote_plus(" ".join((query.title, *query.skills))),
            "title_slug": slugify(query.title),
            "city_slug": slugify(query.location),
            "title_words": title_words(query.title),
            "city_words": title_words(query.location),
            "page": page_number,
            "start": (page_number - 1) * self.page_size,
        }

    def build_search_url(self, query: SearchQuery, page_number: int) -> str:
        template = self.config.get("search_url")
        if not template:
            raise SourceError(self.name, "No search_url configured")
        return template.format(**self.url_params(query, page_number))

    def is_external_apply(self, button_text: str, href: str) -> bool | None:
        """Platform override for company-site detection; None defers to the link host."""
        return None

    async def _check_challenge(self, page: BrowserPage) -> None:
        title = (await page.title()).lower()
        if any(marker in title for marker in self.challenge_markers):
            raise AdapterChallenge(self.name, f"Challenge page detected ({title!r})")
        for selector in self.challenge_selectors:
            if await page.query(selector):
                raise AdapterChallenge(self.name, f"Challenge element {selector!r} present")

    async def _fetch_candidates(
        self, query: SearchQuery, page_number: int
    ) -> tuple[list[dict[str, Any]], bool]:
        url = self.build_search_url(query, page_number)
        storage = self.session_file if self.session_file.exists() else None
        log.debug("[%s] loading %s", self.name, url)

        async with self.browser.open_page(storage) as page:
            try:
                found = await page.navigate(url, self.config.get("results"), self.results_timeout_ms)
                await self._check_challenge(page)
            except BrowserError as exc:
                raise SourceError(self.name, str(exc)) from exc
            if not found:
                raise AdapterTimeout(self.name, f"No results within {self.results_timeout_ms} ms")
            if self.config.get("settle_ms"):
                # Lazy-loaded lists fill in after the first cards render.
                await page.wait(int(self.config["settle_ms"]))

            cards, card_count = await self._read_cards(page)

        if self.resolve_details and cards:
            await self._resolve_all(cards)
        return cards, card_count >= self.page_size

    async def _read_cards(self, page: BrowserPage) -> tuple[list[dict[str, Any]], int]:
        try:
            elements = await page.query(self.config["results"])
        except BrowserError as exc:
            raise SourceError(self.name, str(exc)) from exc

        sponsored = self.config.get("sponsored")
        raws: list[dict[str, Any]] = []
        skipped = 0
        for element in elements:
            if len(raws) >= self.batch_limit:
                break
            try:
                raw = await self._read_card(page, element, sponsored)
            except AdapterExtraction as exc:
                skipped += 1
                log.debug("%s", exc)
                continue
            if raw is not None:
                raws.append(raw)
        if skipped:
            log.info("[%s] skipped %d unreadable card(s)", self.name, skipped)
        return raws, len(elements)

    async def _read_value(self, page: BrowserPage, root: Any, field_spec: Any) -> str | None:
        if isinstance(field_spec, dict):
            selector, attribute = field_spec.get("selector"), field_spec.get("attribute")
        else:
            selector, attribute = field_spec, None
        target = root
        if selector:
            found = await page.query(selector, root)
            if not found:
                return None
            if isinstance(field_spec, dict) and field_spec.get("all"):
                # One line per element; the normalizer splits list fields on lines.
                return "\n".join([await page.read_text(el) for el in found])
            target = found[0]
        if attribute:
            return await page.read_attribute(target, attribute)
        return await page.read_text(target)

    async def _read_card(self, page: BrowserPage, element: Any, sponsored: str | None) -> dict[str, Any] | None:
        """Raw fields of one card, or None for an ad. Raises AdapterExtraction."""
        raw: dict[str, Any] = {}
        try:
            if sponsored and await page.query(sponsored, element):
                return None
            for field_name, field_spec in (self.config.get("fields") or {}).items():
                value = await self._read_value(page, element, field_spec)
                if value:
                    raw[field_name] = value
            link = self.config.get("link")
            href = await self._read_value(page, element, {"selector": link, "attribute": "href"})
        except BrowserError as exc:
            raise AdapterExtraction(self.name, f"card skipped: {exc}") from exc
        if href:
            raw["url"] = urljoin(self.base_url or "", href)
        return raw

    async def _resolve_all(self, raws: list[dict[str, Any]]) -> None:
        semaphore = asyncio.Semaphore(self.detail_concurrency)

        async def _one(raw: dict[str, Any]) -> None:
            if not raw.get("url"):
                return
            async with semaphore:
                try:
                    await asyncio.wait_for(self._resolve_detail(raw), self.detail_timeout_s)
                except asyncio.TimeoutError:
                    log.debug("[%s] detail page timed out for %s", self.name, raw["url"])
                except (BrowserError, SourceError) as exc:
                    log.debug("[%s] detail page failed for %s: %s", self.name, raw["url"], exc)
                except Exception as exc:
                    # One detail page never costs the cards already read.
                    log.warning("[%s] detail page error for %s: %s", self.name, raw["url"], exc)

        await asyncio.gather(*(_one(raw) for raw in raws))

    async def _resolve_detail(self, raw: dict[str, Any]) -> None:
        """Fill full description, requirements and the apply link in place.

        Fields are only written once read, so a failure part-way keeps the
        listing URL.
        """
        detail = self.config["detail"]
        storage = self.session_file if self.session_file.exists() else None
        async with self.browser.open_page(storage) as page:
            if not await page.navigate(raw["url"], detail.get("ready"), self.results_timeout_ms):
                return
            await self._check_challenge(page)

            if detail.get("description"):
                text = await self._read_value(page, None, detail["description"])
                if text:
                    raw["full_description"] = text.strip()

            if detail.get("requirements"):
                items = await page.query(detail["requirements"])
                requirements = [clean_text(await page.read_text(item)) for item in items]
                requirements = [r for r in requirements if r]
                if requirements:
                    raw["requirements"] = requirements

            if detail.get("apply"):
                buttons = await page.query(detail["apply"])
                if buttons:
                    href = await page.read_attribute(buttons[0], "href")
                    if href:
                        button_text = clean_text(await page.read_text(buttons[0]))
                        external = self.is_external_apply(button_text, href)
                        raw["apply_url"] = urljoin(raw["url"], href)
                        if external is not None:
                            raw["external_apply"] = external
