"""Map loosely-shaped raw candidates onto the canonical Posting.

Normalization is deterministic: identical raw input always yields an
identical Posting, including its id. Only display fields receive defaults;
content fields are never invented.
"""
from __future__ import annotations

import hashlib
import re
from typing import Any, Iterable
from urllib.parse import urljoin, urlparse

from jobmirror.log import get_logger
from jobmirror.models import VIA_COMPANY_SITE, VIA_PLATFORM, Posting

log = get_logger(__name__)

DEFAULT_JOB_TYPE = "Full-time"

_WS_RE = re.compile(r"\s+")
_BULLET_RE = re.compile(r"^\s*(?:[-*•·]|\d+[.)])\s+")


def clean_text(value: Any) -> str:
    """Collapse whitespace and strip; non-strings become ''."""
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return _WS_RE.sub(" ", value).strip()


def stable_id(platform: str, title: str, company: str, location: str) -> str:
    """Deterministic id over platform, title, company and location."""
    parts = (clean_text(p).casefold() for p in (platform, title, company, location))
    joined = "|".join(parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


def uniq_preserve_order(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for it in items:
        if not it:
            continue
        key = it.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(it)
    return out


def as_text_list(value: Any) -> list[str]:
    """Accept a list or a newline-separated string; drop bullets and blanks."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    items = [clean_text(_BULLET_RE.sub("", str(v))) for v in value]
    return uniq_preserve_order(i for i in items if i)


def _first(raw: dict[str, Any], *keys: str) -> str:
    for key in keys:
        text = clean_text(raw.get(key))
        if text:
            return text
    return ""


def _optional(raw: dict[str, Any], *keys: str) -> str | None:
    return _first(raw, *keys) or None


def _absolute(url: str, base_url: str | None) -> str:
    if not url:
        return ""
    if url.startswith(("http://", "https://")):
        return url
    if base_url:
        return urljoin(base_url, url)
    return url


def classify_source(apply_url: str, listing_url: str) -> str:
    """'via company site' when the apply link leaves the listing's host."""
    if not apply_url:
        return VIA_PLATFORM
    apply_host = (urlparse(apply_url).hostname or "").removeprefix("www.")
    listing_host = (urlparse(listing_url).hostname or "").removeprefix("www.")
    if apply_host and listing_host and apply_host != listing_host:
        return VIA_COMPANY_SITE
    return VIA_PLATFORM


def normalize_candidate(
    raw: dict[str, Any],
    platform: str,
    *,
    base_url: str | None = None,
) -> Posting | None:
    """Return a Posting, or None when title, company or location is empty."""
    title = _first(raw, "title", "job_title")
    company = _first(raw, "company", "company_name")
    location = _first(raw, "location", "job_location")
    if not (title and company and location):
        log.debug(
            "[%s] rejected candidate (title=%r company=%r location=%r)",
            platform, title, company, location,
        )
        return None

    listing_url = _absolute(_first(raw, "url", "listing_url", "link"), base_url)
    apply_url = _absolute(_first(raw, "apply_url"), base_url)

    return Posting(
        id=stable_id(platform, title, company, location),
        title=title,
        company=company,
        location=location,
        platform=platform,
        url=apply_url or listing_url,
        description=_optional(raw, "description", "snippet"),
        full_description=_optional(raw, "full_description", "fullDescription"),
        requirements=as_text_list(raw.get("requirements")),
        benefits=as_text_list(raw.get("benefits")),
        tags=as_text_list(raw.get("tags")),
        salary=_optional(raw, "salary"),
        job_type=_optional(raw, "job_type", "jobType") or DEFAULT_JOB_TYPE,
        posted_date=_optional(raw, "posted_date", "postedDate"),
        source=VIA_COMPANY_SITE if raw.get("external_apply") else classify_source(apply_url, listing_url),
    )


def normalize_batch(
    raws: Iterable[dict[str, Any]],
    platform: str,
    *,
    base_url: str | None = None,
) -> list[Posting]:
    postings: list[Posting] = []
    rejected = 0
    for raw in raws:
        posting = normalize_candidate(raw, platform, base_url=base_url)
        if posting is None:
            rejected += 1
            continue
        postings.append(posting)
    if rejected:
        log.info("[%s] rejected %d incomplete candidate(s)", platform, rejected)
    return postings
