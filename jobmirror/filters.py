"""Duplicate removal and recency filtering."""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable

from dateutil import parser as date_parser

from jobmirror.log import get_logger
from jobmirror.models import Posting

log = get_logger(__name__)

RETENTION_DAYS = 30

_RELATIVE_RE = re.compile(
    r"(?P<num>\d+)\s*(?P<plus>\+)?\s*(?P<unit>minute|min|m|hour|hr|h|day|d|week|wk|w|month|mo)s?\b",
    re.IGNORECASE,
)
_UNIT_DAYS = {
    "minute": 1 / 1440, "min": 1 / 1440, "m": 1 / 1440,
    "hour": 1 / 24, "hr": 1 / 24, "h": 1 / 24,
    "day": 1, "d": 1,
    "week": 7, "wk": 7, "w": 7,
    "month": 30, "mo": 30,
}
_TODAY_RE = re.compile(r"^(just posted|just now|today|active today)\b")


def dedupe(postings: Iterable[Posting]) -> list[Posting]:
    """Drop repeated (platform, id) pairs; first occurrence wins.

    The same job listed on two platforms keeps both entries.
    """
    seen: set[tuple[str, str]] = set()
    out: list[Posting] = []
    for p in postings:
        key = (p.platform, p.id)
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out


def parse_posted_date(text: str | None, now: datetime) -> datetime | None:
    """Best-effort parse of a display date; None when it cannot be read.

    Handles relative phrases ("2d ago", "5 hours ago", "30+ days ago",
    "Yesterday") as well as absolute dates in any format dateutil accepts.
    """
    if not text:
        return None
    stripped = re.sub(r"^(posted|listed|active)\s*:?\s*", "", text.strip(), flags=re.IGNORECASE)
    cleaned = stripped.lower()
    if not cleaned:
        return None

    if _TODAY_RE.match(cleaned):
        return now
    if cleaned.startswith("yesterday"):
        return now - timedelta(days=1)

    match = _RELATIVE_RE.search(cleaned)
    if match and ("ago" in cleaned or match.group("plus") or match.end() == len(cleaned)):
        amount = int(match.group("num"))
        if match.group("plus"):
            # "30+ days" means strictly more than 30.
            amount += 1
        days = amount * _UNIT_DAYS[match.group("unit").lower()]
        return now - timedelta(days=days)

    try:
        parsed = date_parser.parse(stripped)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=now.tzinfo)
    if now.tzinfo is None:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def filter_recent(
    postings: Iterable[Posting],
    now: datetime | None = None,
    days: int = RETENTION_DAYS,
) -> list[Posting]:
    """Keep postings newer than ``days``; missing or unreadable dates pass."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)
    kept: list[Posting] = []
    dropped = 0
    for p in postings:
        posted = parse_posted_date(p.posted_date, now)
        if posted is not None and posted < cutoff:
            dropped += 1
            continue
        kept.append(p)
    if dropped:
        log.debug("Recency filter dropped %d posting(s) older than %d days", dropped, days)
    return kept
