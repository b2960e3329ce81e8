"""Round-robin merge of per-platform results, and page slicing."""
from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Generic, Mapping, Sequence, TypeVar

T = TypeVar("T")

BATCH_SIZE = 5
MAX_TOTAL = 200


def interleave(
    by_platform: Mapping[str, Sequence[T]],
    batch_size: int = BATCH_SIZE,
    max_total: int = MAX_TOTAL,
) -> list[T]:
    """Take ``batch_size`` items from each platform in turn until the cap.

    Platforms are visited in mapping order. A platform that runs dry simply
    drops out of the rotation, so no high-yield source can crowd the first
    pages.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    queues = [deque(items) for items in by_platform.values() if items]
    merged: list[T] = []
    while queues and len(merged) < max_total:
        for queue in queues:
            take = min(batch_size, len(queue), max_total - len(merged))
            merged.extend(queue.popleft() for _ in range(take))
            if len(merged) >= max_total:
                break
        queues = [q for q in queues if q]
    return merged


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    total_pages: int


def paginate(items: Sequence[T], page: int, limit: int) -> Page[T]:
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")
    start = (page - 1) * limit
    return Page(
        items=list(items[start:start + limit]),
        total=len(items),
        page=page,
        total_pages=math.ceil(len(items) / limit),
    )
