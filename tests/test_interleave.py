from __future__ import annotations

import pytest

from jobmirror.interleave import interleave, paginate


def test_round_robin_batches_in_platform_order():
    merged = interleave({"a": list("aaaaaaa"), "b": list("bbb"), "c": list("cccccc")}, batch_size=2)
    assert "".join(merged) == "aabbccaabccaacca"


def test_first_rounds_are_fair():
    by_platform = {name: [f"{name}{i}" for i in range(12)] for name in ("seek", "indeed", "jora")}
    merged = interleave(by_platform, batch_size=5)
    head = merged[:15]
    for name in by_platform:
        assert sum(item.startswith(name) for item in head) == 5


def test_cap_and_empty_platforms():
    merged = interleave({"a": list(range(150)), "b": [], "c": list(range(150))}, batch_size=5, max_total=200)
    assert len(merged) == 200
    assert interleave({}) == []


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        interleave({"a": [1]}, batch_size=0)


def test_paginate_slices_and_counts():
    items = list(range(29))
    page = paginate(items, page=2, limit=15)
    assert page.items == list(range(15, 29))
    assert (page.total, page.page, page.total_pages) == (29, 2, 2)
    assert paginate(items, page=3, limit=15).items == []
    assert paginate([], page=1, limit=15).total_pages == 0


def test_paginate_rejects_non_positive():
    with pytest.raises(ValueError):
        paginate([1], page=0, limit=10)
