from __future__ import annotations

import dataclasses
import threading
from datetime import datetime, timezone

import pytest

from jobmirror.aggregator import Aggregator
from jobmirror.cache import AggregationCache, MemoryBackend
from jobmirror.errors import AdapterChallenge, AllAdaptersFailed, CacheFailure
from jobmirror.scorer import FALLBACK_SCORE, RelevanceScorer
from jobmirror.sources.mock import MockSource, sample_candidates

from conftest import GOOD_REPLY, FakeClock, FakeCompletion

NOW = datetime(2025, 6, 30, tzinfo=timezone.utc)


def _aggregator(sources, settings, *, completion=None, cache=None) -> Aggregator:
    return Aggregator(
        sources,
        RelevanceScorer(completion),
        cache or AggregationCache(ttl=60, clock=FakeClock()),
        settings=settings,
        now=lambda: NOW,
    )


def _with_duplicate(platform: str) -> list[dict]:
    candidates = sample_candidates(platform, 9)
    return candidates + [dict(candidates[3])]


@pytest.mark.asyncio
async def test_end_to_end_merge_dedupe_and_page(settings, query):
    sources = [
        MockSource("seek", _with_duplicate("seek")),
        MockSource("indeed"),
        MockSource("linkedin"),
    ]
    agg = _aggregator(sources, settings, completion=FakeCompletion(GOOD_REPLY))

    result = await agg.search(query)

    assert result.total == 29
    assert len(result.jobs) == 15
    assert result.total_pages == 2
    assert not result.cached
    assert result.yields == {"seek": 10, "indeed": 10, "linkedin": 10}

    run, last = 0, None
    for posting in result.jobs:
        run = run + 1 if posting.platform == last else 1
        last = posting.platform
        assert run <= 5
    assert [p.platform for p in result.jobs[:15]].count("seek") == 5
    assert all(p.match_score == 82 for p in result.jobs)


@pytest.mark.asyncio
async def test_second_page_comes_from_cache(settings, query):
    sources = [MockSource("seek"), MockSource("indeed")]
    agg = _aggregator(sources, settings)

    await agg.search(query)
    second = await agg.search(dataclasses.replace(query, page=2, limit=15))

    assert second.cached
    assert second.total == 20
    assert len(second.jobs) == 5
    assert [s.calls for s in sources] == [1, 1]


@pytest.mark.asyncio
async def test_cache_hit_returns_identical_set_without_sources(settings, query):
    sources = [MockSource("seek"), MockSource("indeed")]
    agg = _aggregator(sources, settings)

    first = await agg.search(query)
    first.jobs[0].summary = "mutated by caller"
    again = await agg.search(query)

    assert [p.id for p in again.jobs] == [p.id for p in first.jobs]
    assert again.jobs[0].summary != "mutated by caller"
    assert [s.calls for s in sources] == [1, 1]


@pytest.mark.asyncio
async def test_expired_entry_triggers_fresh_fetch(settings, query):
    clock = FakeClock()
    source = MockSource("seek")
    agg = _aggregator([source], settings, cache=AggregationCache(ttl=60, clock=clock))

    await agg.search(query)
    clock.advance(61)
    result = await agg.search(query)

    assert not result.cached
    assert source.calls == 2


@pytest.mark.asyncio
async def test_two_of_five_sources_failing(settings, query):
    sources = [
        MockSource("linkedin", error=AdapterChallenge("linkedin", "captcha")),
        MockSource("indeed"),
        MockSource("seek", error=RuntimeError("selector crashed")),
        MockSource("jora"),
        MockSource("adzuna"),
    ]
    result = await _aggregator(sources, settings).search(query)

    assert result.total == 30
    assert {p.platform for p in result.jobs} == {"indeed", "jora", "adzuna"}
    assert set(result.yields) == {"indeed", "jora", "adzuna"}


@pytest.mark.asyncio
async def test_stalled_source_cancelled_at_budget(settings, query):
    settings = dataclasses.replace(settings, pipeline_budget_s=0.2)
    stalled = MockSource("seek", delay_s=5)
    result = await _aggregator([stalled, MockSource("indeed")], settings).search(query)
    assert result.total == 10
    assert {p.platform for p in result.jobs} == {"indeed"}


@pytest.mark.asyncio
async def test_all_sources_failing_raises(settings, query):
    sources = [MockSource("seek", error=RuntimeError("down")), MockSource("indeed", error=TimeoutError())]
    with pytest.raises(AllAdaptersFailed) as info:
        await _aggregator(sources, settings).search(query)
    assert set(info.value.errors) == {"seek", "indeed"}


@pytest.mark.asyncio
async def test_sources_returning_nothing_is_not_a_failure(settings, query):
    result = await _aggregator([MockSource("seek", []), MockSource("indeed", [])], settings).search(query)
    assert result.total == 0
    assert result.jobs == []


@pytest.mark.asyncio
async def test_old_postings_filtered_and_undated_kept(settings, query):
    candidates = sample_candidates("seek", 3)
    candidates[0]["posted_date"] = "2025-04-01"
    candidates[1].pop("posted_date")
    result = await _aggregator([MockSource("seek", candidates)], settings).search(query)
    assert result.total == 2


@pytest.mark.asyncio
async def test_scoring_failure_keeps_fallback(settings, query):
    agg = _aggregator([MockSource("seek")], settings, completion=FakeCompletion(error=ConnectionError("down")))
    result = await agg.search(query)
    assert all(p.match_score == FALLBACK_SCORE and p.summary for p in result.jobs)


@pytest.mark.asyncio
async def test_invalidate_forces_refetch(settings, query):
    source = MockSource("seek")
    agg = _aggregator([source], settings)
    await agg.search(query)
    agg.invalidate(query)
    await agg.search(query)
    assert source.calls == 2


class BrokenCache(AggregationCache):
    def get(self, key):
        raise CacheFailure("disk gone")

    def put(self, key, postings):
        raise CacheFailure("disk gone")


@pytest.mark.asyncio
async def test_cache_failures_are_treated_as_miss(settings, query):
    source = MockSource("seek")
    agg = _aggregator([source], settings, cache=BrokenCache())
    assert (await agg.search(query)).total == 10
    assert (await agg.search(query)).total == 10
    assert source.calls == 2


@pytest.mark.asyncio
async def test_unsupported_sources_do_not_run(settings, query):
    class FinanceOnly(MockSource):
        def supports(self, q):
            return "accountant" in q.title.lower()

    finance = FinanceOnly("efinancialcareers")
    result = await _aggregator([finance, MockSource("seek")], settings).search(query)
    assert finance.calls == 0
    assert result.total == 10


@pytest.mark.asyncio
async def test_stalled_source_leaves_time_for_scoring(settings, query):
    settings = dataclasses.replace(settings, pipeline_budget_s=0.2)
    sources = [MockSource("seek", delay_s=5), MockSource("indeed")]
    agg = _aggregator(sources, settings, completion=FakeCompletion(GOOD_REPLY))

    first = await agg.search(query)
    again = await agg.search(query)

    assert {p.match_score for p in first.jobs} == {82}
    assert again.cached
    assert {p.match_score for p in again.jobs} == {82}


@pytest.mark.asyncio
async def test_all_fallback_scores_are_not_cached(settings, query):
    source = MockSource("seek")
    agg = _aggregator([source], settings, completion=FakeCompletion(error=ConnectionError("down")))

    await agg.search(query)
    again = await agg.search(query)

    assert not again.cached
    assert source.calls == 2


class ThreadRecordingBackend(MemoryBackend):
    def __init__(self):
        super().__init__()
        self.threads = set()

    def load(self, key):
        self.threads.add(threading.get_ident())
        return super().load(key)

    def store(self, entry):
        self.threads.add(threading.get_ident())
        super().store(entry)


@pytest.mark.asyncio
async def test_cache_io_runs_off_the_event_loop(settings, query):
    backend = ThreadRecordingBackend()
    agg = _aggregator([MockSource("seek")], settings, cache=AggregationCache(backend, ttl=60, clock=FakeClock()))
    await agg.search(query)
    assert backend.threads
    assert threading.get_ident() not in backend.threads
