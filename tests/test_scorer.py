from __future__ import annotations

import asyncio

import pytest

from jobmirror.errors import ScoringFailure
from jobmirror.models import CandidateProfile, Persona, SearchQuery
from jobmirror.scorer import (
    FALLBACK_ANALYSIS,
    FALLBACK_SCORE,
    SYSTEM_PROMPT,
    RelevanceScorer,
    build_prompt,
    classify_persona,
    fallback_result,
)

from conftest import GOOD_REPLY, FakeCompletion, make_posting


def _query(**kwargs) -> SearchQuery:
    base = dict(title="Data Analyst", location="Sydney", open_to_relocate=True)
    base.update(kwargs)
    return SearchQuery(**base)


@pytest.mark.parametrize("query, profile, expected", [
    (_query(career_priorities=("Higher Compensation",)), CandidateProfile(), Persona.OPPORTUNITY),
    (_query(seniority="Senior"), CandidateProfile(expected_salary="Highest"), Persona.OPPORTUNITY),
    (_query(), CandidateProfile(current_position="Manager", expected_position="Director"), Persona.OPPORTUNITY),
    (_query(career_priorities=("Work-Life Balance",)), CandidateProfile(), Persona.FIT),
    (_query(career_priorities=("Industry Fit", "Functional Fit")), CandidateProfile(), Persona.FIT),
    (_query(open_to_relocate=False), CandidateProfile(), Persona.FIT),
    (_query(career_priorities=("Industry Fit",)), CandidateProfile(), Persona.NEUTRAL),
])
def test_classify_persona(query, profile, expected):
    assert classify_persona(query, profile) == expected


def test_prompt_carries_posting_and_persona_focus():
    posting = make_posting(description="Build dashboards", requirements=["SQL"])
    prompt = build_prompt(posting, _query(skills=("SQL",)), CandidateProfile(), Persona.OPPORTUNITY)
    assert "Good Opportunity Seeker" in prompt
    assert "Company reputation" in prompt
    assert "Build dashboards" in prompt
    assert "Required Skills: SQL" in prompt
    assert "List Summary:" in prompt


def test_prompt_lists_profile_titles():
    profile = CandidateProfile(job_titles=["Data Analyst", "BI Analyst"])
    prompt = build_prompt(make_posting(), _query(), profile, Persona.NEUTRAL)
    assert "Titles of Interest: Data Analyst, BI Analyst" in prompt
    assert "Titles of Interest: Not specified" in build_prompt(make_posting(), _query(), CandidateProfile(), Persona.NEUTRAL)


def test_fallback_values():
    posting = make_posting(full_description="x" * 300)
    result = fallback_result(posting)
    assert result.score == FALLBACK_SCORE
    assert result.summary == "Data Analyst position at Acme in Sydney NSW."
    assert result.detailed_summary == "x" * 200 + "..."
    assert result.analysis == FALLBACK_ANALYSIS
    assert result.fallback


@pytest.mark.asyncio
async def test_score_uses_completion_reply():
    completion = FakeCompletion(GOOD_REPLY)
    scorer = RelevanceScorer(completion)
    result = await scorer.score(make_posting(), _query(), CandidateProfile())
    assert result.score == 82
    assert not result.fallback
    assert len(completion.prompts) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("completion", [
    FakeCompletion(error=ScoringFailure("boom")),
    FakeCompletion(error=ConnectionError("network down")),
    FakeCompletion("Sorry, I can't do that."),
    None,
])
async def test_score_falls_back_on_any_failure(completion):
    scorer = RelevanceScorer(completion)
    result = await scorer.score(make_posting(), _query(), CandidateProfile())
    assert result.fallback
    assert result.score == FALLBACK_SCORE
    assert result.summary


@pytest.mark.asyncio
async def test_score_times_out_to_fallback():
    scorer = RelevanceScorer(FakeCompletion(GOOD_REPLY, delay_s=1.0), timeout_s=0.05)
    result = await scorer.score(make_posting(), _query(), CandidateProfile())
    assert result.fallback


@pytest.mark.asyncio
async def test_enrich_scores_every_posting_concurrently():
    postings = [make_posting(title=f"Analyst {i}") for i in range(6)]
    completion = FakeCompletion(GOOD_REPLY, delay_s=0.05)
    scorer = RelevanceScorer(completion, concurrency=6)

    loop = asyncio.get_running_loop()
    started = loop.time()
    scored = await scorer.enrich(postings, _query(), CandidateProfile())
    elapsed = loop.time() - started

    assert scored == 6
    assert all(p.match_score == 82 for p in postings)
    assert elapsed < 0.25


@pytest.mark.asyncio
async def test_enrich_respects_overall_deadline():
    postings = [make_posting(title=f"Analyst {i}") for i in range(3)]
    scorer = RelevanceScorer(FakeCompletion(GOOD_REPLY, delay_s=1.0))
    scored = await scorer.enrich(postings, _query(), CandidateProfile(), timeout_s=0.05)
    assert scored == 0
    assert all(p.match_score == FALLBACK_SCORE and p.summary for p in postings)


def test_system_prompt_is_career_advisor():
    assert "career advisor" in SYSTEM_PROMPT
