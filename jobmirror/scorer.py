"""Score postings against the searcher with an LLM, falling back deterministically."""
from __future__ import annotations

import asyncio
from typing import Sequence

from jobmirror.completion import TextCompletion
from jobmirror.errors import ScoringFailure
from jobmirror.log import get_logger
from jobmirror.match_parser import parse_match_reply
from jobmirror.models import CandidateProfile, Persona, Posting, ScoreResult, SearchQuery

log = get_logger(__name__)

FALLBACK_SCORE = 65
FALLBACK_ANALYSIS = "Analysis unavailable."
DESCRIPTION_EXCERPT = 1500

OPPORTUNITY_PRIORITIES = frozenset({"Company Reputation", "Higher Compensation", "Clear Promotion Pathways"})
JUMP_TARGETS = frozenset({"Director", "VP", "C-level"})
JUMP_ORIGINS = frozenset({"Manager", "Senior Manager"})

SYSTEM_PROMPT = "You are a professional career advisor providing detailed job match analysis and scoring."

_PERSONA_LABELS = {
    Persona.OPPORTUNITY: "Good Opportunity Seeker",
    Persona.FIT: "Good Fit Seeker",
    Persona.NEUTRAL: "Neutral Seeker",
}

_PERSONA_FOCUS = {
    Persona.OPPORTUNITY: (
        "- Company reputation and funding status\n"
        "- Competitive compensation mentions\n"
        "- Position level vs expected position\n"
        "- Required qualifications and experience"
    ),
    Persona.FIT: (
        "- Career priorities alignment\n"
        "- Work-life balance mentions\n"
        "- Industry and functional fit\n"
        "- Required qualifications and experience"
    ),
    Persona.NEUTRAL: (
        "- Skills overlap with the job requirements\n"
        "- Seniority alignment\n"
        "- Required qualifications and experience"
    ),
}

RESPONSE_TEMPLATE = """Score: [number]

Highlights:
• [point 1]
• [point 2]
• [point 3]

List Summary:
[1 sentence summary]

Detailed Summary:
Who we are:
[paragraph]

Who we are looking for:
[paragraph]

Benefits and Offerings:
[paragraph]

Analysis:
Overview:
[1-2 paragraphs assessing overall match quality]

Strengths to Stand Out:
[1 paragraph highlighting key matching points]

Potential Improvement Areas:
[1 paragraph addressing gaps and application advice]

Transferable Advantages:
[1 paragraph discussing relevant indirect matches]

Other Considerations:
[1 paragraph on additional factors, if applicable]"""


def classify_persona(query: SearchQuery, profile: CandidateProfile) -> Persona:
    """Opportunity-seeker, fit-seeker or neutral, from career-priority signals."""
    priorities = set(query.career_priorities)
    wants_opportunity = bool(priorities & OPPORTUNITY_PRIORITIES)
    senior_high_salary = query.seniority.lower() == "senior" and profile.expected_salary.lower() == "highest"
    big_jump = profile.expected_position in JUMP_TARGETS and profile.current_position in JUMP_ORIGINS

    if wants_opportunity or senior_high_salary or big_jump:
        return Persona.OPPORTUNITY
    if (
        "Work-Life Balance" in priorities
        or {"Industry Fit", "Functional Fit"} <= priorities
        or not query.open_to_relocate
    ):
        return Persona.FIT
    return Persona.NEUTRAL


def build_prompt(posting: Posting, query: SearchQuery, profile: CandidateProfile, persona: Persona) -> str:
    description = (posting.full_description or posting.description or "Not provided")[:DESCRIPTION_EXCERPT]
    requirements = ", ".join(posting.requirements) or "Not specified"
    return f"""As a professional career advisor, analyze the match between the candidate's profile and this job position.

User Type: {_PERSONA_LABELS[persona]}

Job Details:
- Title: {posting.title}
- Company: {posting.company}
- Description: {description}
- Location: {posting.location}
- Required Skills: {requirements}

Candidate Profile:
- Target Role: {query.title}
- Titles of Interest: {", ".join(profile.job_titles) or "Not specified"}
- Skills: {", ".join(query.skills) or "Not specified"}
- Location: {query.location}
- Seniority Level: {query.seniority or "Not specified"}
- Open to Relocation: {"Yes" if query.open_to_relocate else "No"}
- Career Priorities: {", ".join(query.career_priorities) or "Not specified"}
- Expected Position: {profile.expected_position or "Not specified"}
- Current Position: {profile.current_position or "Not specified"}

Please provide:
1. A match score between 0 and 100
2. Three concise bullet points highlighting key matching aspects (each under 10 words)
3. A one-sentence list summary (max 20 words): "[Company Info] seeking [Position] in [City]"
4. A detailed summary in three parts: Who we are, Who we are looking for, Benefits and Offerings
5. A matching analysis in paragraphs: Overview, Strengths to Stand Out, Potential Improvement Areas, Transferable Advantages, Other Considerations

For this user type, prioritize:
{_PERSONA_FOCUS[persona]}

Consider location compatibility and highlight any significant location differences.

Format your response exactly as:
{RESPONSE_TEMPLATE}"""


def fallback_result(posting: Posting, persona: Persona = Persona.NEUTRAL) -> ScoreResult:
    source_text = posting.full_description or posting.description or ""
    detailed = source_text[:200] + "..." if len(source_text) > 200 else source_text
    return ScoreResult(
        score=FALLBACK_SCORE,
        highlights=[],
        summary=f"{posting.title} position at {posting.company} in {posting.location}.",
        detailed_summary=detailed,
        analysis=FALLBACK_ANALYSIS,
        persona=persona,
        fallback=True,
    )


class RelevanceScorer:
    def __init__(
        self,
        completion: TextCompletion | None,
        *,
        timeout_s: float = 30.0,
        concurrency: int = 8,
    ) -> None:
        self.completion = completion
        self.timeout_s = timeout_s
        self.concurrency = max(1, concurrency)

    async def score(
        self,
        posting: Posting,
        query: SearchQuery,
        profile: CandidateProfile,
        *,
        timeout_s: float | None = None,
    ) -> ScoreResult:
        """Never raises: any failure produces the fallback result."""
        persona = classify_persona(query, profile)
        if self.completion is None:
            return fallback_result(posting, persona)

        timeout = self.timeout_s if timeout_s is None else min(timeout_s, self.timeout_s)
        prompt = build_prompt(posting, query, profile, persona)
        try:
            if timeout <= 0:
                raise asyncio.TimeoutError
            reply = await asyncio.wait_for(self.completion.complete(prompt, SYSTEM_PROMPT), timeout)
            parsed = parse_match_reply(reply)
        except asyncio.TimeoutError:
            log.warning("Scoring timed out for %s @ %s, using fallback", posting.title, posting.company)
            return fallback_result(posting, persona)
        except ScoringFailure as exc:
            log.warning("Unusable scoring reply for %s @ %s (%s), using fallback", posting.title, posting.company, exc)
            return fallback_result(posting, persona)
        except Exception as exc:
            log.warning("Scoring failed for %s @ %s (%s), using fallback", posting.title, posting.company, exc)
            return fallback_result(posting, persona)

        return ScoreResult(
            score=parsed.score,
            highlights=parsed.highlights,
            summary=parsed.summary,
            detailed_summary=parsed.detailed_summary,
            analysis=parsed.analysis,
            persona=persona,
        )

    async def enrich(
        self,
        postings: Sequence[Posting],
        query: SearchQuery,
        profile: CandidateProfile,
        *,
        timeout_s: float | None = None,
    ) -> int:
        """Score every posting concurrently and write results onto them.

        Returns how many postings received a model score rather than the fallback.
        """
        if not postings:
            return 0
        semaphore = asyncio.Semaphore(self.concurrency)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s if timeout_s is not None else None

        async def _one(posting: Posting) -> ScoreResult:
            async with semaphore:
                remaining = None if deadline is None else deadline - loop.time()
                return await self.score(posting, query, profile, timeout_s=remaining)

        results = await asyncio.gather(*(_one(p) for p in postings))
        scored = 0
        for posting, result in zip(postings, results):
            posting.apply_score(result)
            scored += not result.fallback
        log.info("Scored %d posting(s): %d by model, %d fallback", len(postings), scored, len(postings) - scored)
        return scored
