"""Data models for queries, postings, scores and cache entries."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

VIA_PLATFORM = "via platform"
VIA_COMPANY_SITE = "via company site"


@dataclass(frozen=True)
class SearchQuery:
    title: str
    location: str
    skills: tuple[str, ...] = ()
    seniority: str = ""
    open_to_relocate: bool = False
    career_priorities: tuple[str, ...] = ()
    page: int = 1
    limit: int = 60

    @classmethod
    def from_request(cls, payload: dict[str, Any]) -> SearchQuery:
        """Build a query from the inbound request shape.

        Raises ValueError when title or city is missing, or page/limit are
        not positive integers.
        """
        title = str(payload.get("jobTitle") or payload.get("title") or "").strip()
        location = str(payload.get("city") or payload.get("location") or "").strip()
        if not title or not location:
            raise ValueError("Job title and city are required")

        try:
            page = int(_or_default(payload.get("page"), 1))
            limit = int(_or_default(payload.get("limit"), 60))
        except (TypeError, ValueError) as exc:
            raise ValueError("page and limit must be integers") from exc
        if page < 1:
            raise ValueError("page must be >= 1")
        if limit < 1:
            raise ValueError("limit must be > 0")

        return cls(
            title=title,
            location=location,
            skills=_as_tuple(payload.get("skills")),
            seniority=str(payload.get("seniority") or "").strip(),
            open_to_relocate=_as_bool(payload.get("openToRelocate")),
            career_priorities=_as_tuple(payload.get("careerPriorities")),
            page=page,
            limit=limit,
        )


def _or_default(value: Any, default: int) -> Any:
    return default if value is None or value == "" else value


def _as_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(v).strip() for v in value if str(v).strip())


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass
class CandidateProfile:
    """Career signals that sit outside the search form."""

    job_titles: list[str] = field(default_factory=list)
    expected_salary: str = ""
    current_position: str = ""
    expected_position: str = ""


@dataclass
class Posting:
    id: str
    title: str
    company: str
    location: str
    platform: str
    url: str
    description: str | None = None
    full_description: str | None = None
    requirements: list[str] = field(default_factory=list)
    benefits: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    salary: str | None = None
    job_type: str | None = None
    posted_date: str | None = None
    source: str = VIA_PLATFORM
    summary: str | None = None
    detailed_summary: str | None = None
    match_score: int | None = None
    match_analysis: str | None = None
    match_highlights: list[str] | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "platform" and "platform" in self.__dict__:
            raise AttributeError("platform cannot change after normalization")
        if name == "match_score" and value is not None and not 0 <= value <= 100:
            raise ValueError(f"match_score must be within [0, 100], got {value}")
        super().__setattr__(name, value)

    def apply_score(self, result: ScoreResult) -> None:
        self.match_score = result.score
        self.match_highlights = list(result.highlights)
        self.summary = result.summary
        self.detailed_summary = result.detailed_summary
        self.match_analysis = result.analysis

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "description": self.description,
            "fullDescription": self.full_description,
            "requirements": list(self.requirements),
            "benefits": list(self.benefits),
            "tags": list(self.tags),
            "salary": self.salary,
            "jobType": self.job_type,
            "postedDate": self.posted_date,
            "platform": self.platform,
            "url": self.url,
            "source": self.source,
            "summary": self.summary,
            "detailedSummary": self.detailed_summary,
            "matchScore": self.match_score,
            "matchAnalysis": self.match_analysis,
            "matchHighlights": list(self.match_highlights) if self.match_highlights is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Posting:
        highlights = data.get("matchHighlights")
        return cls(
            id=data["id"],
            title=data["title"],
            company=data["company"],
            location=data["location"],
            platform=data["platform"],
            url=data.get("url", ""),
            description=data.get("description"),
            full_description=data.get("fullDescription"),
            requirements=list(data.get("requirements") or []),
            benefits=list(data.get("benefits") or []),
            tags=list(data.get("tags") or []),
            salary=data.get("salary"),
            job_type=data.get("jobType"),
            posted_date=data.get("postedDate"),
            source=data.get("source") or VIA_PLATFORM,
            summary=data.get("summary"),
            detailed_summary=data.get("detailedSummary"),
            match_score=data.get("matchScore"),
            match_analysis=data.get("matchAnalysis"),
            match_highlights=list(highlights) if highlights is not None else None,
        )


class Persona(str, Enum):
    OPPORTUNITY = "opportunity"
    FIT = "fit"
    NEUTRAL = "neutral"


@dataclass
class ScoreResult:
    score: int
    highlights: list[str]
    summary: str
    detailed_summary: str
    analysis: str
    persona: Persona = Persona.NEUTRAL
    fallback: bool = False


@dataclass(frozen=True)
class CacheEntry:
    key: str
    postings: tuple[Posting, ...]
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


@dataclass
class SearchResult:
    jobs: list[Posting]
    total: int
    page: int
    total_pages: int
    cached: bool = False
    yields: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs": [p.to_dict() for p in self.jobs],
            "total": self.total,
            "page": self.page,
            "totalPages": self.total_pages,
        }
