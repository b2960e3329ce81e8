"""Load settings, candidate profile and source configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobmirror.log import get_logger
from jobmirror.models import CandidateProfile

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
SOURCES_PATH: Path = CONFIG_DIR / "sources.yaml"
DATA_DIR: Path = ROOT_DIR / "data"
SESSIONS_DIR: Path = DATA_DIR / "sessions"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_int(key: str, default: int) -> int:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r", key, raw)
        return default


def _env_float(key: str, default: float) -> float:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r", key, raw)
        return default


def _env_bool(key: str, default: bool) -> bool:
    raw = get_env(key)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_list(key: str) -> list[str]:
    return [part.strip() for part in get_env(key).split(",") if part.strip()]


@dataclass
class Settings:
    """Pipeline tunables. Every field maps to one environment variable."""

    pipeline_budget_s: float = 120.0
    cache_ttl_s: float = 1800.0
    cache_dir: Path | None = None
    per_source_limit: int = 60
    max_source_pages: int = 3
    interleave_batch: int = 5
    max_results: int = 200
    recency_days: int = 30
    results_timeout_ms: int = 10_000
    resolve_details: bool = True
    detail_timeout_s: float = 20.0
    detail_concurrency: int = 2
    scoring_timeout_s: float = 30.0
    scoring_concurrency: int = 8
    headless: bool = True
    sessions_dir: Path = SESSIONS_DIR
    enabled_sources: list[str] = field(default_factory=list)
    use_mock_sources: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        cache_dir = get_env("CACHE_DIR")
        sessions_dir = get_env("SESSIONS_DIR")
        return cls(
            pipeline_budget_s=_env_float("PIPELINE_BUDGET_SECONDS", cls.pipeline_budget_s),
            cache_ttl_s=_env_float("CACHE_TTL_SECONDS", cls.cache_ttl_s),
            cache_dir=Path(cache_dir) if cache_dir else None,
            per_source_limit=_env_int("PER_SOURCE_LIMIT", cls.per_source_limit),
            max_source_pages=_env_int("MAX_SOURCE_PAGES", cls.max_source_pages),
            interleave_batch=_env_int("INTERLEAVE_BATCH", cls.interleave_batch),
            max_results=_env_int("MAX_RESULTS", cls.max_results),
            recency_days=_env_int("RECENCY_DAYS", cls.recency_days),
            results_timeout_ms=_env_int("RESULTS_TIMEOUT_MS", cls.results_timeout_ms),
            resolve_details=_env_bool("RESOLVE_DETAILS", cls.resolve_details),
            detail_timeout_s=_env_float("DETAIL_TIMEOUT_SECONDS", cls.detail_timeout_s),
            detail_concurrency=_env_int("DETAIL_CONCURRENCY", cls.detail_concurrency),
            scoring_timeout_s=_env_float("SCORING_TIMEOUT_SECONDS", cls.scoring_timeout_s),
            scoring_concurrency=_env_int("SCORING_CONCURRENCY", cls.scoring_concurrency),
            headless=_env_bool("RUN_HEADLESS", cls.headless),
            sessions_dir=Path(sessions_dir) if sessions_dir else SESSIONS_DIR,
            enabled_sources=[s.lower() for s in _env_list("ENABLED_SOURCES")],
            use_mock_sources=_env_bool("USE_MOCK_SOURCES", cls.use_mock_sources),
        )


def load_profile(path: Path = PROFILE_PATH) -> CandidateProfile:
    """Read the optional candidate profile; an absent file means an empty profile."""
    if not path.exists():
        log.debug("No profile at %s, scoring without one", path)
        return CandidateProfile()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # Accept the camelCase keys the profile form writes.
    return CandidateProfile(
        job_titles=list(data.get("job_titles") or data.get("jobTitles") or []),
        expected_salary=data.get("expected_salary") or data.get("expectedSalary") or "",
        current_position=data.get("current_position") or data.get("currentPosition") or "",
        expected_position=data.get("expected_position") or data.get("expectedPosition") or "",
    )


def load_source_configs(path: Path = SOURCES_PATH) -> dict[str, dict[str, Any]]:
    """Per-platform URL templates and selectors, keyed by lower-case platform name."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    sources = data.get("sources", data)
    return {str(name).lower(): cfg or {} for name, cfg in sources.items()}
