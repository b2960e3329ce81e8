"""Exception hierarchy for the aggregation pipeline.

Per-item and per-adapter errors are caught close to where they happen and
turned into "no contribution"; only ``AllAdaptersFailed`` is meant to reach
the caller.
"""
from __future__ import annotations


class JobMirrorError(Exception):
    """Base class for all pipeline errors."""


class SourceError(JobMirrorError):
    """A source adapter could not contribute postings."""

    def __init__(self, platform: str, message: str) -> None:
        super().__init__(f"[{platform}] {message}")
        self.platform = platform


class AdapterTimeout(SourceError):
    """Results did not appear in time. Treated as an empty page."""


class AdapterExtraction(SourceError):
    """A single candidate could not be read. The candidate is skipped."""


class AdapterChallenge(SourceError):
    """An anti-automation challenge blocked the source for this run."""


class BrowserError(JobMirrorError):
    """The page capability failed to navigate, query or read."""


class ScoringFailure(JobMirrorError):
    """A completion call failed or could not be interpreted."""


class MatchParseError(ScoringFailure):
    """The completion reply did not follow the response template."""


class CacheFailure(JobMirrorError):
    """The cache backend could not be read or written."""


class AllAdaptersFailed(JobMirrorError):
    """Every adapter that ran for a query failed."""

    def __init__(self, errors: dict[str, str]) -> None:
        names = ", ".join(sorted(errors)) or "none"
        super().__init__(f"All job sources failed ({names})")
        self.errors = errors
