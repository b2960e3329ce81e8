"""Parse the named-section reply of the match-analysis prompt.

Grammar of a reply::

    reply    := section*
    section  := header-line body-line*
    header   := [decoration] NAME [decoration] ":" [inline-text]
    NAME     := "Score" | "Highlights" | "List Summary"
              | "Detailed Summary" | "Analysis"

Header names are matched case-insensitively at the start of a line;
decoration is any run of ``#``, ``*`` or whitespace so markdown-styled
replies ("**Score:** 82", "## Analysis:") parse too. A section's body is
its inline text plus every following line up to the next header. Lines
that look like headers but are not in NAME ("Who we are:", "Overview:")
stay inside the current body, which is how the sub-headings of Detailed
Summary and Analysis survive.

``Score``, ``List Summary`` and ``Analysis`` are required; a reply missing
any of them raises MatchParseError. ``Highlights`` and ``Detailed Summary``
default to empty.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from jobmirror.errors import MatchParseError

SCORE = "score"
HIGHLIGHTS = "highlights"
LIST_SUMMARY = "list summary"
DETAILED_SUMMARY = "detailed summary"
ANALYSIS = "analysis"

SECTION_NAMES = (SCORE, HIGHLIGHTS, LIST_SUMMARY, DETAILED_SUMMARY, ANALYSIS)
REQUIRED_SECTIONS = (SCORE, LIST_SUMMARY, ANALYSIS)

MAX_HIGHLIGHTS = 5

_HEADER_RE = re.compile(
    r"^[\s#*]*(?P<name>score|highlights|list summary|detailed summary|analysis)[\s*]*:[\s*]*(?P<rest>.*)$",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^\s*(?:[-*•·]|\d+[.)])\s*")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass
class MatchReply:
    score: int
    highlights: list[str] = field(default_factory=list)
    summary: str = ""
    detailed_summary: str = ""
    analysis: str = ""


def split_sections(text: str) -> dict[str, str]:
    """Map each known header (lower-case) to its stripped body text."""
    sections: dict[str, list[str]] = {}
    current: str | None = None
    for line in text.splitlines():
        match = _HEADER_RE.match(line)
        if match:
            current = match.group("name").lower()
            # A repeated header restarts its section.
            sections[current] = []
            rest = match.group("rest").strip()
            if rest:
                sections[current].append(rest)
            continue
        if current is not None:
            sections[current].append(line.rstrip())
    return {name: "\n".join(lines).strip() for name, lines in sections.items()}


def clamp_score(value: float) -> int:
    return int(max(0, min(100, round(value))))


def parse_score(body: str) -> int:
    match = _NUMBER_RE.search(body)
    if not match:
        raise MatchParseError(f"No number in Score section: {body[:40]!r}")
    return clamp_score(float(match.group()))


def parse_highlights(body: str) -> list[str]:
    points: list[str] = []
    for line in body.splitlines():
        if not line.strip():
            continue
        point = _BULLET_RE.sub("", line).strip()
        if point:
            points.append(point)
    return points[:MAX_HIGHLIGHTS]


def parse_match_reply(text: str) -> MatchReply:
    """Parse a full reply; raises MatchParseError when required parts are missing."""
    if not text or not text.strip():
        raise MatchParseError("Empty reply")
    sections = split_sections(text)
    missing = [name for name in REQUIRED_SECTIONS if not sections.get(name)]
    if missing:
        raise MatchParseError(f"Reply missing section(s): {', '.join(missing)}")

    return MatchReply(
        score=parse_score(sections[SCORE]),
        highlights=parse_highlights(sections.get(HIGHLIGHTS, "")),
        summary=" ".join(sections[LIST_SUMMARY].split()),
        detailed_summary=sections.get(DETAILED_SUMMARY, ""),
        analysis=sections[ANALYSIS],
    )
