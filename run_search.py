#!/usr/bin/env python3
"""Entry point to run one job search from the command line."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobmirror.log import configure_logging, get_logger

log = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Aggregate and score job postings for a title and city.")
    p.add_argument("title", help="Job title, e.g. 'Data Analyst'")
    p.add_argument("city", help="City, e.g. 'Sydney'")
    p.add_argument("--skills", default="", help="Comma-separated skills")
    p.add_argument("--seniority", default="", help="e.g. Junior, Mid, Senior")
    p.add_argument("--priorities", default="", help="Comma-separated career priorities")
    p.add_argument("--relocate", action="store_true", help="Open to relocation")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=15)
    p.add_argument("-o", "--output", type=Path, help="Write the JSON response here instead of stdout")
    p.add_argument("-v", "--verbose", action="store_true", help="Log DEBUG detail to the console")
    return p.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    if args.verbose:
        configure_logging("DEBUG")

    from jobmirror.service import build_service

    service = build_service()
    payload = {
        "jobTitle": args.title,
        "city": args.city,
        "skills": args.skills,
        "seniority": args.seniority,
        "careerPriorities": args.priorities,
        "openToRelocate": args.relocate,
        "page": args.page,
        "limit": args.limit,
    }
    try:
        status, body = await service.handle(payload)
    finally:
        await service.aclose()

    text = json.dumps(body, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(text, encoding="utf-8")
        log.info("Wrote %s", args.output)
    else:
        print(text)
    if status != 200:
        log.error("Search finished with status %d", status)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(_run(_parse_args())))
