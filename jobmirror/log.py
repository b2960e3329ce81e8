"""Logging setup for the search pipeline (stdlib only).

Console output goes to stderr by default so the CLI can print JSON on stdout.
A dated file under ``LOG_DIR`` captures DEBUG detail (per-adapter URLs,
detail-page failures); files older than ``LOG_RETENTION_DAYS`` are removed
when logging is configured.
"""
from __future__ import annotations

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import IO

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_FILE_PREFIX = "jobmirror_"
_configured = False

# Per-request chatter from the LLM client and the page driver.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "asyncio", "urllib3")


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def configure_logging(
    level: str | None = None,
    *,
    stream: IO[str] | None = None,
    to_file: bool | None = None,
) -> None:
    """Install console and file handlers on the root logger.

    Calling again replaces the handlers installed by an earlier call, so the
    CLI can raise verbosity after modules have already grabbed their loggers.
    Handlers installed by someone else (a test runner, an embedding app) are
    left alone and nothing is added.
    """
    global _configured
    _configured = True

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    numeric = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric)
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(numeric, logging.WARNING))

    ours = [h for h in root.handlers if getattr(h, "_jobmirror", False)]
    if len(ours) != len(root.handlers):
        return
    for handler in ours:
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(numeric)
    console.setFormatter(formatter)
    _install(root, console)

    if to_file is None:
        to_file = os.environ.get("LOG_TO_FILE", "true").lower() in ("1", "true", "yes")
    if not to_file:
        return

    log_dir = Path(os.environ.get("LOG_DIR") or _DEFAULT_LOG_DIR)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(
            log_dir / f"{_FILE_PREFIX}{datetime.now().strftime('%Y-%m-%d')}.log",
            encoding="utf-8",
        )
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging disabled, cannot write to %s: %s", log_dir, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    _install(root, fh)
    _prune(log_dir, int(os.environ.get("LOG_RETENTION_DAYS", "14")))


def _install(root: logging.Logger, handler: logging.Handler) -> None:
    handler._jobmirror = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def _prune(log_dir: Path, keep_days: int) -> None:
    if keep_days <= 0:
        return
    cutoff = time.time() - keep_days * 86400
    for path in log_dir.glob(f"{_FILE_PREFIX}*.log"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
        except OSError:
            # Another process rotated or removed it first.
            continue
