from __future__ import annotations

import io
import logging
import os
import time

from jobmirror.log import configure_logging, get_logger


def _fresh_root(monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)
    return root


def _close_all(root):
    for handler in root.handlers:
        handler.close()


def test_console_and_dated_file(monkeypatch, tmp_path):
    root = _fresh_root(monkeypatch)
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    stream = io.StringIO()
    try:
        configure_logging("DEBUG", stream=stream, to_file=True)
        get_logger("jobmirror.test").debug("adapter detail")
        assert "adapter detail" in stream.getvalue()
        assert len(list(tmp_path.glob("jobmirror_*.log"))) == 1
    finally:
        _close_all(root)


def test_reconfigure_replaces_own_handlers(monkeypatch):
    root = _fresh_root(monkeypatch)
    configure_logging("INFO", stream=io.StringIO(), to_file=False)
    configure_logging("DEBUG", stream=io.StringIO(), to_file=False)
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
    _close_all(root)


def test_foreign_handlers_are_left_alone(monkeypatch):
    root = _fresh_root(monkeypatch)
    foreign = logging.NullHandler()
    root.handlers.append(foreign)
    configure_logging("INFO", stream=io.StringIO(), to_file=False)
    assert root.handlers == [foreign]


def test_old_log_files_are_pruned(monkeypatch, tmp_path):
    root = _fresh_root(monkeypatch)
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_RETENTION_DAYS", "7")
    stale = tmp_path / "jobmirror_2020-01-01.log"
    stale.write_text("old", encoding="utf-8")
    month_ago = time.time() - 30 * 86400
    os.utime(stale, (month_ago, month_ago))
    try:
        configure_logging("INFO", stream=io.StringIO(), to_file=True)
        assert not stale.exists()
    finally:
        _close_all(root)
