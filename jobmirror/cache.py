"""TTL cache for merged and scored result sets.

Entries are whole, immutable snapshots keyed by query. Expiry is lazy: an
entry is only judged stale when it is read, against the injected clock.
"""
from __future__ import annotations

import copy
import hashlib
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable, Protocol

from jobmirror.errors import CacheFailure
from jobmirror.log import get_logger
from jobmirror.models import CacheEntry, Posting, SearchQuery

log = get_logger(__name__)

DEFAULT_TTL_S = 1800.0


def cache_key(query: SearchQuery) -> str:
    """Key on title, location and skills; page and limit slice a cached set."""
    skills = sorted(s.casefold() for s in query.skills)
    material = json.dumps(
        [query.title.strip().casefold(), query.location.strip().casefold(), skills],
        ensure_ascii=False,
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:24]


class CacheBackend(Protocol):
    def load(self, key: str) -> CacheEntry | None: ...

    def store(self, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryBackend:
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def load(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class FileBackend:
    """One JSON document per key under ``directory``; writes replace atomically."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> CacheEntry | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return CacheEntry(
                key=data["key"],
                postings=tuple(Posting.from_dict(p) for p in data["postings"]),
                created_at=float(data["created_at"]),
                ttl=float(data["ttl"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise CacheFailure(f"Unreadable cache file {path.name}: {exc}") from exc

    def store(self, entry: CacheEntry) -> None:
        payload = {
            "key": entry.key,
            "created_at": entry.created_at,
            "ttl": entry.ttl,
            "postings": [p.to_dict() for p in entry.postings],
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False)
                os.replace(tmp, self._path(entry.key))
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise CacheFailure(f"Could not write cache entry {entry.key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise CacheFailure(f"Could not delete cache entry {key}: {exc}") from exc

    def clear(self) -> None:
        if not self.directory.exists():
            return
        for path in self.directory.glob("*.json"):
            self.delete(path.stem)


class AggregationCache:
    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        ttl: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend if backend is not None else MemoryBackend()
        self.ttl = ttl
        self.clock = clock

    def get(self, key: str) -> CacheEntry | None:
        """Return a fresh entry, or None. Stale entries are evicted on read."""
        entry = self.backend.load(key)
        if entry is None:
            return None
        if entry.expired(self.clock()):
            log.debug("Cache entry %s expired", key)
            self.backend.delete(key)
            return None
        return entry

    def put(self, key: str, postings: Iterable[Posting]) -> CacheEntry:
        # Callers keep mutating their postings; the entry holds its own copies.
        entry = CacheEntry(
            key=key,
            postings=tuple(copy.deepcopy(p) for p in postings),
            created_at=self.clock(),
            ttl=self.ttl,
        )
        self.backend.store(entry)
        return entry

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)

    def clear(self) -> None:
        self.backend.clear()
