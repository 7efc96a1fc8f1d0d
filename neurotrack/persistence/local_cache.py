"""
Bounded local cache of session records awaiting persistence.

Records are stored as JSON files in ~/.neurotrack/pending/ (one file per
session) so that reports survive a restart while the backend is down.
Beyond ``max_entries`` the oldest entries are evicted.

Entry states:
- pending: queued for the background sync
- local_only: retries exhausted, kept only here
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from loguru import logger

DEFAULT_CACHE_DIR = Path.home() / ".neurotrack" / "pending"
DEFAULT_MAX_ENTRIES = 100

PENDING = "pending"
LOCAL_ONLY = "local_only"


@dataclass
class CacheEntry:
    """Serializable cache entry."""

    session_id: str
    record: dict[str, Any]
    status: str = PENDING
    attempts: int = 0
    queued_at: int = 0  # ns, orders eviction
    last_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(**data)


class LocalReportCache:
    """
    File-backed, bounded record cache.

    Usage:
        cache = LocalReportCache(Path("/tmp/pending"), max_entries=100)
        cache.put(record)
        cache.mark_local_only(record["session_id"], attempts=3, error="timeout")
    """

    def __init__(self, cache_dir: Optional[Path] = None, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.cache_dir = Path(cache_dir or DEFAULT_CACHE_DIR)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_entries = max_entries
        self._lock = threading.Lock()

    def _path(self, session_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in session_id)
        return self.cache_dir / f"{safe}.json"

    def _write(self, entry: CacheEntry) -> Path:
        filepath = self._path(entry.session_id)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(entry.to_dict(), f, indent=2, ensure_ascii=False)
        return filepath

    def _read(self, filepath: Path) -> Optional[CacheEntry]:
        try:
            with open(filepath, encoding="utf-8") as f:
                return CacheEntry.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, TypeError, OSError) as e:
            logger.warning(f"Unreadable cache entry {filepath.name}: {e}")
            return None

    def _entries(self) -> list[CacheEntry]:
        entries = [e for e in (self._read(p) for p in self.cache_dir.glob("*.json")) if e is not None]
        entries.sort(key=lambda e: e.queued_at)
        return entries

    def put(self, record: dict[str, Any]) -> Path:
        """Queue a record, evicting the oldest entries beyond the bound."""
        session_id = str(record["session_id"])
        entry = CacheEntry(session_id=session_id, record=record, queued_at=time.time_ns())
        with self._lock:
            filepath = self._write(entry)
            entries = self._entries()
            for old in entries[: max(0, len(entries) - self.max_entries)]:
                logger.warning(f"Local cache full, evicting {old.session_id} ({old.status})")
                self._path(old.session_id).unlink(missing_ok=True)
        return filepath

    def get(self, session_id: str) -> Optional[CacheEntry]:
        with self._lock:
            filepath = self._path(session_id)
            return self._read(filepath) if filepath.exists() else None

    def mark_local_only(self, session_id: str, attempts: int, error: Optional[str] = None) -> None:
        with self._lock:
            filepath = self._path(session_id)
            if not filepath.exists():
                return
            entry = self._read(filepath)
            if entry is None:
                return
            entry.status = LOCAL_ONLY
            entry.attempts = attempts
            entry.last_error = error
            self._write(entry)

    def remove(self, session_id: str) -> bool:
        with self._lock:
            filepath = self._path(session_id)
            if filepath.exists():
                filepath.unlink()
                return True
            return False

    def entries(self, status: Optional[str] = None) -> list[CacheEntry]:
        """All entries, oldest first, optionally filtered by status."""
        with self._lock:
            entries = self._entries()
        return [e for e in entries if status is None or e.status == status]

    def records_for_user(self, user_id: str) -> list[dict[str, Any]]:
        return [e.record for e in self.entries() if isinstance(e.record, dict) and e.record.get("user_id") == user_id]

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for _ in self.cache_dir.glob("*.json"))
