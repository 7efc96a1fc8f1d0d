"""
Persistence boundary.

A gateway stores finalized session records (plain dicts produced by the
serializer) and returns recent records of a user. Gateways make a single
attempt per call; retrying is the job of BackgroundPersistenceSync.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Protocol

from loguru import logger


class PersistenceGateway(Protocol):
    """Interface for session record storage."""

    def save_session(self, record: dict[str, Any]) -> None:
        """
        Store one session record (upsert by session_id).

        Raises:
            PersistenceError: On storage or transport failure
        """
        ...

    def load_recent_sessions(self, user_id: str, since_ms: int = 0, limit: int = 50) -> list[dict[str, Any]]:
        """
        Records of a user started at or after ``since_ms``, oldest first.

        Raises:
            PersistenceError: On storage or transport failure
        """
        ...


class InMemoryPersistenceGateway:
    """Process-local gateway, used when no backend is configured."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = {}

    def save_session(self, record: dict[str, Any]) -> None:
        with self._lock:
            self._records[str(record["session_id"])] = copy.deepcopy(record)
        logger.debug(f"Stored session {record['session_id']} in memory")

    def load_recent_sessions(self, user_id: str, since_ms: int = 0, limit: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            matching = [
                copy.deepcopy(r)
                for r in self._records.values()
                if r.get("user_id") == user_id and int(r.get("start_time") or 0) >= since_ms
            ]
        matching.sort(key=lambda r: int(r.get("start_time") or 0))
        return matching[-limit:] if limit else matching

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
