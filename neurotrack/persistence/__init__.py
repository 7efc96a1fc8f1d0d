"""
Persistence Module - Session record storage with local fallback.

Components:
- gateway: PersistenceGateway protocol and in-memory implementation
- http: httpx gateway for the remote metrics API
- sql: SQLAlchemy gateway (SQLite by default)
- local_cache: Bounded file cache of records awaiting persistence
- sync: BackgroundPersistenceSync retry worker
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from neurotrack.persistence.gateway import InMemoryPersistenceGateway, PersistenceGateway
from neurotrack.persistence.http import HttpPersistenceGateway
from neurotrack.persistence.local_cache import LocalReportCache
from neurotrack.persistence.sql import SqlPersistenceGateway
from neurotrack.persistence.sync import BackgroundPersistenceSync

if TYPE_CHECKING:
    from config import Settings


def build_gateway(settings: Settings) -> PersistenceGateway:
    """
    Gateway selected by ``persistence_backend``.

    The http backend without an API base URL degrades to the in-memory
    gateway; records still go through the local cache.
    """
    logger.debug(f"Persistence config: {settings.get_persistence_config()}")
    if settings.persistence_backend == "http":
        if not settings.has_remote_api_configured():
            logger.warning("HTTP persistence selected but no API base URL is set - using in-memory storage")
            return InMemoryPersistenceGateway()
        return HttpPersistenceGateway(
            settings.api_base_url,
            api_key=settings.api_key,
            timeout_seconds=settings.api_timeout_seconds,
        )
    if settings.persistence_backend == "sql":
        return SqlPersistenceGateway(settings.database_url, echo=settings.log_level == "DEBUG")
    return InMemoryPersistenceGateway()


__all__ = [
    "BackgroundPersistenceSync",
    "HttpPersistenceGateway",
    "InMemoryPersistenceGateway",
    "LocalReportCache",
    "PersistenceGateway",
    "SqlPersistenceGateway",
    "build_gateway",
]
