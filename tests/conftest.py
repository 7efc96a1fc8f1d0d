"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from neurotrack.core.events import parse_event
from neurotrack.core.errors import PersistenceError
from neurotrack.persistence.gateway import InMemoryPersistenceGateway
from neurotrack.persistence.local_cache import LocalReportCache
from neurotrack.service import MetricsService
from neurotrack.session.store import DuplicatePolicy, SessionStore

START_MS = 1_700_000_000_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (full pipeline)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def __call__(self) -> int:
        return self.now


class FailingGateway:
    """Gateway whose saves always fail; loads return nothing."""

    def __init__(self, retryable: bool = True):
        self.retryable = retryable
        self.save_calls = 0

    def save_session(self, record):
        self.save_calls += 1
        raise PersistenceError("backend down", retryable=self.retryable)

    def load_recent_sessions(self, user_id, since_ms=0, limit=50):
        raise PersistenceError("backend down")


class UnwritableCache(LocalReportCache):
    """Local cache whose disk writes always fail."""

    def put(self, record):
        raise OSError("disk full")


def make_events(kinds, start=START_MS, step=1000, response_time=2500):
    """Build typed events from a list of type names spaced ``step`` ms apart."""
    return [
        parse_event(kind, {"timestamp": start + (i + 1) * step, "response_time": response_time})
        for i, kind in enumerate(kinds)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(duplicate_policy=DuplicatePolicy.REJECT, clock=clock)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and the user's home directory."""
    return Settings(
        _env_file=None,
        persistence_backend="none",
        local_cache_dir=tmp_path / "pending",
        retry_base_delay_seconds=0,
        duplicate_policy="reject",
    )


@pytest.fixture
def gateway():
    return InMemoryPersistenceGateway()


@pytest.fixture
def cache(tmp_path):
    return LocalReportCache(tmp_path / "cache", max_entries=100)


@pytest.fixture
def service(settings, gateway, cache, clock):
    """MetricsService with in-memory persistence and a fake clock (workers not started)."""
    return MetricsService(settings=settings, gateway=gateway, cache=cache, clock=clock)


@pytest.fixture
def events():
    """Factory building typed events from type names."""
    return make_events


@pytest.fixture
def failing_gateway():
    return FailingGateway()


@pytest.fixture
def unwritable_cache(tmp_path):
    return UnwritableCache(tmp_path / "unwritable")
