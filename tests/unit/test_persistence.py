"""
Unit tests for persistence gateways, the local cache and the retry worker.
"""

import json
import time

import httpx
import pytest

from neurotrack.core.errors import PersistenceError
from neurotrack.persistence import build_gateway
from neurotrack.persistence.gateway import InMemoryPersistenceGateway
from neurotrack.persistence.http import HttpPersistenceGateway
from neurotrack.persistence.local_cache import LOCAL_ONLY, PENDING, LocalReportCache
from neurotrack.persistence.sql import SqlPersistenceGateway
from neurotrack.persistence.sync import BackgroundPersistenceSync


def record(session_id, user_id="kid-1", start_time=1000, **extra):
    return {
        "session_id": session_id,
        "user_id": user_id,
        "activity_id": "memory-game",
        "start_time": start_time,
        "end_time": start_time + 60_000,
        "status": "completed",
        "difficulty": "easy",
        "accuracy": 75,
        "report": {"overall_score": 61.5},
        **extra,
    }


class TestInMemoryGateway:
    def test_save_and_load(self):
        gateway = InMemoryPersistenceGateway()
        gateway.save_session(record("b", start_time=2000))
        gateway.save_session(record("a", start_time=1000))
        gateway.save_session(record("x", user_id="other"))

        loaded = gateway.load_recent_sessions("kid-1")

        assert [r["session_id"] for r in loaded] == ["a", "b"]
        assert len(gateway) == 3

    def test_since_and_limit(self):
        gateway = InMemoryPersistenceGateway()
        for i in range(5):
            gateway.save_session(record(f"s{i}", start_time=i * 1000))

        assert [r["session_id"] for r in gateway.load_recent_sessions("kid-1", since_ms=2000, limit=2)] == [
            "s3",
            "s4",
        ]

    def test_stored_copy_is_isolated(self):
        gateway = InMemoryPersistenceGateway()
        data = record("a")
        gateway.save_session(data)
        data["accuracy"] = 0

        assert gateway.load_recent_sessions("kid-1")[0]["accuracy"] == 75


class TestSqlGateway:
    @pytest.fixture
    def gateway(self):
        gateway = SqlPersistenceGateway("sqlite://")
        yield gateway
        gateway.dispose()

    def test_round_trip_payload(self, gateway):
        gateway.save_session(record("a", adaptive_data={"parameters": {"pairs": 6}}))

        loaded = gateway.load_recent_sessions("kid-1")

        assert loaded[0]["adaptive_data"] == {"parameters": {"pairs": 6}}

    def test_merge_on_same_session_id(self, gateway):
        gateway.save_session(record("a"))
        gateway.save_session(record("a", accuracy=90))

        loaded = gateway.load_recent_sessions("kid-1")

        assert len(loaded) == 1
        assert loaded[0]["accuracy"] == 90

    def test_latest_sessions_in_chronological_order(self, gateway):
        for i in range(4):
            gateway.save_session(record(f"s{i}", start_time=i * 1000))

        loaded = gateway.load_recent_sessions("kid-1", limit=2)

        assert [r["session_id"] for r in loaded] == ["s2", "s3"]


class TestHttpGateway:
    def make(self, handler, api_key="secret"):
        return HttpPersistenceGateway(
            "http://metrics.test/api", api_key=api_key, transport=httpx.MockTransport(handler)
        )

    def test_save_posts_record(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("X-API-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"ok": True})

        self.make(handler).save_session(record("a"))

        assert seen["path"] == "/api/game-sessions"
        assert seen["key"] == "secret"
        assert seen["body"]["session_id"] == "a"

    def test_load_unwraps_data(self):
        def handler(request):
            assert request.url.params["limit"] == "10"
            assert request.url.params["since"] == "500"
            return httpx.Response(200, json={"data": [record("b", start_time=2000), record("a")]})

        loaded = self.make(handler).load_recent_sessions("kid-1", since_ms=500, limit=10)

        assert [r["session_id"] for r in loaded] == ["a", "b"]

    def test_server_error_is_retryable(self):
        gateway = self.make(lambda request: httpx.Response(503))

        with pytest.raises(PersistenceError) as exc:
            gateway.save_session(record("a"))
        assert exc.value.retryable is True

    def test_rate_limit_is_retryable(self):
        gateway = self.make(lambda request: httpx.Response(429))

        with pytest.raises(PersistenceError) as exc:
            gateway.save_session(record("a"))
        assert exc.value.retryable is True

    def test_client_error_is_not_retryable(self):
        gateway = self.make(lambda request: httpx.Response(400, json={"error": "bad"}))

        with pytest.raises(PersistenceError) as exc:
            gateway.save_session(record("a"))
        assert exc.value.retryable is False

    def test_transport_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(PersistenceError) as exc:
            self.make(handler).load_recent_sessions("kid-1")
        assert exc.value.retryable is True

    def test_invalid_json(self):
        gateway = self.make(lambda request: httpx.Response(200, content=b"not json"))

        with pytest.raises(PersistenceError) as exc:
            gateway.load_recent_sessions("kid-1")
        assert exc.value.retryable is False


class TestBuildGateway:
    def test_none_backend_is_in_memory(self, settings):
        assert isinstance(build_gateway(settings), InMemoryPersistenceGateway)

    def test_http_backend(self, settings):
        gateway = build_gateway(settings.model_copy(update={"persistence_backend": "http"}))
        assert isinstance(gateway, HttpPersistenceGateway)
        gateway.close()

    def test_http_backend_without_url_is_in_memory(self, settings):
        configured = settings.model_copy(update={"persistence_backend": "http", "api_base_url": ""})

        assert not configured.has_remote_api_configured()
        assert isinstance(build_gateway(configured), InMemoryPersistenceGateway)

    def test_persistence_config(self, settings):
        config = settings.get_persistence_config()

        assert config["backend"] == "none"
        assert config["retry_base_delay_seconds"] == 0


class TestLocalReportCache:
    def test_put_get_remove(self, cache):
        cache.put(record("a"))

        entry = cache.get("a")
        assert entry.status == PENDING
        assert entry.record["accuracy"] == 75

        assert cache.remove("a") is True
        assert cache.get("a") is None
        assert cache.remove("a") is False

    def test_survives_reopen(self, tmp_path):
        LocalReportCache(tmp_path / "c").put(record("a"))
        assert LocalReportCache(tmp_path / "c").get("a") is not None

    def test_evicts_oldest_beyond_bound(self, tmp_path):
        cache = LocalReportCache(tmp_path / "c", max_entries=2)
        for sid in ("a", "b", "c"):
            cache.put(record(sid))

        assert len(cache) == 2
        assert cache.get("a") is None
        assert [e.session_id for e in cache.entries()] == ["b", "c"]

    def test_mark_local_only(self, cache):
        cache.put(record("a"))
        cache.mark_local_only("a", attempts=3, error="down")

        assert [e.session_id for e in cache.entries(LOCAL_ONLY)] == ["a"]
        assert cache.entries(PENDING) == []
        assert cache.get("a").last_error == "down"

    def test_records_for_user(self, cache):
        cache.put(record("a"))
        cache.put(record("b", user_id="other"))

        assert [r["session_id"] for r in cache.records_for_user("kid-1")] == ["a"]

    def test_unreadable_file_is_skipped(self, cache):
        (cache.cache_dir / "broken.json").write_text("{", encoding="utf-8")
        cache.put(record("a"))

        assert [e.session_id for e in cache.entries()] == ["a"]


class TestBackgroundPersistenceSync:
    def test_success_removes_cache_entry(self, gateway, cache):
        saved = []
        sync = BackgroundPersistenceSync(gateway, cache, base_delay_seconds=0, on_saved=saved.append)

        sync.submit(record("a"))
        sync.flush()

        assert len(gateway) == 1
        assert cache.get("a") is None
        assert saved == ["a"]
        assert sync.status.saved == 1

    def test_retries_then_local_only(self, failing_gateway, cache):
        sync = BackgroundPersistenceSync(failing_gateway, cache, retry_attempts=3, base_delay_seconds=0)

        sync.submit(record("a"))
        sync.flush()

        assert failing_gateway.save_calls == 3
        assert sync.status.retries == 2
        assert sync.status.local_only == 1
        entry = cache.get("a")
        assert entry.status == LOCAL_ONLY
        assert entry.attempts == 3

    def test_non_retryable_stops_after_one_attempt(self, failing_gateway, cache):
        failing_gateway.retryable = False
        sync = BackgroundPersistenceSync(failing_gateway, cache, base_delay_seconds=0)

        sync.submit(record("a"))
        sync.flush()

        assert failing_gateway.save_calls == 1
        assert cache.get("a").status == LOCAL_ONLY

    def test_retry_local_only(self, gateway, cache):
        cache.put(record("a"))
        cache.mark_local_only("a", attempts=3)

        sync = BackgroundPersistenceSync(gateway, cache, base_delay_seconds=0)
        assert sync.retry_local_only() == 1
        sync.flush()

        assert len(gateway) == 1
        assert len(cache) == 0

    def test_backoff_delay(self, gateway, cache):
        sync = BackgroundPersistenceSync(gateway, cache, base_delay_seconds=0.5)
        assert [sync.backoff_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_worker_drains_queue(self, gateway, cache):
        sync = BackgroundPersistenceSync(gateway, cache, base_delay_seconds=0)
        sync.start()
        try:
            sync.submit(record("a"))
            for _ in range(50):
                if len(gateway):
                    break
                time.sleep(0.05)
        finally:
            sync.stop()

        assert len(gateway) == 1


class TestUncacheableRecords:
    def test_record_is_still_saved(self, gateway, unwritable_cache):
        sync = BackgroundPersistenceSync(gateway, unwritable_cache, base_delay_seconds=0)

        sync.submit(record("a"))
        assert [r["session_id"] for r in sync.held_records()] == ["a"]
        sync.flush()

        assert [r["session_id"] for r in gateway.load_recent_sessions("kid-1")] == ["a"]
        assert sync.held_records() == []
        assert sync.status.saved == 1

    def test_retries_exhausted_keeps_record_in_memory(self, failing_gateway, unwritable_cache, gateway):
        sync = BackgroundPersistenceSync(failing_gateway, unwritable_cache, retry_attempts=2, base_delay_seconds=0)

        sync.submit(record("a"))
        sync.flush()

        assert failing_gateway.save_calls == 2
        assert sync.status.local_only == 1
        assert [r["session_id"] for r in sync.held_records("kid-1")] == ["a"]
        assert sync.held_records("other") == []

        sync.gateway = gateway
        assert sync.retry_local_only() == 1
        sync.flush()

        assert len(gateway) == 1
        assert sync.held_records() == []
