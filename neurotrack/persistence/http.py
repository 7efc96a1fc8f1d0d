"""
HTTP persistence gateway.

Talks to the remote metrics API:
- POST {base}/game-sessions              store a session record
- GET  {base}/game-sessions/{user_id}    list records (since, limit)

429, 5xx and transport failures are retryable; other 4xx are not.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from neurotrack.core.errors import PersistenceError

SESSIONS_ENDPOINT = "/game-sessions"


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class HttpPersistenceGateway:
    """httpx-backed gateway for the remote metrics API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: API root, e.g. http://localhost:3000/api
            api_key: Sent as X-API-Key when set
            timeout_seconds: Per-request timeout
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key

        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            retryable = _is_retryable_status(status)
            if not retryable:
                logger.error(f"Metrics API rejected {method} {path}: {status}")
            raise PersistenceError(f"HTTP error {status} on {method} {path}", retryable=retryable) from e
        except httpx.RequestError as e:
            raise PersistenceError(f"Request to {path} failed: {e}") from e

    def save_session(self, record: dict[str, Any]) -> None:
        self._request("POST", SESSIONS_ENDPOINT, json=record)
        logger.debug(f"Session {record.get('session_id')} sent to {self.base_url}")

    def load_recent_sessions(self, user_id: str, since_ms: int = 0, limit: int = 50) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if since_ms:
            params["since"] = since_ms
        response = self._request("GET", f"{SESSIONS_ENDPOINT}/{user_id}", params=params)

        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceError("Metrics API returned invalid JSON", retryable=False) from e

        # The API wraps lists as {"data": [...]} on some routes
        if isinstance(data, dict):
            data = data.get("data") or data.get("sessions") or []
        if not isinstance(data, list):
            raise PersistenceError("Unexpected session list payload", retryable=False)

        records = [r for r in data if isinstance(r, dict)]
        records.sort(key=lambda r: int(r.get("start_time") or 0))
        return records
