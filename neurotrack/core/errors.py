"""
Error taxonomy for the telemetry pipeline.

Nothing here is fatal to the host process:
- ValidationError: a single record is rejected, the session stays alive
- SessionLifecycleError: recoverable by the caller
- PersistenceError: retried with backoff, then degraded to local-only storage
"""

from __future__ import annotations


class NeurotrackError(Exception):
    """Base class for all pipeline errors."""

    # Name reported in InteractionResult.error
    code = "NeurotrackError"


class ValidationError(NeurotrackError):
    """Raised when an event or session record is malformed."""

    code = "ValidationError"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


class SessionLifecycleError(NeurotrackError):
    """Base class for session state errors."""

    def __init__(self, session_id: str, message: str | None = None):
        super().__init__(message or f"{type(self).__name__}: {session_id}")
        self.session_id = session_id


class SessionNotFoundError(SessionLifecycleError):
    """No session with the given ID is known to the store."""

    code = "SessionNotFound"


class SessionClosedError(SessionLifecycleError):
    """The session was already finalized."""

    code = "SessionClosed"


class DuplicateActiveSessionError(SessionLifecycleError):
    """An active session already exists for the (user, activity) pair."""

    def __init__(self, session_id: str, user_id: str, activity_id: str):
        super().__init__(
            session_id,
            f"Active session {session_id} already exists for "
            f"user={user_id} activity={activity_id}",
        )
        self.user_id = user_id
        self.activity_id = activity_id


class PersistenceError(NeurotrackError):
    """Transient failure of the external persistence gateway."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
