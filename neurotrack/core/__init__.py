"""
Core Module - Shared domain models, event schema and error taxonomy.

Components:
- models: Session, Aggregates, DomainScore, AnalysisReport and their enums
- events: Tagged-union interaction events (parse_event)
- validator: Session record validation before persistence
- serialization: Bounded-depth, cycle-detecting serializer
- errors: ValidationError / SessionLifecycleError / PersistenceError
"""

from neurotrack.core.errors import (
    DuplicateActiveSessionError,
    NeurotrackError,
    PersistenceError,
    SessionClosedError,
    SessionLifecycleError,
    SessionNotFoundError,
    ValidationError,
)
from neurotrack.core.events import BaseEvent, OtherEvent, parse_event
from neurotrack.core.models import (
    Aggregates,
    AnalysisReport,
    Difficulty,
    Domain,
    DomainScore,
    InteractionResult,
    Level,
    Priority,
    ProgressionTrend,
    Recommendation,
    RecommendationType,
    Session,
    SessionStatus,
    SessionSummary,
)
from neurotrack.core.serialization import to_serializable

__all__ = [
    # Errors
    "NeurotrackError",
    "ValidationError",
    "SessionLifecycleError",
    "SessionNotFoundError",
    "SessionClosedError",
    "DuplicateActiveSessionError",
    "PersistenceError",
    # Events
    "BaseEvent",
    "OtherEvent",
    "parse_event",
    # Models
    "Aggregates",
    "AnalysisReport",
    "Difficulty",
    "Domain",
    "DomainScore",
    "InteractionResult",
    "Level",
    "Priority",
    "ProgressionTrend",
    "Recommendation",
    "RecommendationType",
    "Session",
    "SessionStatus",
    "SessionSummary",
    # Serialization
    "to_serializable",
]
