"""
Core domain models.

Design:
- Enums for every closed vocabulary (difficulty, status, domain, level, ...)
- Session/Aggregates are frozen snapshots; the live, mutable record is owned
  by the SessionStore
- DomainScore/AnalysisReport are computed fresh per analysis and never mutated
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Difficulty(str, Enum):
    """Activity difficulty."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Domain(str, Enum):
    """
    Cognitive domains scored independently.

    Declaration order is the canonical domain order used for tie-breaking.
    """

    VISUAL = "visual"
    AUDITORY = "auditory"
    EXECUTIVE = "executive"
    MEMORY = "memory"
    ATTENTION = "attention"
    SPEED = "speed"


class Level(str, Enum):
    """Qualitative level of a domain score."""

    EXCELENTE = "excelente"  # >= 80
    BOM = "bom"  # >= 65
    ADEQUADO = "adequado"  # >= 50
    EM_DESENVOLVIMENTO = "em_desenvolvimento"  # >= 35
    NECESSITA_SUPORTE = "necessita_suporte"  # < 35

    @classmethod
    def from_score(cls, score: float) -> Level:
        """
        Convert a 0-100 domain score to a level.

        Args:
            score: Domain score between 0 and 100

        Returns:
            Corresponding Level
        """
        if score >= 80:
            return cls.EXCELENTE
        elif score >= 65:
            return cls.BOM
        elif score >= 50:
            return cls.ADEQUADO
        elif score >= 35:
            return cls.EM_DESENVOLVIMENTO
        else:
            return cls.NECESSITA_SUPORTE

    @property
    def is_strength(self) -> bool:
        return self in (Level.EXCELENTE, Level.BOM)

    @property
    def is_concern(self) -> bool:
        return self in (Level.NECESSITA_SUPORTE, Level.EM_DESENVOLVIMENTO)

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            Level.EXCELENTE: "green",
            Level.BOM: "cyan",
            Level.ADEQUADO: "yellow",
            Level.EM_DESENVOLVIMENTO: "magenta",
            Level.NECESSITA_SUPORTE: "red",
        }[self]


class RecommendationType(str, Enum):
    INTERVENTION = "intervention"
    ACCOMMODATION = "accommodation"
    STRENGTH = "strength"


class Priority(str, Enum):
    ALTA = "alta"
    MEDIA = "média"
    BAIXA = "baixa"

    @property
    def rank(self) -> int:
        """Higher rank sorts first."""
        return {Priority.ALTA: 3, Priority.MEDIA: 2, Priority.BAIXA: 1}[self]


class LearningStyle(str, Enum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"
    MIXED = "mixed"


class ProgressionTrend(str, Enum):
    NEEDS_SUPPORT = "needs_support"  # regression
    MAINTAINING = "maintaining"  # stable / not enough history
    ADVANCING = "advancing"  # progression
    MASTERED = "mastered"


class DifficultyAdjustment(str, Enum):
    INCREASE = "increase"
    MAINTAIN = "maintain"
    DECREASE = "decrease"


# =============================================================================
# Session
# =============================================================================


@dataclass(frozen=True)
class PausePattern:
    """A gap of inactivity inside a session (milliseconds)."""

    start: int
    end: int
    duration: int


@dataclass(frozen=True)
class Aggregates:
    """
    Running session aggregates.

    Always derived from the event log; never set independently.
    """

    attempts: int = 0
    successes: int = 0
    errors: int = 0
    accuracy: int = 0  # 0-100
    average_response_time: float = 0.0  # ms
    response_latency_variance: float = 0.0  # ms^2
    response_latency: int = 0  # mean gap between attempts, ms
    engagement_score: int = 0  # 0-100
    pause_patterns: tuple[PausePattern, ...] = ()
    learning_rate: int = 0  # -100..100
    interactions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DifficultyChange:
    new_difficulty: Difficulty
    timestamp: int
    reason: str = "unspecified"


@dataclass(frozen=True)
class SessionSignals:
    """
    Derived monitoring signals recomputed by the background monitor.

    These never feed back into the event log or the aggregates.
    """

    fatigue_decline: float = 0.0
    distraction_events: int = 0
    performance_consistency: float = 100.0
    response_time_variability: float = 0.0
    cognitive_load: int = 0
    load_level: str = "low"
    computed_at: int = 0


@dataclass(frozen=True)
class Session:
    """
    Immutable snapshot of a session.

    Finalized sessions (status != active) are the value handed to analysis
    and then to history.
    """

    session_id: str
    user_id: str
    activity_id: str
    difficulty: Difficulty
    start_time: int
    status: SessionStatus
    aggregates: Aggregates
    events: tuple[Any, ...] = ()
    end_time: int | None = None
    score: int = 0
    difficulty_changes: tuple[DifficultyChange, ...] = ()
    adaptive_parameters: dict[str, Any] = field(default_factory=dict)
    activity_data: dict[str, Any] = field(default_factory=dict)
    signals: SessionSignals = field(default_factory=SessionSignals)
    last_activity: int = 0
    user_age: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def duration_ms(self) -> int:
        end = self.end_time if self.end_time is not None else self.last_activity
        return max(0, end - self.start_time)


# =============================================================================
# Analysis
# =============================================================================


@dataclass(frozen=True)
class Recommendation:
    """A prioritized, typed suggestion derived from a domain score."""

    type: RecommendationType
    priority: Priority
    description: str
    activities: tuple[str, ...] = ()
    domain: Domain | None = None
    frequency: int = 1

    @property
    def group_key(self) -> tuple[str, str]:
        """Key used to merge duplicates across domains and sessions."""
        return (self.type.value, self.description[:20])

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "priority": self.priority.value,
            "description": self.description,
            "activities": list(self.activities),
            "domain": self.domain.value if self.domain else None,
            "frequency": self.frequency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recommendation:
        domain = data.get("domain")
        return cls(
            type=RecommendationType(data["type"]),
            priority=Priority(data["priority"]),
            description=data.get("description", ""),
            activities=tuple(data.get("activities", ())),
            domain=Domain(domain) if domain else None,
            frequency=int(data.get("frequency", 1)),
        )


@dataclass(frozen=True)
class DomainScore:
    domain: Domain
    score: float
    level: Level
    recommendations: tuple[Recommendation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain.value,
            "score": self.score,
            "level": self.level.value,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


@dataclass(frozen=True)
class NextSessionSuggestion:
    """Settings suggested for the user's next session."""

    duration_minutes: int = 15
    difficulty: Difficulty = Difficulty.MEDIUM
    modalities: tuple[str, ...] = ("visual", "auditory")
    accommodations: tuple[str, ...] = ()
    focus_areas: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_minutes": self.duration_minutes,
            "difficulty": self.difficulty.value,
            "modalities": list(self.modalities),
            "accommodations": list(self.accommodations),
            "focus_areas": list(self.focus_areas),
        }


@dataclass(frozen=True)
class AnalysisReport:
    """
    Result of analysing one finalized session.

    Immutable once produced; the only artifact handed to persistence.
    """

    session_id: str
    user_id: str
    activity_id: str
    timestamp: int
    domain_scores: dict[Domain, DomainScore]
    learning_style: LearningStyle
    progression_trend: ProgressionTrend
    recommendations: tuple[Recommendation, ...]
    therapist_notes: tuple[str, ...]
    overall_score: float = 0.0
    next_session: NextSessionSuggestion = field(default_factory=NextSessionSuggestion)
    difficulty_adjustment: DifficultyAdjustment = DifficultyAdjustment.MAINTAIN
    session_summary: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "activity_id": self.activity_id,
            "timestamp": self.timestamp,
            "domain_scores": {d.value: s.to_dict() for d, s in self.domain_scores.items()},
            "learning_style": self.learning_style.value,
            "progression_trend": self.progression_trend.value,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "therapist_notes": list(self.therapist_notes),
            "overall_score": self.overall_score,
            "next_session": self.next_session.to_dict(),
            "difficulty_adjustment": self.difficulty_adjustment.value,
            "session_summary": dict(self.session_summary),
        }


@dataclass(frozen=True)
class SessionSummary:
    """Flat historical view of a persisted session."""

    session_id: str
    user_id: str
    activity_id: str
    start_time: int
    end_time: int | None
    status: str
    difficulty: str
    attempts: int = 0
    successes: int = 0
    accuracy: int = 0
    score: int = 0
    overall_score: float = 0.0
    learning_rate: int = 0
    response_latency: int = 0
    engagement_score: int = 0
    domain_scores: dict[str, float] = field(default_factory=dict)
    recommendations: tuple[dict[str, Any], ...] = ()
    levels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> SessionSummary:
        """
        Build a summary from a persisted session record.

        Records come from remote backends and the local cache, so missing or
        malformed fields fall back to neutral values. Domain scores may be
        ``{"score": .., "level": ..}`` objects or plain numbers.

        Raises:
            TypeError: If ``record`` is not a mapping
        """
        if not isinstance(record, dict):
            raise TypeError(f"session record must be a dict, got {type(record).__name__}")

        report = record.get("report")
        if not isinstance(report, dict):
            report = {}
        raw_scores = report.get("domain_scores")
        if not isinstance(raw_scores, dict):
            raw_scores = {}

        domain_scores: dict[str, float] = {}
        levels: dict[str, str] = {}
        for key, value in raw_scores.items():
            if isinstance(value, dict):
                domain_scores[str(key)] = as_float(value.get("score"))
                if value.get("level"):
                    levels[str(key)] = str(value["level"])
            else:
                domain_scores[str(key)] = as_float(value)

        recommendations = report.get("recommendations")
        if not isinstance(recommendations, (list, tuple)):
            recommendations = ()
        end_time = record.get("end_time")

        return cls(
            session_id=str(record.get("session_id", "")),
            user_id=str(record.get("user_id", "")),
            activity_id=str(record.get("activity_id", "")),
            start_time=as_int(record.get("start_time")),
            end_time=None if end_time is None else as_int(end_time),
            status=str(record.get("status", SessionStatus.COMPLETED.value)),
            difficulty=str(record.get("difficulty", Difficulty.EASY.value)),
            attempts=as_int(record.get("attempts")),
            successes=as_int(record.get("successes")),
            accuracy=as_int(record.get("accuracy")),
            score=as_int(record.get("score")),
            overall_score=as_float(report.get("overall_score") or record.get("overall_score")),
            learning_rate=as_int(record.get("learning_rate")),
            response_latency=as_int(record.get("response_latency")),
            engagement_score=as_int(record.get("engagement_score")),
            domain_scores=domain_scores,
            recommendations=tuple(r for r in recommendations if isinstance(r, dict)),
            levels=levels,
        )


@dataclass(frozen=True)
class InteractionResult:
    """Typed outcome of record_interaction (never raised to the caller)."""

    ok: bool
    error: str | None = None  # SessionNotFound | SessionClosed | ValidationError
    detail: str | None = None

    def __bool__(self) -> bool:
        return self.ok


RESULT_OK = InteractionResult(ok=True)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


def as_int(value: Any, default: int = 0) -> int:
    """Lenient int conversion for stored records; ``default`` when not numeric."""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def as_float(value: Any, default: float = 0.0) -> float:
    """Lenient float conversion for stored records; ``default`` when not finite."""
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default
