"""
Interaction event schema.

Events form a tagged union keyed by ``type``. Each variant carries a typed
payload; unknown types are accepted as ``OtherEvent`` and only contribute to
generic counters (interactions, timestamps).

Event Types:
    - attempt / success / error: basic activity outcome stream
    - difficulty_change / adaptive_update / round_generation: adaptive engine hooks
    - answer / visual_task / auditory_task / memory_task: self-contained task outcomes
    - tts_usage / sound_toggle / planning_phase / strategy_change / game_pause /
      attention_event / action_sequence / custom_metric: domain-specific signals
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from neurotrack.core.errors import ValidationError
from neurotrack.core.models import Difficulty


class BaseEvent(BaseModel):
    """Fields shared by every event."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    type: str
    timestamp: int = Field(..., ge=0, description="Milliseconds since epoch")
    response_time: Optional[float] = Field(None, ge=0, alias="responseTime")
    is_correct: Optional[bool] = Field(None, alias="isCorrect")
    error_type: Optional[str] = Field(None, alias="errorType")
    difficulty: Optional[Difficulty] = None

    # Whether the event represents one attempt at a task
    counts_as_attempt: ClassVar[bool] = False

    @property
    def outcome(self) -> Optional[bool]:
        """Correctness carried by the event, or None when it is not scorable."""
        return None

    @property
    def is_scorable(self) -> bool:
        return self.outcome is not None


class AttemptEvent(BaseEvent):
    type: Literal["attempt"] = "attempt"
    counts_as_attempt: ClassVar[bool] = True


class SuccessEvent(BaseEvent):
    type: Literal["success"] = "success"
    points: int = Field(10, ge=0)

    @property
    def outcome(self) -> Optional[bool]:
        return True


class ErrorEvent(BaseEvent):
    type: Literal["error"] = "error"

    @property
    def outcome(self) -> Optional[bool]:
        return False


class DifficultyChangeEvent(BaseEvent):
    type: Literal["difficulty_change"] = "difficulty_change"
    new_difficulty: Difficulty = Field(..., alias="newDifficulty")
    reason: str = "unspecified"


class AdaptiveUpdateEvent(BaseEvent):
    type: Literal["adaptive_update"] = "adaptive_update"
    parameters: dict[str, Any] = Field(default_factory=dict)


class RoundGenerationEvent(BaseEvent):
    type: Literal["round_generation"] = "round_generation"
    round: Optional[int] = Field(None, ge=0)


# =============================================================================
# Task outcomes
# =============================================================================


class TaskEvent(BaseEvent):
    """A self-contained task answer: counts as attempt and outcome."""

    is_correct: bool = Field(..., alias="isCorrect")
    counts_as_attempt: ClassVar[bool] = True

    @property
    def outcome(self) -> Optional[bool]:
        return self.is_correct


class AnswerEvent(TaskEvent):
    type: Literal["answer"] = "answer"


class VisualTaskEvent(TaskEvent):
    type: Literal["visual_task"] = "visual_task"
    task_complexity: Difficulty = Field(Difficulty.MEDIUM, alias="taskComplexity")


class AuditoryTaskEvent(TaskEvent):
    type: Literal["auditory_task"] = "auditory_task"
    has_audio_feedback: bool = Field(False, alias="hasAudioFeedback")


class MemoryTaskEvent(TaskEvent):
    type: Literal["memory_task"] = "memory_task"
    item_repeated: bool = Field(False, alias="itemRepeated")
    time_since_last_seen: float = Field(0, ge=0, alias="timeSinceLastSeen")


# =============================================================================
# Domain signals
# =============================================================================


class TtsUsageEvent(BaseEvent):
    type: Literal["tts_usage"] = "tts_usage"


class SoundToggleEvent(BaseEvent):
    type: Literal["sound_toggle"] = "sound_toggle"
    enabled: bool


class PlanningPhaseEvent(BaseEvent):
    type: Literal["planning_phase"] = "planning_phase"
    planning_time: float = Field(0, ge=0, alias="planningTime")


class StrategyChangeEvent(BaseEvent):
    type: Literal["strategy_change"] = "strategy_change"
    old_strategy: Optional[str] = Field(None, alias="oldStrategy")
    new_strategy: Optional[str] = Field(None, alias="newStrategy")
    reason: str = "user_choice"


class GamePauseEvent(BaseEvent):
    type: Literal["game_pause"] = "game_pause"
    pause_duration: float = Field(0, ge=0, alias="pauseDuration")


class AttentionEvent(BaseEvent):
    type: Literal["attention_event"] = "attention_event"
    attention_type: str = Field("focus", alias="eventType")  # focus, distraction, fatigue, engagement
    intensity: str = "medium"


class ActionSequenceEvent(BaseEvent):
    type: Literal["action_sequence"] = "action_sequence"
    actions: list[Any] = Field(default_factory=list)
    sequence_type: str = Field("unknown", alias="sequenceType")


class CustomMetricEvent(BaseEvent):
    type: Literal["custom_metric"] = "custom_metric"
    metric_name: str = Field(..., alias="metricName")
    value: Any = None
    context: dict[str, Any] = Field(default_factory=dict)


class OtherEvent(BaseEvent):
    """Fallback for event types this pipeline does not interpret."""


EVENT_TYPES: dict[str, type[BaseEvent]] = {
    "attempt": AttemptEvent,
    "success": SuccessEvent,
    "error": ErrorEvent,
    "difficulty_change": DifficultyChangeEvent,
    "adaptive_update": AdaptiveUpdateEvent,
    "round_generation": RoundGenerationEvent,
    "answer": AnswerEvent,
    "visual_task": VisualTaskEvent,
    "auditory_task": AuditoryTaskEvent,
    "memory_task": MemoryTaskEvent,
    "tts_usage": TtsUsageEvent,
    "sound_toggle": SoundToggleEvent,
    "planning_phase": PlanningPhaseEvent,
    "strategy_change": StrategyChangeEvent,
    "game_pause": GamePauseEvent,
    "attention_event": AttentionEvent,
    "action_sequence": ActionSequenceEvent,
    "custom_metric": CustomMetricEvent,
}


def parse_event(event_type: str, payload: dict[str, Any] | None = None) -> BaseEvent:
    """
    Validate a raw payload into a typed event.

    Args:
        event_type: Event type tag (unknown tags produce an OtherEvent)
        payload: Raw payload; must contain ``timestamp`` (ms epoch)

    Returns:
        The typed, immutable event

    Raises:
        ValidationError: If required fields are missing or out of bounds
    """
    if not event_type or not isinstance(event_type, str):
        raise ValidationError("Event type is required")

    data = dict(payload or {})
    data["type"] = event_type
    model = EVENT_TYPES.get(event_type, OtherEvent)

    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'event'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid '{event_type}' event: {'; '.join(errors)}", errors) from e


def is_known_type(event_type: str) -> bool:
    return event_type in EVENT_TYPES
