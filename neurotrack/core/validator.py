"""
Session record validator - reject malformed records before they leave the process.

Philosophy:
- Every persisted field declares its requirement (type, bounds, enum)
- Validation collects all problems instead of stopping at the first
- Invalid records are logged and rejected; the session itself stays usable
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from neurotrack.core.errors import ValidationError


@dataclass(frozen=True)
class FieldRequirement:
    """A single field requirement of a session record."""

    name: str
    field_type: type | tuple[type, ...]
    required: bool = True
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    choices: Optional[tuple[str, ...]] = None


_NUMBER = (int, float)

# ============================================================================
# SESSION RECORD REQUIREMENTS
# ============================================================================

SESSION_RECORD_REQUIREMENTS = [
    FieldRequirement("session_id", str),
    FieldRequirement("user_id", str),
    FieldRequirement("activity_id", str),
    FieldRequirement("start_time", _NUMBER, minimum=0),
    FieldRequirement("end_time", _NUMBER, minimum=0),
    FieldRequirement("duration", _NUMBER, minimum=0),
    FieldRequirement("attempts", int, minimum=0),
    FieldRequirement("successes", int, minimum=0),
    FieldRequirement("errors", int, minimum=0),
    FieldRequirement("accuracy", _NUMBER, minimum=0, maximum=100),
    FieldRequirement("score", _NUMBER, minimum=0),
    FieldRequirement("difficulty", str, choices=("easy", "medium", "hard")),
    FieldRequirement("status", str, choices=("active", "completed", "abandoned")),
    FieldRequirement("learning_rate", _NUMBER, required=False, minimum=-100, maximum=100),
    FieldRequirement("engagement_score", _NUMBER, required=False, minimum=0, maximum=100),
    FieldRequirement("response_latency", _NUMBER, required=False, minimum=0),
    FieldRequirement("report", dict, required=False),
]


class RecordValidator:
    """Validates flat session records against field requirements."""

    def __init__(self, requirements: Optional[list[FieldRequirement]] = None):
        self.requirements = requirements or SESSION_RECORD_REQUIREMENTS

    def check_requirement(self, req: FieldRequirement, record: dict[str, Any]) -> list[str]:
        """Check a single requirement; returns the list of problems found."""
        value = record.get(req.name)
        if value is None:
            return [f"Missing required field: {req.name}"] if req.required else []

        # bool is an int subclass but never a valid number here
        if isinstance(value, bool) or not isinstance(value, req.field_type):
            return [f"Invalid type for {req.name}: got {type(value).__name__}"]

        problems = []
        if req.minimum is not None and value < req.minimum:
            problems.append(f"{req.name} below minimum: {value} < {req.minimum}")
        if req.maximum is not None and value > req.maximum:
            problems.append(f"{req.name} above maximum: {value} > {req.maximum}")
        if req.choices is not None and value not in req.choices:
            problems.append(f"Invalid value for {req.name}: {value!r} not in {list(req.choices)}")
        return problems

    def collect_errors(self, record: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        for req in self.requirements:
            errors.extend(self.check_requirement(req, record))
        return errors

    def validate(self, record: dict[str, Any]) -> None:
        """
        Validate a record.

        Raises:
            ValidationError: listing every problem found
        """
        errors = self.collect_errors(record)
        if errors:
            logger.warning(
                f"Invalid session record {record.get('session_id')}: {errors}"
            )
            raise ValidationError(
                f"Invalid session record: {len(errors)} problem(s)", errors
            )


def validate_session_record(record: dict[str, Any]) -> None:
    """Validate a persisted session record. Raises ValidationError."""
    RecordValidator().validate(record)
