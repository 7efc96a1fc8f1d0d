"""
Unit tests for session record validation and serialization.
"""

from dataclasses import dataclass, field

import pytest

from neurotrack.core.errors import ValidationError
from neurotrack.core.models import Difficulty, Level
from neurotrack.core.serialization import (
    CIRCULAR_MARKER,
    MAX_DEPTH_MARKER,
    dumps,
    to_serializable,
)
from neurotrack.core.validator import RecordValidator, validate_session_record


@pytest.fixture
def valid_record():
    return {
        "session_id": "session_1",
        "user_id": "kid-1",
        "activity_id": "memory-game",
        "start_time": 1000,
        "end_time": 61000,
        "duration": 60000,
        "attempts": 4,
        "successes": 3,
        "errors": 1,
        "accuracy": 75,
        "score": 30,
        "difficulty": "easy",
        "status": "completed",
        "learning_rate": 0,
    }


class TestRecordValidator:
    def test_valid_record_passes(self, valid_record):
        validate_session_record(valid_record)

    def test_collects_every_problem(self, valid_record):
        valid_record.pop("user_id")
        valid_record["accuracy"] = 120
        valid_record["difficulty"] = "extreme"

        errors = RecordValidator().collect_errors(valid_record)

        assert len(errors) == 3
        assert any("user_id" in e for e in errors)
        assert any("accuracy" in e for e in errors)
        assert any("difficulty" in e for e in errors)

    def test_bool_is_not_a_number(self, valid_record):
        valid_record["attempts"] = True
        with pytest.raises(ValidationError):
            validate_session_record(valid_record)

    def test_optional_fields_may_be_absent(self, valid_record):
        valid_record.pop("learning_rate")
        assert RecordValidator().collect_errors(valid_record) == []

    def test_optional_fields_are_bounded(self, valid_record):
        valid_record["engagement_score"] = 150
        with pytest.raises(ValidationError) as exc:
            validate_session_record(valid_record)
        assert len(exc.value.errors) == 1


@dataclass
class Node:
    name: str
    children: list = field(default_factory=list)
    parent: object = None


class TestSerialization:
    def test_enums_and_dataclasses(self):
        data = to_serializable({"difficulty": Difficulty.HARD, Level.BOM: Node("a")})

        assert data == {"difficulty": "hard", "bom": {"name": "a", "children": [], "parent": None}}

    def test_cycles_become_marker(self):
        root = Node("root")
        child = Node("child", parent=root)
        root.children.append(child)

        data = to_serializable(root)

        assert data["children"][0]["parent"] == CIRCULAR_MARKER

    def test_shared_reference_is_not_a_cycle(self):
        shared = {"x": 1}
        data = to_serializable({"a": shared, "b": shared})
        assert data == {"a": {"x": 1}, "b": {"x": 1}}

    def test_depth_limit(self):
        nested: dict = {}
        cursor = nested
        for _ in range(20):
            cursor["next"] = {}
            cursor = cursor["next"]

        data = to_serializable(nested, max_depth=3)

        assert data["next"]["next"]["next"] == MAX_DEPTH_MARKER

    def test_dumps_is_json(self):
        assert dumps({"level": Level.EXCELENTE}) == '{"level": "excelente"}'
