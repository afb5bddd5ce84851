"""
Tests for the per-run error collector.
"""

import json

import pytest

from versus.errors import (
    ClassificationValidationError,
    PreconditionError,
    StageErrors,
    VersusError,
)


class TestStageErrors:

    def test_starts_empty(self):
        errors = StageErrors("scrape")
        assert errors.count == 0
        assert len(errors) == 0
        assert errors.to_json() is None

    def test_append_records_all_fields(self):
        errors = StageErrors("classify")
        errors.append("c1", ValueError("bad"), {"post_id": "p1"})

        entry = errors.entries[0]
        assert entry["stage"] == "classify"
        assert entry["unit"] == "c1"
        assert entry["error_type"] == "ValueError"
        assert entry["message"] == "bad"
        assert entry["context"] == {"post_id": "p1"}
        assert "timestamp" in entry

    def test_by_type_and_json(self):
        errors = StageErrors("discovery")
        errors.append("a", RuntimeError("x"))
        errors.append("b", RuntimeError("y"))
        errors.append("c", KeyError("z"))

        assert errors.by_type() == {"RuntimeError": 2, "KeyError": 1}
        assert len(json.loads(errors.to_json())) == 3

    def test_invalid_stage_rejected(self):
        with pytest.raises(ValueError, match="Invalid stage"):
            StageErrors("dashboard")


class TestTaxonomy:

    def test_hierarchy(self):
        assert issubclass(PreconditionError, VersusError)
        assert issubclass(ClassificationValidationError, ValueError)
