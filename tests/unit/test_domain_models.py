"""Unit tests for task and review domain models."""

import json

import pytest

from src.domain.review import DuplicatePair, ReviewStatus
from src.domain.task import FrequencyBasis, FrequencyUnit, MaintenanceTask, TaskReviewStatus
from tests.conftest import make_task


@pytest.mark.unit
class TestMaintenanceTaskMetadata:
    """Tests for converting tasks to and from vector store metadata."""

    def test_unknown_numbers_encoded_as_minus_one(self):
        """Test missing numbers use the -1 placeholder since metadata cannot hold nulls."""
        task = make_task(frequency_value=None, frequency_unit=None, frequency_basis=FrequencyBasis.UNKNOWN)

        metadata = task.to_metadata(frequency_hours=None)

        assert metadata["frequency_value"] == -1
        assert metadata["frequency_hours"] == -1
        assert metadata["confidence"] == -1
        assert "frequency_unit" not in metadata
        assert None not in metadata.values()

    def test_description_truncated(self):
        """Test long descriptions are cut to the metadata limit."""
        task = make_task(description="x" * 900)

        assert len(task.to_metadata(frequency_hours=500.0)["description"]) == 500

    def test_new_task_flags(self):
        """Test inserted tasks start unmerged and not duplicate."""
        metadata = make_task().to_metadata(frequency_hours=500.0)

        assert metadata["is_duplicate"] is False
        assert metadata["is_merged"] is False
        assert metadata["merge_count"] == 0
        assert metadata["review_status"] == "pending"

    def test_from_vector_round_trip(self):
        """Test a task survives conversion to metadata and back."""
        task = make_task(frequency_unit=FrequencyUnit.HOURS, frequency_value=250)

        restored = MaintenanceTask.from_vector(task.id, task.embedding, task.to_metadata(frequency_hours=250.0))

        assert restored.description == task.description
        assert restored.scope_id == task.scope_id
        assert restored.frequency_value == 250
        assert restored.frequency_unit == FrequencyUnit.HOURS
        assert restored.frequency_basis == FrequencyBasis.USAGE
        assert restored.embedding == task.embedding
        assert restored.review_status == TaskReviewStatus.PENDING

    def test_from_vector_decodes_placeholders(self):
        """Test -1 placeholders come back as None."""
        restored = MaintenanceTask.from_vector(
            "task-7",
            [1.0, 0.0],
            {"description": "Lift boat", "scope_id": "hull", "frequency_value": -1, "confidence": -1},
        )

        assert restored.frequency_value is None
        assert restored.confidence is None
        assert restored.frequency_basis == FrequencyBasis.UNKNOWN

    def test_snapshot_excludes_embedding(self):
        """Test snapshots carry comparison fields but never the embedding."""
        snapshot = make_task().to_snapshot(frequency_hours=500.0)

        assert snapshot.frequency_hours == 500.0
        assert "embedding" not in snapshot.model_dump()

    def test_scope_label_falls_back_to_scope_id(self):
        """Test the reviewer label uses the scope id when no system name is known."""
        snapshot = make_task(system_name=None, scope_id="asset-9").to_snapshot(frequency_hours=None)

        assert snapshot.scope_label == "asset-9"


@pytest.mark.unit
class TestDuplicatePair:
    """Tests for building DuplicatePair from ledger rows."""

    def _row(self, **overrides):
        a = make_task("task-a").to_snapshot(frequency_hours=500.0)
        b = make_task("task-b").to_snapshot(frequency_hours=500.0)
        row = {
            "id": "12",
            "analysis_id": "3",
            "task1_id": "task-a",
            "task1_metadata": json.dumps(a.model_dump(mode="json")),
            "task2_id": "task-b",
            "task2_metadata": json.dumps(b.model_dump(mode="json")),
            "similarity_score": 0.9,
            "match_reason": "semantic_and_frequency_match",
            "review_status": "pending",
            "executed": 0,
        }
        row.update(overrides)
        return row

    def test_decodes_json_snapshots(self):
        """Test JSON text columns are decoded into snapshots."""
        pair = DuplicatePair.from_record(self._row())

        assert pair.task_a.id == "task-a"
        assert pair.task_b.frequency_hours == 500.0

    def test_accepts_decoded_snapshots(self):
        """Test already-decoded snapshot dicts are accepted too."""
        row = self._row(task1_metadata=json.loads(self._row()["task1_metadata"]))

        assert DuplicatePair.from_record(row).task_a.id == "task-a"

    def test_executed_integer_becomes_bool(self):
        """Test SQLite 0/1 flags become booleans."""
        assert DuplicatePair.from_record(self._row(executed=1)).executed is True
        assert DuplicatePair.from_record(self._row(executed=0)).executed is False

    def test_status_parsed(self):
        """Test the review status is parsed into the enum."""
        assert DuplicatePair.from_record(self._row(review_status="delete_task2")).review_status == (
            ReviewStatus.DELETE_TASK2
        )
