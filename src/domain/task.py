"""Maintenance task domain models and enums."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import Constants


class FrequencyUnit(StrEnum):
    """Unit of a task's declared recurrence."""

    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"
    CYCLES = "cycles"
    CONDITION_BASED = "condition_based"


class FrequencyBasis(StrEnum):
    """How a task recurs."""

    CALENDAR = "calendar"
    USAGE = "usage"
    EVENT = "event"
    CONDITION = "condition"
    UNKNOWN = "unknown"


class TaskReviewStatus(StrEnum):
    """Lifecycle state stored with a task in the vector store metadata."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DUPLICATE_HIDDEN = "duplicate_hidden"
    INVALID_TASK = "invalid_task"


HIDDEN_TASK_STATUSES = frozenset({TaskReviewStatus.DUPLICATE_HIDDEN, TaskReviewStatus.INVALID_TASK})


def _decode_unknown(value: Any) -> Any:  # noqa: ANN401
    """Map the metadata placeholder for 'unknown' back to None."""
    if value is None or value == Constants.UNKNOWN_NUMBER:
        return None
    return value


class MaintenanceTask(BaseModel):
    """A maintenance task candidate as handed over by a producer."""

    model_config = ConfigDict(use_enum_values=False)

    id: str = Field(..., description="Identifier, unique within the vector store")
    description: str = Field(..., description="Free-text task description")
    scope_id: str = Field(..., description="Owning system/asset identifier")
    system_name: str | None = Field(default=None, description="Human-readable label for the scope")
    frequency_value: float | None = Field(default=None, description="Recurrence interval value")
    frequency_unit: FrequencyUnit | None = Field(default=None, description="Recurrence interval unit")
    frequency_basis: FrequencyBasis = Field(default=FrequencyBasis.UNKNOWN, description="Scheduling basis")
    task_type: str | None = Field(default=None, description="Coarse category; a weak signal only")
    embedding: list[float] | None = Field(default=None, description="Pre-computed embedding vector")
    review_status: TaskReviewStatus = Field(default=TaskReviewStatus.PENDING, description="Lifecycle state")
    criticality: str | None = Field(default=None, description="Criticality label from extraction")
    confidence: float | None = Field(default=None, description="Extraction confidence")
    source: str | None = Field(default=None, description="Producer that discovered the task")

    @classmethod
    def from_vector(cls, record_id: str, values: list[float] | None, metadata: dict[str, Any]) -> "MaintenanceTask":
        """Build a task from a vector store record."""
        return cls(
            id=record_id,
            description=metadata.get("description", ""),
            scope_id=metadata.get("scope_id", ""),
            system_name=metadata.get("system_name"),
            frequency_value=_decode_unknown(metadata.get("frequency_value")),
            frequency_unit=_decode_unknown(metadata.get("frequency_unit")),
            frequency_basis=metadata.get("frequency_basis") or FrequencyBasis.UNKNOWN,
            task_type=metadata.get("task_type"),
            embedding=list(values) if values else None,
            review_status=metadata.get("review_status") or TaskReviewStatus.PENDING,
            criticality=metadata.get("criticality"),
            confidence=_decode_unknown(metadata.get("confidence")),
            source=metadata.get("source"),
        )

    def to_metadata(self, *, frequency_hours: float | None) -> dict[str, Any]:
        """Vector store metadata for this task.

        Pinecone rejects null metadata values, so unknown numbers are stored
        as -1 and absent labels are left out.
        """
        metadata: dict[str, Any] = {
            "task_id": self.id,
            "description": self.description[: Constants.METADATA_DESCRIPTION_LIMIT],
            "scope_id": self.scope_id,
            "frequency_basis": self.frequency_basis.value,
            "frequency_value": self.frequency_value if self.frequency_value is not None else Constants.UNKNOWN_NUMBER,
            "frequency_hours": frequency_hours if frequency_hours is not None else Constants.UNKNOWN_NUMBER,
            "task_type": self.task_type or "unknown",
            "review_status": self.review_status.value,
            "confidence": self.confidence if self.confidence is not None else Constants.UNKNOWN_NUMBER,
            "is_duplicate": False,
            "is_merged": False,
            "merge_count": 0,
        }
        optional = {
            "system_name": self.system_name,
            "frequency_unit": self.frequency_unit.value if self.frequency_unit else None,
            "criticality": self.criticality,
            "source": self.source,
        }
        metadata.update({key: value for key, value in optional.items() if value is not None})
        return metadata

    def to_snapshot(self, *, frequency_hours: float | None) -> "TaskSnapshot":
        """Freeze the comparison-relevant fields (everything except the embedding)."""
        return TaskSnapshot(
            id=self.id,
            description=self.description,
            scope_id=self.scope_id,
            system_name=self.system_name,
            frequency_value=self.frequency_value,
            frequency_unit=self.frequency_unit,
            frequency_basis=self.frequency_basis,
            frequency_hours=frequency_hours,
            task_type=self.task_type,
            criticality=self.criticality,
            confidence=self.confidence,
        )


class TaskSnapshot(BaseModel):
    """Immutable copy of a task taken at comparison time."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    scope_id: str
    system_name: str | None = None
    frequency_value: float | None = None
    frequency_unit: FrequencyUnit | None = None
    frequency_basis: FrequencyBasis = FrequencyBasis.UNKNOWN
    frequency_hours: float | None = None
    task_type: str | None = None
    criticality: str | None = None
    confidence: float | None = None

    @property
    def scope_label(self) -> str:
        """Label shown to reviewers; falls back to the scope id."""
        return self.system_name or self.scope_id


class RetrievedMatch(BaseModel):
    """A previously stored task returned by the candidate retriever."""

    task: MaintenanceTask
    score: float
