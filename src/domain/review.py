"""Duplicate review domain models: verdicts, pairs, analysis runs and groups."""

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.domain.task import RetrievedMatch, TaskSnapshot


class Verdict(StrEnum):
    """Outcome of the duplicate classifier."""

    INSERT = "insert"
    REVIEW_REQUIRED = "review_required"
    AUTO_MERGE = "auto_merge"


class MatchReason(StrEnum):
    """Enumerated justification attached to a classification."""

    # Duplicate reasons
    SEMANTIC_AND_FREQUENCY_MATCH = "semantic_and_frequency_match"
    COMPOUND_MATCH = "compound_match"
    HIGH_CONFIDENCE_SEMANTIC_MATCH = "high_confidence_semantic_match"
    SEMANTIC_MATCH_EVENT_OR_CONDITION_BASED = "semantic_match_event_or_condition_based"
    SEMANTIC_MATCH_NO_FREQUENCY = "semantic_match_no_frequency"

    # Non-duplicate reasons
    LOW_SIMILARITY = "low_similarity"
    DIFFERENT_TASK_TYPE = "different_task_type"
    DIFFERENT_FREQUENCY_BASIS = "different_frequency_basis"
    FREQUENCY_MISMATCH = "frequency_mismatch"
    FREQUENCY_DATA_MISMATCH = "frequency_data_mismatch"
    NO_CANDIDATES = "no_candidates"


class ReviewStatus(StrEnum):
    """Human decision recorded on a duplicate pair."""

    PENDING = "pending"
    KEEP_BOTH = "keep_both"
    MERGE = "merge"
    DELETE_TASK1 = "delete_task1"
    DELETE_TASK2 = "delete_task2"
    DELETE_BOTH = "delete_both"


DECISION_STATUSES = frozenset(
    {
        ReviewStatus.KEEP_BOTH,
        ReviewStatus.MERGE,
        ReviewStatus.DELETE_TASK1,
        ReviewStatus.DELETE_TASK2,
        ReviewStatus.DELETE_BOTH,
    }
)


def _load_json(value: Any) -> Any:  # noqa: ANN401
    """Ledger rows hold JSON columns as text; in-memory rows hold them decoded."""
    if isinstance(value, str | bytes):
        return json.loads(value)
    return value


class Classification(BaseModel):
    """Classifier output for one task compared against one candidate."""

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    reason: MatchReason
    justification: str
    similarity: float
    frequencies_match: bool = False
    warning: str | None = None

    @property
    def is_duplicate(self) -> bool:
        """True for any verdict other than insert."""
        return self.verdict != Verdict.INSERT


class DuplicateCheck(BaseModel):
    """Result of an insert-time duplicate check against the vector store."""

    verdict: Verdict
    classification: Classification | None = None
    primary: RetrievedMatch | None = None
    matches: list[RetrievedMatch] = Field(default_factory=list)

    @property
    def reason(self) -> str | None:
        """Human-readable justification of the verdict, if any candidate was scored."""
        return self.classification.justification if self.classification else None


class PairCandidate(BaseModel):
    """A duplicate pair found by a comparison pass, before it is persisted."""

    task_a: TaskSnapshot
    task_b: TaskSnapshot
    similarity_score: float
    match_reason: MatchReason
    warning: str | None = None


class DuplicatePair(BaseModel):
    """A persisted pair awaiting, or having received, a human decision."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    analysis_id: str
    task_a: TaskSnapshot = Field(..., validation_alias="task1_metadata")
    task_b: TaskSnapshot = Field(..., validation_alias="task2_metadata")
    similarity_score: float
    match_reason: str
    warning: str | None = None
    review_status: ReviewStatus = ReviewStatus.PENDING
    reviewed_by: str | None = None
    reviewed_at: str | None = None
    review_notes: str | None = None
    executed: bool = False
    executed_at: str | None = None
    execution_error: str | None = None
    created: str | None = None

    @field_validator("task_a", "task_b", mode="before")
    @classmethod
    def decode_snapshot(cls, v: Any) -> Any:  # noqa: ANN401
        """Decode JSON snapshot columns."""
        return _load_json(v)

    @field_validator("executed", mode="before")
    @classmethod
    def decode_executed(cls, v: Any) -> Any:  # noqa: ANN401
        """SQLite stores booleans as 0/1."""
        return bool(v) if v is not None else False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "DuplicatePair":
        """Build a pair from a ledger row."""
        return cls.model_validate(record)


class AnalysisRun(BaseModel):
    """One batch comparison pass and its summary counts."""

    id: str
    analysis_date: str
    total_tasks: int
    duplicate_pairs_found: int
    duplicate_groups_found: int = 0
    thresholds: dict[str, Any] = Field(default_factory=dict)
    filters: dict[str, Any] | None = None
    created: str | None = None

    @field_validator("thresholds", "filters", mode="before")
    @classmethod
    def decode_json(cls, v: Any) -> Any:  # noqa: ANN401
        """Decode JSON summary columns."""
        return _load_json(v)


class DuplicateGroup(BaseModel):
    """A connected set of duplicates presented together; never persisted."""

    primary: TaskSnapshot
    duplicates: list[TaskSnapshot] = Field(default_factory=list)

    @property
    def task_ids(self) -> list[str]:
        """Primary id followed by duplicate ids."""
        return [self.primary.id, *(d.id for d in self.duplicates)]


class ItemError(BaseModel):
    """Failure detail for one item of a batch operation."""

    item_id: str
    code: str
    error: str


class BatchResult(BaseModel):
    """Partial-success report for a bulk operation."""

    successful: list[str] = Field(default_factory=list)
    failed: list[ItemError] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        """Number of items applied."""
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        """Number of items that failed."""
        return len(self.failed)
