"""Domain models and DTOs."""

from src.domain.review import (
    AnalysisRun,
    BatchResult,
    Classification,
    DuplicateCheck,
    DuplicateGroup,
    DuplicatePair,
    ItemError,
    MatchReason,
    PairCandidate,
    ReviewStatus,
    Verdict,
)
from src.domain.task import (
    FrequencyBasis,
    FrequencyUnit,
    MaintenanceTask,
    RetrievedMatch,
    TaskReviewStatus,
    TaskSnapshot,
)


__all__ = [
    "AnalysisRun",
    "BatchResult",
    "Classification",
    "DuplicateCheck",
    "DuplicateGroup",
    "DuplicatePair",
    "FrequencyBasis",
    "FrequencyUnit",
    "ItemError",
    "MaintenanceTask",
    "MatchReason",
    "PairCandidate",
    "RetrievedMatch",
    "ReviewStatus",
    "TaskReviewStatus",
    "TaskSnapshot",
    "Verdict",
]
