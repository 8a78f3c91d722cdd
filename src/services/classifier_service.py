"""Duplicate classifier: the compound decision over similarity and metadata signals."""

import logging
from dataclasses import dataclass, replace

from src.core.config import settings
from src.core.errors import ScopeMismatchError
from src.core.similarity import cosine_similarity
from src.domain.review import Classification, MatchReason, Verdict
from src.domain.task import FrequencyBasis, MaintenanceTask, TaskSnapshot
from src.services import frequency_service
from src.services.frequency_service import TRIGGERED_BASES
from src.services.task_type_service import UNKNOWN_TASK_TYPE


logger = logging.getLogger(__name__)

Comparable = MaintenanceTask | TaskSnapshot


@dataclass(frozen=True)
class ClassifierConfig:
    """Thresholds and metadata requirements for one classification path."""

    name: str
    auto_merge_threshold: float
    review_threshold: float
    compound_threshold: float
    require_task_type: bool = False
    require_same_system: bool = True
    require_same_basis: bool = False

    def with_thresholds(
        self,
        *,
        auto_merge: float | None = None,
        review: float | None = None,
        compound: float | None = None,
    ) -> "ClassifierConfig":
        """Copy of this config with some thresholds overridden."""
        return replace(
            self,
            auto_merge_threshold=auto_merge if auto_merge is not None else self.auto_merge_threshold,
            review_threshold=review if review is not None else self.review_threshold,
            compound_threshold=compound if compound is not None else self.compound_threshold,
        )

    def thresholds(self) -> dict[str, float]:
        """Thresholds as stored on an analysis run."""
        return {
            "auto_merge": self.auto_merge_threshold,
            "review": self.review_threshold,
            "compound": self.compound_threshold,
        }


def live_insert_config() -> ClassifierConfig:
    """Insert-time configuration: task type is advisory only."""
    return ClassifierConfig(
        name="live_insert",
        auto_merge_threshold=settings.auto_merge_threshold,
        review_threshold=settings.review_threshold,
        compound_threshold=settings.compound_threshold,
        require_task_type=False,
        require_same_system=True,
        require_same_basis=False,
    )


def batch_analysis_config() -> ClassifierConfig:
    """Pairwise batch configuration: differing task types or bases are never compared."""
    return ClassifierConfig(
        name="batch_analysis",
        auto_merge_threshold=settings.auto_merge_threshold,
        review_threshold=settings.review_threshold,
        compound_threshold=settings.compound_threshold,
        require_task_type=True,
        require_same_system=True,
        require_same_basis=True,
    )


def _task_type(task: Comparable) -> str:
    return (task.task_type or UNKNOWN_TASK_TYPE).lower()


def _frequency_signal(task: Comparable, candidate: Comparable) -> tuple[bool, MatchReason]:
    """Return (frequencies match, reason describing how that was decided).

    The comparison is skipped only when both tasks are triggered. A
    triggered task against a scheduled one falls through to the sentinel
    comparison, which never matches a number.
    """
    if task.frequency_basis in TRIGGERED_BASES and candidate.frequency_basis in TRIGGERED_BASES:
        return True, MatchReason.SEMANTIC_MATCH_EVENT_OR_CONDITION_BASED

    hours_a = frequency_service.normalize(task)
    hours_b = frequency_service.normalize(candidate)
    if hours_a is None and hours_b is None:
        return True, MatchReason.SEMANTIC_MATCH_NO_FREQUENCY
    if hours_a is None or hours_b is None:
        return False, MatchReason.FREQUENCY_DATA_MISMATCH

    if frequency_service.tasks_frequencies_similar(task, candidate):
        return True, MatchReason.SEMANTIC_AND_FREQUENCY_MATCH
    return False, MatchReason.FREQUENCY_MISMATCH


def classify(
    *,
    task: Comparable,
    candidate: Comparable,
    similarity: float | None = None,
    config: ClassifierConfig | None = None,
) -> Classification:
    """Classify ``task`` against one stored ``candidate``.

    Pure: never touches the store or the ledger. ``similarity`` is computed
    from the embeddings when not supplied.

    Raises:
        ScopeMismatchError: If the two tasks belong to different scopes
        DataError: If similarity must be computed and an embedding is missing
    """
    cfg = config or live_insert_config()

    if cfg.require_same_system and task.scope_id != candidate.scope_id:
        msg = f"Refusing to compare {task.id} ({task.scope_id}) with {candidate.id} ({candidate.scope_id})"
        raise ScopeMismatchError(msg)

    if similarity is None:
        similarity = cosine_similarity(
            getattr(task, "embedding", None),
            getattr(candidate, "embedding", None),
        )
    score = max(similarity, 0.0)
    percent = f"{score * 100:.1f}%"

    def insert(reason: MatchReason, justification: str, *, frequencies_match: bool = False) -> Classification:
        return Classification(
            verdict=Verdict.INSERT,
            reason=reason,
            justification=justification,
            similarity=score,
            frequencies_match=frequencies_match,
        )

    if cfg.require_same_basis:
        bases = {task.frequency_basis, candidate.frequency_basis}
        if FrequencyBasis.UNKNOWN not in bases and len(bases) > 1:
            return insert(MatchReason.DIFFERENT_FREQUENCY_BASIS, "Different frequency basis")

    types_match = _task_type(task) == _task_type(candidate)
    if cfg.require_task_type and not types_match:
        return insert(MatchReason.DIFFERENT_TASK_TYPE, "Different task type")

    if score < cfg.compound_threshold:
        return insert(MatchReason.LOW_SIMILARITY, f"Low similarity ({percent})")

    frequencies_match, frequency_reason = _frequency_signal(task, candidate)

    if score >= cfg.auto_merge_threshold and frequencies_match:
        return Classification(
            verdict=Verdict.AUTO_MERGE,
            reason=frequency_reason,
            justification=f"High similarity ({percent}) + matching frequency",
            similarity=score,
            frequencies_match=True,
        )

    if score >= cfg.review_threshold:
        if frequencies_match:
            return Classification(
                verdict=Verdict.REVIEW_REQUIRED,
                reason=frequency_reason,
                justification=f"Moderate similarity ({percent}) + matching frequency",
                similarity=score,
                frequencies_match=True,
            )
        return Classification(
            verdict=Verdict.REVIEW_REQUIRED,
            reason=MatchReason.HIGH_CONFIDENCE_SEMANTIC_MATCH,
            justification=f"Similarity {percent} but different frequencies",
            similarity=score,
            frequencies_match=False,
            warning=frequency_reason.value,
        )

    if frequencies_match and (types_match or not cfg.require_task_type):
        return Classification(
            verdict=Verdict.REVIEW_REQUIRED,
            reason=MatchReason.COMPOUND_MATCH,
            justification=f"Compound match: {percent} similarity + matching frequency",
            similarity=score,
            frequencies_match=True,
        )

    return insert(
        frequency_reason,
        f"Similarity {percent} below review threshold without supporting signals",
        frequencies_match=frequencies_match,
    )
