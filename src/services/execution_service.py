"""Apply resolved duplicate decisions to the vector store."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from src.core.errors import DataError, ExecutionError, StoreError, classify_error
from src.core.logging import span
from src.core.vector_store import VectorRecord, VectorStore, update_metadata
from src.domain.review import DECISION_STATUSES, DuplicatePair, ItemError, ReviewStatus
from src.domain.task import MaintenanceTask, TaskReviewStatus
from src.services import frequency_service, review_service


logger = logging.getLogger(__name__)


class ExecutionReport(BaseModel):
    """Outcome of draining the execution queue."""

    executed: int = 0
    failed: int = 0
    total: int = 0
    errors: list[ItemError] = Field(default_factory=list)


class AutoMergeResult(BaseModel):
    """What an auto-merge changed."""

    primary_id: str
    duplicate_id: str
    similarity: float
    merge_count: int
    merged_at: str


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _hidden_patch(winner_id: str) -> dict[str, Any]:
    return {
        "is_duplicate": True,
        "duplicate_of": winner_id,
        "review_status": TaskReviewStatus.DUPLICATE_HIDDEN.value,
        "deduplicated_at": _now(),
    }


async def _bump_merge_count(store: VectorStore, task_id: str) -> int:
    existing = (await store.fetch(ids=[task_id])).get(task_id)
    if existing is None:
        msg = f"Task {task_id} not found in vector store"
        raise StoreError(msg)
    merge_count = int(existing.metadata.get("merge_count") or 0) + 1
    await update_metadata(store, task_id, {"is_merged": True, "merge_count": merge_count})
    return merge_count


async def _apply_decision(pair: DuplicatePair, store: VectorStore) -> None:
    task1_id, task2_id = pair.task_a.id, pair.task_b.id

    match pair.review_status:
        case ReviewStatus.KEEP_BOTH:
            return
        case ReviewStatus.DELETE_TASK1:
            await update_metadata(store, task1_id, _hidden_patch(task2_id))
        case ReviewStatus.DELETE_TASK2:
            await update_metadata(store, task2_id, _hidden_patch(task1_id))
        case ReviewStatus.DELETE_BOTH:
            patch = {
                "is_duplicate": True,
                "review_status": TaskReviewStatus.INVALID_TASK.value,
                "deduplicated_at": _now(),
            }
            await update_metadata(store, task1_id, patch)
            await update_metadata(store, task2_id, patch)
        case ReviewStatus.MERGE:
            await update_metadata(store, task2_id, _hidden_patch(task1_id))
            await _bump_merge_count(store, task1_id)
        case _:
            msg = f"Pair {pair.id} has no decision to execute (status {pair.review_status})"
            raise ExecutionError(msg)


async def execute(*, pair: DuplicatePair | str, store: VectorStore) -> DuplicatePair:
    """Apply one pair's decision and mark it executed.

    The pair is claimed in the ledger before the store is touched, so of
    two concurrent calls only one applies the decision; the other, like a
    call on an already executed pair, returns the pair unchanged. A
    failed application releases the claim with the error recorded.

    Raises:
        ExecutionError: If the pair is undecided or the store update fails
    """
    pair_id = pair if isinstance(pair, str) else pair.id
    with span("execution_service.execute"):
        current = await review_service.get_review_by_id(pair_id=pair_id)
        if current.executed:
            logger.info("Pair already executed, skipping", extra={"pair_id": pair_id})
            return current
        if current.review_status not in DECISION_STATUSES:
            msg = f"Pair {pair_id} has no decision to execute (status {current.review_status})"
            raise ExecutionError(msg)

        if not await review_service.claim_execution(pair_id=pair_id):
            logger.info("Pair claimed by another execution, skipping", extra={"pair_id": pair_id})
            return await review_service.get_review_by_id(pair_id=pair_id)

        try:
            await _apply_decision(current, store)
        except (StoreError, ExecutionError) as e:
            msg = f"Failed to execute pair {pair_id}: {e}"
            await review_service.release_execution(pair_id=pair_id, error=msg)
            raise ExecutionError(msg) from e

        logger.info(
            "Executed review decision",
            extra={
                "pair_id": pair_id,
                "decision": current.review_status.value,
                "task1_id": current.task_a.id,
                "task2_id": current.task_b.id,
            },
        )
        return await review_service.get_review_by_id(pair_id=pair_id)


async def execute_pending(*, store: VectorStore) -> ExecutionReport:
    """Execute every decided, unexecuted pair; failures are recorded per pair."""
    with span("execution_service.execute_pending"):
        queue = await review_service.get_unexecuted_reviews()
        report = ExecutionReport(total=len(queue))
        if not queue:
            logger.info("No decisions to execute")
            return report

        logger.info("Executing deduplication decisions", extra={"count": len(queue)})
        for pair in queue:
            try:
                await execute(pair=pair, store=store)
                report.executed += 1
            except ExecutionError as e:
                detail = classify_error(e)
                logger.error(
                    "Failed to execute review decision",
                    extra={"pair_id": pair.id, "error": detail.message},
                )
                report.failed += 1
                report.errors.append(ItemError(item_id=pair.id, code=detail.code, error=detail.message))

        logger.info(
            "Execution complete",
            extra={"executed": report.executed, "failed": report.failed, "total": report.total},
        )
        return report


async def apply_auto_merge(
    *,
    primary_id: str,
    candidate: MaintenanceTask,
    similarity: float,
    store: VectorStore,
) -> AutoMergeResult:
    """Fold an incoming candidate into an existing primary task.

    The candidate is stored as a hidden duplicate of the primary, keeping
    its embedding, and the primary's merge counter is incremented.

    Raises:
        DataError: If the candidate has no embedding
        StoreError: If the primary task does not exist
    """
    with span("execution_service.apply_auto_merge"):
        if not candidate.embedding:
            msg = f"Task {candidate.id} has no embedding"
            raise DataError(msg)

        merge_count = await _bump_merge_count(store, primary_id)

        metadata = candidate.to_metadata(frequency_hours=frequency_service.frequency_hours(candidate))
        metadata.update(_hidden_patch(primary_id))
        metadata["merged_similarity"] = similarity
        await store.upsert(records=[VectorRecord(id=candidate.id, values=candidate.embedding, metadata=metadata)])

        result = AutoMergeResult(
            primary_id=primary_id,
            duplicate_id=candidate.id,
            similarity=similarity,
            merge_count=merge_count,
            merged_at=metadata["deduplicated_at"],
        )
        logger.info(
            "Auto-merged duplicate task",
            extra={"primary_id": primary_id, "duplicate_id": candidate.id, "similarity": similarity},
        )
        return result
