"""Review ledger: analysis runs and duplicate pairs awaiting human decisions."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.core import db_client
from src.core.config import settings
from src.core.db_client import sanitize_param
from src.core.errors import ValidationError, classify_error
from src.core.logging import span
from src.domain.review import (
    DECISION_STATUSES,
    AnalysisRun,
    BatchResult,
    DuplicatePair,
    ItemError,
    PairCandidate,
    ReviewStatus,
)


logger = logging.getLogger(__name__)

ANALYSES = "deduplication_analyses"
REVIEWS = "deduplication_reviews"

_PAGE_SIZE = 500


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _validate_status(status: str) -> ReviewStatus:
    try:
        return ReviewStatus(status)
    except ValueError as e:
        valid = ", ".join(s.value for s in ReviewStatus)
        msg = f"Invalid review status: {status!r}. Must be one of: {valid}"
        raise ValidationError(msg) from e


async def _list_all(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Read every matching record, page by page."""
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await db_client.list_records(
            collection=collection,
            filter_query=filter_query,
            sort=sort,
            page=page,
            per_page=_PAGE_SIZE,
        )
        records.extend(batch)
        if len(batch) < _PAGE_SIZE:
            return records
        page += 1


def _pair_row(analysis_id: str, pair: PairCandidate) -> dict[str, Any]:
    a, b = pair.task_a, pair.task_b
    return {
        "analysis_id": analysis_id,
        "task1_id": a.id,
        "task1_description": a.description,
        "task1_system": a.scope_label,
        "task1_metadata": a.model_dump(mode="json"),
        "task2_id": b.id,
        "task2_description": b.description,
        "task2_system": b.scope_label,
        "task2_metadata": b.model_dump(mode="json"),
        "similarity_score": min(max(pair.similarity_score, 0.0), 1.0),
        "match_reason": pair.match_reason.value,
        "warning": pair.warning,
        "review_status": ReviewStatus.PENDING.value,
        "executed": False,
    }


async def create_analysis_run(
    *,
    total_tasks: int,
    duplicate_pairs_found: int,
    thresholds: dict[str, Any],
    duplicate_groups_found: int = 0,
    filters: dict[str, Any] | None = None,
) -> str:
    """Record a batch comparison pass.

    Returns:
        The new analysis run id
    """
    with span("review_service.create_analysis_run"):
        record = await db_client.create_record(
            collection=ANALYSES,
            data={
                "analysis_date": _now(),
                "total_tasks": total_tasks,
                "duplicate_pairs_found": duplicate_pairs_found,
                "duplicate_groups_found": duplicate_groups_found,
                "thresholds": thresholds,
                "filters": filters,
            },
        )
        logger.info(
            "Created analysis run",
            extra={"analysis_id": record["id"], "total_tasks": total_tasks, "pairs": duplicate_pairs_found},
        )
        return record["id"]


async def bulk_save_pairs(*, analysis_id: str, pairs: list[PairCandidate]) -> int:
    """Persist the pairs of one run in batches.

    A pair repeated within the run is stored once.

    Returns:
        Number of pairs actually persisted
    """
    with span("review_service.bulk_save_pairs"):
        rows: list[dict[str, Any]] = []
        seen: set[tuple[str, str]] = set()
        for pair in pairs:
            key = (pair.task_a.id, pair.task_b.id)
            if key in seen:
                continue
            seen.add(key)
            rows.append(_pair_row(analysis_id, pair))

        saved = 0
        batch_size = settings.ledger_batch_size
        for start in range(0, len(rows), batch_size):
            batch = rows[start : start + batch_size]
            saved += await db_client.create_records(collection=REVIEWS, rows=batch)
            logger.debug(
                "Saved pair batch",
                extra={"analysis_id": analysis_id, "batch_start": start, "batch_size": len(batch)},
            )

        logger.info("Saved duplicate pairs", extra={"analysis_id": analysis_id, "count": saved})
        return saved


async def get_pending_reviews(
    *,
    limit: int = 50,
    offset: int = 0,
    scope_filter: str | None = None,
) -> list[DuplicatePair]:
    """Pending pairs, most similar first.

    ``scope_filter`` matches either side's scope label, case-insensitively.
    """
    with span("review_service.get_pending_reviews"):
        records = await _list_all(
            collection=REVIEWS,
            filter_query=f'review_status = "{ReviewStatus.PENDING.value}"',
            sort="-similarity_score",
        )

        if scope_filter:
            needle = scope_filter.lower()
            records = [
                r
                for r in records
                if needle in (r.get("task1_system") or "").lower() or needle in (r.get("task2_system") or "").lower()
            ]

        page = records[offset : offset + limit]
        return [DuplicatePair.from_record(r) for r in page]


async def get_systems_list() -> list[str]:
    """Sorted scope labels appearing on either side of a pending pair."""
    with span("review_service.get_systems_list"):
        records = await _list_all(
            collection=REVIEWS,
            filter_query=f'review_status = "{ReviewStatus.PENDING.value}"',
        )
        systems = {label for r in records for label in (r.get("task1_system"), r.get("task2_system")) if label}
        return sorted(systems)


async def get_reviews_by_analysis(*, analysis_id: str) -> list[DuplicatePair]:
    """All pairs of one run, most similar first."""
    with span("review_service.get_reviews_by_analysis"):
        records = await _list_all(
            collection=REVIEWS,
            filter_query=f'analysis_id = "{sanitize_param(analysis_id)}"',
            sort="-similarity_score",
        )
        return [DuplicatePair.from_record(r) for r in records]


async def get_review_by_id(*, pair_id: str) -> DuplicatePair:
    """Fetch one pair.

    Raises:
        RecordNotFoundError: If no pair has this id
    """
    with span("review_service.get_review_by_id"):
        record = await db_client.get_record(collection=REVIEWS, record_id=pair_id)
        return DuplicatePair.from_record(record)


async def update_review_status(
    *,
    pair_id: str,
    status: str,
    reviewed_by: str,
    notes: str | None = None,
) -> DuplicatePair:
    """Record a human decision on a pair.

    Raises:
        ValidationError: If the status is unknown or the pair was already executed
        RecordNotFoundError: If no pair has this id
    """
    with span("review_service.update_review_status"):
        new_status = _validate_status(status)

        current = await get_review_by_id(pair_id=pair_id)
        if current.executed:
            msg = f"Pair {pair_id} was already executed; its decision can no longer change"
            raise ValidationError(msg)

        data: dict[str, Any] = {
            "review_status": new_status.value,
            "reviewed_by": reviewed_by,
            "reviewed_at": _now(),
        }
        if notes is not None:
            data["review_notes"] = notes

        record = await db_client.update_record(collection=REVIEWS, record_id=pair_id, data=data)
        logger.info(
            "Updated review status",
            extra={"pair_id": pair_id, "status": new_status.value, "reviewed_by": reviewed_by},
        )
        return DuplicatePair.from_record(record)


async def bulk_update_status(*, pair_ids: list[str], status: str, reviewed_by: str) -> BatchResult:
    """Apply one decision to many pairs; a failing pair does not stop the rest.

    Raises:
        ValidationError: If the status is unknown (nothing is written)
    """
    with span("review_service.bulk_update_status"):
        new_status = _validate_status(status)
        result = BatchResult()

        for pair_id in pair_ids:
            try:
                await update_review_status(pair_id=pair_id, status=new_status.value, reviewed_by=reviewed_by)
                result.successful.append(pair_id)
            except (ValidationError, db_client.DatabaseError) as e:
                detail = classify_error(e)
                result.failed.append(ItemError(item_id=pair_id, code=detail.code, error=detail.message))
                logger.warning("Bulk status update failed for pair", extra={"pair_id": pair_id, "error": str(e)})

        logger.info(
            "Bulk updated review status",
            extra={"status": new_status.value, "successful": result.success_count, "failed": result.failure_count},
        )
        return result


async def get_unexecuted_reviews() -> list[DuplicatePair]:
    """Decided pairs not yet applied to the vector store, oldest decision first."""
    with span("review_service.get_unexecuted_reviews"):
        records = await _list_all(
            collection=REVIEWS,
            filter_query=f'review_status != "{ReviewStatus.PENDING.value}" && executed = "0"',
            sort="reviewed_at",
        )
        pairs = [DuplicatePair.from_record(r) for r in records]
        return [p for p in pairs if p.review_status in DECISION_STATUSES]


async def get_pending_commits_count() -> int:
    """Number of decided pairs waiting for execution."""
    with span("review_service.get_pending_commits_count"):
        return await db_client.count_records(
            collection=REVIEWS,
            filter_query=f'review_status != "{ReviewStatus.PENDING.value}" && executed = "0"',
        )


_UNEXECUTED = 'executed = "0"'


async def mark_executed(*, pair_id: str, success: bool = True, error: str | None = None) -> DuplicatePair:
    """Stamp the outcome of applying a pair's decision.

    A successful execution is final: once a pair is executed, later calls
    leave it untouched. A failed one keeps the pair in the work queue with
    the error recorded.

    Raises:
        RecordNotFoundError: If no pair has this id
    """
    with span("review_service.mark_executed"):
        current = await get_review_by_id(pair_id=pair_id)
        if current.executed:
            logger.info("Pair already executed, outcome not recorded", extra={"pair_id": pair_id, "success": success})
            return current

        data: dict[str, Any] = {"executed": success, "executed_at": _now()}
        if success or error is not None:
            data["execution_error"] = error

        applied = await db_client.update_record_if(
            collection=REVIEWS, record_id=pair_id, data=data, filter_query=_UNEXECUTED
        )
        logger.info("Marked pair executed", extra={"pair_id": pair_id, "success": success, "applied": applied})
        return await get_review_by_id(pair_id=pair_id)


async def claim_execution(*, pair_id: str) -> bool:
    """Atomically flip a pair from unexecuted to executed.

    Only one caller can win the claim for a pair; the loser must treat its
    attempt as a no-op.
    """
    with span("review_service.claim_execution"):
        claimed = await db_client.update_record_if(
            collection=REVIEWS,
            record_id=pair_id,
            data={"executed": True, "executed_at": _now(), "execution_error": None},
            filter_query=_UNEXECUTED,
        )
        logger.debug("Execution claim", extra={"pair_id": pair_id, "claimed": claimed})
        return claimed


async def release_execution(*, pair_id: str, error: str) -> DuplicatePair:
    """Give back a claim whose decision could not be applied, recording why."""
    with span("review_service.release_execution"):
        record = await db_client.update_record(
            collection=REVIEWS,
            record_id=pair_id,
            data={"executed": False, "executed_at": None, "execution_error": error},
        )
        logger.warning("Released execution claim", extra={"pair_id": pair_id, "error": error})
        return DuplicatePair.from_record(record)


async def get_review_stats() -> dict[str, int]:
    """Pair counts per review status, plus the total."""
    with span("review_service.get_review_stats"):
        stats: dict[str, int] = {}
        for status in ReviewStatus:
            stats[status.value] = await db_client.count_records(
                collection=REVIEWS,
                filter_query=f'review_status = "{status.value}"',
            )
        stats["total"] = await db_client.count_records(collection=REVIEWS)
        return stats


async def get_recent_analyses(*, limit: int = 10) -> list[AnalysisRun]:
    """Most recent analysis runs first."""
    with span("review_service.get_recent_analyses"):
        records = await db_client.list_records(collection=ANALYSES, sort="-analysis_date,-id", per_page=limit)
        return [AnalysisRun.model_validate(r) for r in records]


async def get_analysis_by_id(*, analysis_id: str) -> AnalysisRun:
    """Fetch one analysis run.

    Raises:
        RecordNotFoundError: If no run has this id
    """
    with span("review_service.get_analysis_by_id"):
        record = await db_client.get_record(collection=ANALYSES, record_id=analysis_id)
        return AnalysisRun.model_validate(record)


async def delete_analysis(*, analysis_id: str) -> int:
    """Delete a run together with all of its pairs.

    Returns:
        Number of pairs removed

    Raises:
        RecordNotFoundError: If no run has this id
    """
    with span("review_service.delete_analysis"):
        await db_client.get_record(collection=ANALYSES, record_id=analysis_id)
        removed = await db_client.delete_records(
            collection=REVIEWS,
            filter_query=f'analysis_id = "{sanitize_param(analysis_id)}"',
        )
        await db_client.delete_record(collection=ANALYSES, record_id=analysis_id)
        logger.info("Deleted analysis run", extra={"analysis_id": analysis_id, "pairs_removed": removed})
        return removed
