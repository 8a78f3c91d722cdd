"""Insert-time duplicate checking and batch ingestion of task candidates."""

import logging

from pydantic import BaseModel, Field

from src.core.config import settings
from src.core.content_cache import ContentCache
from src.core.errors import DataError, DedupError, ScopeMismatchError, classify_error
from src.core.logging import span
from src.core.vector_store import VectorRecord, VectorStore
from src.domain.review import Classification, DuplicateCheck, ItemError, PairCandidate, Verdict
from src.domain.task import MaintenanceTask, RetrievedMatch
from src.services import execution_service, frequency_service, retrieval_service, review_service
from src.services.classifier_service import ClassifierConfig, classify, live_insert_config
from src.services.task_type_service import classify_task_type


logger = logging.getLogger(__name__)

_VERDICT_RANK = {Verdict.INSERT: 0, Verdict.REVIEW_REQUIRED: 1, Verdict.AUTO_MERGE: 2}


class IngestionDetail(BaseModel):
    """What happened to one candidate."""

    task_id: str
    description: str
    action: str
    similarity: float | None = None
    reason: str | None = None
    matched_task_id: str | None = None


class IngestionResult(BaseModel):
    """Counts and per-task details for one ingestion batch."""

    processed: int = 0
    inserted: int = 0
    auto_merged: int = 0
    needs_review: int = 0
    skipped: int = 0
    errors: list[ItemError] = Field(default_factory=list)
    details: list[IngestionDetail] = Field(default_factory=list)
    analysis_id: str | None = None
    dry_run: bool = False


async def check_for_duplicates(
    *,
    task: MaintenanceTask,
    store: VectorStore,
    config: ClassifierConfig | None = None,
) -> DuplicateCheck:
    """Classify a new task against its nearest stored neighbours.

    Every candidate at or above the compound threshold is classified and the
    strongest verdict wins; ties keep retrieval order. ``matches`` lists every
    candidate at or above the diagnostic threshold, whatever the verdict.

    Raises:
        DataError: If the task has no embedding
    """
    cfg = config or live_insert_config()
    with span("ingestion_service.check_for_duplicates"):
        if not task.embedding:
            msg = f"Task {task.id} has no embedding"
            raise DataError(msg)

        candidates = await retrieval_service.retrieve(
            embedding=task.embedding,
            scope_id=task.scope_id,
            store=store,
            exclude_id=task.id,
        )
        matches = [m for m in candidates if m.score >= settings.diagnostic_threshold]

        if not candidates:
            return DuplicateCheck(verdict=Verdict.INSERT, matches=[])

        best: tuple[Classification, RetrievedMatch] | None = None
        for candidate in candidates:
            if candidate.score < cfg.compound_threshold:
                continue
            result = classify(task=task, candidate=candidate.task, similarity=candidate.score, config=cfg)
            if best is None or _VERDICT_RANK[result.verdict] > _VERDICT_RANK[best[0].verdict]:
                best = (result, candidate)

        if best is None:
            top = candidates[0]
            best = (classify(task=task, candidate=top.task, similarity=top.score, config=cfg), top)

        classification, primary = best
        logger.debug(
            "Duplicate check complete",
            extra={
                "task_id": task.id,
                "verdict": classification.verdict.value,
                "primary_id": primary.task.id,
                "similarity": classification.similarity,
            },
        )
        return DuplicateCheck(
            verdict=classification.verdict,
            classification=classification,
            primary=primary,
            matches=matches,
        )


async def _insert(task: MaintenanceTask, store: VectorStore) -> None:
    metadata = task.to_metadata(frequency_hours=frequency_service.frequency_hours(task))
    await store.upsert(records=[VectorRecord(id=task.id, values=task.embedding or [], metadata=metadata)])


def _review_pair(task: MaintenanceTask, check: DuplicateCheck) -> PairCandidate:
    """Existing task first, incoming candidate second."""
    if check.primary is None or check.classification is None:
        msg = f"Task {task.id} has no matched candidate to review against"
        raise DataError(msg)
    existing = check.primary.task
    return PairCandidate(
        task_a=existing.to_snapshot(frequency_hours=frequency_service.frequency_hours(existing)),
        task_b=task.to_snapshot(frequency_hours=frequency_service.frequency_hours(task)),
        similarity_score=check.classification.similarity,
        match_reason=check.classification.reason,
        warning=check.classification.warning,
    )


async def process_tasks(
    *,
    tasks: list[MaintenanceTask],
    store: VectorStore,
    config: ClassifierConfig | None = None,
    auto_merge: bool | None = None,
    dry_run: bool = False,
    cache: ContentCache | None = None,
) -> IngestionResult:
    """Check and store a batch of task candidates.

    Unique tasks are inserted, confident duplicates are auto-merged (or
    queued for review when auto-merge is off), and uncertain ones are
    inserted as pending and recorded as review pairs under a single
    analysis run. A failing task is reported and the batch continues.

    Raises:
        ScopeMismatchError: If a candidate from another scope reached the classifier
    """
    cfg = config or live_insert_config()
    merge_enabled = settings.auto_merge_enabled if auto_merge is None else auto_merge
    run_cache = cache if cache is not None else ContentCache()
    result = IngestionResult(dry_run=dry_run)
    review_pairs: list[PairCandidate] = []

    with span("ingestion_service.process_tasks"):
        logger.info(
            "Processing tasks batch",
            extra={"total_tasks": len(tasks), "auto_merge": merge_enabled, "dry_run": dry_run},
        )

        for incoming in tasks:
            try:
                if not incoming.embedding:
                    msg = f"Task {incoming.id} has no embedding"
                    raise DataError(msg)

                if run_cache.is_processed(incoming.id, incoming.description):
                    result.skipped += 1
                    result.details.append(
                        IngestionDetail(task_id=incoming.id, description=incoming.description[:50], action="skipped")
                    )
                    continue

                task = incoming
                if not task.task_type:
                    task = task.model_copy(update={"task_type": classify_task_type(task.description)})

                check = await check_for_duplicates(task=task, store=store, config=cfg)
                primary_id = check.primary.task.id if check.primary else None
                similarity = check.primary.score if check.primary else None

                if check.verdict == Verdict.INSERT:
                    if not dry_run:
                        await _insert(task, store)
                    result.inserted += 1
                    action = "inserted"
                elif check.verdict == Verdict.AUTO_MERGE and merge_enabled:
                    if not dry_run:
                        await execution_service.apply_auto_merge(
                            primary_id=primary_id or "",
                            candidate=task,
                            similarity=similarity or 0.0,
                            store=store,
                        )
                    result.auto_merged += 1
                    action = "auto_merged"
                else:
                    if not dry_run:
                        await _insert(task, store)
                    review_pairs.append(_review_pair(task, check))
                    result.needs_review += 1
                    action = "needs_review"

                run_cache.mark_processed(task.id, task.description, scope_id=task.scope_id)
                result.processed += 1
                result.details.append(
                    IngestionDetail(
                        task_id=task.id,
                        description=task.description[:50],
                        action=action,
                        similarity=similarity,
                        reason=check.reason,
                        matched_task_id=primary_id,
                    )
                )
            except ScopeMismatchError:
                raise
            except DedupError as e:
                detail = classify_error(e)
                logger.error("Error processing task", extra={"task_id": incoming.id, "error": detail.message})
                result.errors.append(ItemError(item_id=incoming.id, code=detail.code, error=detail.message))

        if review_pairs and not dry_run:
            result.analysis_id = await review_service.create_analysis_run(
                total_tasks=len(tasks),
                duplicate_pairs_found=len(review_pairs),
                thresholds=cfg.thresholds(),
                filters={"source": "live_insert"},
            )
            await review_service.bulk_save_pairs(analysis_id=result.analysis_id, pairs=review_pairs)

        logger.info(
            "Batch processing complete",
            extra={
                "processed": result.processed,
                "inserted": result.inserted,
                "auto_merged": result.auto_merged,
                "needs_review": result.needs_review,
                "skipped": result.skipped,
                "errors": len(result.errors),
            },
        )
        return result
