"""Batch pairwise duplicate analysis over every stored task."""

import logging
from collections import Counter, defaultdict
from itertools import combinations

from pydantic import BaseModel, Field

from src.core.logging import span
from src.core.vector_store import VectorStore, fetch_all
from src.domain.review import DuplicateGroup, PairCandidate
from src.domain.task import HIDDEN_TASK_STATUSES, MaintenanceTask
from src.services import frequency_service, grouping_service, review_service
from src.services.classifier_service import ClassifierConfig, batch_analysis_config, classify


logger = logging.getLogger(__name__)


class AnalysisResult(BaseModel):
    """Summary of one pairwise analysis pass."""

    total_tasks: int
    comparisons: int = 0
    skipped_tasks: list[str] = Field(default_factory=list)
    pairs: list[PairCandidate] = Field(default_factory=list)
    groups: list[DuplicateGroup] = Field(default_factory=list)
    reason_counts: dict[str, int] = Field(default_factory=dict)
    analysis_id: str | None = None
    pairs_saved: int = 0

    @property
    def total_duplicates(self) -> int:
        """Tasks that would disappear if every group collapsed to its primary."""
        return sum(len(g.duplicates) for g in self.groups)

    @property
    def unique_tasks(self) -> int:
        """Tasks left after collapsing every group."""
        return self.total_tasks - self.total_duplicates

    @property
    def reduction_percent(self) -> float:
        """Share of tasks removed by collapsing, in percent."""
        if not self.total_tasks:
            return 0.0
        return round(self.total_duplicates / self.total_tasks * 100, 1)


def _select_tasks(
    tasks: list[MaintenanceTask],
    *,
    scope_id: str | None,
    system_filter: str | None,
) -> list[MaintenanceTask]:
    selected = [t for t in tasks if t.review_status not in HIDDEN_TASK_STATUSES]
    if scope_id:
        selected = [t for t in selected if t.scope_id == scope_id]
    if system_filter:
        needle = system_filter.lower()
        selected = [t for t in selected if needle in (t.system_name or t.scope_id).lower()]
    return selected


def compare_all(
    tasks: list[MaintenanceTask],
    *,
    config: ClassifierConfig,
) -> tuple[list[PairCandidate], Counter[str], int]:
    """Compare every pair of tasks that share a scope.

    Returns:
        Duplicate pairs in comparison order, reason counts over every
        comparison, and the number of comparisons made
    """
    by_scope: dict[str, list[MaintenanceTask]] = defaultdict(list)
    for task in tasks:
        by_scope[task.scope_id].append(task)

    pairs: list[PairCandidate] = []
    reasons: Counter[str] = Counter()
    comparisons = 0

    for scope_tasks in by_scope.values():
        for task_a, task_b in combinations(scope_tasks, 2):
            comparisons += 1
            result = classify(task=task_a, candidate=task_b, config=config)
            reasons[result.reason.value] += 1
            if not result.is_duplicate:
                continue
            pairs.append(
                PairCandidate(
                    task_a=task_a.to_snapshot(frequency_hours=frequency_service.frequency_hours(task_a)),
                    task_b=task_b.to_snapshot(frequency_hours=frequency_service.frequency_hours(task_b)),
                    similarity_score=result.similarity,
                    match_reason=result.reason,
                    warning=result.warning,
                )
            )

    return pairs, reasons, comparisons


async def run_analysis(
    *,
    store: VectorStore,
    scope_id: str | None = None,
    system_filter: str | None = None,
    config: ClassifierConfig | None = None,
    save: bool = True,
) -> AnalysisResult:
    """Run a full pairwise duplicate analysis and record it in the review ledger.

    Quadratic in the number of tasks per scope; meant for periodic offline
    runs, not the insert path.

    Args:
        store: Vector store holding the tasks
        scope_id: Only analyse this scope
        system_filter: Case-insensitive substring of the system label to analyse
        config: Classifier configuration (strict batch configuration by default)
        save: Persist the run and its pairs

    Returns:
        AnalysisResult with pairs, groups and summary counts
    """
    cfg = config or batch_analysis_config()
    with span("analysis_service.run_analysis"):
        records = await fetch_all(store)
        loaded = [MaintenanceTask.from_vector(r.id, r.values, r.metadata) for r in records]
        selected = _select_tasks(loaded, scope_id=scope_id, system_filter=system_filter)

        comparable = [t for t in selected if t.embedding]
        skipped = [t.id for t in selected if not t.embedding]
        if skipped:
            logger.warning("Skipping tasks without embeddings", extra={"count": len(skipped)})

        logger.info(
            "Starting duplicate analysis",
            extra={"loaded": len(loaded), "selected": len(comparable), "scope_id": scope_id, "config": cfg.name},
        )

        pairs, reasons, comparisons = compare_all(comparable, config=cfg)
        groups = grouping_service.group(pairs)

        result = AnalysisResult(
            total_tasks=len(comparable),
            comparisons=comparisons,
            skipped_tasks=skipped,
            pairs=pairs,
            groups=groups,
            reason_counts=dict(reasons),
        )

        if save:
            result.analysis_id = await review_service.create_analysis_run(
                total_tasks=result.total_tasks,
                duplicate_pairs_found=len(pairs),
                duplicate_groups_found=len(groups),
                thresholds=cfg.thresholds(),
                filters={"source": cfg.name, "scope_id": scope_id, "system_filter": system_filter},
            )
            result.pairs_saved = await review_service.bulk_save_pairs(analysis_id=result.analysis_id, pairs=pairs)

        logger.info(
            "Duplicate analysis complete",
            extra={
                "analysis_id": result.analysis_id,
                "pairs": len(pairs),
                "groups": len(groups),
                "reduction_percent": result.reduction_percent,
            },
        )
        return result
