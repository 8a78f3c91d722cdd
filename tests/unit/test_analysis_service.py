"""Unit tests for the batch pairwise analysis."""

import pytest

from src.domain.task import FrequencyBasis, FrequencyUnit, TaskReviewStatus
from src.services import analysis_service, review_service
from src.services.classifier_service import batch_analysis_config, live_insert_config
from tests.conftest import make_task, unit_vector, vector_with_similarity


def _seed(store, task, *, review_status: str | None = None) -> None:
    metadata = task.to_metadata(frequency_hours=500.0)
    if review_status:
        metadata["review_status"] = review_status
    store.add(task.id, task.embedding or [], **metadata)


@pytest.fixture
def fleet(vector_store):
    """Two scopes: a near-duplicate pair and a distinct task in asset-1, a lone task in asset-2."""
    _seed(vector_store, make_task("task-1", "Replace fuel filter"))
    _seed(vector_store, make_task("task-2", "Change fuel filter", embedding=vector_with_similarity(0.95)))
    _seed(
        vector_store,
        make_task("task-3", "Inspect hull anodes", task_type="visual_inspection", embedding=unit_vector(0.0, 0.0, 1.0)),
    )
    _seed(
        vector_store,
        make_task("task-4", "Replace fuel filter", scope_id="asset-2", system_name="Generator"),
    )
    return vector_store


@pytest.mark.unit
class TestRunAnalysis:
    """Tests for run_analysis()."""

    async def test_finds_pairs_within_scope_only(self, patched_db, fleet):
        """Test identical tasks in different scopes are never paired."""
        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert result.total_tasks == 4
        assert result.comparisons == 3
        assert [(p.task_a.id, p.task_b.id) for p in result.pairs] == [("task-1", "task-2")]

    async def test_groups_and_reduction(self, patched_db, fleet):
        """Test groups collapse to primaries and the reduction is computed."""
        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert len(result.groups) == 1
        assert result.groups[0].task_ids == ["task-1", "task-2"]
        assert result.total_duplicates == 1
        assert result.unique_tasks == 3
        assert result.reduction_percent == 25.0

    async def test_reason_counts_cover_every_comparison(self, patched_db, fleet):
        """Test reasons are tallied for duplicates and non-duplicates alike."""
        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert sum(result.reason_counts.values()) == result.comparisons
        assert result.reason_counts["semantic_and_frequency_match"] == 1

    async def test_saves_run_and_pairs(self, patched_db, fleet):
        """Test a saved analysis records its run, thresholds and pairs."""
        result = await analysis_service.run_analysis(store=fleet)

        run = await review_service.get_analysis_by_id(analysis_id=result.analysis_id)
        assert run.total_tasks == 4
        assert run.duplicate_pairs_found == 1
        assert run.duplicate_groups_found == 1
        assert run.thresholds == {"auto_merge": 0.92, "review": 0.85, "compound": 0.80}
        assert run.filters["source"] == "batch_analysis"
        assert result.pairs_saved == 1

        (pair,) = await review_service.get_reviews_by_analysis(analysis_id=result.analysis_id)
        assert pair.review_status == "pending"
        assert pair.task_a.frequency_hours == 500.0

    async def test_save_false_writes_nothing(self, patched_db, fleet):
        """Test a dry analysis leaves the ledger empty."""
        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert result.analysis_id is None
        assert patched_db.all_records("deduplication_analyses") == []
        assert patched_db.all_records("deduplication_reviews") == []

    async def test_scope_filter(self, patched_db, fleet):
        """Test restricting the run to one scope."""
        result = await analysis_service.run_analysis(store=fleet, scope_id="asset-2", save=False)

        assert result.total_tasks == 1
        assert result.comparisons == 0
        assert result.pairs == []

    async def test_system_filter_is_case_insensitive(self, patched_db, fleet):
        """Test the system filter matches part of the system label."""
        result = await analysis_service.run_analysis(store=fleet, system_filter="GENERATOR", save=False)

        assert result.total_tasks == 1

    async def test_hidden_tasks_excluded(self, patched_db, fleet):
        """Test already hidden or invalid tasks take no part."""
        _seed(fleet, make_task("task-5"), review_status=TaskReviewStatus.DUPLICATE_HIDDEN.value)
        _seed(fleet, make_task("task-6"), review_status=TaskReviewStatus.INVALID_TASK.value)

        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert result.total_tasks == 4
        assert all("task-5" not in g.task_ids and "task-6" not in g.task_ids for g in result.groups)

    async def test_tasks_without_embedding_skipped(self, patched_db, fleet):
        """Test vectors without values are reported and left out."""
        fleet.add("task-7", [], description="Orphan", scope_id="asset-1")

        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert result.skipped_tasks == ["task-7"]
        assert result.total_tasks == 4

    async def test_only_prefixed_ids_loaded(self, patched_db, fleet):
        """Test vectors outside the task id prefix are ignored."""
        fleet.add("doc-1", unit_vector(1.0), description="Manual chunk", scope_id="asset-1")

        result = await analysis_service.run_analysis(store=fleet, save=False)

        assert result.total_tasks == 4

    async def test_empty_store(self, patched_db, vector_store):
        """Test an empty store yields an empty result."""
        result = await analysis_service.run_analysis(store=vector_store, save=False)

        assert result.total_tasks == 0
        assert result.reduction_percent == 0.0


@pytest.mark.unit
class TestCompareAll:
    """Tests for compare_all()."""

    def test_batch_config_skips_differing_types(self):
        """Test the strict batch configuration never pairs different task types."""
        tasks = [
            make_task("task-1", task_type="filter_replacement"),
            make_task("task-2", task_type="fluid_check", embedding=vector_with_similarity(0.99)),
        ]

        pairs, reasons, comparisons = analysis_service.compare_all(tasks, config=batch_analysis_config())

        assert pairs == []
        assert comparisons == 1
        assert reasons["different_task_type"] == 1

    def test_live_config_ignores_task_type(self):
        """Test the advisory configuration still pairs differing task types."""
        tasks = [
            make_task("task-1", task_type="filter_replacement"),
            make_task("task-2", task_type="fluid_check", embedding=vector_with_similarity(0.99)),
        ]

        pairs, _, _ = analysis_service.compare_all(tasks, config=live_insert_config())

        assert len(pairs) == 1

    def test_batch_config_skips_differing_basis(self):
        """Test calendar and usage tasks are not compared in batch mode."""
        tasks = [
            make_task("task-1"),
            make_task(
                "task-2",
                frequency_value=3,
                frequency_unit=FrequencyUnit.WEEKS,
                frequency_basis=FrequencyBasis.CALENDAR,
                embedding=vector_with_similarity(0.99),
            ),
        ]

        pairs, reasons, _ = analysis_service.compare_all(tasks, config=batch_analysis_config())

        assert pairs == []
        assert reasons["different_frequency_basis"] == 1
