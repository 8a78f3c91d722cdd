"""Pytest configuration and shared fixtures."""

import logfire
import pytest

from src.domain.task import FrequencyBasis, FrequencyUnit, MaintenanceTask


# Keep Logfire local: no export, no console noise
logfire.configure(send_to_logfire=False, console=False)


def unit_vector(*components: float, dim: int = 8) -> list[float]:
    """Pad the given leading components with zeros up to ``dim``."""
    return [*components, *([0.0] * (dim - len(components)))]


def vector_with_similarity(similarity: float, dim: int = 8) -> list[float]:
    """A vector whose cosine similarity to ``unit_vector(1.0)`` is exactly ``similarity``."""
    return unit_vector(similarity, (1 - similarity**2) ** 0.5, dim=dim)


def make_task(
    task_id: str = "task-1",
    description: str = "Replace fuel filter every 500 hours",
    *,
    scope_id: str = "asset-1",
    system_name: str | None = "Main Engine",
    frequency_value: float | None = 500,
    frequency_unit: FrequencyUnit | None = FrequencyUnit.HOURS,
    frequency_basis: FrequencyBasis = FrequencyBasis.USAGE,
    task_type: str | None = "filter_replacement",
    embedding: list[float] | None = None,
) -> MaintenanceTask:
    """Build a maintenance task with sensible defaults."""
    return MaintenanceTask(
        id=task_id,
        description=description,
        scope_id=scope_id,
        system_name=system_name,
        frequency_value=frequency_value,
        frequency_unit=frequency_unit,
        frequency_basis=frequency_basis,
        task_type=task_type,
        embedding=embedding if embedding is not None else unit_vector(1.0),
    )


@pytest.fixture
def task_factory():
    """Returns the make_task helper."""
    return make_task
