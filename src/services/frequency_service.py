"""Frequency normalisation and comparison for maintenance task recurrences."""

import logging
from typing import Final

from src.core.config import Constants
from src.domain.task import FrequencyBasis, FrequencyUnit, MaintenanceTask, TaskSnapshot


logger = logging.getLogger(__name__)


class _ConditionSentinel:
    """Marker for recurrences that are triggered rather than scheduled."""

    _instance: "_ConditionSentinel | None" = None

    def __new__(cls) -> "_ConditionSentinel":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CONDITION"


CONDITION: Final = _ConditionSentinel()

NormalizedFrequency = float | _ConditionSentinel | None

HOURS_PER_UNIT: Final[dict[FrequencyUnit, float]] = {
    FrequencyUnit.HOURS: 1.0,
    FrequencyUnit.DAYS: Constants.HOURS_PER_DAY,
    FrequencyUnit.WEEKS: Constants.HOURS_PER_WEEK,
    FrequencyUnit.MONTHS: Constants.HOURS_PER_MONTH,
    FrequencyUnit.YEARS: Constants.HOURS_PER_YEAR,
}

TRIGGERED_BASES: Final = frozenset({FrequencyBasis.EVENT, FrequencyBasis.CONDITION})


def to_hours(value: float | None, unit: FrequencyUnit | None) -> float | None:
    """Convert a value/unit pair to hours, or None when the unit has no fixed length."""
    if value is None or unit is None:
        return None
    multiplier = HOURS_PER_UNIT.get(unit)
    if multiplier is None:
        return None
    return float(value) * multiplier


def normalize(task: MaintenanceTask | TaskSnapshot) -> NormalizedFrequency:
    """Reduce a task's recurrence to comparable hours.

    Returns:
        Hours for calendar/usage schedules (and unknown-basis tasks that still
        carry a convertible value), ``CONDITION`` for condition-based or
        event-triggered tasks, and None when nothing comparable is known
    """
    if task.frequency_unit == FrequencyUnit.CONDITION_BASED or task.frequency_basis in TRIGGERED_BASES:
        return CONDITION
    return to_hours(task.frequency_value, task.frequency_unit)


def frequency_hours(task: MaintenanceTask | TaskSnapshot) -> float | None:
    """Numeric hours for storage; triggered and unknown recurrences become None."""
    normalized = normalize(task)
    return normalized if isinstance(normalized, float) else None


def default_tolerance(hours_a: float, hours_b: float) -> float:
    """Tolerance band chosen by the average magnitude of the two intervals."""
    average = (hours_a + hours_b) / 2
    if average <= Constants.TIGHT_BAND_MAX_HOURS:
        return Constants.TIGHT_TOLERANCE
    if average <= Constants.MEDIUM_BAND_MAX_HOURS:
        return Constants.MEDIUM_TOLERANCE
    return Constants.LOOSE_TOLERANCE


def frequencies_similar(
    hours_a: NormalizedFrequency,
    hours_b: NormalizedFrequency,
    tolerance: float | None = None,
) -> bool:
    """Decide whether two normalised frequencies describe the same interval.

    Two condition sentinels always agree; a sentinel never agrees with a
    number; a missing value never agrees with anything.
    """
    if hours_a is CONDITION and hours_b is CONDITION:
        return True
    if hours_a is None or hours_b is None:
        return False
    if hours_a is CONDITION or hours_b is CONDITION:
        return False

    a = float(hours_a)  # type: ignore[arg-type]
    b = float(hours_b)  # type: ignore[arg-type]
    average = (a + b) / 2
    if average == 0:
        return a == b

    limit = tolerance if tolerance is not None else default_tolerance(a, b)
    return abs(a - b) / average <= limit


def tasks_frequencies_similar(task_a: MaintenanceTask | TaskSnapshot, task_b: MaintenanceTask | TaskSnapshot) -> bool:
    """Compare the recurrences of two tasks, tightening tolerance for unknown bases."""
    hours_a = normalize(task_a)
    hours_b = normalize(task_b)

    tolerance = None
    if FrequencyBasis.UNKNOWN in (task_a.frequency_basis, task_b.frequency_basis):
        tolerance = Constants.STRICT_TOLERANCE

    similar = frequencies_similar(hours_a, hours_b, tolerance)
    logger.debug(
        "Compared frequencies",
        extra={
            "task_a": task_a.id,
            "task_b": task_b.id,
            "hours_a": repr(hours_a),
            "hours_b": repr(hours_b),
            "similar": similar,
        },
    )
    return similar
