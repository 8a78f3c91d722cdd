"""Unit tests for frequency normalisation and comparison."""

import pytest

from src.domain.task import FrequencyBasis, FrequencyUnit
from src.services.frequency_service import (
    CONDITION,
    frequencies_similar,
    frequency_hours,
    normalize,
    tasks_frequencies_similar,
    to_hours,
)
from tests.conftest import make_task


@pytest.mark.unit
class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize(
        ("value", "unit", "expected"),
        [
            (500, FrequencyUnit.HOURS, 500.0),
            (2, FrequencyUnit.DAYS, 48.0),
            (1, FrequencyUnit.WEEKS, 168.0),
            (6, FrequencyUnit.MONTHS, 4380.0),
            (12, FrequencyUnit.MONTHS, 8760.0),
            (1, FrequencyUnit.YEARS, 8760.0),
        ],
    )
    def test_calendar_units(self, value, unit, expected):
        """Test each fixed-length unit converts to hours."""
        task = make_task(frequency_value=value, frequency_unit=unit, frequency_basis=FrequencyBasis.CALENDAR)

        assert normalize(task) == pytest.approx(expected)

    def test_cycles_not_comparable(self):
        """Test units without a fixed length normalise to None."""
        task = make_task(frequency_value=100, frequency_unit=FrequencyUnit.CYCLES)

        assert normalize(task) is None

    def test_missing_value(self):
        """Test a unit without a value normalises to None."""
        task = make_task(frequency_value=None, frequency_unit=FrequencyUnit.HOURS)

        assert normalize(task) is None

    @pytest.mark.parametrize("basis", [FrequencyBasis.CONDITION, FrequencyBasis.EVENT])
    def test_triggered_basis_is_sentinel(self, basis):
        """Test condition and event tasks normalise to the sentinel, never 0 or None."""
        task = make_task(frequency_value=None, frequency_unit=None, frequency_basis=basis)

        assert normalize(task) is CONDITION

    def test_condition_based_unit_is_sentinel(self):
        """Test the condition_based unit normalises to the sentinel whatever the basis."""
        task = make_task(
            frequency_value=None, frequency_unit=FrequencyUnit.CONDITION_BASED, frequency_basis=FrequencyBasis.UNKNOWN
        )

        assert normalize(task) is CONDITION

    def test_frequency_hours_drops_sentinel(self):
        """Test the stored hours value is None for triggered tasks."""
        task = make_task(frequency_value=None, frequency_unit=None, frequency_basis=FrequencyBasis.CONDITION)

        assert frequency_hours(task) is None

    def test_to_hours_rejects_unknown_unit(self):
        """Test unit conversion never falls through silently."""
        assert to_hours(10, FrequencyUnit.CYCLES) is None


@pytest.mark.unit
class TestFrequenciesSimilar:
    """Tests for frequencies_similar()."""

    def test_equal_hours(self):
        """Test identical intervals match."""
        assert frequencies_similar(500.0, 500.0) is True

    def test_anode_six_vs_twelve_months(self):
        """Test 4380h vs 8760h (66% apart) do not match."""
        assert frequencies_similar(4380.0, 8760.0) is False

    def test_tight_band_for_short_intervals(self):
        """Test intervals under 100h allow 10%."""
        assert frequencies_similar(50.0, 54.0) is True
        assert frequencies_similar(50.0, 57.0) is False

    def test_medium_band(self):
        """Test intervals up to 1000h allow 15%."""
        assert frequencies_similar(500.0, 570.0) is True
        assert frequencies_similar(500.0, 600.0) is False

    def test_loose_band_for_long_intervals(self):
        """Test intervals above 1000h allow 20%."""
        assert frequencies_similar(8760.0, 10000.0) is True
        assert frequencies_similar(8760.0, 12000.0) is False

    def test_explicit_tolerance(self):
        """Test an explicit tolerance overrides the band."""
        assert frequencies_similar(500.0, 530.0, tolerance=0.05) is False

    def test_both_sentinels_match(self):
        """Test two condition-triggered tasks always match."""
        assert frequencies_similar(CONDITION, CONDITION) is True

    def test_sentinel_never_matches_number(self):
        """Test a condition-triggered task never matches a schedule."""
        assert frequencies_similar(CONDITION, 500.0) is False
        assert frequencies_similar(500.0, CONDITION) is False

    def test_none_never_matches(self):
        """Test missing data is never proof of similarity, even against missing data."""
        assert frequencies_similar(None, None) is False
        assert frequencies_similar(None, 500.0) is False
        assert frequencies_similar(CONDITION, None) is False

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            (500.0, 560.0),
            (90.0, 100.0),
            (4380.0, 8760.0),
            (0.0, 0.0),
            (0.0, 5.0),
            (None, 1.0),
            (CONDITION, 24.0),
            (1000.0, 1180.0),
        ],
    )
    def test_symmetric(self, a, b):
        """Test argument order never changes the answer."""
        assert frequencies_similar(a, b) == frequencies_similar(b, a)

    def test_unknown_basis_uses_strict_tolerance(self):
        """Test an unknown-basis task must agree within 5%."""
        known = make_task("a", frequency_value=500, frequency_basis=FrequencyBasis.USAGE)
        close = make_task("b", frequency_value=520, frequency_basis=FrequencyBasis.UNKNOWN)
        farther = make_task("c", frequency_value=560, frequency_basis=FrequencyBasis.UNKNOWN)

        assert tasks_frequencies_similar(known, close) is True
        assert tasks_frequencies_similar(known, farther) is False
        assert tasks_frequencies_similar(farther, known) is False
