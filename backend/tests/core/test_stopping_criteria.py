"""
Tests for per-dimension stopping rules.

Tests cover:
- Each stopping criterion independently
- Evaluation order when several criteria hold
- Minimum-item floor on the precision rule
- Configurable threshold overrides
- Monotonicity of a resolved dimension
- Input validation
"""

import math

import pytest

from libs.domain_types import StopReason
from portal.core.assessment.stopping_rules import (
    MAX_ITEMS_PER_DIMENSION,
    MIN_ITEMS_PER_DIMENSION,
    PRECISION_THRESHOLD,
    check_stopping_criteria,
)


class TestDefaults:
    def test_default_configuration(self):
        assert PRECISION_THRESHOLD == 0.30
        assert MIN_ITEMS_PER_DIMENSION == 5
        assert MAX_ITEMS_PER_DIMENSION == 10


class TestPrecisionRule:
    """SE at or below the threshold stops only after the minimum items."""

    def test_precise_but_below_min_items_continues(self):
        result = check_stopping_criteria(
            se=0.10, num_items=MIN_ITEMS_PER_DIMENSION - 1, items_remaining=5
        )
        assert result.should_stop is False
        assert result.reason is None
        assert result.details["min_items_met"] is False

    def test_precise_at_min_items_stops(self):
        result = check_stopping_criteria(
            se=0.25, num_items=MIN_ITEMS_PER_DIMENSION, items_remaining=5
        )
        assert result.should_stop is True
        assert result.reason is StopReason.SE_THRESHOLD

    def test_se_exactly_at_threshold_stops(self):
        result = check_stopping_criteria(
            se=PRECISION_THRESHOLD, num_items=6, items_remaining=2
        )
        assert result.reason is StopReason.SE_THRESHOLD

    def test_imprecise_continues(self):
        result = check_stopping_criteria(se=0.45, num_items=7, items_remaining=3)
        assert result.should_stop is False

    def test_infinite_se_continues(self):
        result = check_stopping_criteria(se=math.inf, num_items=0, items_remaining=5)
        assert result.should_stop is False


class TestMaximumItems:
    """The item cap stops regardless of precision."""

    def test_cap_stops_with_poor_precision(self):
        result = check_stopping_criteria(
            se=0.9, num_items=MAX_ITEMS_PER_DIMENSION, items_remaining=2
        )
        assert result.should_stop is True
        assert result.reason is StopReason.MAX_ITEMS
        assert result.details["at_max_items"] is True

    def test_cap_wins_over_precision(self):
        result = check_stopping_criteria(
            se=0.1, num_items=MAX_ITEMS_PER_DIMENSION, items_remaining=2
        )
        assert result.reason is StopReason.MAX_ITEMS

    def test_below_cap_continues(self):
        result = check_stopping_criteria(
            se=0.9, num_items=MAX_ITEMS_PER_DIMENSION - 1, items_remaining=2
        )
        assert result.should_stop is False


class TestExhaustion:
    """An empty pool stops the dimension before any other rule."""

    def test_no_items_remaining_stops(self):
        result = check_stopping_criteria(se=2.0, num_items=3, items_remaining=0)
        assert result.should_stop is True
        assert result.reason is StopReason.EXHAUSTED

    def test_exhaustion_wins_over_cap(self):
        result = check_stopping_criteria(
            se=0.1, num_items=MAX_ITEMS_PER_DIMENSION, items_remaining=0
        )
        assert result.reason is StopReason.EXHAUSTED


class TestOverrides:
    """Thresholds are parameters, not hardcoded."""

    def test_custom_precision_threshold(self):
        result = check_stopping_criteria(
            se=0.45, num_items=6, items_remaining=4, precision_threshold=0.5
        )
        assert result.reason is StopReason.SE_THRESHOLD

    def test_custom_item_limits(self):
        early = check_stopping_criteria(
            se=0.2, num_items=2, items_remaining=4, min_items=2, max_items=3
        )
        assert early.reason is StopReason.SE_THRESHOLD

        capped = check_stopping_criteria(
            se=0.9, num_items=3, items_remaining=4, min_items=2, max_items=3
        )
        assert capped.reason is StopReason.MAX_ITEMS


class TestMonotonicity:
    """Once stopped, more items never un-stop a dimension."""

    def test_stays_stopped_for_larger_histories(self):
        for num_items in range(MAX_ITEMS_PER_DIMENSION, MAX_ITEMS_PER_DIMENSION + 5):
            result = check_stopping_criteria(
                se=1.0, num_items=num_items, items_remaining=1
            )
            assert result.should_stop is True

    def test_stays_stopped_once_exhausted(self):
        for num_items in (5, 8, 12):
            assert check_stopping_criteria(
                se=1.0, num_items=num_items, items_remaining=0
            ).should_stop


class TestValidation:
    def test_negative_se(self):
        with pytest.raises(ValueError, match="Standard error"):
            check_stopping_criteria(se=-0.1, num_items=1, items_remaining=1)

    def test_negative_num_items(self):
        with pytest.raises(ValueError, match="Number of items"):
            check_stopping_criteria(se=0.5, num_items=-1, items_remaining=1)

    def test_negative_items_remaining(self):
        with pytest.raises(ValueError, match="Remaining items"):
            check_stopping_criteria(se=0.5, num_items=1, items_remaining=-1)
