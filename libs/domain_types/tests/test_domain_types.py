"""Tests for shared domain types package."""

import json

from libs.domain_types import (
    CANONICAL_DIMENSION_ORDER,
    Dimension,
    PreferenceClarity,
    SessionState,
    SessionStatus,
    StopReason,
)


class TestDimension:
    """Tests for Dimension enum."""

    def test_values(self):
        assert [d.value for d in Dimension] == ["EI", "SN", "TF", "JP"]

    def test_poles(self):
        assert Dimension.EI.poles == ("E", "I")
        assert Dimension.SN.poles == ("S", "N")
        assert Dimension.TF.poles == ("T", "F")
        assert Dimension.JP.poles == ("J", "P")

    def test_first_and_second_pole(self):
        assert Dimension.TF.first_pole == "T"
        assert Dimension.TF.second_pole == "F"

    def test_has_pole(self):
        assert Dimension.SN.has_pole("N")
        assert not Dimension.SN.has_pole("E")

    def test_labels(self):
        assert Dimension.EI.label == "Energy Orientation"
        assert Dimension.JP.label == "Lifestyle"

    def test_str_mixin(self):
        assert Dimension("SN") == Dimension.SN

    def test_json_serializable(self):
        assert json.dumps(Dimension.EI) == '"EI"'

    def test_canonical_order_covers_all(self):
        assert set(CANONICAL_DIMENSION_ORDER) == set(Dimension)
        assert len(CANONICAL_DIMENSION_ORDER) == 4


class TestSessionEnums:
    """Tests for session state and status enums."""

    def test_session_states(self):
        assert {s.value for s in SessionState} == {
            "not_started",
            "in_progress",
            "switching_dimension",
            "complete",
        }

    def test_session_status(self):
        assert SessionStatus.IN_PROGRESS.value == "in_progress"
        assert SessionStatus.COMPLETE.value == "complete"
        assert len(SessionStatus) == 2


class TestStopReason:
    """Tests for StopReason enum."""

    def test_values(self):
        assert StopReason.SE_THRESHOLD.value == "se_threshold"
        assert StopReason.MAX_ITEMS.value == "max_items"
        assert StopReason.EXHAUSTED.value == "exhausted"


class TestPreferenceClarity:
    """Tests for PreferenceClarity enum."""

    def test_count(self):
        assert len(PreferenceClarity) == 5

    def test_json_serializable(self):
        assert json.dumps(PreferenceClarity.VERY_CLEAR) == '"very_clear"'
