"""Shared domain types for the transformation portal services.

This package is the single source of truth for the psychometric enums used by
the assessment engine, the API schemas, and the persistence hand-off.

Usage:
    from libs.domain_types import Dimension, SessionState
"""

import enum
from typing import Tuple


class Dimension(str, enum.Enum):
    """The four bipolar MBTI preference dimensions.

    Each member carries its two poles in canonical order. A positive theta on a
    dimension leans toward the first pole, a negative theta toward the second.
    """

    EI = "EI"  # Energy orientation
    SN = "SN"  # Information gathering
    TF = "TF"  # Decision making
    JP = "JP"  # Lifestyle

    @property
    def poles(self) -> Tuple[str, str]:
        return (self.value[0], self.value[1])

    @property
    def first_pole(self) -> str:
        return self.value[0]

    @property
    def second_pole(self) -> str:
        return self.value[1]

    @property
    def label(self) -> str:
        return _DIMENSION_LABELS[self]

    def has_pole(self, pole: str) -> bool:
        return pole in self.poles


_DIMENSION_LABELS = {
    Dimension.EI: "Energy Orientation",
    Dimension.SN: "Information Gathering",
    Dimension.TF: "Decision Making",
    Dimension.JP: "Lifestyle",
}

# Canonical letter order of a four-letter type code.
CANONICAL_DIMENSION_ORDER: Tuple[Dimension, ...] = (
    Dimension.EI,
    Dimension.SN,
    Dimension.TF,
    Dimension.JP,
)


class SessionState(str, enum.Enum):
    """Orchestrator state of an adaptive assessment session."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SWITCHING_DIMENSION = "switching_dimension"
    COMPLETE = "complete"


class SessionStatus(str, enum.Enum):
    """Coarse session status exposed to callers and the persistence layer."""

    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class StopReason(str, enum.Enum):
    """Why a dimension stopped administering items."""

    SE_THRESHOLD = "se_threshold"
    MAX_ITEMS = "max_items"
    EXHAUSTED = "exhausted"


class PreferenceClarity(str, enum.Enum):
    """Verbal band for the strength of a resolved preference."""

    VERY_CLEAR = "very_clear"
    CLEAR = "clear"
    MODERATE = "moderate"
    SLIGHT = "slight"
    UNCLEAR = "unclear"


__all__ = [
    "Dimension",
    "CANONICAL_DIMENSION_ORDER",
    "SessionState",
    "SessionStatus",
    "StopReason",
    "PreferenceClarity",
]
