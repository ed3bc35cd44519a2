"""
Mapping of final dimension estimates to a cognitive profile.

Theta is oriented so that positive values lean toward a dimension's first
pole (E, S, T, J) and negative values toward its second pole (I, N, F, P).
A theta of exactly zero resolves to the first pole.

The profile carries, per dimension, the resolved pole, a confidence value
derived from theta magnitude and standard error, a verbal clarity band and a
0-100 strength score. Across dimensions it carries the four-letter type code,
a probability for each of the 16 types, and the cognitive function stack of
the resolved type.
"""

import itertools
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from scipy.stats import norm

from libs.domain_types import (
    CANONICAL_DIMENSION_ORDER,
    Dimension,
    PreferenceClarity,
    StopReason,
)

from portal.core.assessment.validity import AssessmentValidity

# Clarity bands on |theta|, strongest first
CLARITY_BANDS: Tuple[Tuple[float, PreferenceClarity], ...] = (
    (1.5, PreferenceClarity.VERY_CLEAR),
    (1.0, PreferenceClarity.CLEAR),
    (0.5, PreferenceClarity.MODERATE),
    (0.25, PreferenceClarity.SLIGHT),
)

# |theta| of 3 maps to the end of the 0-100 strength scale
SCORE_PER_THETA = 16.67

# Floor on per-dimension match probability before taking logs
MIN_DIMENSION_PROBABILITY = 0.001

ALL_TYPES: Tuple[str, ...] = tuple(
    "".join(letters)
    for letters in itertools.product(*(d.poles for d in CANONICAL_DIMENSION_ORDER))
)

FUNCTION_STACKS: Dict[str, Dict[str, Any]] = {
    "INTJ": {
        "dominant": "Ni",
        "auxiliary": "Te",
        "tertiary": "Fi",
        "inferior": "Se",
        "shadow": ("Ne", "Ti", "Fe", "Si"),
    },
    "INTP": {
        "dominant": "Ti",
        "auxiliary": "Ne",
        "tertiary": "Si",
        "inferior": "Fe",
        "shadow": ("Te", "Ni", "Se", "Fi"),
    },
    "ENTJ": {
        "dominant": "Te",
        "auxiliary": "Ni",
        "tertiary": "Se",
        "inferior": "Fi",
        "shadow": ("Ti", "Ne", "Si", "Fe"),
    },
    "ENTP": {
        "dominant": "Ne",
        "auxiliary": "Ti",
        "tertiary": "Fe",
        "inferior": "Si",
        "shadow": ("Ni", "Te", "Fi", "Se"),
    },
    "INFJ": {
        "dominant": "Ni",
        "auxiliary": "Fe",
        "tertiary": "Ti",
        "inferior": "Se",
        "shadow": ("Ne", "Fi", "Te", "Si"),
    },
    "INFP": {
        "dominant": "Fi",
        "auxiliary": "Ne",
        "tertiary": "Si",
        "inferior": "Te",
        "shadow": ("Fe", "Ni", "Se", "Ti"),
    },
    "ENFJ": {
        "dominant": "Fe",
        "auxiliary": "Ni",
        "tertiary": "Se",
        "inferior": "Ti",
        "shadow": ("Fi", "Ne", "Si", "Te"),
    },
    "ENFP": {
        "dominant": "Ne",
        "auxiliary": "Fi",
        "tertiary": "Te",
        "inferior": "Si",
        "shadow": ("Ni", "Fe", "Ti", "Se"),
    },
    "ISTJ": {
        "dominant": "Si",
        "auxiliary": "Te",
        "tertiary": "Fi",
        "inferior": "Ne",
        "shadow": ("Se", "Ti", "Fe", "Ni"),
    },
    "ISFJ": {
        "dominant": "Si",
        "auxiliary": "Fe",
        "tertiary": "Ti",
        "inferior": "Ne",
        "shadow": ("Se", "Fi", "Te", "Ni"),
    },
    "ESTJ": {
        "dominant": "Te",
        "auxiliary": "Si",
        "tertiary": "Ne",
        "inferior": "Fi",
        "shadow": ("Ti", "Se", "Ni", "Fe"),
    },
    "ESFJ": {
        "dominant": "Fe",
        "auxiliary": "Si",
        "tertiary": "Ne",
        "inferior": "Ti",
        "shadow": ("Fi", "Se", "Ni", "Te"),
    },
    "ISTP": {
        "dominant": "Ti",
        "auxiliary": "Se",
        "tertiary": "Ni",
        "inferior": "Fe",
        "shadow": ("Te", "Si", "Ne", "Fi"),
    },
    "ISFP": {
        "dominant": "Fi",
        "auxiliary": "Se",
        "tertiary": "Ni",
        "inferior": "Te",
        "shadow": ("Fe", "Si", "Ne", "Ti"),
    },
    "ESTP": {
        "dominant": "Se",
        "auxiliary": "Ti",
        "tertiary": "Fe",
        "inferior": "Ni",
        "shadow": ("Si", "Te", "Fi", "Ne"),
    },
    "ESFP": {
        "dominant": "Se",
        "auxiliary": "Fi",
        "tertiary": "Te",
        "inferior": "Ni",
        "shadow": ("Si", "Fe", "Ti", "Ne"),
    },
}

# Base development score per stack position
_POSITION_SCORES = {"dominant": 85, "auxiliary": 70, "tertiary": 40, "inferior": 25}
_SHADOW_SCORES = (20, 15, 15, 10)

_CLARITY_ADJUSTMENTS = {
    PreferenceClarity.VERY_CLEAR: 10,
    PreferenceClarity.CLEAR: 5,
    PreferenceClarity.MODERATE: 0,
    PreferenceClarity.SLIGHT: -5,
    PreferenceClarity.UNCLEAR: -10,
}


def theta_to_preference(theta: float, dimension: Dimension) -> str:
    """Resolve theta to a pole; ties (theta == 0) go to the first pole."""
    return dimension.first_pole if theta >= 0 else dimension.second_pole


def calculate_confidence(theta: float, standard_error: float) -> float:
    """
    Confidence in the resolved pole: |theta| / (|theta| + SE), in [0, 1].

    Returns 0.0 when SE is infinite (no data) or both terms are zero.
    """
    if math.isinf(standard_error) or math.isnan(standard_error):
        return 0.0
    magnitude = abs(theta)
    denominator = magnitude + standard_error
    if denominator <= 0:
        return 0.0
    return max(0.0, min(1.0, magnitude / denominator))


def preference_clarity(abs_theta: float) -> PreferenceClarity:
    """Map theta magnitude to a verbal clarity band."""
    for threshold, clarity in CLARITY_BANDS:
        if abs_theta >= threshold:
            return clarity
    return PreferenceClarity.UNCLEAR


def preference_score(theta: float) -> int:
    """
    Strength toward the first pole on a 0-100 scale (50 = balanced).

    100 is an extreme first-pole preference, 0 an extreme second-pole one.
    """
    sign = 1 if theta >= 0 else -1
    return int(round(50 + sign * min(abs(theta) * SCORE_PER_THETA, 50)))


@dataclass(frozen=True)
class DimensionResult:
    """Resolved outcome for one dimension."""

    dimension: Dimension
    preference: str
    theta: float
    standard_error: float
    confidence: float
    clarity: PreferenceClarity
    score: int
    items_administered: int
    stop_reason: Optional[StopReason] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension.value,
            "preference": self.preference,
            "theta": self.theta,
            "standard_error": (
                None if math.isinf(self.standard_error) else self.standard_error
            ),
            "confidence": self.confidence,
            "clarity": self.clarity.value,
            "score": self.score,
            "items_administered": self.items_administered,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
        }


@dataclass(frozen=True)
class CognitiveProfile:
    """Read-only summary of a completed assessment session."""

    session_id: str
    respondent_id: str
    type_code: str
    dimensions: Tuple[DimensionResult, ...]
    overall_confidence: float
    type_probabilities: Tuple[Tuple[str, float], ...]
    function_stack: Dict[str, Any]
    total_items: int
    completed_at: datetime
    validity: Optional[AssessmentValidity] = None
    algorithm: str = "adaptive_irt_mle"

    def dimension(self, dimension: Dimension) -> DimensionResult:
        for result in self.dimensions:
            if result.dimension is dimension:
                return result
        raise KeyError(dimension)

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation handed to the persistence layer."""
        return {
            "session_id": self.session_id,
            "respondent_id": self.respondent_id,
            "type_code": self.type_code,
            "dimensions": [d.to_dict() for d in self.dimensions],
            "overall_confidence": self.overall_confidence,
            "type_probabilities": [
                {"type": code, "probability": p} for code, p in self.type_probabilities
            ],
            "function_stack": self.function_stack,
            "validity": self.validity.to_dict() if self.validity else None,
            "total_items": self.total_items,
            "completed_at": self.completed_at.isoformat(),
            "algorithm": self.algorithm,
        }


def build_dimension_result(
    dimension: Dimension,
    theta: Optional[float],
    standard_error: float,
    items_administered: int,
    stop_reason: Optional[StopReason] = None,
) -> DimensionResult:
    """Resolve one dimension's final estimate; an undefined theta counts as 0."""
    value = 0.0 if theta is None else theta
    return DimensionResult(
        dimension=dimension,
        preference=theta_to_preference(value, dimension),
        theta=value,
        standard_error=standard_error,
        confidence=calculate_confidence(value, standard_error),
        clarity=preference_clarity(abs(value)),
        score=preference_score(value),
        items_administered=items_administered,
        stop_reason=stop_reason,
    )


def type_code_for(results: Sequence[DimensionResult]) -> str:
    """Concatenate poles in canonical E/I, S/N, T/F, J/P order."""
    by_dimension = {r.dimension: r for r in results}
    return "".join(by_dimension[d].preference for d in CANONICAL_DIMENSION_ORDER)


def calculate_type_probabilities(
    results: Sequence[DimensionResult],
) -> List[Tuple[str, float]]:
    """
    Probability of each of the 16 types given the dimension estimates.

    Each dimension contributes Phi(sign * theta / SE), the normal-CDF
    probability that the true position lies on the type's side. The products
    are normalized to sum to 1 and sorted descending (ties by type code).
    """
    by_dimension = {r.dimension: r for r in results}

    raw: List[Tuple[str, float]] = []
    for code in ALL_TYPES:
        log_prob = 0.0
        for letter, dimension in zip(code, CANONICAL_DIMENSION_ORDER):
            result = by_dimension[dimension]
            sign = 1.0 if letter == dimension.first_pole else -1.0
            prob = _side_probability(sign * result.theta, result.standard_error)
            log_prob += math.log(max(prob, MIN_DIMENSION_PROBABILITY))
        raw.append((code, math.exp(log_prob)))

    total = sum(p for _, p in raw)
    normalized = [(code, p / total) for code, p in raw]
    normalized.sort(key=lambda pair: (-pair[1], pair[0]))
    return normalized


def calculate_function_stack(
    type_code: str, results: Sequence[DimensionResult]
) -> Dict[str, Any]:
    """
    Cognitive function stack of a type with development scores.

    Positional base scores are adjusted by the clarity of the S/N preference
    (perceiving functions) and the T/F preference (judging functions).
    """
    stack = FUNCTION_STACKS[type_code]
    by_dimension = {r.dimension: r for r in results}
    perceiving_adjust = _CLARITY_ADJUSTMENTS[by_dimension[Dimension.SN].clarity]
    judging_adjust = _CLARITY_ADJUSTMENTS[by_dimension[Dimension.TF].clarity]

    def adjusted(function: str, base: int, leading: bool) -> int:
        if not leading:
            return base
        if function[0] in ("N", "S"):
            return base + perceiving_adjust
        return base + judging_adjust

    functions: Dict[str, Any] = {}
    for position, base in _POSITION_SCORES.items():
        function = stack[position]
        functions[position] = {
            "function": function,
            "score": adjusted(function, base, position in ("dominant", "auxiliary")),
        }
    functions["shadow"] = [
        {"function": function, "score": base}
        for function, base in zip(stack["shadow"], _SHADOW_SCORES)
    ]
    return functions


def build_profile(
    session_id: str,
    respondent_id: str,
    dimension_results: Sequence[DimensionResult],
    completed_at: datetime,
    validity: Optional[AssessmentValidity] = None,
) -> CognitiveProfile:
    """
    Assemble the final profile.

    Args:
        session_id: Completed session id.
        respondent_id: Respondent the profile belongs to.
        dimension_results: One result per dimension, in administration order.
        completed_at: Completion timestamp.
        validity: Optional validity screen outcome.
    """
    type_code = type_code_for(dimension_results)
    confidences = [r.confidence for r in dimension_results]

    return CognitiveProfile(
        session_id=session_id,
        respondent_id=respondent_id,
        type_code=type_code,
        dimensions=tuple(dimension_results),
        overall_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        type_probabilities=tuple(calculate_type_probabilities(dimension_results)),
        function_stack=calculate_function_stack(type_code, dimension_results),
        total_items=sum(r.items_administered for r in dimension_results),
        completed_at=completed_at,
        validity=validity,
    )


def _side_probability(signed_theta: float, standard_error: float) -> float:
    if math.isinf(standard_error) or standard_error <= 0:
        if standard_error <= 0 and signed_theta != 0:
            return 1.0 if signed_theta > 0 else 0.0
        return 0.5
    return float(norm.cdf(signed_theta / standard_error))
