"""
Response validity checks for completed assessments.

Screens a respondent's answers for signs that the profile may not reflect
genuine preferences:

    - Response time: answers given too fast (not read) or too slow (distracted)
    - Consistency: how often answers agree with the response model's
      prediction at the respondent's estimated position (person fit)
    - Social desirability: systematic agreement with statements flagged as
      carrying a high social-desirability risk
    - Patterns: uniform or strictly alternating answers

Validity is advisory. It is attached to the profile for reviewers and never
blocks completion or alters the type code.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from portal.core.assessment.ability_estimation import probability_pole_a
from portal.core.assessment.item_bank import PsychometricItem

logger = logging.getLogger(__name__)

# Flag a timing problem when more than this share of answers is out of range
TIMING_FLAG_RATE = 0.2

# Timing is invalid once this share of answers is out of range
TIMING_INVALID_RATE = 0.3

# Predictions within this distance of p = 0.5 accept either answer
CONSISTENCY_UNCERTAINTY_RANGE = 0.2

MIN_RESPONSES_FOR_CONSISTENCY = 3

# Flag when more than this share of high-risk items was endorsed
SOCIAL_DESIRABILITY_RATE = 0.7

MIN_RESPONSES_FOR_PATTERNS = 5

ALTERNATING_RATE = 0.8

HIGH_RISK = "high"


class ScoredResponse(Protocol):
    """What validity checks need to know about one recorded answer."""

    @property
    def item_id(self) -> str:
        ...

    @property
    def score(self) -> float:
        ...

    @property
    def theta_after(self) -> float:
        ...

    @property
    def response_time_ms(self) -> Optional[int]:
        ...


@dataclass(frozen=True)
class AssessmentValidity:
    """
    Outcome of the validity screen.

    Attributes:
        is_valid: Timing valid, consistency at or above threshold, and no
            social-desirability flag.
        consistency_score: Share of answers agreeing with the model (0-1).
        response_time_valid: Fewer than 30% of timed answers out of range.
        social_desirability_ok: No systematic endorsement of high-risk items.
        flags: Machine-readable warning codes.
    """

    is_valid: bool
    consistency_score: float
    response_time_valid: bool
    social_desirability_ok: bool
    flags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "consistency_score": self.consistency_score,
            "response_time_valid": self.response_time_valid,
            "social_desirability_ok": self.social_desirability_ok,
            "flags": list(self.flags),
        }


def check_validity(
    responses: Sequence[ScoredResponse],
    items_by_id: Mapping[str, PsychometricItem],
    min_response_time_ms: int = 500,
    max_response_time_ms: int = 30000,
    consistency_threshold: float = 0.6,
) -> AssessmentValidity:
    """
    Run every validity check over a respondent's answers.

    Args:
        responses: All answers of the session, in the order given.
        items_by_id: Item lookup for the answered items.
        min_response_time_ms: Faster answers count as too fast.
        max_response_time_ms: Slower answers count as too slow.
        consistency_threshold: Minimum acceptable consistency score.

    Returns:
        AssessmentValidity with the combined verdict and flags.
    """
    flags: List[str] = []

    response_time_valid = _check_response_times(
        responses, min_response_time_ms, max_response_time_ms, flags
    )

    consistency_score = calculate_consistency(responses, items_by_id)
    if consistency_score < consistency_threshold:
        flags.append("low_consistency")

    social_desirability_ok = _check_social_desirability(responses, items_by_id, flags)

    _check_response_patterns(responses, flags)

    validity = AssessmentValidity(
        is_valid=(
            response_time_valid
            and consistency_score >= consistency_threshold
            and social_desirability_ok
        ),
        consistency_score=consistency_score,
        response_time_valid=response_time_valid,
        social_desirability_ok=social_desirability_ok,
        flags=flags,
    )
    if flags:
        logger.info(f"Validity flags raised: {', '.join(flags)}")
    return validity


def calculate_consistency(
    responses: Sequence[ScoredResponse],
    items_by_id: Mapping[str, PsychometricItem],
) -> float:
    """
    Share of answers that agree with the model's expected direction.

    The expected direction comes from the item's probability at the theta
    estimated right after the answer. Items whose prediction is close to a
    coin flip accept either answer.
    """
    if len(responses) < MIN_RESPONSES_FOR_CONSISTENCY:
        return 1.0

    matches = 0
    for response in responses:
        item = items_by_id.get(response.item_id)
        if item is None:
            continue

        p = probability_pole_a(response.theta_after, item.discrimination, item.location)
        if abs(p - 0.5) < CONSISTENCY_UNCERTAINTY_RANGE:
            matches += 1
            continue

        expected_first_pole = p > 0.5
        if response.score == 0.5 or (response.score > 0.5) == expected_first_pole:
            matches += 1

    return matches / len(responses)


def _check_response_times(
    responses: Sequence[ScoredResponse],
    min_response_time_ms: int,
    max_response_time_ms: int,
    flags: List[str],
) -> bool:
    timed = [r.response_time_ms for r in responses if r.response_time_ms is not None]
    if not timed:
        return True

    too_fast = sum(1 for t in timed if t < min_response_time_ms)
    too_slow = sum(1 for t in timed if t > max_response_time_ms)

    if too_fast / len(timed) > TIMING_FLAG_RATE:
        flags.append("too_fast_responses")
    if too_slow / len(timed) > TIMING_FLAG_RATE:
        flags.append("too_slow_responses")

    return (too_fast + too_slow) / len(timed) < TIMING_INVALID_RATE


def _check_social_desirability(
    responses: Sequence[ScoredResponse],
    items_by_id: Mapping[str, PsychometricItem],
    flags: List[str],
) -> bool:
    high_risk_items = 0
    endorsed = 0
    for response in responses:
        item = items_by_id.get(response.item_id)
        if item is None or item.metadata.get("social_desirability_risk") != HIGH_RISK:
            continue
        high_risk_items += 1
        if _agreement(response.score, item) > 0.5:
            endorsed += 1

    if high_risk_items and endorsed / high_risk_items > SOCIAL_DESIRABILITY_RATE:
        flags.append("possible_social_desirability")
        return False
    return True


def _check_response_patterns(
    responses: Sequence[ScoredResponse], flags: List[str]
) -> None:
    if len(responses) < MIN_RESPONSES_FOR_PATTERNS:
        return

    scores = [r.score for r in responses]
    if len(set(scores)) == 1:
        flags.append("uniform_responses")
        return

    switches = sum(1 for prev, cur in zip(scores, scores[1:]) if prev != cur)
    if switches / (len(scores) - 1) > ALTERNATING_RATE:
        flags.append("alternating_pattern")


def _agreement(score: float, item: PsychometricItem) -> float:
    # score leans toward the first pole; flip it for reverse-keyed items
    return score if item.direction > 0 else 1.0 - score
