"""
Stopping rules for a single dimension of an adaptive assessment.

A dimension stops when any of the following holds, evaluated in this order:
    1. Exhausted: no unadministered item remains for the dimension
    2. Maximum items: the per-dimension item cap has been reached, regardless
       of precision
    3. SE threshold: SE(theta) <= precision threshold AND at least the
       minimum number of items has been administered

The minimum-item floor keeps a single highly informative item from ending a
dimension on one lucky response; the cap keeps a noisy, unconverged
respondent from being questioned indefinitely.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from libs.domain_types import StopReason

logger = logging.getLogger(__name__)

# SE = 0.30 corresponds to reliability ~0.91 (reliability = 1 - SE²)
PRECISION_THRESHOLD = 0.30

MIN_ITEMS_PER_DIMENSION = 5

MAX_ITEMS_PER_DIMENSION = 10


@dataclass
class StoppingDecision:
    """
    Result of evaluating stopping criteria for one dimension.

    Attributes:
        should_stop: Whether the dimension should be closed.
        reason: Why it stopped (if should_stop=True), or None.
        details: Diagnostic information (se, num_items, thresholds, flags).
    """

    should_stop: bool
    reason: Optional[StopReason]
    details: Dict[str, Any]


def check_stopping_criteria(
    se: float,
    num_items: int,
    items_remaining: int,
    precision_threshold: float = PRECISION_THRESHOLD,
    min_items: int = MIN_ITEMS_PER_DIMENSION,
    max_items: int = MAX_ITEMS_PER_DIMENSION,
) -> StoppingDecision:
    """
    Decide whether a dimension has gathered enough information.

    Args:
        se: Current standard error of the dimension's theta (inf with no data).
        num_items: Items administered in the dimension so far.
        items_remaining: Unadministered items left in the dimension's pool.
        precision_threshold: Target SE (default 0.30).
        min_items: Items required before the SE criterion may stop (default 5).
        max_items: Hard per-dimension cap (default 10).

    Returns:
        StoppingDecision with should_stop flag, reason, and diagnostic details.

    Raises:
        ValueError: If se, num_items or items_remaining is negative.
    """
    if se < 0:
        raise ValueError(f"Standard error must be non-negative, got {se}")
    if num_items < 0:
        raise ValueError(f"Number of items must be non-negative, got {num_items}")
    if items_remaining < 0:
        raise ValueError(
            f"Remaining items must be non-negative, got {items_remaining}"
        )

    details: Dict[str, Any] = {
        "se": se,
        "num_items": num_items,
        "items_remaining": items_remaining,
        "precision_threshold": precision_threshold,
        "min_items_met": num_items >= min_items,
        "at_max_items": num_items >= max_items,
    }

    if items_remaining == 0:
        logger.info(f"Stopping: item pool exhausted after {num_items} items")
        return StoppingDecision(
            should_stop=True, reason=StopReason.EXHAUSTED, details=details
        )

    if num_items >= max_items:
        logger.info(f"Stopping: reached maximum items ({num_items}/{max_items})")
        return StoppingDecision(
            should_stop=True, reason=StopReason.MAX_ITEMS, details=details
        )

    if se <= precision_threshold and num_items >= min_items:
        logger.info(
            f"Stopping: SE {se:.4f} <= threshold {precision_threshold} "
            f"after {num_items} items"
        )
        return StoppingDecision(
            should_stop=True, reason=StopReason.SE_THRESHOLD, details=details
        )

    logger.debug(
        f"Continuing: SE={se:.4f}, {num_items}/{max_items} items, "
        f"{items_remaining} remaining"
    )
    return StoppingDecision(should_stop=False, reason=None, details=details)
