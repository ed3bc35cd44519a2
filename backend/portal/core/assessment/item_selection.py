"""
Maximum Fisher Information (MFI) item selection for adaptive assessment.

Picks the next item for one dimension that is most informative at the current
theta estimate. For the 2PL model:

    I_i(theta) = a_i^2 * P_i(theta) * (1 - P_i(theta))

Information peaks where theta equals the item location, so MFI prefers items
whose difficulty is closest to the current estimate, weighted by
discrimination.

Selection is fully deterministic: ties on information are broken by higher
discrimination, then by lowest item id. When every item for the dimension has
been administered, the ``EXHAUSTED`` sentinel is returned; running out of
items is a normal control signal, not an error.
"""

import logging
from typing import AbstractSet, Optional, Sequence, Tuple, Union

from portal.core.assessment.ability_estimation import probability_pole_a
from portal.core.assessment.item_bank import PsychometricItem

logger = logging.getLogger(__name__)

# Information values are rounded before comparison so float noise cannot
# break a genuine tie.
INFORMATION_PRECISION = 12


class Exhausted:
    """Sentinel type: no unadministered item remains for the dimension."""

    _instance: Optional["Exhausted"] = None

    def __new__(cls) -> "Exhausted":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED = Exhausted()


def fisher_information(theta: float, discrimination: float, location: float) -> float:
    """
    Compute Fisher information for a 2PL item at a given theta.

    Args:
        theta: Current position estimate.
        discrimination: Item discrimination parameter (a). Must be > 0.
        location: Item location on the theta axis.

    Returns:
        Fisher information value (non-negative).

    Raises:
        ValueError: If discrimination is not positive.
    """
    if discrimination <= 0:
        raise ValueError(
            f"Discrimination parameter must be positive, got {discrimination}"
        )

    prob = probability_pole_a(theta, discrimination, location)
    return (discrimination**2) * prob * (1.0 - prob)


def select_next_item(
    items: Sequence[PsychometricItem],
    theta: Optional[float],
    administered_item_ids: AbstractSet[str],
) -> Union[PsychometricItem, Exhausted]:
    """
    Select the most informative unadministered item.

    Args:
        items: Candidate pool for a single dimension.
        theta: Current estimate, or None before the first response (treated
            as the neutral prior 0).
        administered_item_ids: Ids already administered in this dimension.

    Returns:
        The selected item, or ``EXHAUSTED`` if no candidate remains.
    """
    current_theta = 0.0 if theta is None else theta

    best: Optional[PsychometricItem] = None
    best_key: Optional[Tuple[float, float]] = None
    for item in items:
        if item.id in administered_item_ids:
            continue
        info = round(
            fisher_information(current_theta, item.discrimination, item.location),
            INFORMATION_PRECISION,
        )
        key = (info, item.discrimination)
        if (
            best is None
            or best_key is None
            or key > best_key
            or (key == best_key and item.id < best.id)
        ):
            best = item
            best_key = key

    if best is None:
        logger.info(
            f"Item pool exhausted: all {len(items)} items administered"
        )
        return EXHAUSTED

    logger.debug(
        f"Selected item {best.id} (info={best_key[0] if best_key else 0:.4f}, "
        f"a={best.discrimination:.2f}, location={best.location:.2f}) "
        f"at theta={current_theta:.3f}"
    )
    return best
