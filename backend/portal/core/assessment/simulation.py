"""
Monte Carlo simulation of the adaptive assessment engine.

Simulates respondents with known positions on all four dimensions taking the
full adaptive assessment, then compares the recovered profile with the true
one. Used to check that the stopping rules and item bank recover types
reliably within the configured item budget.

Item parameters for synthetic banks follow typical operational distributions
(Lord, 1980):
    - Discrimination (a) ~ LogNormal(mean=0.0, sd=0.3), clipped to [0.5, 2.5]
    - Difficulty (b) ~ Normal(0.0, 1.0), clipped to [-3.0, 3.0]
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from libs.domain_types import CANONICAL_DIMENSION_ORDER, Dimension

from portal.core.assessment.ability_estimation import probability_pole_a
from portal.core.assessment.engine import AssessmentConfig, AssessmentEngine
from portal.core.assessment.item_bank import ItemBank, PsychometricItem
from portal.core.assessment.results import theta_to_preference

logger = logging.getLogger(__name__)

DISCRIMINATION_LOGNORMAL_MEAN = 0.0
DISCRIMINATION_LOGNORMAL_SD = 0.3
DISCRIMINATION_MIN = 0.5
DISCRIMINATION_MAX = 2.5
DIFFICULTY_NORMAL_MEAN = 0.0
DIFFICULTY_NORMAL_SD = 1.0
DIFFICULTY_MIN = -3.0
DIFFICULTY_MAX = 3.0


@dataclass
class RespondentResult:
    """Per-respondent simulation outcome."""

    true_thetas: Dict[Dimension, float]
    estimated_thetas: Dict[Dimension, float]
    standard_errors: Dict[Dimension, float]
    true_type: str
    estimated_type: str
    items_per_dimension: Dict[Dimension, int]
    stop_reasons: Dict[Dimension, str]

    @property
    def type_recovered(self) -> bool:
        return self.true_type == self.estimated_type


@dataclass
class SimulationResult:
    """Aggregate simulation results."""

    n_respondents: int
    type_recovery_rate: float
    dimension_agreement: Dict[str, float]
    mean_items_per_dimension: Dict[str, float]
    mean_total_items: float
    rmse_per_dimension: Dict[str, float]
    stop_reason_counts: Dict[str, int]
    respondent_results: List[RespondentResult] = field(default_factory=list)

    def summary(self) -> Dict[str, object]:
        """JSON-friendly summary without per-respondent detail."""
        return {
            "n_respondents": self.n_respondents,
            "type_recovery_rate": round(self.type_recovery_rate, 4),
            "dimension_agreement": {
                k: round(v, 4) for k, v in self.dimension_agreement.items()
            },
            "mean_items_per_dimension": {
                k: round(v, 2) for k, v in self.mean_items_per_dimension.items()
            },
            "mean_total_items": round(self.mean_total_items, 2),
            "rmse_per_dimension": {
                k: round(v, 4) for k, v in self.rmse_per_dimension.items()
            },
            "stop_reason_counts": dict(self.stop_reason_counts),
        }


def generate_item_bank(
    n_items_per_dimension: int = 30,
    seed: int = 42,
    min_items_per_dimension: int = 5,
) -> ItemBank:
    """
    Generate a synthetic item bank with realistic 2PL parameters.

    Each item is keyed toward one of its dimension's poles at random.

    Args:
        n_items_per_dimension: Number of items to generate per dimension.
        seed: Random seed for reproducibility.
        min_items_per_dimension: Provisioning floor enforced by the bank.

    Returns:
        ItemBank holding the synthetic items.
    """
    rng = np.random.default_rng(seed)
    items: List[PsychometricItem] = []

    for dimension in CANONICAL_DIMENSION_ORDER:
        for index in range(1, n_items_per_dimension + 1):
            a = rng.lognormal(
                mean=DISCRIMINATION_LOGNORMAL_MEAN, sigma=DISCRIMINATION_LOGNORMAL_SD
            )
            a = float(np.clip(a, DISCRIMINATION_MIN, DISCRIMINATION_MAX))

            b = rng.normal(loc=DIFFICULTY_NORMAL_MEAN, scale=DIFFICULTY_NORMAL_SD)
            b = float(np.clip(b, DIFFICULTY_MIN, DIFFICULTY_MAX))

            pole = dimension.poles[int(rng.integers(0, 2))]
            items.append(
                PsychometricItem(
                    id=f"SIM-{dimension.value}-{index:03d}",
                    dimension=dimension,
                    pole=pole,
                    difficulty=b,
                    discrimination=a,
                    text=f"Synthetic {dimension.label} item {index} ({pole})",
                )
            )

    logger.info(
        f"Generated item bank: {len(items)} items across "
        f"{len(CANONICAL_DIMENSION_ORDER)} dimensions "
        f"({n_items_per_dimension} per dimension)"
    )

    return ItemBank(items, min_items_per_dimension=min_items_per_dimension)


def simulate_answer(
    true_theta: float,
    item: PsychometricItem,
    engine: AssessmentEngine,
    rng: np.random.Generator,
) -> int:
    """
    Draw an answer to ``item`` from the response model at ``true_theta``.

    Returns the extreme of the response scale that matches the drawn pole.
    """
    low, high = engine.config.response_scale
    p_first = probability_pole_a(true_theta, item.discrimination, item.location)
    favors_first = bool(rng.random() < p_first)
    agrees = favors_first == (item.direction > 0)
    return high if agrees else low


def simulate_respondent(
    engine: AssessmentEngine,
    true_thetas: Dict[Dimension, float],
    rng: np.random.Generator,
    respondent_id: str = "simulated",
) -> RespondentResult:
    """
    Run one complete session with stochastic answers.

    Args:
        engine: Engine to run the session on.
        true_thetas: True position on every dimension.
        rng: Random generator for answer draws.
        respondent_id: Identifier recorded on the session.

    Returns:
        RespondentResult comparing recovered and true profile.
    """
    session = engine.start(respondent_id)

    while True:
        item = engine.next_item(session)
        if item is None:
            break
        value = simulate_answer(true_thetas[item.dimension], item, engine, rng)
        engine.record_response(session, item.id, value)

    profile = engine.result(session)
    true_type = "".join(
        theta_to_preference(true_thetas[d], d) for d in CANONICAL_DIMENSION_ORDER
    )

    return RespondentResult(
        true_thetas=dict(true_thetas),
        estimated_thetas={r.dimension: r.theta for r in profile.dimensions},
        standard_errors={r.dimension: r.standard_error for r in profile.dimensions},
        true_type=true_type,
        estimated_type=profile.type_code,
        items_per_dimension={
            r.dimension: r.items_administered for r in profile.dimensions
        },
        stop_reasons={
            r.dimension: r.stop_reason.value if r.stop_reason else "unknown"
            for r in profile.dimensions
        },
    )


def run_simulation(
    n_respondents: int = 500,
    seed: int = 42,
    config: Optional[AssessmentConfig] = None,
    item_bank: Optional[ItemBank] = None,
    theta_mean: float = 0.0,
    theta_sd: float = 1.0,
) -> SimulationResult:
    """
    Simulate ``n_respondents`` complete assessments.

    True positions are drawn independently per dimension from
    N(theta_mean, theta_sd²). Without an explicit item bank a synthetic one is
    generated from the same seed.

    Raises:
        ValueError: If n_respondents is not positive.
    """
    if n_respondents <= 0:
        raise ValueError(f"n_respondents must be positive, got {n_respondents}")

    logger.info(
        f"Starting assessment simulation: N={n_respondents}, "
        f"theta ~ N({theta_mean}, {theta_sd}²)"
    )

    rng = np.random.default_rng(seed)
    bank = item_bank if item_bank is not None else generate_item_bank(seed=seed)
    engine = AssessmentEngine(bank, config or AssessmentConfig())

    results: List[RespondentResult] = []
    for index in range(1, n_respondents + 1):
        true_thetas = {
            d: float(rng.normal(loc=theta_mean, scale=theta_sd))
            for d in CANONICAL_DIMENSION_ORDER
        }
        results.append(
            simulate_respondent(engine, true_thetas, rng, respondent_id=f"sim-{index}")
        )
        if index % 100 == 0:
            logger.info(f"Completed {index}/{n_respondents} respondents")

    return _aggregate_results(results)


def _aggregate_results(results: List[RespondentResult]) -> SimulationResult:
    agreement: Dict[str, float] = {}
    mean_items: Dict[str, float] = {}
    rmse: Dict[str, float] = {}
    for dimension in CANONICAL_DIMENSION_ORDER:
        matches = [
            theta_to_preference(r.true_thetas[dimension], dimension)
            == theta_to_preference(r.estimated_thetas[dimension], dimension)
            for r in results
        ]
        errors = [
            r.estimated_thetas[dimension] - r.true_thetas[dimension] for r in results
        ]
        agreement[dimension.value] = float(np.mean(matches))
        mean_items[dimension.value] = float(
            np.mean([r.items_per_dimension[dimension] for r in results])
        )
        rmse[dimension.value] = float(np.sqrt(np.mean(np.square(errors))))

    stop_reason_counts: Dict[str, int] = {}
    for r in results:
        for reason in r.stop_reasons.values():
            stop_reason_counts[reason] = stop_reason_counts.get(reason, 0) + 1

    type_recovery_rate = float(np.mean([r.type_recovered for r in results]))
    mean_total_items = float(
        np.mean([sum(r.items_per_dimension.values()) for r in results])
    )

    logger.info(
        f"Simulation complete: type_recovery={type_recovery_rate:.1%}, "
        f"mean_total_items={mean_total_items:.1f}"
    )

    return SimulationResult(
        n_respondents=len(results),
        type_recovery_rate=type_recovery_rate,
        dimension_agreement=agreement,
        mean_items_per_dimension=mean_items,
        mean_total_items=mean_total_items,
        rmse_per_dimension=rmse,
        stop_reason_counts=stop_reason_counts,
        respondent_results=results,
    )
