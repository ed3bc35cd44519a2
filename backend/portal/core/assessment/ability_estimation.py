"""
Maximum-likelihood ability estimation for adaptive psychometric assessment.

Estimates a respondent's position (theta) on one bipolar dimension using
Newton-Raphson iteration over the 2PL logistic response model:

    P(theta) = 1 / (1 + exp(-a * (theta - location)))

where P is the probability that a response favors the dimension's first pole
(E, S, T or J). Items keyed toward the second pole are passed with a negated
location, so a single theta axis serves every item of the dimension.

Responses carry a score in [0, 1]: binary answers give 0 or 1, ordinal
answers give fractional scores. The log-likelihood is

    L(theta) = sum(x * log P + (1 - x) * log(1 - P))

    L'(theta)  = sum(a * (x - P))
    L''(theta) = -sum(a^2 * P * (1 - P))

Newton-Raphson starts at the neutral prior theta = 0 and is clamped to a
bounded range, so unanimous response patterns (where the MLE diverges) settle
at the boundary instead of running away. Failing to converge within the
iteration cap is not an error: the last estimate is returned.

Standard error is 1 / sqrt(test information) at the final theta.
"""

import logging
import math
from typing import List, Tuple

logger = logging.getLogger(__name__)

DEFAULT_THETA_BOUNDS = (-4.0, 4.0)
DEFAULT_TOLERANCE = 0.001
DEFAULT_MAX_ITERATIONS = 20

# Below this curvature the Newton step is numerically meaningless
MIN_SECOND_DERIVATIVE = 1e-6


def probability_pole_a(theta: float, discrimination: float, location: float) -> float:
    """
    Probability that a response favors the dimension's first pole.

    Args:
        theta: Current position estimate.
        discrimination: Item discrimination parameter (a).
        location: Item location on the theta axis (signed difficulty).

    Returns:
        Probability in (0, 1).
    """
    logit = discrimination * (theta - location)

    # Numerically stable sigmoid
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    exp_logit = math.exp(logit)
    return exp_logit / (1.0 + exp_logit)


def estimate_ability_mle(
    responses: List[Tuple[float, float, float]],
    theta_bounds: Tuple[float, float] = DEFAULT_THETA_BOUNDS,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Tuple[float, float]:
    """
    Estimate theta by bounded Newton-Raphson maximum likelihood.

    Args:
        responses: List of (discrimination, location, score) tuples.
            - discrimination (a): Item discrimination parameter (must be > 0)
            - location: Item position on the theta axis
            - score: Degree to which the response favors the first pole, in [0, 1]
        theta_bounds: Inclusive (min, max) range the estimate is clamped to.
        tolerance: Convergence threshold on the size of one update.
        max_iterations: Iteration cap; the last estimate is returned when hit.

    Returns:
        Tuple of (theta_estimate, standard_error). With no responses this is
        exactly (0.0, inf).

    Raises:
        ValueError: If any discrimination is not positive or any score lies
            outside [0, 1].
    """
    if not responses:
        return (0.0, math.inf)

    for i, (a, _location, score) in enumerate(responses):
        if a <= 0:
            raise ValueError(
                f"Discrimination parameter must be positive, got {a} for response {i}"
            )
        if not 0.0 <= score <= 1.0:
            raise ValueError(f"Score must be in [0, 1], got {score} for response {i}")

    theta_min, theta_max = theta_bounds
    theta = _clamp(0.0, theta_min, theta_max)
    converged = False

    for iteration in range(max_iterations):
        first_derivative = 0.0
        second_derivative = 0.0
        for a, location, score in responses:
            p = probability_pole_a(theta, a, location)
            first_derivative += a * (score - p)
            second_derivative -= a * a * p * (1.0 - p)

        if abs(second_derivative) < MIN_SECOND_DERIVATIVE:
            logger.debug(
                f"Second derivative {second_derivative:.2e} below floor at "
                f"iteration {iteration}, keeping theta={theta:.4f}"
            )
            break

        new_theta = _clamp(
            theta - first_derivative / second_derivative, theta_min, theta_max
        )
        step = abs(new_theta - theta)
        theta = new_theta
        if step < tolerance:
            converged = True
            break

    if not converged:
        logger.debug(
            f"Theta estimate did not converge within {max_iterations} iterations, "
            f"returning last estimate theta={theta:.4f}"
        )

    return (theta, _standard_error(theta, responses))


def _standard_error(theta: float, responses: List[Tuple[float, float, float]]) -> float:
    information = 0.0
    for a, location, _score in responses:
        p = probability_pole_a(theta, a, location)
        information += a * a * p * (1.0 - p)

    if information <= 0.0:
        return math.inf
    return 1.0 / math.sqrt(information)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
