"""
Tests for Newton-Raphson MLE ability estimation.

Tests cover:
- No-data behavior (neutral prior, infinite SE)
- Closed-form MLE values for small response sets
- Clamping of unanimous response patterns to the theta bounds
- Graceful non-convergence (iteration cap, flat likelihood)
- Monotonicity as first-pole responses accumulate
- Input validation
"""

import math

import pytest

from portal.core.assessment.ability_estimation import (
    DEFAULT_THETA_BOUNDS,
    estimate_ability_mle,
    probability_pole_a,
)


class TestProbability:
    """Tests for the 2PL response probability."""

    def test_half_at_location(self):
        assert probability_pole_a(0.7, 1.3, 0.7) == pytest.approx(0.5)

    def test_increases_with_theta(self):
        low = probability_pole_a(-1.0, 1.0, 0.0)
        high = probability_pole_a(1.0, 1.0, 0.0)
        assert low < 0.5 < high

    def test_symmetry(self):
        p = probability_pole_a(1.2, 1.5, 0.3)
        q = probability_pole_a(-0.6, 1.5, 0.3)
        assert p + q == pytest.approx(1.0)

    def test_extreme_logits_do_not_overflow(self):
        assert probability_pole_a(1000.0, 2.0, 0.0) == pytest.approx(1.0)
        assert probability_pole_a(-1000.0, 2.0, 0.0) == pytest.approx(0.0)


class TestNoData:
    """Estimation before any response is recorded."""

    def test_empty_returns_prior_and_infinite_se(self):
        theta, se = estimate_ability_mle([])
        assert theta == 0.0
        assert math.isinf(se) and se > 0


class TestKnownEstimates:
    """Response sets whose MLE has a closed form."""

    def test_balanced_responses_give_zero(self):
        theta, se = estimate_ability_mle([(1.0, 0.0, 1.0), (1.0, 0.0, 0.0)])
        assert theta == pytest.approx(0.0, abs=1e-9)
        # Information 2 * 0.25 at theta 0
        assert se == pytest.approx(1.0 / math.sqrt(0.5))

    def test_two_of_three_toward_first_pole(self):
        """L' = 2 - 3P = 0 gives P = 2/3, theta = ln 2."""
        responses = [(1.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 0.0, 0.0)]
        theta, se = estimate_ability_mle(responses)
        assert theta == pytest.approx(math.log(2), abs=1e-3)
        assert se == pytest.approx(1.0 / math.sqrt(2.0 / 3.0), abs=1e-3)

    def test_fractional_score(self):
        """A single 0.75 score at location 0 gives P = 0.75, theta = ln 3."""
        theta, _ = estimate_ability_mle([(1.0, 0.0, 0.75)])
        assert theta == pytest.approx(math.log(3), abs=1e-3)

    def test_symmetric_locations_balance(self):
        responses = [(1.0, -0.5, 1.0), (1.0, 0.5, 0.0)]
        theta, _ = estimate_ability_mle(responses)
        assert theta == pytest.approx(0.0, abs=1e-6)

    def test_higher_discrimination_reduces_se(self):
        _, se_low = estimate_ability_mle([(1.0, 0.0, 1.0), (1.0, 0.0, 0.0)])
        _, se_high = estimate_ability_mle([(2.0, 0.0, 1.0), (2.0, 0.0, 0.0)])
        assert se_high < se_low
        assert se_high == pytest.approx(1.0 / math.sqrt(2.0))

    def test_more_items_reduce_se(self):
        two = [(1.0, 0.0, 1.0), (1.0, 0.0, 0.0)]
        _, se_two = estimate_ability_mle(two)
        _, se_four = estimate_ability_mle(two * 2)
        assert se_four < se_two
        assert se_four == pytest.approx(1.0)


class TestBounds:
    """Unanimous patterns, where the MLE diverges, settle at the bounds."""

    def test_all_first_pole_hits_upper_bound(self):
        responses = [(1.0, b, 1.0) for b in (-0.4, -0.2, 0.0, 0.2, 0.4)]
        theta, se = estimate_ability_mle(responses)
        assert theta == DEFAULT_THETA_BOUNDS[1]
        assert math.isfinite(se)

    def test_all_second_pole_hits_lower_bound(self):
        responses = [(1.0, b, 0.0) for b in (-0.4, -0.2, 0.0, 0.2, 0.4)]
        theta, _ = estimate_ability_mle(responses)
        assert theta == DEFAULT_THETA_BOUNDS[0]

    def test_custom_bounds(self):
        theta, _ = estimate_ability_mle([(1.0, 0.0, 1.0)], theta_bounds=(-2.0, 2.0))
        assert theta == 2.0

    def test_estimate_always_within_bounds(self):
        responses = [(2.5, 3.0, 1.0), (2.5, 2.8, 1.0), (0.5, -3.0, 0.0)]
        theta, _ = estimate_ability_mle(responses)
        assert -4.0 <= theta <= 4.0


class TestConvergence:
    """Non-convergence degrades to the last estimate instead of failing."""

    def test_iteration_cap_returns_last_estimate(self):
        """One Newton step from 0 on a single agreeing item lands on 2.0."""
        theta, se = estimate_ability_mle([(1.0, 0.0, 1.0)], max_iterations=1)
        assert theta == pytest.approx(2.0)
        assert math.isfinite(se)

    def test_flat_likelihood_keeps_current_theta(self):
        """Near-zero curvature stops the update without raising."""
        theta, se = estimate_ability_mle([(1e-4, 0.0, 1.0), (1e-4, 0.0, 1.0)])
        assert theta == 0.0
        assert se > 1000

    def test_deterministic(self):
        responses = [(1.2, -0.3, 1.0), (0.8, 0.6, 0.0), (1.5, 0.1, 1.0)]
        assert estimate_ability_mle(responses) == estimate_ability_mle(responses)


class TestMonotonicity:
    """Adding first-pole responses never lowers the estimate."""

    def test_non_decreasing_as_agreeing_responses_added(self):
        responses = [(1.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 0.0, 1.0)]
        previous, _ = estimate_ability_mle(responses)
        for location in (-1.0, -0.5, 0.0, 0.5, 1.0, 1.5):
            responses.append((1.0, location, 1.0))
            theta, _ = estimate_ability_mle(responses)
            assert theta >= previous - 1e-9
            previous = theta

    def test_non_decreasing_from_first_response(self):
        responses = []
        previous = -math.inf
        for location in (-0.4, -0.2, 0.0, 0.2, 0.4):
            responses.append((1.0, location, 1.0))
            theta, _ = estimate_ability_mle(responses)
            assert theta >= previous
            previous = theta


class TestValidation:
    """Invalid item parameters or scores raise ValueError."""

    @pytest.mark.parametrize("a", [0.0, -1.0])
    def test_non_positive_discrimination(self, a):
        with pytest.raises(ValueError, match="Discrimination"):
            estimate_ability_mle([(a, 0.0, 1.0)])

    @pytest.mark.parametrize("score", [-0.1, 1.5])
    def test_score_outside_unit_interval(self, score):
        with pytest.raises(ValueError, match="Score"):
            estimate_ability_mle([(1.0, 0.0, score)])
