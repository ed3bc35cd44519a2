"""
AssessmentEngine: orchestrator for adaptive MBTI assessment sessions.

Drives one session through the four preference dimensions:

    not_started -> in_progress(d) -> switching_dimension -> ... -> complete

Within a dimension the loop is: select the most informative item, wait for
the respondent's answer, re-estimate theta from all of the dimension's
answers, evaluate the stopping rules. A stopped dimension is never revisited;
when the last one stops the session completes and its profile is built once.

The engine is stateless between calls: all state lives in the
``AdaptiveSession`` passed to each operation, which is mutated in place.
Callers must serialize operations on the same session (see
``session_store.SessionStore.locked``). The item bank is read-only and may be
shared by any number of sessions.
"""
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from libs.domain_types import (
    Dimension,
    SessionState,
    SessionStatus,
    StopReason,
)

from portal.core.assessment.ability_estimation import estimate_ability_mle
from portal.core.assessment.exceptions import ConfigurationError, InvalidStateError
from portal.core.assessment.item_bank import ItemBank, PsychometricItem
from portal.core.assessment.item_selection import Exhausted, select_next_item
from portal.core.assessment.results import (
    CognitiveProfile,
    build_dimension_result,
    build_profile,
)
from portal.core.assessment.stopping_rules import (
    StoppingDecision,
    check_stopping_criteria,
)
from portal.core.assessment.validity import check_validity
from portal.core.datetime_utils import ensure_timezone_aware, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssessmentConfig:
    """Tunable parameters of the adaptive assessment."""

    precision_threshold: float = 0.30
    min_items_per_dimension: int = 5
    max_items_per_dimension: int = 10
    dimension_order: Tuple[Dimension, ...] = (
        Dimension.EI,
        Dimension.SN,
        Dimension.TF,
        Dimension.JP,
    )
    theta_bounds: Tuple[float, float] = (-4.0, 4.0)
    convergence_tolerance: float = 0.001
    max_iterations: int = 20
    # (min, max) of the answer scale; max is full agreement with the statement
    response_scale: Tuple[int, int] = (0, 1)
    min_response_time_ms: int = 500
    max_response_time_ms: int = 30000
    consistency_threshold: float = 0.6

    def __post_init__(self) -> None:
        if self.precision_threshold <= 0:
            raise ConfigurationError(
                "precision_threshold must be positive",
                context={"precision_threshold": self.precision_threshold},
            )
        if not 1 <= self.min_items_per_dimension <= self.max_items_per_dimension:
            raise ConfigurationError(
                "Item limits must satisfy 1 <= min_items <= max_items",
                context={
                    "min_items_per_dimension": self.min_items_per_dimension,
                    "max_items_per_dimension": self.max_items_per_dimension,
                },
            )
        if len(self.dimension_order) != len(Dimension) or set(
            self.dimension_order
        ) != set(Dimension):
            raise ConfigurationError(
                "dimension_order must list every dimension exactly once",
                context={"dimension_order": [d.value for d in self.dimension_order]},
            )
        if self.theta_bounds[0] >= self.theta_bounds[1]:
            raise ConfigurationError(
                "theta_bounds must be an increasing (min, max) pair",
                context={"theta_bounds": self.theta_bounds},
            )
        if self.convergence_tolerance <= 0 or self.max_iterations < 1:
            raise ConfigurationError(
                "Estimator needs a positive tolerance and at least one iteration",
                context={
                    "convergence_tolerance": self.convergence_tolerance,
                    "max_iterations": self.max_iterations,
                },
            )
        if self.response_scale[0] >= self.response_scale[1]:
            raise ConfigurationError(
                "response_scale must be an increasing (min, max) pair",
                context={"response_scale": self.response_scale},
            )

    @classmethod
    def from_settings(cls, settings: Any) -> "AssessmentConfig":
        """Build the configuration from application settings."""
        return cls(
            precision_threshold=settings.ASSESSMENT_PRECISION_THRESHOLD,
            min_items_per_dimension=settings.ASSESSMENT_MIN_ITEMS_PER_DIMENSION,
            max_items_per_dimension=settings.ASSESSMENT_MAX_ITEMS_PER_DIMENSION,
            dimension_order=tuple(settings.ASSESSMENT_DIMENSION_ORDER),
            theta_bounds=(settings.ASSESSMENT_THETA_MIN, settings.ASSESSMENT_THETA_MAX),
            convergence_tolerance=settings.ASSESSMENT_CONVERGENCE_TOLERANCE,
            max_iterations=settings.ASSESSMENT_MAX_ITERATIONS,
            response_scale=(
                settings.ASSESSMENT_RESPONSE_SCALE_MIN,
                settings.ASSESSMENT_RESPONSE_SCALE_MAX,
            ),
            min_response_time_ms=settings.ASSESSMENT_MIN_RESPONSE_TIME_MS,
            max_response_time_ms=settings.ASSESSMENT_MAX_RESPONSE_TIME_MS,
            consistency_threshold=settings.ASSESSMENT_CONSISTENCY_THRESHOLD,
        )


@dataclass(frozen=True)
class Response:
    """A recorded answer to one administered item."""

    item_id: str
    selected_value: int
    score: float  # Degree to which the answer favors the first pole, 0-1
    answered_at: datetime
    presented_at: Optional[datetime] = None
    theta_after: float = 0.0
    se_after: float = math.inf

    @property
    def response_time_ms(self) -> Optional[int]:
        if self.presented_at is None:
            return None
        elapsed = (self.answered_at - self.presented_at).total_seconds() * 1000
        return max(0, int(round(elapsed)))


@dataclass
class DimensionState:
    """Estimation state of one dimension within a session."""

    theta: Optional[float] = None  # Undefined until the first response
    standard_error: float = math.inf
    administered_item_ids: List[str] = field(default_factory=list)
    responses: List[Response] = field(default_factory=list)
    theta_history: List[float] = field(default_factory=list)
    stopped: bool = False
    stop_reason: Optional[StopReason] = None


@dataclass
class AdaptiveSession:
    """In-memory state of one adaptive assessment."""

    session_id: str
    respondent_id: str
    dimensions: Dict[Dimension, DimensionState]
    started_at: datetime
    state: SessionState = SessionState.NOT_STARTED
    current_dimension: Optional[Dimension] = None
    pending_item_id: Optional[str] = None
    pending_since: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[CognitiveProfile] = None

    @property
    def status(self) -> SessionStatus:
        if self.state is SessionState.COMPLETE:
            return SessionStatus.COMPLETE
        return SessionStatus.IN_PROGRESS

    @property
    def total_items(self) -> int:
        return sum(len(d.administered_item_ids) for d in self.dimensions.values())


@dataclass
class StepResult:
    """Outcome of recording one response."""

    dimension: Dimension
    theta: float
    standard_error: float
    items_administered: int
    dimension_complete: bool
    stop_reason: Optional[StopReason]
    assessment_complete: bool
    next_dimension: Optional[Dimension]


class AssessmentEngine:
    """
    Orchestrator for adaptive assessment sessions.

    Manages:
    - Session creation and dimension sequencing
    - Item selection by maximum Fisher information
    - Theta re-estimation (Newton-Raphson MLE) after every response
    - Per-dimension stopping rules (precision, item cap, exhaustion)
    - Profile construction and validity screening at completion
    """

    def __init__(self, item_bank: ItemBank, config: Optional[AssessmentConfig] = None):
        self.item_bank = item_bank
        self.config = config or AssessmentConfig()

        for dimension in self.config.dimension_order:
            if not self.item_bank.items_for_dimension(dimension):
                raise ConfigurationError(
                    "Item bank has no items for dimension",
                    context={"dimension": dimension.value},
                )

        logger.info(
            f"AssessmentEngine initialized: order="
            f"{[d.value for d in self.config.dimension_order]}, "
            f"precision={self.config.precision_threshold}, "
            f"items={self.config.min_items_per_dimension}-"
            f"{self.config.max_items_per_dimension}"
        )

    def start(
        self, respondent_id: str, session_id: Optional[str] = None
    ) -> AdaptiveSession:
        """
        Create a new session in the ``not_started`` state.

        Args:
            respondent_id: Already-authenticated respondent identifier.
            session_id: Optional explicit id (defaults to a random uuid4 hex).

        Returns:
            AdaptiveSession with empty per-dimension state.
        """
        session = AdaptiveSession(
            session_id=session_id or uuid.uuid4().hex,
            respondent_id=respondent_id,
            dimensions={d: DimensionState() for d in self.config.dimension_order},
            started_at=utc_now(),
        )
        logger.info(
            f"Started assessment session {session.session_id} "
            f"for respondent {respondent_id}",
            extra={"session_id": session.session_id, "respondent_id": respondent_id},
        )
        return session

    def next_item(self, session: AdaptiveSession) -> Optional[PsychometricItem]:
        """
        Return the item the respondent should answer next.

        The first call moves the session into its first dimension. While an
        item is pending the same item is returned again. A dimension whose
        pool is exhausted is closed and the session moves on. Returns None
        once the session is complete.
        """
        if session.state is SessionState.COMPLETE:
            return None

        if session.pending_item_id is not None:
            return self.item_bank.item(session.pending_item_id)

        if session.state is SessionState.NOT_STARTED:
            session.current_dimension = self.config.dimension_order[0]
            session.state = SessionState.IN_PROGRESS
            logger.info(
                f"Session {session.session_id}: entering dimension "
                f"{session.current_dimension.value}",
                extra={
                    "session_id": session.session_id,
                    "dimension": session.current_dimension.value,
                },
            )

        while session.state is SessionState.IN_PROGRESS:
            dimension = session.current_dimension
            assert dimension is not None
            dim_state = session.dimensions[dimension]

            candidate = self.select_next_item(
                dimension, dim_state.theta, dim_state.administered_item_ids
            )
            if isinstance(candidate, Exhausted):
                self._close_dimension(session, dimension, StopReason.EXHAUSTED)
                continue

            session.pending_item_id = candidate.id
            session.pending_since = utc_now()
            return candidate

        return None

    def record_response(
        self,
        session: AdaptiveSession,
        item_id: str,
        selected_value: int,
        answered_at: Optional[datetime] = None,
    ) -> StepResult:
        """
        Record the answer to the pending item and advance the session.

        This method mutates the session in place:
        - Appends the response to the current dimension's history
        - Re-estimates the dimension's theta and SE from all its responses
        - Evaluates the stopping rules, switching dimension or completing

        Args:
            session: The session (mutated in place).
            item_id: Id of the answered item; must be the pending item.
            selected_value: Answer on the configured response scale, where the
                maximum means full agreement with the statement.
            answered_at: When the answer was given (defaults to now).

        Returns:
            StepResult with the updated estimate and transition outcome.

        Raises:
            InvalidStateError: If the session is complete, no item is pending,
                or item_id is not the pending item.
            ValueError: If selected_value is outside the response scale.
        """
        if session.state is SessionState.COMPLETE:
            raise InvalidStateError(
                "Session already complete", context={"session_id": session.session_id}
            )
        if session.pending_item_id is None:
            raise InvalidStateError(
                "No item is pending for this session",
                context={"session_id": session.session_id, "item_id": item_id},
            )
        if item_id != session.pending_item_id:
            raise InvalidStateError(
                "Response does not match the pending item",
                context={
                    "session_id": session.session_id,
                    "item_id": item_id,
                    "pending_item_id": session.pending_item_id,
                },
            )

        item = self.item_bank.item(item_id)
        score = self.score_response(item, selected_value)
        answered = ensure_timezone_aware(answered_at) if answered_at else utc_now()

        dimension = item.dimension
        dim_state = session.dimensions[dimension]

        scored = [
            (self.item_bank.item(r.item_id), r.score) for r in dim_state.responses
        ]
        scored.append((item, score))
        theta, se = self._estimate_scored(scored)

        dim_state.administered_item_ids.append(item_id)
        dim_state.responses.append(
            Response(
                item_id=item_id,
                selected_value=selected_value,
                score=score,
                answered_at=answered,
                presented_at=session.pending_since,
                theta_after=theta,
                se_after=se,
            )
        )
        dim_state.theta = theta
        dim_state.standard_error = se
        dim_state.theta_history.append(theta)

        session.pending_item_id = None
        session.pending_since = None

        items_administered = len(dim_state.administered_item_ids)
        logger.debug(
            f"Session {session.session_id}: {dimension.value} response "
            f"#{items_administered} ({item_id}, value={selected_value}) -> "
            f"theta={theta:.3f}, SE={se:.3f}",
            extra={"session_id": session.session_id, "dimension": dimension.value},
        )

        decision = self._evaluate_stopping(dimension, dim_state)
        if decision.should_stop and decision.reason is not None:
            self._close_dimension(session, dimension, decision.reason)

        return StepResult(
            dimension=dimension,
            theta=theta,
            standard_error=se,
            items_administered=items_administered,
            dimension_complete=dim_state.stopped,
            stop_reason=dim_state.stop_reason,
            assessment_complete=session.state is SessionState.COMPLETE,
            next_dimension=(
                session.current_dimension if dim_state.stopped else None
            ),
        )

    def estimate_theta(
        self, responses: Sequence[Tuple[PsychometricItem, int]]
    ) -> Tuple[float, float]:
        """
        Estimate (theta, SE) from (item, selected_value) pairs of one dimension.

        With no responses returns (0.0, inf).

        Raises:
            ValueError: If the items span more than one dimension, or a value
                is off the response scale.
        """
        dimensions = {item.dimension for item, _ in responses}
        if len(dimensions) > 1:
            raise ValueError(
                "responses must come from a single dimension, got "
                f"{sorted(d.value for d in dimensions)}"
            )
        return self._estimate_scored(
            [(item, self.score_response(item, value)) for item, value in responses]
        )

    def select_next_item(
        self,
        dimension: Dimension,
        theta: Optional[float],
        administered_item_ids: Sequence[str],
    ) -> Union[PsychometricItem, Exhausted]:
        """Pick the next item of ``dimension`` from the bank, or ``EXHAUSTED``."""
        return select_next_item(
            self.item_bank.items_for_dimension(dimension),
            theta,
            set(administered_item_ids),
        )

    def should_stop(self, dimension: Dimension, session: AdaptiveSession) -> bool:
        """Whether ``dimension`` has gathered enough information.

        A dimension that has already stopped stays stopped.
        """
        dim_state = session.dimensions[dimension]
        if dim_state.stopped:
            return True
        return self._evaluate_stopping(dimension, dim_state).should_stop

    def is_assessment_complete(self, session: AdaptiveSession) -> bool:
        return session.state is SessionState.COMPLETE

    def result(self, session: AdaptiveSession) -> CognitiveProfile:
        """
        Return the profile of a completed session.

        Raises:
            InvalidStateError: If the session is not complete yet.
        """
        if session.state is not SessionState.COMPLETE or session.result is None:
            raise InvalidStateError(
                "Session is not complete",
                context={
                    "session_id": session.session_id,
                    "state": session.state.value,
                },
            )
        return session.result

    def score_response(self, item: PsychometricItem, selected_value: int) -> float:
        """
        Normalize an answer to the degree it favors the dimension's first pole.

        Raises:
            ValueError: If the value is not an integer on the response scale.
        """
        low, high = self.config.response_scale
        if isinstance(selected_value, bool) or not isinstance(selected_value, int):
            raise ValueError(
                f"selected_value must be an integer on the response scale, "
                f"got {selected_value!r}"
            )
        if not low <= selected_value <= high:
            raise ValueError(
                f"selected_value must be within [{low}, {high}], got {selected_value}"
            )

        agreement = (selected_value - low) / (high - low)
        return agreement if item.direction > 0 else 1.0 - agreement

    def _estimate_scored(
        self, scored: Sequence[Tuple[PsychometricItem, float]]
    ) -> Tuple[float, float]:
        return estimate_ability_mle(
            [(item.discrimination, item.location, score) for item, score in scored],
            theta_bounds=self.config.theta_bounds,
            tolerance=self.config.convergence_tolerance,
            max_iterations=self.config.max_iterations,
        )

    def _evaluate_stopping(
        self, dimension: Dimension, dim_state: DimensionState
    ) -> StoppingDecision:
        administered = set(dim_state.administered_item_ids)
        items_remaining = sum(
            1
            for item in self.item_bank.items_for_dimension(dimension)
            if item.id not in administered
        )
        return check_stopping_criteria(
            se=dim_state.standard_error,
            num_items=len(dim_state.administered_item_ids),
            items_remaining=items_remaining,
            precision_threshold=self.config.precision_threshold,
            min_items=self.config.min_items_per_dimension,
            max_items=self.config.max_items_per_dimension,
        )

    def _close_dimension(
        self, session: AdaptiveSession, dimension: Dimension, reason: StopReason
    ) -> None:
        dim_state = session.dimensions[dimension]
        dim_state.stopped = True
        dim_state.stop_reason = reason
        session.state = SessionState.SWITCHING_DIMENSION

        theta = dim_state.theta if dim_state.theta is not None else 0.0
        logger.info(
            f"Session {session.session_id}: dimension {dimension.value} stopped "
            f"({reason.value}) after {len(dim_state.administered_item_ids)} items, "
            f"theta={theta:.3f}, SE={dim_state.standard_error:.3f}",
            extra={"session_id": session.session_id, "dimension": dimension.value},
        )

        next_dimension = next(
            (
                d
                for d in self.config.dimension_order
                if not session.dimensions[d].stopped
            ),
            None,
        )
        if next_dimension is not None:
            session.current_dimension = next_dimension
            session.state = SessionState.IN_PROGRESS
            logger.info(
                f"Session {session.session_id}: switching to dimension "
                f"{next_dimension.value}",
                extra={
                    "session_id": session.session_id,
                    "dimension": next_dimension.value,
                },
            )
            return

        self._complete(session)

    def _complete(self, session: AdaptiveSession) -> None:
        completed_at = utc_now()
        dimension_results = [
            build_dimension_result(
                dimension,
                session.dimensions[dimension].theta,
                session.dimensions[dimension].standard_error,
                len(session.dimensions[dimension].administered_item_ids),
                session.dimensions[dimension].stop_reason,
            )
            for dimension in self.config.dimension_order
        ]

        responses = [
            response
            for dimension in self.config.dimension_order
            for response in session.dimensions[dimension].responses
        ]
        validity = check_validity(
            responses,
            {r.item_id: self.item_bank.item(r.item_id) for r in responses},
            min_response_time_ms=self.config.min_response_time_ms,
            max_response_time_ms=self.config.max_response_time_ms,
            consistency_threshold=self.config.consistency_threshold,
        )

        session.result = build_profile(
            session_id=session.session_id,
            respondent_id=session.respondent_id,
            dimension_results=dimension_results,
            completed_at=completed_at,
            validity=validity,
        )
        session.completed_at = completed_at
        session.current_dimension = None
        session.state = SessionState.COMPLETE

        logger.info(
            f"Session {session.session_id} complete: type={session.result.type_code}, "
            f"items={session.result.total_items}, "
            f"confidence={session.result.overall_confidence:.3f}",
            extra={
                "session_id": session.session_id,
                "respondent_id": session.respondent_id,
            },
        )
