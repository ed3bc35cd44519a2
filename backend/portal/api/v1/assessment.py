"""
Adaptive assessment session endpoints.

Every operation on an existing session runs while holding that session's lock,
so concurrent requests for the same session are applied one at a time.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from portal.core.assessment.engine import AdaptiveSession, StepResult
from portal.core.assessment.exceptions import (
    InvalidStateError,
    ItemNotFoundError,
    SessionNotFoundError,
)
from portal.core.assessment.item_bank import PsychometricItem
from portal.core.assessment.results import CognitiveProfile
from portal.core.assessment.service import AssessmentService
from portal.core.auth import get_current_user_id
from portal.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_conflict,
    raise_forbidden,
    raise_not_found,
    raise_server_error,
)
from portal.schemas.assessment import (
    DimensionProgressResponse,
    ItemResponse,
    NextItemResponse,
    ProfileResponse,
    SessionResponse,
    StartSessionResponse,
    StepResultResponse,
    SubmitResponseRequest,
    SubmitResponseResponse,
    finite_or_none,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_assessment_service(request: Request) -> AssessmentService:
    """Return the service built at application startup."""
    service = getattr(request.app.state, "assessment_service", None)
    if service is None:
        logger.error("Assessment service requested before it was configured")
        raise_server_error(ErrorMessages.ASSESSMENT_NOT_CONFIGURED)
    return service


def item_to_response(item: Optional[PsychometricItem]) -> Optional[ItemResponse]:
    if item is None:
        return None
    return ItemResponse(id=item.id, dimension=item.dimension, text=item.text)


def session_to_response(session: AdaptiveSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        respondent_id=session.respondent_id,
        status=session.status,
        state=session.state,
        current_dimension=session.current_dimension,
        started_at=session.started_at,
        completed_at=session.completed_at,
        total_items=session.total_items,
        dimensions=[
            DimensionProgressResponse(
                dimension=dimension,
                theta=state.theta,
                standard_error=finite_or_none(state.standard_error),
                items_administered=len(state.administered_item_ids),
                stopped=state.stopped,
                stop_reason=state.stop_reason,
            )
            for dimension, state in session.dimensions.items()
        ],
    )


def step_to_response(step: StepResult) -> StepResultResponse:
    return StepResultResponse(
        dimension=step.dimension,
        theta=step.theta,
        standard_error=finite_or_none(step.standard_error),
        items_administered=step.items_administered,
        dimension_complete=step.dimension_complete,
        stop_reason=step.stop_reason,
        assessment_complete=step.assessment_complete,
        next_dimension=step.next_dimension,
    )


def profile_to_response(profile: CognitiveProfile) -> ProfileResponse:
    return ProfileResponse.model_validate(profile.to_dict())


def _verify_owner(session: AdaptiveSession, user_id: str) -> None:
    if session.respondent_id != user_id:
        logger.warning(
            f"User {user_id} attempted to access session {session.session_id}",
            extra={"session_id": session.session_id},
        )
        raise_forbidden(ErrorMessages.SESSION_ACCESS_DENIED)


@router.post("/sessions", response_model=StartSessionResponse)
def start_session(
    user_id: str = Depends(get_current_user_id),
    service: AssessmentService = Depends(get_assessment_service),
):
    """
    Start a new adaptive assessment for the current user.

    Returns the session and the first item to answer.
    """
    session = service.sessions.add(service.engine.start(user_id))
    with service.sessions.locked(session.session_id) as locked_session:
        first_item = service.engine.next_item(locked_session)
        return StartSessionResponse(
            session=session_to_response(locked_session),
            next_item=item_to_response(first_item),
        )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Return the status and per-dimension progress of a session."""
    try:
        with service.sessions.locked(session_id) as session:
            _verify_owner(session, user_id)
            return session_to_response(session)
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)


@router.get("/sessions/{session_id}/next-item", response_model=NextItemResponse)
def get_next_item(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AssessmentService = Depends(get_assessment_service),
):
    """
    Return the item awaiting an answer.

    Repeated calls return the same item until it is answered. Once the
    assessment is complete the item is null and ``complete`` is true.
    """
    try:
        with service.sessions.locked(session_id) as session:
            _verify_owner(session, user_id)
            item = service.engine.next_item(session)
            return NextItemResponse(
                next_item=item_to_response(item),
                complete=service.engine.is_assessment_complete(session),
            )
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)


@router.post(
    "/sessions/{session_id}/responses", response_model=SubmitResponseResponse
)
def submit_response(
    session_id: str,
    body: SubmitResponseRequest,
    user_id: str = Depends(get_current_user_id),
    service: AssessmentService = Depends(get_assessment_service),
):
    """
    Record the answer to the pending item.

    Returns the updated estimate for the item's dimension and the next item.
    When the response completes the assessment, the profile is handed to the
    result repository and the next item is null.
    """
    engine = service.engine
    try:
        with service.sessions.locked(session_id) as session:
            _verify_owner(session, user_id)

            if engine.is_assessment_complete(session):
                raise_conflict(ErrorMessages.SESSION_ALREADY_COMPLETE)
            if session.pending_item_id is None:
                raise_conflict(ErrorMessages.NO_ITEM_PENDING)
            if body.item_id != session.pending_item_id:
                if body.item_id not in engine.item_bank:
                    raise_not_found(ErrorMessages.ITEM_NOT_FOUND)
                raise_conflict(
                    ErrorMessages.item_not_pending(
                        body.item_id, session.pending_item_id
                    )
                )

            step = engine.record_response(
                session,
                item_id=body.item_id,
                selected_value=body.selected_value,
                answered_at=body.answered_at,
            )

            if step.assessment_complete:
                service.results.save(engine.result(session))

            return SubmitResponseResponse(
                step=step_to_response(step),
                next_item=item_to_response(engine.next_item(session)),
            )
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)
    except ItemNotFoundError:
        raise_not_found(ErrorMessages.ITEM_NOT_FOUND)
    except InvalidStateError as e:
        raise_conflict(e.message)
    except ValueError:
        low, high = engine.config.response_scale
        raise_bad_request(ErrorMessages.invalid_response_value(low, high))


@router.get("/sessions/{session_id}/result", response_model=ProfileResponse)
def get_result(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AssessmentService = Depends(get_assessment_service),
):
    """
    Return the cognitive profile of a completed session.

    Completed sessions are dropped from memory after a short retention period;
    their profile is then served from the result repository.
    """
    try:
        with service.sessions.locked(session_id) as session:
            _verify_owner(session, user_id)
            if not service.engine.is_assessment_complete(session):
                raise_conflict(ErrorMessages.RESULT_NOT_READY)
            profile = service.results.get(session_id) or service.engine.result(session)
            return profile_to_response(profile)
    except SessionNotFoundError:
        pass

    stored = service.results.get(session_id)
    if stored is None:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)
    if stored.respondent_id != user_id:
        logger.warning(
            f"User {user_id} attempted to access result of session {session_id}",
            extra={"session_id": session_id},
        )
        raise_forbidden(ErrorMessages.SESSION_ACCESS_DENIED)
    return profile_to_response(stored)
