"""
Pydantic schemas for adaptive assessment endpoints.
"""
import math
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from libs.domain_types import (
    Dimension,
    PreferenceClarity,
    SessionState,
    SessionStatus,
    StopReason,
)


def finite_or_none(value: Optional[float]) -> Optional[float]:
    """JSON has no infinity; an undefined standard error is reported as null."""
    if value is None or math.isinf(value) or math.isnan(value):
        return None
    return value


class ItemResponse(BaseModel):
    """Schema for an item presented to the respondent."""

    id: str = Field(..., description="Item ID")
    dimension: Dimension = Field(..., description="Dimension the item measures")
    text: str = Field(..., description="Statement shown to the respondent")


class DimensionProgressResponse(BaseModel):
    """Per-dimension progress of a session."""

    dimension: Dimension = Field(..., description="Dimension")
    theta: Optional[float] = Field(
        None, description="Current estimate (null before the first response)"
    )
    standard_error: Optional[float] = Field(
        None, description="Standard error (null while undefined)"
    )
    items_administered: int = Field(..., description="Items answered so far")
    stopped: bool = Field(..., description="Whether the dimension has stopped")
    stop_reason: Optional[StopReason] = Field(None, description="Why it stopped")


class SessionResponse(BaseModel):
    """Schema for an assessment session."""

    session_id: str = Field(..., description="Assessment session ID")
    respondent_id: str = Field(..., description="Respondent (user) ID")
    status: SessionStatus = Field(
        ..., description="Session status (in_progress, complete)"
    )
    state: SessionState = Field(..., description="Orchestrator state")
    current_dimension: Optional[Dimension] = Field(
        None, description="Dimension currently being measured"
    )
    started_at: datetime = Field(..., description="Session start timestamp")
    completed_at: Optional[datetime] = Field(
        None, description="Session completion timestamp"
    )
    total_items: int = Field(..., description="Items answered across all dimensions")
    dimensions: List[DimensionProgressResponse] = Field(
        ..., description="Progress per dimension in administration order"
    )


class StartSessionResponse(BaseModel):
    """Schema for starting a new assessment session."""

    session: SessionResponse = Field(..., description="Created session")
    next_item: Optional[ItemResponse] = Field(None, description="First item to answer")


class NextItemResponse(BaseModel):
    """Schema for GET /sessions/{id}/next-item."""

    next_item: Optional[ItemResponse] = Field(
        None, description="Item to answer (null when the assessment is complete)"
    )
    complete: bool = Field(False, description="Whether the assessment has ended")


class SubmitResponseRequest(BaseModel):
    """Schema for answering the pending item."""

    item_id: str = Field(..., min_length=1, description="ID of the answered item")
    selected_value: int = Field(
        ..., description="Answer on the response scale (max = full agreement)"
    )
    answered_at: Optional[datetime] = Field(
        None, description="When the answer was given (defaults to receipt time)"
    )


class StepResultResponse(BaseModel):
    """Schema for the outcome of one recorded response."""

    dimension: Dimension = Field(..., description="Dimension of the answered item")
    theta: float = Field(..., description="Updated estimate")
    standard_error: Optional[float] = Field(None, description="Updated standard error")
    items_administered: int = Field(..., description="Items answered in the dimension")
    dimension_complete: bool = Field(..., description="Whether the dimension stopped")
    stop_reason: Optional[StopReason] = Field(None, description="Why it stopped")
    assessment_complete: bool = Field(..., description="Whether the session completed")
    next_dimension: Optional[Dimension] = Field(
        None, description="Dimension entered after this response, if switched"
    )


class SubmitResponseResponse(BaseModel):
    """Schema for POST /sessions/{id}/responses."""

    step: StepResultResponse = Field(..., description="Outcome of the response")
    next_item: Optional[ItemResponse] = Field(
        None, description="Next item (null when the assessment is complete)"
    )


class DimensionResultResponse(BaseModel):
    """Resolved dimension of a profile."""

    dimension: Dimension
    preference: str = Field(..., description="Resolved pole letter")
    theta: float
    standard_error: Optional[float] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    clarity: PreferenceClarity
    score: int = Field(..., ge=0, le=100, description="Strength toward the first pole")
    items_administered: int
    stop_reason: Optional[StopReason] = None


class TypeProbabilityResponse(BaseModel):
    type: str
    probability: float


class ValidityResponse(BaseModel):
    is_valid: bool
    consistency_score: float
    response_time_valid: bool
    social_desirability_ok: bool
    flags: List[str] = Field(default_factory=list)


class ProfileResponse(BaseModel):
    """Schema for a completed cognitive profile."""

    session_id: str
    respondent_id: str
    type_code: str = Field(..., description="Four-letter type code, e.g. ENTJ")
    dimensions: List[DimensionResultResponse]
    overall_confidence: float
    type_probabilities: List[TypeProbabilityResponse]
    function_stack: Dict[str, object]
    validity: Optional[ValidityResponse] = None
    total_items: int
    completed_at: datetime
    algorithm: str
