"""
Pydantic schemas for request/response validation.
"""
from .assessment import (
    DimensionProgressResponse,
    DimensionResultResponse,
    ItemResponse,
    NextItemResponse,
    ProfileResponse,
    SessionResponse,
    StartSessionResponse,
    StepResultResponse,
    SubmitResponseRequest,
    SubmitResponseResponse,
)

__all__ = [
    "DimensionProgressResponse",
    "DimensionResultResponse",
    "ItemResponse",
    "NextItemResponse",
    "ProfileResponse",
    "SessionResponse",
    "StartSessionResponse",
    "StepResultResponse",
    "SubmitResponseRequest",
    "SubmitResponseResponse",
]
