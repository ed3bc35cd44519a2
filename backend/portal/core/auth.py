"""
FastAPI identity dependencies.

Authentication is performed upstream by the identity service, which forwards
the authenticated user id in the ``X-User-Id`` header. This module only
extracts it; no credentials are verified here.
"""
from typing import Optional

from fastapi import Header

from .error_responses import ErrorMessages, raise_unauthorized

USER_ID_HEADER = "X-User-Id"


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """
    Return the authenticated user id forwarded by the identity service.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if x_user_id is None or not x_user_id.strip():
        raise_unauthorized(ErrorMessages.MISSING_USER_ID)
    return x_user_id.strip()
