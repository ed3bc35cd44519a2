"""
Exception taxonomy for the adaptive assessment engine.

Only ``ConfigurationError`` and ``InvalidStateError`` escape the session
orchestrator. Item exhaustion is signalled by the ``EXHAUSTED`` sentinel in
``item_selection`` and is never raised.
"""
from typing import Any, Dict, Optional


class AssessmentError(Exception):
    """Base class for assessment engine errors."""

    def __init__(  # noqa: D107
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg = f"{msg} (context: {ctx_str})"
        return msg


class ConfigurationError(AssessmentError):
    """Item bank or engine configuration cannot support an assessment.

    Raised at startup; not recoverable at runtime.
    """


class ItemNotFoundError(AssessmentError):
    """Lookup of an item id that is not in the item bank."""


class InvalidStateError(AssessmentError):
    """Operation not allowed in the session's current state."""


class SessionNotFoundError(AssessmentError):
    """No session is registered under the requested id."""


NotFound = ItemNotFoundError
