"""Unified error taxonomy for the task engine."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)


class TaskEngineError(Exception):
    """Base exception for task engine errors."""

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


# ========== Recovered locally ==========

class PlanParseError(TaskEngineError):
    """Planner output could not be decoded into a plan."""
    pass


class DecompositionParseError(TaskEngineError):
    """Decomposer output could not be decoded into task components."""
    pass


class ObservationParseError(TaskEngineError):
    """Observer output could not be decoded into an observation."""
    pass


# ========== Step-level failures (classified, loop continues) ==========

class ToolResolutionError(TaskEngineError):
    """No tool in the live catalog matches the requested action."""
    pass


class InvocationError(TaskEngineError):
    """The resolved tool returned an error."""
    pass


class ModelInvocationError(TaskEngineError):
    """Error during oracle invocation."""
    pass


# ========== Task-level failures ==========

class ServiceConnectionError(TaskEngineError):
    """Capability service could not be connected (credentials or startup)."""

    def __init__(self, message: str, service: str = "", user_message: str = None):
        super().__init__(message, user_message=user_message)
        self.service = service


# Short name for the task-aborting error.
ConnectionError = ServiceConnectionError  # noqa: A001


class EventOrderError(TaskEngineError):
    """Progress events were emitted out of order."""
    pass


def handle_model_error(error: Exception) -> str:
    """Convert oracle invocation errors to user-friendly messages.

    Args:
        error: Exception raised during model invocation

    Returns:
        User-friendly error message
    """
    error_str = str(error).lower()

    if "rate_limit" in error_str or "429" in error_str:
        return "The model is rate limited, please retry shortly"

    if "timeout" in error_str:
        return "The model timed out, please retry"

    if "context_length" in error_str or "maximum context" in error_str:
        return "The task context is too long for the model"

    if "invalid_api_key" in error_str or "authentication" in error_str:
        return "The model API key is invalid"

    if "quota" in error_str or "insufficient" in error_str:
        return "The model quota is exhausted"

    return f"The model is temporarily unavailable: {error}"
