"""Utility helpers for the task engine."""

from .error_handler import (
    DecompositionParseError,
    EventOrderError,
    InvocationError,
    ModelInvocationError,
    ObservationParseError,
    PlanParseError,
    ServiceConnectionError,
    TaskEngineError,
    ToolResolutionError,
    handle_model_error,
)
from .logging_utils import setup_logging

__all__ = [
    "TaskEngineError",
    "PlanParseError",
    "DecompositionParseError",
    "ObservationParseError",
    "ServiceConnectionError",
    "ToolResolutionError",
    "InvocationError",
    "ModelInvocationError",
    "EventOrderError",
    "handle_model_error",
    "setup_logging",
]
