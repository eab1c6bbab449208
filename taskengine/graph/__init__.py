"""Control loop: data model, parsing, policies and graph nodes."""

from ._plan import CapabilityCallPlan, ExecutionPlan, ReasoningPlan, fallback_plan
from .state import (
    Blackboard,
    EngineState,
    ExecutionStep,
    FailureRecord,
    FailureStrategy,
    StepLog,
    TaskComponent,
    WorkflowState,
)

__all__ = [
    "CapabilityCallPlan",
    "ExecutionPlan",
    "ReasoningPlan",
    "fallback_plan",
    "Blackboard",
    "EngineState",
    "ExecutionStep",
    "FailureRecord",
    "FailureStrategy",
    "StepLog",
    "TaskComponent",
    "WorkflowState",
]
