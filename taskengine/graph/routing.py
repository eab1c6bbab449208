"""Conditional routing helpers for the control loop."""

from __future__ import annotations

import logging
from typing import Literal

from taskengine.utils.logging_utils import log_routing_decision

from .state import EngineState

LOGGER = logging.getLogger("taskengine.routing")


def plan_route(state: EngineState) -> Literal["execute", "finalize", "abort"]:
    """Route after planning.

    Returns:
        "abort": The planner could not reach the oracle
        "finalize": Cancellation was requested
        "execute": A plan is ready
    """
    if state.get("fatal_error"):
        decision, reason = "abort", state["fatal_error"]
    elif state.get("stop_reason"):
        decision, reason = "finalize", f"Stop requested ({state['stop_reason']})"
    else:
        plan = state["workflow"].current_plan
        decision, reason = "execute", f"Plan ready: {plan.action}"

    log_routing_decision(LOGGER, "plan", decision, reason)
    return decision


def execute_route(state: EngineState) -> Literal["observe", "abort"]:
    """Route after a step: fatal errors abort, everything else is observed."""
    if state.get("fatal_error"):
        decision, reason = "abort", state["fatal_error"]
    else:
        decision, reason = "observe", f"{state['workflow'].consecutive_failures} consecutive failure(s)"

    log_routing_decision(LOGGER, "execute", decision, reason)
    return decision


def observe_route(state: EngineState) -> Literal["plan", "finalize"]:
    """Route after observation: loop until complete or out of iterations."""
    workflow = state["workflow"]
    if state.get("stop_reason"):
        decision, reason = "finalize", state["stop_reason"]
    else:
        decision, reason = "plan", f"Iteration {workflow.iteration}/{workflow.max_iterations}"

    log_routing_decision(LOGGER, "observe", decision, reason)
    return decision
