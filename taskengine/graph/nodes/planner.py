"""Planner node: choose the next action."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from langchain_core.messages import HumanMessage, SystemMessage

from taskengine.agents.interfaces import Oracle
from taskengine.graph._plan import ExecutionPlan, fallback_plan
from taskengine.graph.parsing import parse_plan
from taskengine.graph.prompts import PLANNER_SYSTEM_PROMPT, build_planner_prompt, identity_prompt
from taskengine.graph.state import EngineState, WorkflowState
from taskengine.tools.mcp.connection import ToolSpec
from taskengine.tools.mcp.pool import ConnectionPool
from taskengine.utils.error_handler import ModelInvocationError, PlanParseError, handle_model_error
from taskengine.utils.logging_utils import log_node_entry, log_node_exit, log_plan, log_prompt

LOGGER = logging.getLogger("taskengine.planner")


class Planner:
    """Builds the context bundle and decodes the oracle's plan."""

    def __init__(self, oracle: Oracle, known_services: Iterable[str] = (), *, prompt_log_length: int = 500):
        self.oracle = oracle
        self.known_services = list(known_services)
        self.prompt_log_length = prompt_log_length

    async def plan(
        self,
        state: WorkflowState,
        services: Sequence[Any] = (),
        catalogs: Mapping[str, List[ToolSpec]] = None,
    ) -> ExecutionPlan:
        """Return the next plan; unparsable output becomes the reasoning fallback.

        Raises:
            ModelInvocationError: The oracle call itself failed
        """
        prompt = build_planner_prompt(state, services, catalogs or {})
        log_prompt(LOGGER, "plan", prompt, self.prompt_log_length)

        try:
            reply = await self.oracle.complete(
                [
                    SystemMessage(content=f"{identity_prompt(state)}\n\n{PLANNER_SYSTEM_PROMPT}"),
                    HumanMessage(content=prompt),
                ],
                phase="plan",
            )
        except Exception as exc:
            raise ModelInvocationError(f"Planner oracle call failed: {exc}", handle_model_error(exc)) from exc

        try:
            plan = parse_plan(reply, self.known_services)
        except PlanParseError as exc:
            LOGGER.warning(f"Plan unparsable, falling back to reasoning: {exc}")
            plan = fallback_plan(reply)

        log_plan(LOGGER, plan)
        return plan


async def connected_catalogs(pool: ConnectionPool, user_id: str) -> Dict[str, List[ToolSpec]]:
    """Live tool lists of services this user already has connections to."""
    catalogs: Dict[str, List[ToolSpec]] = {}
    for service in pool.connected_services(user_id):
        connection = pool.get(user_id, service)
        try:
            catalogs[service] = await connection.list_tools()
        except Exception as exc:
            LOGGER.warning(f"Could not list tools of {service}: {exc}")
    return catalogs


def build_planner_node(*, planner: Planner, pool: ConnectionPool, services: Sequence[Any]):
    """Create the planner node."""

    async def planner_node(state: EngineState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "plan", state)
        workflow = state["workflow"]

        should_cancel = state.get("should_cancel")
        if should_cancel is not None and should_cancel():
            LOGGER.info("Cancellation requested, stopping before planning")
            updates = {"stop_reason": "cancelled"}
            log_node_exit(LOGGER, "plan", updates)
            return updates

        catalogs = await connected_catalogs(pool, workflow.user_id)
        try:
            plan = await planner.plan(workflow, services, catalogs)
        except ModelInvocationError as exc:
            LOGGER.error(f"Planning failed: {exc}")
            updates = {"fatal_error": exc.user_message}
            log_node_exit(LOGGER, "plan", updates)
            return updates

        workflow.current_plan = plan
        workflow.iteration += 1

        updates: Dict[str, Any] = {}
        log_node_exit(LOGGER, "plan", updates)
        return updates

    return planner_node
