"""Finalize and abort nodes: close out the task."""

from __future__ import annotations

import logging
from typing import Any, Dict

from langchain_core.messages import HumanMessage, SystemMessage

from taskengine.agents.interfaces import Oracle
from taskengine.context.compactor import ContextCompactor, extract_raw_content
from taskengine.graph.prompts import SUMMARIZE_SYSTEM_PROMPT, build_summary_prompt, identity_prompt
from taskengine.graph.state import EngineState, WorkflowState
from taskengine.persistence.sink import PersistenceSink
from taskengine.utils.logging_utils import log_node_entry, log_node_exit, log_prompt

LOGGER = logging.getLogger("taskengine.finalize")

STATUS_BY_REASON = {
    "completed": "completed",
    "max_iterations": "incomplete",
    "cancelled": "cancelled",
}


def fallback_result(state: WorkflowState) -> str:
    """Last result, or all successful results when there is none."""
    last = state.data_store.get("last_result")
    if last is not None:
        return extract_raw_content(last)
    successful = state.steps.successful()
    if successful:
        return "\n\n".join(extract_raw_content(step.result) for step in successful)
    return "No results were produced."


def build_finalize_node(
    *,
    oracle: Oracle,
    compactor: ContextCompactor,
    persistence: PersistenceSink,
    prompt_log_length: int = 500,
):
    """Create the finalize node that streams the final answer."""

    async def finalize_node(state: EngineState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "finalize", state)
        workflow = state["workflow"]
        emitter = state["emitter"]

        stop_reason = state.get("stop_reason") or ("completed" if workflow.is_complete else "max_iterations")
        status = STATUS_BY_REASON.get(stop_reason, "incomplete")

        context = compactor.compact(workflow.steps)
        prompt = build_summary_prompt(workflow, context.text, status)
        log_prompt(LOGGER, "summarize", prompt, prompt_log_length)

        parts = []
        try:
            async for chunk in oracle.stream(
                [
                    SystemMessage(content=f"{identity_prompt(workflow)}\n\n{SUMMARIZE_SYSTEM_PROMPT}"),
                    HumanMessage(content=prompt),
                ],
                phase="summarize",
            ):
                parts.append(chunk)
                emitter.emit("final_result_chunk", {"content": chunk})
        except Exception as exc:
            LOGGER.warning(f"Final summary streaming failed: {exc}")

        final_result = "".join(parts)
        if not final_result:
            final_result = fallback_result(workflow)
            emitter.emit("final_result_chunk", {"content": final_result})

        summary = workflow.execution_summary()
        await persistence.finalize(
            workflow.task_id,
            status,
            {"finalResult": final_result, "summary": summary, "errors": list(workflow.errors)},
        )
        emitter.emit(
            "task_complete",
            {"status": status, "finalResult": final_result, "summary": summary},
        )
        LOGGER.info(f"Task {workflow.task_id} finished with status '{status}'")

        updates = {"final_result": final_result, "stop_reason": stop_reason}
        log_node_exit(LOGGER, "finalize", updates)
        return updates

    return finalize_node


def build_abort_node(*, persistence: PersistenceSink):
    """Create the abort node for fatal stops."""

    async def abort_node(state: EngineState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "abort", state)
        workflow = state["workflow"]
        error = state.get("fatal_error") or "Task aborted"

        summary = workflow.execution_summary()
        await persistence.finalize(
            workflow.task_id,
            "failed",
            {"error": error, "summary": summary, "errors": list(workflow.errors)},
        )
        state["emitter"].emit("task_error", {"error": error, "summary": summary})
        LOGGER.error(f"Task {workflow.task_id} aborted: {error}")

        updates = {"stop_reason": "aborted"}
        log_node_exit(LOGGER, "abort", updates)
        return updates

    return abort_node
