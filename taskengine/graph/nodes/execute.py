"""Execute node: run the current plan and record exactly one step."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from langchain_core.messages import HumanMessage, SystemMessage

from taskengine.agents.interfaces import Oracle
from taskengine.context.compactor import ContextCompactor, extract_raw_content
from taskengine.graph._plan import ExecutionPlan
from taskengine.graph.components import update_components
from taskengine.graph.failure import record_failure
from taskengine.graph.prompts import (
    FORMAT_RESULT_PROMPT,
    REASONING_SYSTEM_PROMPT,
    build_format_prompt,
    build_reasoning_prompt,
)
from taskengine.graph.state import EngineState, ExecutionStep, WorkflowState
from taskengine.persistence.sink import PersistenceSink
from taskengine.tools.mcp.resolver import ToolResolver
from taskengine.utils.error_handler import (
    InvocationError,
    ModelInvocationError,
    ServiceConnectionError,
    ToolResolutionError,
    handle_model_error,
)
from taskengine.utils.logging_utils import log_node_entry, log_node_exit, log_prompt

LOGGER = logging.getLogger("taskengine.execute")

ERROR_KINDS = {
    ServiceConnectionError: "connection",
    ToolResolutionError: "tool_resolution",
    InvocationError: "invocation",
    ModelInvocationError: "model",
}


def chunk_text(text: str, size: int):
    for start in range(0, len(text), size):
        yield text[start:start + size]


def fenced_json(raw_content: str) -> str:
    return f"```json\n{raw_content}\n```"


class Executor:
    """Performs one plan and streams its result on the raw and formatted channels."""

    def __init__(
        self,
        oracle: Oracle,
        resolver: ToolResolver,
        compactor: ContextCompactor,
        persistence: PersistenceSink,
        *,
        raw_chunk_size: int = 100,
        format_results: bool = True,
        max_retries: int = 2,
        prompt_log_length: int = 500,
    ):
        self.oracle = oracle
        self.resolver = resolver
        self.compactor = compactor
        self.persistence = persistence
        self.raw_chunk_size = raw_chunk_size
        self.format_results = format_results
        self.max_retries = max_retries
        self.prompt_log_length = prompt_log_length

    # ========== Running the plan ==========

    async def _run_reasoning(self, state: WorkflowState, plan: ExecutionPlan) -> str:
        context = self.compactor.compact(state.steps)
        prompt = build_reasoning_prompt(plan, state.original_objective, context.text)
        log_prompt(LOGGER, "reasoning", prompt, self.prompt_log_length)
        try:
            return await self.oracle.complete(
                [SystemMessage(content=REASONING_SYSTEM_PROMPT), HumanMessage(content=prompt)],
                phase="reasoning",
            )
        except Exception as exc:
            raise ModelInvocationError(f"Reasoning step failed: {exc}", handle_model_error(exc)) from exc

    async def _run(self, state: WorkflowState, plan: ExecutionPlan) -> Tuple[Any, Optional[Exception]]:
        try:
            if plan.kind == "capability_call":
                return await self.resolver.execute(state.user_id, plan), None
            return await self._run_reasoning(state, plan), None
        except (ServiceConnectionError, ToolResolutionError, InvocationError, ModelInvocationError) as exc:
            LOGGER.warning(f"Step '{plan.action}' failed: {exc}")
            return None, exc

    # ========== Streaming the result ==========

    async def _stream_formatted(self, emitter, step_number: int, plan: ExecutionPlan, raw_content: str) -> str:
        prompt = build_format_prompt(plan.action, raw_content)
        parts = []
        try:
            async for chunk in self.oracle.stream(
                [SystemMessage(content=FORMAT_RESULT_PROMPT), HumanMessage(content=prompt)],
                phase="format_result",
            ):
                parts.append(chunk)
                emitter.emit("step_formatted_chunk", {"content": chunk}, step=step_number)
        except Exception as exc:
            LOGGER.warning(f"Result formatting failed for step {step_number}: {exc}")

        if parts:
            return "".join(parts)

        fallback = fenced_json(raw_content)
        emitter.emit("step_formatted_chunk", {"content": fallback}, step=step_number)
        return fallback

    # ========== Step ==========

    async def execute(self, state: WorkflowState, emitter) -> Tuple[ExecutionStep, Optional[Exception]]:
        """Execute ``state.current_plan``; the step is appended to the log either way."""
        plan = state.current_plan
        step_number = state.steps.next_number()
        emitter.emit(
            "step_start",
            {
                "action": plan.action,
                "kind": plan.kind,
                "service": plan.service,
                "args": plan.args,
                "reasoning": plan.reasoning,
            },
            step=step_number,
        )

        result, error = await self._run(state, plan)

        if error is not None:
            step = ExecutionStep(
                step_number=step_number,
                plan=plan,
                result=None,
                success=False,
                error=str(error),
                error_kind=ERROR_KINDS.get(type(error), "invocation"),
            )
            state.steps.append(step)
            state.errors.append(f"Step {step_number} ({plan.action}): {error}")
            state.consecutive_failures += 1
            record = record_failure(state, step, self.max_retries)
            await self.persistence.append_step(state.task_id, step)
            emitter.emit(
                "step_error",
                {
                    "action": plan.action,
                    "error": str(error),
                    "errorKind": step.error_kind,
                    "strategy": record.strategy.value,
                    "attempt": record.attempt_count,
                },
                step=step_number,
            )
            return step, error

        raw_content = extract_raw_content(result)
        for chunk in chunk_text(raw_content, self.raw_chunk_size):
            emitter.emit("step_raw_chunk", {"content": chunk}, step=step_number)

        formatted = None
        if self.format_results and plan.kind == "capability_call":
            formatted = await self._stream_formatted(emitter, step_number, plan, raw_content)

        step = ExecutionStep(step_number=step_number, plan=plan, result=result, success=True)
        state.steps.append(step)
        state.data_store.put(f"step{step_number}", result)
        state.data_store.put("last_result", result)
        state.consecutive_failures = 0
        completed = update_components(state, step)
        await self.persistence.append_step(state.task_id, step, formatted)

        emitter.emit(
            "step_complete",
            {
                "action": plan.action,
                "success": True,
                "formattedResult": formatted,
                "completedComponents": completed,
            },
            step=step_number,
        )
        return step, None


def build_execute_node(*, executor: Executor, max_consecutive_failures: int = 3):
    """Create the execute node."""

    async def execute_node(state: EngineState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "execute", state)
        workflow = state["workflow"]

        step, error = await executor.execute(workflow, state["emitter"])

        updates: Dict[str, Any] = {}
        if isinstance(error, ServiceConnectionError):
            updates["fatal_error"] = error.user_message
        elif workflow.consecutive_failures >= max_consecutive_failures:
            updates["fatal_error"] = (
                f"Stopped after {workflow.consecutive_failures} consecutive failed steps; "
                f"last error: {step.error}"
            )

        log_node_exit(LOGGER, "execute", updates)
        return updates

    return execute_node
