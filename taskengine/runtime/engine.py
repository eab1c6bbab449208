"""Task engine: drives the control loop graph for one objective at a time."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional

from taskengine.graph.builder import build_state_graph
from taskengine.graph.state import WorkflowState
from taskengine.runtime.context import EngineContext
from taskengine.runtime.events import EventEmitter, EventSink, ProgressEvent

LOGGER = logging.getLogger("taskengine.engine")

_DONE = object()


@dataclass
class TaskResult:
    task_id: str
    status: str
    final_result: Optional[str]
    error: Optional[str]
    workflow: WorkflowState
    events: List[ProgressEvent] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "completed"


class TaskEngine:
    """Runs objectives through the compiled graph and reports progress events."""

    def __init__(self, context: EngineContext):
        self.context = context
        self.app = build_state_graph(context)

    def _new_workflow(self, objective: str, user_id: str, task_id: Optional[str]) -> WorkflowState:
        return WorkflowState(
            task_id=task_id or uuid.uuid4().hex,
            user_id=user_id,
            agent=self.context.agent,
            original_objective=objective,
            current_objective=objective,
            max_iterations=self.context.settings.engine.max_iterations,
        )

    async def run(
        self,
        objective: str,
        *,
        user_id: str,
        task_id: Optional[str] = None,
        on_event: Optional[EventSink] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> TaskResult:
        """Execute one objective to completion.

        Unexpected errors emit ``task_error``, finalize the task as failed and are re-raised.
        """
        workflow = self._new_workflow(objective, user_id, task_id)
        events: List[ProgressEvent] = []

        def sink(event: ProgressEvent) -> None:
            events.append(event)
            if on_event is not None:
                on_event(event)

        emitter = EventEmitter(workflow.task_id, sink)
        emitter.emit(
            "execution_start",
            {"objective": objective, "agent": self.context.agent.name, "maxIterations": workflow.max_iterations},
        )
        LOGGER.info(f"Task {workflow.task_id} started for user {user_id}: {objective}")

        initial_state = {
            "workflow": workflow,
            "emitter": emitter,
            "should_cancel": should_cancel,
            "fatal_error": None,
            "stop_reason": None,
        }
        config = {"recursion_limit": workflow.max_iterations * 3 + 10}

        try:
            final_state = await self.app.ainvoke(initial_state, config=config)
        except Exception as exc:
            LOGGER.exception(f"Task {workflow.task_id} crashed: {exc}")
            await self._fail(workflow, emitter, exc)
            raise

        fatal_error = final_state.get("fatal_error")
        if fatal_error:
            status = "failed"
        else:
            status = {"completed": "completed", "cancelled": "cancelled"}.get(
                final_state.get("stop_reason"), "incomplete"
            )
        return TaskResult(
            task_id=workflow.task_id,
            status=status,
            final_result=final_state.get("final_result"),
            error=fatal_error,
            workflow=workflow,
            events=events,
        )

    async def _fail(self, workflow: WorkflowState, emitter: EventEmitter, exc: Exception) -> None:
        message = getattr(exc, "user_message", None) or str(exc)
        if emitter.open_step is not None:
            emitter.emit("step_error", {"error": message, "errorKind": "internal"}, step=emitter.open_step)
        emitter.emit("task_error", {"error": message, "summary": workflow.execution_summary()})
        await self.context.persistence.finalize(
            workflow.task_id, "failed", {"error": message, "summary": workflow.execution_summary()}
        )

    async def stream(
        self,
        objective: str,
        *,
        user_id: str,
        task_id: Optional[str] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Yield progress events while the task runs; errors surface after the last event."""
        queue: asyncio.Queue = asyncio.Queue()

        async def produce():
            try:
                await self.run(
                    objective,
                    user_id=user_id,
                    task_id=task_id,
                    on_event=queue.put_nowait,
                    should_cancel=should_cancel,
                )
            finally:
                queue.put_nowait(_DONE)

        runner = asyncio.create_task(produce())
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item
            await runner
        finally:
            if not runner.done():
                runner.cancel()

    async def shutdown(self):
        await self.context.shutdown()
