"""Ordered progress events with per-step ordering checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from taskengine.utils.error_handler import EventOrderError

LOGGER = logging.getLogger("taskengine.events")

EventSink = Callable[["ProgressEvent"], Any]

STEP_EVENTS = {"step_start", "step_raw_chunk", "step_formatted_chunk", "step_complete", "step_error"}
TASK_EVENTS = {"execution_start", "task_decomposed", "final_result_chunk", "task_complete", "task_error"}


@dataclass(frozen=True)
class ProgressEvent:
    seq: int
    type: str
    task_id: str
    step: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "type": self.type,
            "taskId": self.task_id,
            "step": self.step,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class _StepPhase(Enum):
    STARTED = "started"
    RAW = "raw"
    FORMATTED = "formatted"


class EventEmitter:
    """Assigns sequence numbers and enforces event order.

    Per step: ``step_start -> step_raw_chunk* -> step_formatted_chunk* ->
    (step_complete | step_error)``. Only one step may be open at a time and
    nothing follows ``task_complete`` / ``task_error``.
    """

    def __init__(self, task_id: str, sink: Optional[EventSink] = None):
        self.task_id = task_id
        self._sink = sink
        self._seq = 0
        self._open_step: Optional[int] = None
        self._phase: Optional[_StepPhase] = None
        self._closed_steps: set = set()
        self._finished = False

    @property
    def open_step(self) -> Optional[int]:
        return self._open_step

    def emit(self, event_type: str, data: Optional[Dict[str, Any]] = None, step: Optional[int] = None) -> ProgressEvent:
        if event_type not in STEP_EVENTS and event_type not in TASK_EVENTS:
            raise EventOrderError(f"Unknown event type: {event_type}")
        if self._finished:
            raise EventOrderError(f"Event '{event_type}' after task terminated")

        if event_type in STEP_EVENTS:
            self._advance_step(event_type, step)
        else:
            self._check_task_event(event_type)

        self._seq += 1
        event = ProgressEvent(seq=self._seq, type=event_type, task_id=self.task_id, step=step, data=data or {})
        LOGGER.debug(f"Event #{event.seq} {event_type} (step={step})")
        if self._sink is not None:
            self._sink(event)
        return event

    def _advance_step(self, event_type: str, step: Optional[int]) -> None:
        if step is None:
            raise EventOrderError(f"'{event_type}' requires a step number")

        if event_type == "step_start":
            if self._open_step is not None:
                raise EventOrderError(f"step_start for {step} while step {self._open_step} is open")
            if step in self._closed_steps:
                raise EventOrderError(f"Step {step} already terminated")
            self._open_step = step
            self._phase = _StepPhase.STARTED
            return

        if self._open_step != step:
            raise EventOrderError(f"'{event_type}' for step {step} which is not open")

        if event_type == "step_raw_chunk":
            if self._phase is _StepPhase.FORMATTED:
                raise EventOrderError(f"Raw chunk after formatted chunk in step {step}")
            self._phase = _StepPhase.RAW
        elif event_type == "step_formatted_chunk":
            self._phase = _StepPhase.FORMATTED
        else:
            self._closed_steps.add(step)
            self._open_step = None
            self._phase = None

    def _check_task_event(self, event_type: str) -> None:
        if self._open_step is not None:
            raise EventOrderError(f"'{event_type}' while step {self._open_step} is open")
        if event_type in ("task_complete", "task_error"):
            self._finished = True
