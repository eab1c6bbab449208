"""Sinks receiving executed steps and final task status."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from taskengine.graph.state import ExecutionStep


class PersistenceSink(Protocol):
    async def append_step(self, task_id: str, step: ExecutionStep, formatted_result: Optional[str] = None) -> None:
        ...

    async def finalize(self, task_id: str, status: str, payload: Dict[str, Any]) -> None:
        ...


class NullPersistenceSink:
    """Discards everything."""

    async def append_step(self, task_id: str, step: ExecutionStep, formatted_result: Optional[str] = None) -> None:
        return None

    async def finalize(self, task_id: str, status: str, payload: Dict[str, Any]) -> None:
        return None


@dataclass
class TaskRecord:
    steps: List[ExecutionStep] = field(default_factory=list)
    formatted_results: Dict[int, str] = field(default_factory=dict)
    status: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class InMemoryPersistenceSink:
    """Keeps task records in a dict; useful for tests and embedding."""

    def __init__(self) -> None:
        self.records: Dict[str, TaskRecord] = {}

    def _record(self, task_id: str) -> TaskRecord:
        return self.records.setdefault(task_id, TaskRecord())

    async def append_step(self, task_id: str, step: ExecutionStep, formatted_result: Optional[str] = None) -> None:
        record = self._record(task_id)
        record.steps.append(step)
        if formatted_result is not None:
            record.formatted_results[step.step_number] = formatted_result

    async def finalize(self, task_id: str, status: str, payload: Dict[str, Any]) -> None:
        record = self._record(task_id)
        record.status = status
        record.payload = dict(payload)
