"""Workflow state threaded through every node of the control loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Set, TypedDict

from taskengine.config.services import AgentProfile
from taskengine.graph._plan import ExecutionPlan

ComponentType = Literal["data_collection", "data_processing", "action_execution", "analysis", "output"]
COMPONENT_TYPES = ("data_collection", "data_processing", "action_execution", "analysis", "output")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FailureStrategy(str, Enum):
    RETRY = "retry"
    ALTERNATIVE = "alternative"
    SKIP = "skip"
    MANUAL_INTERVENTION = "manual_intervention"


@dataclass(frozen=True)
class ExecutionStep:
    """One executed plan. Never mutated after creation."""

    step_number: int
    plan: ExecutionPlan
    result: Any
    success: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def action(self) -> str:
        return self.plan.action


class StepLog:
    """Append-only step arena with O(1) lookup by step number."""

    def __init__(self) -> None:
        self._steps: List[ExecutionStep] = []

    def next_number(self) -> int:
        return len(self._steps) + 1

    def append(self, step: ExecutionStep) -> None:
        expected = self.next_number()
        if step.step_number != expected:
            raise ValueError(f"Step number {step.step_number} breaks sequence, expected {expected}")
        self._steps.append(step)

    def get(self, step_number: int) -> ExecutionStep:
        if step_number < 1 or step_number > len(self._steps):
            raise KeyError(step_number)
        return self._steps[step_number - 1]

    def last(self) -> Optional[ExecutionStep]:
        return self._steps[-1] if self._steps else None

    def successful(self) -> List[ExecutionStep]:
        return [step for step in self._steps if step.success]

    def failed(self) -> List[ExecutionStep]:
        return [step for step in self._steps if not step.success]

    def __iter__(self) -> Iterator[ExecutionStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)


class Blackboard:
    """Key-value data store that only grows: put appends or overwrites."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class TaskComponent:
    """A decomposed sub-goal; only ``mark_completed`` mutates it."""

    id: str
    type: ComponentType
    description: str
    dependencies: List[str] = field(default_factory=list)
    required_data: List[str] = field(default_factory=list)
    output_data: List[str] = field(default_factory=list)
    optional: bool = False
    is_completed: bool = False
    completed_step_numbers: List[int] = field(default_factory=list)

    def mark_completed(self, step_number: int) -> None:
        self.is_completed = True
        self.completed_step_numbers.append(step_number)


@dataclass
class FailureRecord:
    """Failure history of one action name."""

    action: str
    last_error: str
    first_step_number: int
    attempt_count: int = 1
    last_attempt_at: datetime = field(default_factory=_utcnow)
    strategy: FailureStrategy = FailureStrategy.RETRY
    max_retries: int = 2


@dataclass
class WorkflowState:
    """State owned by a single engine invocation."""

    task_id: str
    user_id: str
    agent: AgentProfile
    original_objective: str
    current_objective: str
    max_iterations: int
    steps: StepLog = field(default_factory=StepLog)
    data_store: Blackboard = field(default_factory=Blackboard)
    current_plan: Optional[ExecutionPlan] = None
    iteration: int = 0
    consecutive_failures: int = 0
    errors: List[str] = field(default_factory=list)
    components: List[TaskComponent] = field(default_factory=list)
    completed_component_ids: Set[str] = field(default_factory=set)
    failures: List[FailureRecord] = field(default_factory=list)
    _complete: bool = field(default=False, repr=False)

    @property
    def is_complete(self) -> bool:
        return self._complete

    def mark_complete(self) -> None:
        """Completion is monotonic: there is no way to reset it."""
        self._complete = True

    def failure_for(self, action: str) -> Optional[FailureRecord]:
        for record in self.failures:
            if record.action == action:
                return record
        return None

    def remaining_components(self) -> List[TaskComponent]:
        return [c for c in self.components if not c.is_completed]

    def execution_summary(self) -> Dict[str, int]:
        successful = len(self.steps.successful())
        return {
            "totalSteps": len(self.steps),
            "successfulSteps": successful,
            "failedSteps": len(self.steps) - successful,
            "completedComponents": len(self.completed_component_ids),
            "totalComponents": len(self.components),
        }


class EngineState(TypedDict, total=False):
    """LangGraph state for one task run.

    The workflow object is mutated in place by nodes; scalar keys drive routing.
    """

    workflow: WorkflowState
    emitter: Any
    should_cancel: Optional[Callable[[], bool]]
    fatal_error: Optional[str]
    stop_reason: Optional[str]
    final_result: str
