"""Unit tests for the workflow data model."""

import pytest

from taskengine.config.services import AgentProfile
from taskengine.graph._plan import ReasoningPlan
from taskengine.graph.state import Blackboard, ExecutionStep, StepLog, TaskComponent, WorkflowState


def _step(number, success=True):
    return ExecutionStep(step_number=number, plan=ReasoningPlan(action="think"), result=f"r{number}", success=success)


class TestStepLog:
    def test_append_contiguous(self):
        log = StepLog()
        for number in (1, 2, 3):
            log.append(_step(number))
        assert [s.step_number for s in log] == [1, 2, 3]
        assert log.get(2).result == "r2"
        assert log.last().step_number == 3

    @pytest.mark.parametrize("number", [0, 2, 5])
    def test_rejects_gaps(self, number):
        log = StepLog()
        with pytest.raises(ValueError):
            log.append(_step(number))

    def test_rejects_duplicates(self):
        log = StepLog()
        log.append(_step(1))
        with pytest.raises(ValueError):
            log.append(_step(1))

    def test_get_out_of_range(self):
        with pytest.raises(KeyError):
            StepLog().get(1)

    def test_successful_and_failed(self):
        log = StepLog()
        log.append(_step(1))
        log.append(_step(2, success=False))
        assert [s.step_number for s in log.successful()] == [1]
        assert [s.step_number for s in log.failed()] == [2]

    def test_steps_are_immutable(self):
        step = _step(1)
        with pytest.raises(Exception):
            step.success = False


def test_blackboard_put_overwrites_and_never_shrinks():
    board = Blackboard()
    board.put("step1", {"price": 1})
    board.put("last_result", {"price": 1})
    board.put("last_result", {"price": 2})
    assert board.get("last_result") == {"price": 2}
    assert board.keys() == ["step1", "last_result"]
    assert not hasattr(board, "delete")


def test_component_mark_completed():
    component = TaskComponent(id="c1", type="analysis", description="d")
    component.mark_completed(3)
    component.mark_completed(4)
    assert component.is_completed
    assert component.completed_step_numbers == [3, 4]


def test_completion_is_monotonic():
    state = WorkflowState(
        task_id="t",
        user_id="u",
        agent=AgentProfile(),
        original_objective="o",
        current_objective="o",
        max_iterations=3,
    )
    assert not state.is_complete
    state.mark_complete()
    state.mark_complete()
    assert state.is_complete
    with pytest.raises(AttributeError):
        state.is_complete = False


def test_execution_summary_counts():
    state = WorkflowState(
        task_id="t",
        user_id="u",
        agent=AgentProfile(),
        original_objective="o",
        current_objective="o",
        max_iterations=3,
        components=[TaskComponent(id="c1", type="analysis", description="d")],
    )
    state.steps.append(_step(1))
    state.steps.append(_step(2, success=False))
    state.completed_component_ids.add("c1")
    assert state.execution_summary() == {
        "totalSteps": 2,
        "successfulSteps": 1,
        "failedSteps": 1,
        "completedComponents": 1,
        "totalComponents": 1,
    }
