"""Node factories for the control loop graph."""

from .decompose import TaskDecomposer, build_decompose_node
from .execute import Executor, build_execute_node
from .finalize import build_abort_node, build_finalize_node
from .observe import Observation, Observer, build_observe_node, completion_allowed
from .planner import Planner, build_planner_node

__all__ = [
    "TaskDecomposer",
    "build_decompose_node",
    "Executor",
    "build_execute_node",
    "build_abort_node",
    "build_finalize_node",
    "Observation",
    "Observer",
    "build_observe_node",
    "completion_allowed",
    "Planner",
    "build_planner_node",
]
