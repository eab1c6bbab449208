"""Keyword matching of executed steps against task components.

The matching is approximate: it looks at the action name and plan kind only,
never at the content of the result. A single step may complete several
components, and component dependencies do not gate completion.
"""

from __future__ import annotations

import logging
from typing import List

from taskengine.graph._plan import ExecutionPlan
from taskengine.graph.state import ExecutionStep, TaskComponent, WorkflowState

LOGGER = logging.getLogger("taskengine.components")

COLLECTION_KEYWORDS = ("get", "fetch", "search", "retrieve", "list", "query", "read", "lookup")
PROCESSING_KEYWORDS = ("analyze", "analyse", "process", "summarize", "summarise", "calculate", "compare")
ACTION_KEYWORDS = ("send", "create", "post", "publish", "save", "tweet", "update", "write")
OUTPUT_KEYWORDS = ("generate", "format", "export", "report", "render")
REASONING_OUTPUT_KEYWORDS = ("summar", "report", "write", "compose")


def _has_keyword(action: str, keywords) -> bool:
    return any(keyword in action for keyword in keywords)


def step_matches_component(plan: ExecutionPlan, component: TaskComponent) -> bool:
    """Return True when a successful step with ``plan`` fulfils ``component``."""
    action = plan.action.lower()
    is_reasoning = plan.kind == "reasoning"

    if component.type == "data_collection":
        if _has_keyword(action, COLLECTION_KEYWORDS):
            return True
        # Any capability call that is not an outward action still gathers data.
        return not is_reasoning and not _has_keyword(action, ACTION_KEYWORDS)

    if component.type in ("analysis", "data_processing"):
        return is_reasoning or _has_keyword(action, PROCESSING_KEYWORDS)

    if component.type == "action_execution":
        return not is_reasoning and _has_keyword(action, ACTION_KEYWORDS)

    if component.type == "output":
        if _has_keyword(action, OUTPUT_KEYWORDS):
            return True
        return is_reasoning and _has_keyword(action, REASONING_OUTPUT_KEYWORDS)

    return False


def update_components(state: WorkflowState, step: ExecutionStep) -> List[str]:
    """Mark components satisfied by a successful step; returns the newly completed ids."""
    if not step.success:
        return []

    completed: List[str] = []
    for component in state.components:
        if component.is_completed:
            continue
        if step_matches_component(step.plan, component):
            component.mark_completed(step.step_number)
            state.completed_component_ids.add(component.id)
            completed.append(component.id)

    if completed:
        LOGGER.info(f"Step {step.step_number} completed components: {', '.join(completed)}")
    return completed
