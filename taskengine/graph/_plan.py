"""Execution plan schema: a tagged variant of reasoning or capability call."""

from __future__ import annotations

from typing import Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

FALLBACK_ACTION = "llm.process"


class _PlanBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str = Field(min_length=1)
    args: Dict[str, Any] = Field(default_factory=dict)
    expected_output: str = "Task result"
    reasoning: str = "No reasoning provided"


class ReasoningPlan(_PlanBase):
    """Internal reasoning step answered by the oracle."""

    kind: Literal["reasoning"] = "reasoning"

    @property
    def service(self) -> None:
        return None


class CapabilityCallPlan(_PlanBase):
    """Call of ``action`` on an external capability service."""

    kind: Literal["capability_call"] = "capability_call"
    service: str = Field(min_length=1)


ExecutionPlan = Union[ReasoningPlan, CapabilityCallPlan]


def fallback_plan(raw_text: str) -> ReasoningPlan:
    """Route unparsable oracle output through the reasoning path."""

    return ReasoningPlan(
        action=FALLBACK_ACTION,
        args={"content": raw_text},
        expected_output="Process user request",
        reasoning="Fallback plan due to parsing error",
    )
