"""Observe node: judge progress and apply the completion policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from taskengine.agents.interfaces import Oracle
from taskengine.context.compactor import ContextCompactor
from taskengine.graph.parsing import decode_first_json
from taskengine.graph.prompts import OBSERVER_SYSTEM_PROMPT, build_observer_prompt
from taskengine.graph.state import EngineState, FailureStrategy, WorkflowState
from taskengine.utils.error_handler import ObservationParseError
from taskengine.utils.logging_utils import log_node_entry, log_node_exit, log_prompt

LOGGER = logging.getLogger("taskengine.observe")


@dataclass(frozen=True)
class Observation:
    is_complete: bool = False
    next_objective: Optional[str] = None
    confidence: float = 0.0
    critical_gaps: List[str] = field(default_factory=list)
    reasoning: str = ""


CONTINUE = Observation(reasoning="Observation unavailable, continuing")


def completion_allowed(state: WorkflowState) -> bool:
    """Completion policy applied on top of the oracle's advisory verdict.

    Allowed when every non-optional component is complete, or when a
    manual-intervention failure blocks progress and at least one step succeeded.
    """
    required = [c for c in state.components if not c.optional]
    if all(c.is_completed for c in required):
        return True

    blocked = any(r.strategy is FailureStrategy.MANUAL_INTERVENTION for r in state.failures)
    return blocked and len(state.steps.successful()) > 0


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def parse_observation(raw_text: str) -> Observation:
    """Decode observer output.

    Raises:
        ObservationParseError: No usable observation object
    """
    try:
        data = decode_first_json(raw_text, "{")
    except ValueError as exc:
        raise ObservationParseError(f"Observer output has no JSON object: {exc}") from exc
    if not isinstance(data, dict):
        raise ObservationParseError("Observer output is not a JSON object")

    next_objective = data.get("nextObjective") or data.get("next_objective")
    try:
        confidence = float(data.get("confidence") or 0.0)
    except (TypeError, ValueError):
        confidence = 0.0
    gaps = data.get("criticalGaps") or data.get("critical_gaps") or []

    return Observation(
        is_complete=_as_bool(data.get("isComplete", data.get("is_complete", False))),
        next_objective=str(next_objective).strip() if next_objective else None,
        confidence=max(0.0, min(1.0, confidence)),
        critical_gaps=[str(gap) for gap in gaps] if isinstance(gaps, list) else [str(gaps)],
        reasoning=str(data.get("reasoning") or ""),
    )


class Observer:
    def __init__(self, oracle: Oracle, compactor: ContextCompactor, *, prompt_log_length: int = 500):
        self.oracle = oracle
        self.compactor = compactor
        self.prompt_log_length = prompt_log_length

    async def observe(self, state: WorkflowState) -> Observation:
        """Ask the oracle for a verdict; the completion policy may override it."""
        context = self.compactor.compact(state.steps)
        prompt = build_observer_prompt(state, context.text)
        log_prompt(LOGGER, "observe", prompt, self.prompt_log_length)

        try:
            reply = await self.oracle.complete(
                [SystemMessage(content=OBSERVER_SYSTEM_PROMPT), HumanMessage(content=prompt)],
                phase="observe",
            )
            observation = parse_observation(reply)
        except ObservationParseError as exc:
            LOGGER.warning(f"Observation unparsable, continuing: {exc}")
            return CONTINUE
        except Exception as exc:
            LOGGER.warning(f"Observation failed, continuing: {exc}")
            return CONTINUE

        if observation.is_complete and not completion_allowed(state):
            remaining = [c.id for c in state.remaining_components() if not c.optional]
            LOGGER.info(f"Completion vetoed, open components: {remaining}")
            observation = Observation(
                is_complete=False,
                next_objective=observation.next_objective,
                confidence=observation.confidence,
                critical_gaps=observation.critical_gaps or [f"Open component: {cid}" for cid in remaining],
                reasoning=observation.reasoning,
            )
        return observation


def build_observe_node(*, observer: Observer):
    """Create the observe node."""

    async def observe_node(state: EngineState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "observe", state)
        workflow = state["workflow"]

        observation = await observer.observe(workflow)
        LOGGER.info(
            f"Observation: complete={observation.is_complete} "
            f"confidence={observation.confidence:.2f} gaps={observation.critical_gaps}"
        )

        if observation.is_complete:
            workflow.mark_complete()
        elif observation.next_objective:
            workflow.current_objective = observation.next_objective

        updates: Dict[str, Any] = {}
        if workflow.is_complete:
            updates["stop_reason"] = "completed"
        elif workflow.iteration >= workflow.max_iterations:
            updates["stop_reason"] = "max_iterations"

        log_node_exit(LOGGER, "observe", updates)
        return updates

    return observe_node
