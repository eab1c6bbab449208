"""Decompose node: split the objective into task components."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from langchain_core.messages import HumanMessage, SystemMessage

from taskengine.agents.interfaces import Oracle
from taskengine.graph.parsing import decode_first_json, extract_first_json
from taskengine.graph.prompts import DECOMPOSE_SYSTEM_PROMPT, build_decompose_prompt, identity_prompt
from taskengine.graph.state import COMPONENT_TYPES, EngineState, TaskComponent
from taskengine.utils.error_handler import DecompositionParseError
from taskengine.utils.logging_utils import log_node_entry, log_node_exit, log_prompt

LOGGER = logging.getLogger("taskengine.decompose")


def fallback_components(objective: str) -> List[TaskComponent]:
    return [
        TaskComponent(
            id="component_1",
            type="analysis",
            description=f"Complete the task: {objective}",
        )
    ]


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def parse_components(raw_text: str) -> List[TaskComponent]:
    """Decode decomposer output.

    Accepts a bare JSON array or an object with a ``components`` array,
    whichever appears first in the text.

    Raises:
        DecompositionParseError: No usable component list
    """
    array_at = raw_text.find("[")
    object_at = raw_text.find("{")
    openers = ["{", "["] if object_at != -1 and (array_at == -1 or object_at < array_at) else ["[", "{"]

    entries = None
    for opener in openers:
        if extract_first_json(raw_text, opener) is None:
            continue
        data = decode_first_json(raw_text, opener)
        if isinstance(data, dict) and isinstance(data.get("components"), list):
            entries = data["components"]
            break
        if isinstance(data, list):
            entries = data
            break

    if not entries:
        raise DecompositionParseError("Decomposer output has no component list")

    components: List[TaskComponent] = []
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            continue
        component_type = str(entry.get("type") or "analysis")
        if component_type not in COMPONENT_TYPES:
            LOGGER.debug(f"  Unknown component type '{component_type}', using analysis")
            component_type = "analysis"
        components.append(
            TaskComponent(
                id=str(entry.get("id") or f"component_{index}"),
                type=component_type,
                description=str(entry.get("description") or f"Component {index}"),
                dependencies=_string_list(entry.get("dependencies")),
                required_data=_string_list(entry.get("requiredData") or entry.get("required_data")),
                output_data=_string_list(entry.get("outputData") or entry.get("output_data")),
                optional=bool(entry.get("optional", False)),
            )
        )

    if not components:
        raise DecompositionParseError("Decomposer output has no component objects")

    known_ids = {component.id for component in components}
    for component in components:
        dangling = [dep for dep in component.dependencies if dep not in known_ids]
        if dangling:
            LOGGER.debug(f"  Dropping unknown dependencies of {component.id}: {dangling}")
            component.dependencies = [dep for dep in component.dependencies if dep in known_ids]

    return components


class TaskDecomposer:
    """One oracle call that breaks an objective into components; never returns an empty list."""

    def __init__(self, oracle: Oracle, *, prompt_log_length: int = 500):
        self.oracle = oracle
        self.prompt_log_length = prompt_log_length

    async def decompose(self, objective: str, services: Sequence[Any] = (), system_prompt: str = "") -> List[TaskComponent]:
        prompt = build_decompose_prompt(objective, services)
        log_prompt(LOGGER, "decompose", prompt, self.prompt_log_length)

        system = f"{system_prompt}\n\n{DECOMPOSE_SYSTEM_PROMPT}" if system_prompt else DECOMPOSE_SYSTEM_PROMPT
        try:
            reply = await self.oracle.complete(
                [SystemMessage(content=system), HumanMessage(content=prompt)],
                phase="decompose",
            )
            components = parse_components(reply)
        except DecompositionParseError as exc:
            LOGGER.warning(f"Decomposition unparsable, using single component: {exc}")
            return fallback_components(objective)
        except Exception as exc:
            LOGGER.warning(f"Decomposition failed, using single component: {exc}")
            return fallback_components(objective)

        LOGGER.info(f"Decomposed objective into {len(components)} component(s)")
        return components


def build_decompose_node(*, decomposer: TaskDecomposer, services: Sequence[Any]):
    """Create the decompose node bound to the engine's services."""

    async def decompose_node(state: EngineState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "decompose", state)
        workflow = state["workflow"]

        workflow.components = await decomposer.decompose(
            workflow.original_objective, services, identity_prompt(workflow)
        )
        state["emitter"].emit(
            "task_decomposed",
            {
                "components": [
                    {"id": c.id, "type": c.type, "description": c.description, "optional": c.optional}
                    for c in workflow.components
                ]
            },
        )

        updates: Dict[str, Any] = {}
        log_node_exit(LOGGER, "decompose", updates)
        return updates

    return decompose_node
