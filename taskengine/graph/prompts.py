"""Prompts shared across nodes."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from taskengine.graph.state import FailureStrategy, WorkflowState

# ========== Base Identity ==========
BASE_IDENTITY = """# Identity
You are {agent_name}, an autonomous task agent. {agent_description}

# Rules
- Never invent data; rely on tool results and prior step outputs
- Prefer the fewest steps that satisfy the objective
- If a tool fails, explain why and pick an alternative"""


def identity_prompt(state: WorkflowState) -> str:
    return BASE_IDENTITY.format(agent_name=state.agent.name, agent_description=state.agent.description)


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


# ========== Decompose Stage ==========
DECOMPOSE_SYSTEM_PROMPT = """# Current stage: task decomposition
Break the objective into the smallest set of components needed to satisfy it.

Component types: data_collection, data_processing, action_execution, analysis, output.

Respond with a JSON object only:
{"components": [{"id": "component_1", "type": "data_collection", "description": "...",
  "dependencies": [], "requiredData": [], "outputData": [], "optional": false}]}"""


def build_decompose_prompt(objective: str, services: Sequence[Any]) -> str:
    lines = [f"Objective: {objective}", "", "Available capability services:"]
    if services:
        lines.extend(f"- {svc.name}: {svc.description}" for svc in services)
    else:
        lines.append("- (none, reasoning only)")
    return "\n".join(lines)


# ========== Planner Stage ==========
PLANNER_SYSTEM_PROMPT = """# Current stage: plan the next step
Choose exactly one next action.

- Use toolType "mcp" with the capability service name in mcpName to call a tool
- Use toolType "llm" for internal reasoning over data already collected
- Do not repeat an action whose failure strategy is "skip" or "manual_intervention"
- Change approach for actions marked "alternative" (shorter input, different tool)

Respond with a JSON object only:
{"tool": "<tool name>", "toolType": "mcp" | "llm", "mcpName": "<service or null>",
 "args": {}, "expectedOutput": "...", "reasoning": "..."}"""


def _describe_last_step(state: WorkflowState) -> str:
    last = state.steps.last()
    if last is None:
        return "No steps executed yet."
    if last.success:
        return f"Step {last.step_number} ({last.action}) succeeded."
    return f"Step {last.step_number} ({last.action}) failed: {last.error}"


def _describe_failures(state: WorkflowState) -> List[str]:
    lines = []
    for record in state.failures:
        hint = {
            FailureStrategy.RETRY: "may be retried",
            FailureStrategy.ALTERNATIVE: "use a different approach",
            FailureStrategy.SKIP: "skip this action",
            FailureStrategy.MANUAL_INTERVENTION: "needs user action, do not retry",
        }[record.strategy]
        lines.append(
            f"- {record.action}: {record.attempt_count} attempt(s), "
            f"strategy={record.strategy.value} ({hint}); last error: {record.last_error}"
        )
    return lines


def build_planner_prompt(
    state: WorkflowState,
    services: Sequence[Any],
    catalogs: Mapping[str, Iterable[Any]],
) -> str:
    """Context bundle for the planner: progress, failures, data and capabilities."""
    completed = [c for c in state.components if c.is_completed]
    remaining = state.remaining_components()

    sections = [
        f"Original objective: {state.original_objective}",
        f"Current objective: {state.current_objective}",
        f"Iteration: {state.iteration + 1}/{state.max_iterations}",
        f"Last step: {_describe_last_step(state)}",
        "",
        "## Components",
        "Completed: " + (", ".join(f"{c.id} ({c.description})" for c in completed) or "none"),
        "Remaining: " + (", ".join(f"{c.id} [{c.type}] {c.description}" for c in remaining) or "none"),
    ]

    failures = _describe_failures(state)
    if failures:
        sections += ["", "## Failed actions", *failures]

    keys = state.data_store.keys()
    sections += ["", "## Collected data keys", ", ".join(keys) if keys else "none"]

    sections += ["", "## Capability services"]
    if not services:
        sections.append("none (reasoning only)")
    for svc in services:
        sections.append(f"- {svc.name}: {svc.description}")
        tools = list(catalogs.get(svc.name, []))
        for tool in tools:
            sections.append(f"    - {tool.name}: {tool.description}")

    return "\n".join(sections)


# ========== Execute Stage ==========
REASONING_SYSTEM_PROMPT = """# Current stage: reasoning step
Carry out the requested step using only the data provided. Answer directly."""


def build_reasoning_prompt(plan: Any, objective: str, context_text: str) -> str:
    return "\n".join([
        f"Objective: {objective}",
        f"Step: {plan.action}",
        f"Arguments: {_dump(plan.args)}",
        f"Expected output: {plan.expected_output}",
        "",
        "## Prior results",
        context_text or "none",
    ])


CONVERT_PARAMS_PROMPT = """Adapt the arguments to the input schema of the catalog tool meant by the requested action.
Rename fields to the schema's names and drop fields the schema does not accept.
Respond with a JSON object only: {"inputParams": {...}}"""


def build_convert_params_prompt(action: str, args: Dict[str, Any], catalog: Sequence[Any]) -> str:
    lines = [f"Requested action: {action}", f"Current arguments: {_dump(args)}", "", "## Catalog"]
    for tool in catalog:
        lines.append(f"- {tool.name}: {tool.description}")
        lines.append(f"  schema: {_dump(tool.input_schema)}")
    return "\n".join(lines)


RESELECT_TOOL_PROMPT = """The requested tool does not exist. Choose the tool from the catalog
that best fulfils the request and adapt the arguments to its schema.
Respond with a JSON object only: {"toolName": "<exact catalog name>", "inputParams": {...}, "reasoning": "..."}"""


def build_reselect_prompt(action: str, args: Dict[str, Any], catalog: Sequence[Any]) -> str:
    lines = [f"Requested action: {action}", f"Arguments: {_dump(args)}", "", "## Catalog"]
    for tool in catalog:
        lines.append(f"- {tool.name}: {tool.description}")
        lines.append(f"  schema: {_dump(tool.input_schema)}")
    return "\n".join(lines)


FORMAT_RESULT_PROMPT = """Render the tool result as concise, readable markdown.
Keep every number and identifier exact. Do not add commentary."""


def build_format_prompt(action: str, raw_content: str) -> str:
    return f"Action: {action}\n\nResult:\n{raw_content}"


# ========== Observe Stage ==========
OBSERVER_SYSTEM_PROMPT = """# Current stage: progress review
Decide whether the original objective is satisfied by the executed steps.

Respond with a JSON object only:
{"isComplete": true | false, "nextObjective": "<refined objective or null>",
 "confidence": 0.0-1.0, "criticalGaps": ["..."], "reasoning": "..."}"""


def build_observer_prompt(state: WorkflowState, context_text: str) -> str:
    step_lines = []
    for step in state.steps:
        status = "ok" if step.success else f"failed: {step.error}"
        step_lines.append(f"- Step {step.step_number} {step.action}: {status}")

    return "\n".join([
        f"Original objective: {state.original_objective}",
        f"Current objective: {state.current_objective}",
        "",
        "## Steps",
        *(step_lines or ["none"]),
        "",
        "## Components",
        *[f"- {c.id} [{c.type}] {'done' if c.is_completed else 'open'}: {c.description}" for c in state.components],
        "",
        "## Results",
        context_text or "none",
    ])


# ========== Finalize Stage ==========
SUMMARIZE_SYSTEM_PROMPT = """# Current stage: final answer
Answer the original objective using the collected results.
Say plainly if something could not be completed and why."""


def build_summary_prompt(state: WorkflowState, context_text: str, status: str) -> str:
    return "\n".join([
        f"Original objective: {state.original_objective}",
        f"Status: {status}",
        "",
        "## Results",
        context_text or "none",
    ])
