"""Trust-boundary parsing of oracle output into typed values."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import ValidationError

from taskengine.graph._plan import CapabilityCallPlan, ExecutionPlan, ReasoningPlan
from taskengine.utils.error_handler import PlanParseError

LOGGER = logging.getLogger("taskengine.parsing")

UNSPECIFIED_ACTION = "unspecified_action"

_CLOSERS = {"{": "}", "[": "]"}
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")
_CAPABILITY_KINDS = {"mcp", "capability_call", "capability", "tool"}


# ========== JSON scanning ==========

def extract_first_json(text: str, opener: str = "{") -> Optional[str]:
    """Return the first syntactically complete JSON object (or array) in ``text``.

    Walks the text once with three states (plain, in-string, escaped) and
    tracks bracket depth only in plain state, so braces inside string
    literals never affect balancing. Candidates that start with ``opener``
    but fail to decode are skipped and scanning resumes after them.
    """
    if opener not in _CLOSERS:
        raise ValueError(f"Unsupported opener: {opener!r}")
    closer = _CLOSERS[opener]

    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = None
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    end = index
                    break

        if end is None:
            return None

        candidate = text[start:end + 1]
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            start = text.find(opener, start + 1)

    return None


def decode_first_json(text: str, opener: str = "{") -> Any:
    """Decode the first complete JSON value; raises ``ValueError`` if none."""
    candidate = extract_first_json(text, opener)
    if candidate is None:
        raise ValueError("No complete JSON value found")
    return json.loads(candidate)


# ========== Field-swap correction ==========

def _looks_like_service(name: str, known_services: Iterable[str]) -> bool:
    lowered = name.lower()
    if "-mcp" in lowered:
        return True
    return lowered in {s.lower() for s in known_services}


def _looks_like_action(name: str) -> bool:
    return bool(_IDENTIFIER_RE.match(name)) and "-mcp" not in name.lower()


def correct_swapped_fields(
    action: str,
    service: Optional[str],
    known_services: Iterable[str] = (),
) -> Tuple[str, Optional[str]]:
    """Swap action and service when the oracle put them in each other's slot.

    Swaps when ``action`` looks like a service name (contains ``-mcp`` or is a
    known service/alias) and ``service`` looks like an action or is empty.
    With an empty service the action slot gets ``UNSPECIFIED_ACTION``.
    """
    known = list(known_services)
    action = (action or "").strip()
    service = (service or "").strip() or None

    if not action or not _looks_like_service(action, known):
        return action, service

    if service is None:
        LOGGER.warning(f"Service name '{action}' found in action slot, action left unspecified")
        return UNSPECIFIED_ACTION, action

    if _looks_like_action(service) and not _looks_like_service(service, known):
        LOGGER.warning(f"Swapped action/service fields: action='{service}', service='{action}'")
        return service, action

    return action, service


# ========== Plan decoding ==========

def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_plan(raw_text: str, known_services: Iterable[str] = ()) -> ExecutionPlan:
    """Decode planner output into an ``ExecutionPlan``.

    Raises:
        PlanParseError: If no usable plan object is found.
    """
    try:
        data = decode_first_json(raw_text, "{")
    except ValueError as exc:
        raise PlanParseError(f"Planner output has no JSON object: {exc}") from exc

    if not isinstance(data, dict):
        raise PlanParseError("Planner output is not a JSON object")

    action = _first_present(data, "tool", "action", "name")
    if not isinstance(action, str):
        raise PlanParseError("Planner output has no action")

    service = _first_present(data, "mcpName", "service", "mcp")
    service = service if isinstance(service, str) else None
    kind = str(_first_present(data, "toolType", "kind", "type") or "").lower()
    # reasoning plans without a service keep their action verbatim
    if kind in _CAPABILITY_KINDS or service:
        action, service = correct_swapped_fields(action, service, known_services)

    args = _first_present(data, "args", "arguments", "params")
    if not isinstance(args, dict):
        args = {}

    fields = {
        "action": action,
        "args": args,
        "expected_output": str(_first_present(data, "expectedOutput", "expected_output") or "Task result"),
        "reasoning": str(_first_present(data, "reasoning") or "No reasoning provided"),
    }

    try:
        if kind in _CAPABILITY_KINDS and service:
            return CapabilityCallPlan(service=service, **fields)
        if kind in _CAPABILITY_KINDS:
            LOGGER.warning(f"Capability call '{action}' without service, degrading to reasoning")
        return ReasoningPlan(**fields)
    except ValidationError as exc:
        raise PlanParseError(f"Planner output failed validation: {exc}") from exc
