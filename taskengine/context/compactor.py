"""Bounded rendering of prior step results for oracle prompts."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal

from taskengine.graph.state import ExecutionStep

LOGGER = logging.getLogger("taskengine.context.compactor")

DEFAULT_CHAR_BUDGET = 8000
DEFAULT_PREVIEW_CHARS = 300


@dataclass(frozen=True)
class CompactedContext:
    text: str
    mode: Literal["direct", "digest", "empty"]
    source_count: int


def extract_raw_content(result: Any) -> str:
    """Return the textual payload of a step result.

    MCP results carry ``content[0].text``; JSON text is pretty-printed.
    """
    if result is None:
        return ""

    if isinstance(result, dict) and isinstance(result.get("content"), list) and result["content"]:
        first = result["content"][0]
        if isinstance(first, dict) and "text" in first:
            result = first["text"]

    if isinstance(result, str):
        try:
            return json.dumps(json.loads(result), indent=2, ensure_ascii=False)
        except (json.JSONDecodeError, TypeError):
            return result

    try:
        return json.dumps(result, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(result)


def classify_structure(content: str) -> str:
    """Coarse structural class used in digest lines."""
    stripped = content.strip()
    if not stripped:
        return "empty"
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError:
        value = None
    else:
        if isinstance(value, list):
            return f"array ({len(value)} items)"
        if isinstance(value, dict):
            return "object"
        return "json-value"

    if len(stripped.splitlines()) > 5:
        return "multi-line-text"
    if len(stripped) > 500:
        return "long-text"
    return "short-text"


class ContextCompactor:
    """Turns successful step results into a bounded text block.

    Under ``char_budget`` the results are concatenated losslessly, one block per
    step tagged with its number and action. Over budget each result becomes a
    single digest line: preview, UTF-8 byte size and structural class.
    """

    def __init__(self, char_budget: int = DEFAULT_CHAR_BUDGET, preview_chars: int = DEFAULT_PREVIEW_CHARS):
        self.char_budget = char_budget
        self.preview_chars = preview_chars

    def compact(self, steps: Iterable[ExecutionStep]) -> CompactedContext:
        sources = [step for step in steps if step.success]
        if not sources:
            return CompactedContext(text="", mode="empty", source_count=0)

        rendered = [(step, extract_raw_content(step.result)) for step in sources]
        blocks = [f"Step {step.step_number} - {step.action}:\n{content}" for step, content in rendered]
        direct = "\n\n".join(blocks)

        if len(direct) <= self.char_budget:
            return CompactedContext(text=direct, mode="direct", source_count=len(sources))

        LOGGER.info(
            f"Context of {len(direct)} chars exceeds budget {self.char_budget}, "
            f"digesting {len(sources)} result(s)"
        )
        lines: List[str] = [self._digest_line(step, content) for step, content in rendered]
        return CompactedContext(text="\n".join(lines), mode="digest", source_count=len(sources))

    def _digest_line(self, step: ExecutionStep, content: str) -> str:
        flattened = " ".join(content.split())
        preview = flattened[: self.preview_chars]
        if len(flattened) > self.preview_chars:
            preview += "..."
        size = len(content.encode("utf-8"))
        return (
            f"Step {step.step_number} - {step.action}: {preview} "
            f"[{size} bytes, {classify_structure(content)}]"
        )
