"""Interfaces for oracle dependencies."""

from __future__ import annotations

from typing import AsyncIterator, List, Protocol

from langchain_core.messages import BaseMessage


class Oracle(Protocol):
    """Stateless text-generation service.

    ``phase`` names the purpose of the call (plan, observe, decompose,
    reasoning, convert_params, reselect_tool, format_result, summarize).
    """

    async def complete(self, messages: List[BaseMessage], *, phase: str) -> str:
        ...

    def stream(self, messages: List[BaseMessage], *, phase: str) -> AsyncIterator[str]:
        ...


class ModelResolver(Protocol):
    """Callable that returns a LangChain-compatible chat model."""

    def __call__(self, model_id: str):
        ...
