"""Oracle backed by a LangChain chat model."""

from __future__ import annotations

import logging
from typing import AsyncIterator, List

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage

LOGGER = logging.getLogger("taskengine.oracle")


def _content_text(content) -> str:
    """Flatten message content (str or list of content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and item.get("type") == "text":
                parts.append(item.get("text", ""))
        return "".join(parts)
    return str(content or "")


class ChatModelOracle:
    """Adapts a ``BaseChatModel`` to the oracle protocol."""

    def __init__(self, model: BaseChatModel):
        self.model = model

    async def complete(self, messages: List[BaseMessage], *, phase: str) -> str:
        LOGGER.debug(f"Oracle complete (phase={phase}, messages={len(messages)})")
        response = await self.model.ainvoke(messages)
        return _content_text(response.content)

    async def stream(self, messages: List[BaseMessage], *, phase: str) -> AsyncIterator[str]:
        LOGGER.debug(f"Oracle stream (phase={phase}, messages={len(messages)})")
        async for chunk in self.model.astream(messages):
            text = _content_text(chunk.content)
            if text:
                yield text
