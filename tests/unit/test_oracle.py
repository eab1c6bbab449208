"""Unit tests for the chat-model oracle adapter."""

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import HumanMessage

from taskengine.agents.oracle import ChatModelOracle


@pytest.mark.asyncio
async def test_complete_returns_text():
    oracle = ChatModelOracle(FakeListChatModel(responses=['{"tool": "think"}']))
    reply = await oracle.complete([HumanMessage(content="plan")], phase="plan")
    assert reply == '{"tool": "think"}'


@pytest.mark.asyncio
async def test_stream_yields_chunks():
    oracle = ChatModelOracle(FakeListChatModel(responses=["BTC is up"]))

    chunks = [chunk async for chunk in oracle.stream([HumanMessage(content="summarize")], phase="summarize")]

    assert len(chunks) > 1
    assert "".join(chunks) == "BTC is up"
