"""Unit tests for engine assembly."""

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from taskengine.agents.oracle import ChatModelOracle
from taskengine.config.settings import ModelSettings
from taskengine.runtime.app import build_engine
from taskengine.runtime.engine import TaskEngine
from taskengine.runtime.model_resolver import build_model_resolver


def test_build_engine_from_default_services(settings):
    requested = []

    def resolver(model_id):
        requested.append(model_id)
        return FakeListChatModel(responses=["ok"])

    engine = build_engine(model_resolver=resolver, settings=settings)

    assert isinstance(engine, TaskEngine)
    assert isinstance(engine.context.oracle, ChatModelOracle)
    assert requested == ["fake-model"]
    assert engine.context.agent.name == "Market Analyst"
    assert [svc.name for svc in engine.context.services] == ["coingecko-mcp", "twitter-client-mcp", "github-mcp"]


def test_build_engine_with_explicit_oracle(settings, catalog, scripted_oracle):
    oracle = scripted_oracle()
    engine = build_engine(oracle=oracle, settings=settings, catalog=catalog)

    assert engine.context.oracle is oracle
    assert "coingecko" in engine.context.known_service_names
    assert "twitter" in engine.context.known_service_names


def test_model_resolver_requires_api_key():
    resolver = build_model_resolver(ModelSettings(model_id="gpt-4o", api_key=None))
    with pytest.raises(RuntimeError, match="Missing API key"):
        resolver("gpt-4o")
