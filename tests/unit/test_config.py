"""Unit tests for settings and the services YAML loader."""

import pytest
from pydantic import ValidationError

from taskengine.config import DEFAULT_SERVICES_CONFIG
from taskengine.config.services import load_services_config, parse_services_config
from taskengine.config.settings import EngineSettings, ModelSettings, Settings


def test_engine_settings_defaults():
    engine = EngineSettings()
    assert engine.max_iterations == 10
    assert engine.max_consecutive_failures == 3
    assert engine.max_retries == 2


def test_engine_settings_from_env(monkeypatch):
    monkeypatch.setenv("MAX_ITERATIONS", "7")
    monkeypatch.setenv("FORMAT_STEP_RESULTS", "false")
    engine = EngineSettings()
    assert engine.max_iterations == 7
    assert engine.format_step_results is False


def test_model_settings_alias_choices(monkeypatch):
    monkeypatch.delenv("MODEL_ID", raising=False)
    monkeypatch.delenv("MODEL_NAME", raising=False)
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
    assert ModelSettings().model_id == "gpt-4o-mini"


@pytest.mark.parametrize("value", [0, 101])
def test_max_iterations_bounds(value):
    with pytest.raises(ValidationError):
        EngineSettings(max_iterations=value)


def test_settings_groups():
    settings = Settings(engine=EngineSettings(max_iterations=4))
    assert settings.engine.max_iterations == 4
    assert settings.observability.log_prompt_max_length == 500


def test_parse_services_config_fills_names_and_slots():
    config = parse_services_config({
        "services": {
            "demo-mcp": {"command": "demo", "env": {"TOKEN": None, "REGION": "eu"}, "auth_required": True},
            "off-mcp": {"command": "off", "enabled": False},
        },
        "aliases": {"Demo": "demo-mcp"},
        "agent": {"name": "Tester", "services": ["demo-mcp", "off-mcp"]},
    })

    demo = config.services["demo-mcp"]
    assert demo.name == "demo-mcp"
    assert demo.unset_slots() == ["TOKEN"]
    assert config.aliases == {"demo": "demo-mcp"}
    assert [svc.name for svc in config.agent_services()] == ["demo-mcp"]


def test_parse_empty_config():
    config = parse_services_config(None)
    assert config.services == {}
    assert config.agent.name == "Assistant"


def test_load_default_services_config():
    config = load_services_config(DEFAULT_SERVICES_CONFIG)

    assert "coingecko-mcp" in config.services
    assert config.services["twitter-client-mcp"].auth_required is True
    assert "brave-search-mcp" not in config.enabled_services()
    assert config.aliases["coingecko"] == "coingecko-mcp"


def test_load_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_services_config(tmp_path / "missing.yaml")
