"""Configuration for the task engine."""

from pathlib import Path

from .services import (
    AgentProfile,
    ServiceCatalogConfig,
    ServiceConfig,
    load_services_config,
    parse_services_config,
)
from .settings import EngineSettings, ModelSettings, ObservabilitySettings, Settings, get_settings

DEFAULT_SERVICES_CONFIG = Path(__file__).parent / "services.yaml"

__all__ = [
    "AgentProfile",
    "ServiceCatalogConfig",
    "ServiceConfig",
    "load_services_config",
    "parse_services_config",
    "EngineSettings",
    "ModelSettings",
    "ObservabilitySettings",
    "Settings",
    "get_settings",
    "DEFAULT_SERVICES_CONFIG",
]
