"""Capability service configuration loaded from YAML."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

LOGGER = logging.getLogger(__name__)


class ServiceConfig(BaseModel):
    """A capability service reachable over MCP.

    ``env`` declares configuration slots; an empty value marks a slot that is
    filled from the user's stored credentials when the connection starts.
    """

    name: str = Field(min_length=1)
    description: str = ""
    command: str = ""
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    auth_required: bool = False
    connection_mode: Literal["stdio", "sse"] = "stdio"
    url: Optional[str] = None
    category: str = "General"
    enabled: bool = True

    def unset_slots(self) -> List[str]:
        """Names of declared env slots with no configured value."""
        return [key for key, value in self.env.items() if not value]


class AgentProfile(BaseModel):
    """Identity of the agent driving a task and the services it may use."""

    id: str = "default"
    name: str = "Assistant"
    description: str = "General purpose task assistant"
    services: List[str] = Field(default_factory=list)


class ServiceCatalogConfig(BaseModel):
    """Root of the services YAML file."""

    services: Dict[str, ServiceConfig] = Field(default_factory=dict)
    aliases: Dict[str, str] = Field(default_factory=dict)
    agent: AgentProfile = Field(default_factory=AgentProfile)

    def enabled_services(self) -> Dict[str, ServiceConfig]:
        return {name: cfg for name, cfg in self.services.items() if cfg.enabled}

    def agent_services(self) -> List[ServiceConfig]:
        """Services available to the configured agent (all enabled ones if unrestricted)."""
        enabled = self.enabled_services()
        if not self.agent.services:
            return list(enabled.values())
        return [enabled[name] for name in self.agent.services if name in enabled]


def parse_services_config(raw: Optional[dict]) -> ServiceCatalogConfig:
    """Build a ServiceCatalogConfig from a decoded YAML mapping.

    Service entries may omit ``name``; the mapping key is used instead.
    """
    if not raw:
        return ServiceCatalogConfig()

    services: Dict[str, ServiceConfig] = {}
    for key, entry in (raw.get("services") or {}).items():
        entry = dict(entry or {})
        entry.setdefault("name", key)
        entry["env"] = {k: "" if v is None else str(v) for k, v in (entry.get("env") or {}).items()}
        services[key] = ServiceConfig(**entry)
        LOGGER.debug(f"  Registered capability service: {key}")

    aliases = {str(k).lower(): str(v) for k, v in (raw.get("aliases") or {}).items()}
    agent = AgentProfile(**(raw.get("agent") or {}))
    return ServiceCatalogConfig(services=services, aliases=aliases, agent=agent)


def load_services_config(config_path: Path) -> ServiceCatalogConfig:
    """
    Load capability service configuration from a YAML file.

    Args:
        config_path: Path to services.yaml

    Returns:
        Parsed configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Services config not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    config = parse_services_config(raw)
    LOGGER.info(f"Loaded {len(config.services)} capability service(s) from {config_path}")
    return config
