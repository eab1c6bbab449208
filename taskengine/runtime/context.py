"""Explicit dependency container owned by one engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from taskengine.agents.interfaces import Oracle
from taskengine.config.services import AgentProfile, ServiceCatalogConfig, ServiceConfig
from taskengine.config.settings import Settings
from taskengine.context.compactor import ContextCompactor
from taskengine.persistence.sink import NullPersistenceSink, PersistenceSink
from taskengine.tools.mcp.credentials import CredentialStore, StaticCredentialStore
from taskengine.tools.mcp.pool import ConnectionFactory, ConnectionPool
from taskengine.tools.mcp.resolver import STATIC_ALIASES


@dataclass
class EngineContext:
    """Oracle, capability services, credentials, persistence and settings."""

    oracle: Oracle
    catalog: ServiceCatalogConfig
    settings: Settings
    credential_store: CredentialStore = field(default_factory=StaticCredentialStore)
    persistence: PersistenceSink = field(default_factory=NullPersistenceSink)
    connection_factory: Optional[ConnectionFactory] = None
    pool: ConnectionPool = None

    def __post_init__(self):
        if self.pool is None:
            self.pool = ConnectionPool(
                self.catalog.enabled_services(),
                self.credential_store,
                connection_factory=self.connection_factory,
                startup_timeout=self.settings.engine.connection_timeout,
            )

    @property
    def agent(self) -> AgentProfile:
        return self.catalog.agent

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self.catalog.aliases)

    @property
    def services(self) -> List[ServiceConfig]:
        """Services the agent may plan against."""
        return self.catalog.agent_services()

    @property
    def known_service_names(self) -> List[str]:
        names = [svc.name for svc in self.services]
        names.extend(STATIC_ALIASES.keys())
        names.extend(self.catalog.aliases.keys())
        return names

    def build_compactor(self) -> ContextCompactor:
        engine = self.settings.engine
        return ContextCompactor(engine.context_char_budget, engine.summary_preview_chars)

    async def shutdown(self):
        await self.pool.shutdown()
