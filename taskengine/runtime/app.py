"""Runtime assembly for the task engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from taskengine.agents import ChatModelOracle, ModelResolver, Oracle
from taskengine.config import DEFAULT_SERVICES_CONFIG, ServiceCatalogConfig, Settings, get_settings, load_services_config
from taskengine.persistence.sink import NullPersistenceSink, PersistenceSink
from taskengine.telemetry import configure_tracing
from taskengine.tools.mcp.credentials import CredentialStore, StaticCredentialStore
from taskengine.tools.mcp.pool import ConnectionFactory
from taskengine.utils.logging_utils import setup_logging

from .context import EngineContext
from .engine import TaskEngine
from .model_resolver import build_model_resolver

LOGGER = logging.getLogger(__name__)


def _load_catalog(settings: Settings, services_path: Optional[Path]) -> ServiceCatalogConfig:
    path = services_path or (Path(settings.services_config) if settings.services_config else DEFAULT_SERVICES_CONFIG)
    return load_services_config(path)


def build_engine(
    *,
    oracle: Optional[Oracle] = None,
    model_resolver: Optional[ModelResolver] = None,
    settings: Optional[Settings] = None,
    catalog: Optional[ServiceCatalogConfig] = None,
    services_path: Optional[Path] = None,
    credential_store: Optional[CredentialStore] = None,
    persistence: Optional[PersistenceSink] = None,
    connection_factory: Optional[ConnectionFactory] = None,
    configure_logging: bool = False,
) -> TaskEngine:
    """Return a ready TaskEngine.

    Without an explicit oracle a ChatOpenAI model is resolved from settings.
    """
    settings = settings or get_settings()
    observability = settings.observability
    configure_tracing(observability)
    if configure_logging:
        setup_logging(
            getattr(logging, observability.log_level.upper(), logging.WARNING),
            Path(observability.log_dir) if observability.log_dir else None,
        )

    catalog = catalog or _load_catalog(settings, services_path)

    if oracle is None:
        resolver = model_resolver or build_model_resolver(settings.model)
        oracle = ChatModelOracle(resolver(settings.model.model_id))
        LOGGER.info(f"Oracle model: {settings.model.model_id}")

    context = EngineContext(
        oracle=oracle,
        catalog=catalog,
        settings=settings,
        credential_store=credential_store or StaticCredentialStore(),
        persistence=persistence or NullPersistenceSink(),
        connection_factory=connection_factory,
    )
    LOGGER.info(
        f"Engine ready: agent={catalog.agent.name}, services={[svc.name for svc in context.services]}"
    )
    return TaskEngine(context)
