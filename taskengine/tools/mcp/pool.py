"""Per-user connection pool for capability services with lazy startup."""

import asyncio
import logging
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from taskengine.config.services import ServiceConfig
from taskengine.utils.error_handler import ServiceConnectionError

from .connection import MCPConnection, create_connection
from .credentials import CredentialStore

LOGGER = logging.getLogger(__name__)

ConnectionFactory = Callable[[ServiceConfig, Dict[str, str]], MCPConnection]


def default_connection_factory(config: ServiceConfig, env: Dict[str, str]) -> MCPConnection:
    return create_connection(
        service=config.name,
        command=config.command,
        args=config.args,
        env=env,
        mode=config.connection_mode,
        url=config.url,
    )


class ConnectionPool:
    """
    Owns live capability connections keyed by (user_id, service).

    Features:
    - Lazy startup: connections are created on first acquire
    - Atomic check-then-create per key, so concurrent tasks share one connection
    - Credential injection into declared but unset env slots
    """

    def __init__(
        self,
        services: Mapping[str, ServiceConfig],
        credential_store: CredentialStore,
        *,
        connection_factory: Optional[ConnectionFactory] = None,
        startup_timeout: float = 30.0,
    ):
        self._services = dict(services)
        self._credential_store = credential_store
        self._factory = connection_factory or default_connection_factory
        self._startup_timeout = startup_timeout
        self._connections: Dict[Tuple[str, str], MCPConnection] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    async def acquire(self, user_id: str, service: str) -> MCPConnection:
        """
        Return the live connection for (user, service), starting it if needed.

        Raises:
            ServiceConnectionError: Unknown service, missing credentials or startup failure
        """
        key = (user_id, service)
        connection = self._connections.get(key)
        if connection is not None and connection.is_connected:
            return connection

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            stale = self._connections.get(key)
            if stale is not None and stale.is_connected:
                return stale
            if stale is not None:
                LOGGER.info(f"Replacing disconnected {service} connection (user: {user_id})")
                del self._connections[key]
                await self._safe_close(stale)

            LOGGER.info(f"🚀 Starting capability service: {service} (user: {user_id})")
            connection = await self._start(user_id, service)
            self._connections[key] = connection
            return connection

    async def _service_env(self, user_id: str, config: ServiceConfig) -> Dict[str, str]:
        """Configured env with verified credentials filled into unset slots."""
        env = dict(config.env)
        unset = config.unset_slots()
        if not (config.auth_required or unset):
            return env

        credential = await self._credential_store.get_credential(user_id, config.name)
        if config.auth_required and (credential is None or not credential.verified):
            raise ServiceConnectionError(
                f"No verified credentials for {config.name} (user: {user_id})",
                service=config.name,
                user_message=f"Please configure and verify your credentials for '{config.name}'",
            )
        if credential is not None and credential.verified:
            for slot in unset:
                if credential.data.get(slot):
                    env[slot] = credential.data[slot]
        return env

    async def _start(self, user_id: str, service: str) -> MCPConnection:
        config = self._services.get(service)
        if config is None or not config.enabled:
            raise ServiceConnectionError(
                f"Capability service not configured: {service}",
                service=service,
                user_message=f"The service '{service}' is not available",
            )

        connection = None
        try:
            env = await self._service_env(user_id, config)
            connection = self._factory(config, env)
            await asyncio.wait_for(connection.start(), timeout=self._startup_timeout)
        except ServiceConnectionError:
            raise
        except asyncio.TimeoutError as exc:
            await self._safe_close(connection)
            raise ServiceConnectionError(f"Capability service startup timeout: {service}", service=service) from exc
        except Exception as exc:
            await self._safe_close(connection)
            raise ServiceConnectionError(f"Failed to start capability service '{service}': {exc}", service=service) from exc

        LOGGER.info(f"  ✓ Capability service started: {service} (mode: {config.connection_mode})")
        return connection

    async def _safe_close(self, connection: Optional[MCPConnection]) -> None:
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as e:
            LOGGER.warning(f"  Error closing connection for {connection.service}: {e}")

    def is_connected(self, user_id: str, service: str) -> bool:
        connection = self._connections.get((user_id, service))
        return connection is not None and connection.is_connected

    def connected_services(self, user_id: str) -> List[str]:
        return [svc for (uid, svc), conn in self._connections.items() if uid == user_id and conn.is_connected]

    def get(self, user_id: str, service: str) -> Optional[MCPConnection]:
        return self._connections.get((user_id, service))

    async def shutdown(self):
        """Close every connection held by the pool."""
        if not self._connections:
            return

        LOGGER.info(f"Shutting down {len(self._connections)} capability connection(s)...")
        for (user_id, service), connection in self._connections.items():
            try:
                await connection.close()
                LOGGER.info(f"  ✓ Closed: {service} (user: {user_id})")
            except Exception as e:
                LOGGER.error(f"  ✗ Failed to close {service}: {e}")

        self._connections.clear()
        self._locks.clear()
