"""MCP capability connections (stdio and SSE modes)."""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client

from taskengine.utils.error_handler import InvocationError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    """A tool advertised by a capability service."""

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict)


def resolve_env(env: Dict[str, str]) -> Dict[str, str]:
    """Resolve ``${VAR}`` references against the process environment."""
    resolved = {}
    for key, value in env.items():
        if value.startswith("${") and value.endswith("}"):
            resolved[key] = os.environ.get(value[2:-1], "")
        else:
            resolved[key] = value
    return resolved


def result_to_payload(result: Any) -> Dict[str, Any]:
    """Convert a ``CallToolResult`` to the plain ``{"content": [...]}`` shape."""
    content = []
    for item in result.content or []:
        if hasattr(item, "text"):
            content.append({"type": "text", "text": item.text})
        elif hasattr(item, "model_dump"):
            content.append(item.model_dump())
    return {"content": content}


def _error_text(result: Any) -> str:
    parts = [item.text for item in (result.content or []) if hasattr(item, "text")]
    return "\n".join(parts) or "Tool returned an error"


class MCPConnection(ABC):
    """Abstract base class for capability service connections."""

    def __init__(self, service: str, command: str, args: List[str], env: Dict[str, str]):
        self.service = service
        self.command = command
        self.args = args
        self.env = env
        self._client: Optional[ClientSession] = None
        self._transport = None
        self._initialized = False

    @property
    def is_connected(self) -> bool:
        return self._initialized

    @abstractmethod
    async def start(self):
        """Start the service and establish the session."""
        pass

    @abstractmethod
    async def close(self):
        """Close the session and cleanup resources."""
        pass

    def _full_env(self) -> Dict[str, str]:
        full_env = os.environ.copy()
        full_env.update(resolve_env(self.env))
        return full_env

    # ========== Session lifecycle shared by transports ==========

    async def _open_session(self, transport) -> None:
        """Enter ``transport`` and run the MCP handshake over its streams."""
        read_stream, write_stream = await transport.__aenter__()
        self._transport = transport
        self._client = ClientSession(read_stream, write_stream)
        await self._client.__aenter__()
        await self._client.initialize()
        self._initialized = True

    async def _close_session(self) -> None:
        for label, context in (("client session", self._client), ("transport", self._transport)):
            if context is None:
                continue
            try:
                await context.__aexit__(None, None, None)
            except Exception as e:
                LOGGER.warning(f"  Error closing {label} for {self.service}: {e}")
        self._client = None
        self._transport = None
        self._initialized = False

    # ========== Tools ==========

    async def list_tools(self) -> List[ToolSpec]:
        if not self._initialized:
            raise RuntimeError(f"Service not initialized: {self.service}")

        result = await self._client.list_tools()
        return [
            ToolSpec(name=tool.name, description=tool.description or "", input_schema=dict(tool.inputSchema or {}))
            for tool in result.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Call a tool; an ``isError`` result raises ``InvocationError``."""
        if not self._initialized:
            raise RuntimeError(f"Service not initialized: {self.service}")

        LOGGER.debug(f"  Calling tool: {tool_name} on service {self.service}")
        result = await self._client.call_tool(tool_name, arguments)
        if getattr(result, "isError", False):
            raise InvocationError(f"{self.service}.{tool_name} failed: {_error_text(result)}")
        return result_to_payload(result)


class StdioMCPConnection(MCPConnection):
    """Service process spoken to over stdin/stdout."""

    async def start(self):
        LOGGER.debug(f"  Starting stdio service: {self.command} {' '.join(self.args)}")
        params = StdioServerParameters(command=self.command, args=self.args, env=self._full_env())
        await self._open_session(stdio_client(params))
        LOGGER.debug(f"  ✓ Stdio connection established for service: {self.service}")

    async def close(self):
        await self._close_session()
        LOGGER.debug(f"  ✓ Closed stdio connection for service: {self.service}")


class SSEMCPConnection(MCPConnection):
    """Server-Sent Events endpoint; spawns the service process first when a command is set."""

    def __init__(
        self,
        service: str,
        command: str,
        args: List[str],
        env: Dict[str, str],
        url: Optional[str] = None,
    ):
        super().__init__(service, command, args, env)
        self.url = url or "http://localhost:8000/sse"
        self._process = None

    async def start(self):
        if self.command:
            LOGGER.debug(f"  Spawning SSE service: {self.command} {' '.join(self.args)}")
            self._process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                env=self._full_env(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            await asyncio.sleep(2)

        await self._open_session(sse_client(self.url))
        LOGGER.debug(f"  ✓ SSE connection established for service: {self.service} ({self.url})")

    async def close(self):
        await self._close_session()

        if self._process:
            try:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=5)
            except asyncio.TimeoutError:
                self._process.kill()
                await self._process.wait()
            except ProcessLookupError:
                pass
            self._process = None

        LOGGER.debug(f"  ✓ Closed SSE connection for service: {self.service}")


def create_connection(
    service: str,
    command: str,
    args: List[str],
    env: Dict[str, str],
    mode: str = "stdio",
    url: Optional[str] = None,
) -> MCPConnection:
    """Build the connection class matching ``mode``."""
    if mode == "stdio":
        return StdioMCPConnection(service, command, args, env)
    if mode == "sse":
        return SSEMCPConnection(service, command, args, env, url)
    raise ValueError(f"Unknown connection mode: {mode}")
