"""Capability service integration over MCP."""

from .connection import MCPConnection, SSEMCPConnection, StdioMCPConnection, ToolSpec, create_connection
from .credentials import Credential, CredentialStore, StaticCredentialStore
from .pool import ConnectionPool
from .resolver import STATIC_ALIASES, ToolResolver, match_tool, normalize_service_name

__all__ = [
    "MCPConnection",
    "StdioMCPConnection",
    "SSEMCPConnection",
    "ToolSpec",
    "create_connection",
    "Credential",
    "CredentialStore",
    "StaticCredentialStore",
    "ConnectionPool",
    "ToolResolver",
    "STATIC_ALIASES",
    "match_tool",
    "normalize_service_name",
]
