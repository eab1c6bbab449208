"""Capability-call pipeline: normalize, connect, list, adapt, resolve, invoke."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from langchain_core.messages import HumanMessage, SystemMessage

from taskengine.agents.interfaces import Oracle
from taskengine.graph._plan import CapabilityCallPlan
from taskengine.graph.parsing import decode_first_json
from taskengine.graph.prompts import (
    CONVERT_PARAMS_PROMPT,
    RESELECT_TOOL_PROMPT,
    build_convert_params_prompt,
    build_reselect_prompt,
)
from taskengine.utils.error_handler import InvocationError, ToolResolutionError
from taskengine.utils.logging_utils import log_prompt, log_tool_call, log_tool_result

from .connection import MCPConnection, ToolSpec
from .pool import ConnectionPool

LOGGER = logging.getLogger("taskengine.tools.resolver")

STATIC_ALIASES: Dict[str, str] = {
    "twitter": "twitter-client-mcp",
    "x": "twitter-client-mcp",
    "github": "github-mcp",
    "coinmarketcap": "coinmarketcap-mcp",
    "crypto": "coinmarketcap-mcp",
    "web": "brave-search-mcp",
    "search": "brave-search-mcp",
}


def normalize_service_name(name: str, aliases: Optional[Mapping[str, str]] = None) -> str:
    """Map a loose service name to its canonical form (case-insensitive)."""
    table = dict(STATIC_ALIASES)
    table.update({k.lower(): v for k, v in (aliases or {}).items()})
    cleaned = (name or "").strip()
    return table.get(cleaned.lower(), cleaned)


def match_tool(action: str, catalog: List[ToolSpec]) -> Optional[ToolSpec]:
    """Exact match first, then case-insensitive substring match in either direction."""
    for tool in catalog:
        if tool.name == action:
            return tool

    lowered = action.lower()
    for tool in catalog:
        name = tool.name.lower()
        if lowered in name or name in lowered:
            return tool
    return None


class ToolResolver:
    """Runs a capability-call plan against a live service."""

    def __init__(
        self,
        oracle: Oracle,
        pool: ConnectionPool,
        aliases: Optional[Mapping[str, str]] = None,
        *,
        prompt_log_length: int = 500,
    ):
        self.oracle = oracle
        self.pool = pool
        self.aliases = dict(aliases or {})
        self.prompt_log_length = prompt_log_length

    def normalize_service_name(self, name: str) -> str:
        return normalize_service_name(name, self.aliases)

    async def fetch_catalog(self, connection: MCPConnection) -> List[ToolSpec]:
        try:
            catalog = await connection.list_tools()
        except Exception as exc:
            raise InvocationError(f"Could not list tools of {connection.service}: {exc}") from exc
        LOGGER.debug(f"  Catalog for {connection.service}: {[tool.name for tool in catalog]}")
        return catalog

    async def convert_parameters(self, action: str, args: Dict[str, Any], catalog: List[ToolSpec]) -> Dict[str, Any]:
        """Reshape ``args`` to the schema of the catalog tool meant by ``action``.

        Falls back to the original arguments when the catalog is empty or the
        reply cannot be decoded.
        """
        if not catalog:
            return args

        prompt = build_convert_params_prompt(action, args, catalog)
        log_prompt(LOGGER, "convert_params", prompt, self.prompt_log_length)
        try:
            reply = await self.oracle.complete(
                [SystemMessage(content=CONVERT_PARAMS_PROMPT), HumanMessage(content=prompt)],
                phase="convert_params",
            )
            data = decode_first_json(reply, "{")
        except ValueError as exc:
            LOGGER.warning(f"Parameter conversion unparsable, keeping original args: {exc}")
            return args
        except Exception as exc:
            LOGGER.warning(f"Parameter conversion failed, keeping original args: {exc}")
            return args

        converted = data.get("inputParams") if isinstance(data, dict) else None
        if not isinstance(converted, dict):
            LOGGER.warning("Parameter conversion reply has no inputParams, keeping original args")
            return args
        return converted

    async def resolve_tool(
        self, action: str, args: Dict[str, Any], catalog: List[ToolSpec]
    ) -> Tuple[ToolSpec, Dict[str, Any]]:
        """Pick the catalog tool to call and the arguments to call it with.

        Raises:
            ToolResolutionError: Empty catalog, or the reselection is unusable
        """
        if not catalog:
            raise ToolResolutionError(f"No tools available for action '{action}'")

        tool = match_tool(action, catalog)
        if tool is not None:
            if tool.name != action:
                LOGGER.info(f"Resolved '{action}' to catalog tool '{tool.name}'")
            return tool, args

        LOGGER.info(f"Tool '{action}' not in catalog, asking oracle to reselect")
        prompt = build_reselect_prompt(action, args, catalog)
        log_prompt(LOGGER, "reselect_tool", prompt, self.prompt_log_length)
        try:
            reply = await self.oracle.complete(
                [SystemMessage(content=RESELECT_TOOL_PROMPT), HumanMessage(content=prompt)],
                phase="reselect_tool",
            )
        except Exception as exc:
            raise ToolResolutionError(f"Tool reselection for '{action}' failed: {exc}") from exc
        try:
            data = decode_first_json(reply, "{")
        except ValueError as exc:
            raise ToolResolutionError(f"Tool reselection for '{action}' unparsable: {exc}") from exc

        name = data.get("toolName") if isinstance(data, dict) else None
        by_name = {tool.name: tool for tool in catalog}
        if name not in by_name:
            raise ToolResolutionError(f"Reselected tool '{name}' is not offered by the service")

        new_args = data.get("inputParams")
        return by_name[name], new_args if isinstance(new_args, dict) else args

    async def invoke(self, connection: MCPConnection, tool: ToolSpec, args: Dict[str, Any]) -> Any:
        log_tool_call(LOGGER, connection.service, tool.name, args)
        try:
            result = await connection.call_tool(tool.name, args)
        except InvocationError:
            log_tool_result(LOGGER, tool.name, "isError", success=False)
            raise
        except Exception as exc:
            log_tool_result(LOGGER, tool.name, exc, success=False)
            raise InvocationError(f"{connection.service}.{tool.name} failed: {exc}") from exc
        log_tool_result(LOGGER, tool.name, result)
        return result

    async def execute(self, user_id: str, plan: CapabilityCallPlan) -> Any:
        """Full pipeline for one attempt.

        Raises:
            ServiceConnectionError: The service could not be connected
            ToolResolutionError: No catalog tool fits the action
            InvocationError: The tool call failed
        """
        service = self.normalize_service_name(plan.service)
        connection = await self.pool.acquire(user_id, service)
        catalog = await self.fetch_catalog(connection)
        args = await self.convert_parameters(plan.action, dict(plan.args), catalog)
        tool, args = await self.resolve_tool(plan.action, args, catalog)
        return await self.invoke(connection, tool, args)
