"""Pytest configuration and fixtures for all tests.

Oracles and capability connections are replaced with scripted fakes so the
control loop can be exercised without a model or service processes.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from taskengine.config.services import AgentProfile, ServiceCatalogConfig, ServiceConfig  # noqa: E402
from taskengine.config.settings import EngineSettings, ModelSettings, ObservabilitySettings, Settings  # noqa: E402
from taskengine.persistence.sink import InMemoryPersistenceSink  # noqa: E402
from taskengine.runtime.context import EngineContext  # noqa: E402
from taskengine.runtime.engine import TaskEngine  # noqa: E402
from taskengine.tools.mcp.connection import MCPConnection, ToolSpec  # noqa: E402
from taskengine.tools.mcp.credentials import Credential, StaticCredentialStore  # noqa: E402
from taskengine.utils.error_handler import InvocationError  # noqa: E402


# ========== Oracle fake ==========

class ScriptedOracle:
    """Oracle whose replies are scripted per phase.

    A phase maps to a string (always returned), a list (consumed in order, the
    last entry repeats), or a callable receiving the messages. Exceptions in
    place of a reply are raised.
    """

    def __init__(self, replies: Optional[Dict[str, Any]] = None, streams: Optional[Dict[str, Any]] = None):
        self.replies = {phase: list(v) if isinstance(v, list) else v for phase, v in (replies or {}).items()}
        self.streams = dict(streams or {})
        self.calls: List[tuple] = []

    def count(self, phase: str) -> int:
        return sum(1 for called, _ in self.calls if called == phase)

    def _next(self, phase: str, messages):
        reply = self.replies.get(phase, "")
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if callable(reply) and not isinstance(reply, Exception):
            reply = reply(messages)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete(self, messages, *, phase: str) -> str:
        self.calls.append((phase, messages))
        return self._next(phase, messages)

    async def stream(self, messages, *, phase: str):
        self.calls.append((phase, messages))
        chunks = self.streams.get(phase, [])
        if isinstance(chunks, Exception):
            raise chunks
        for chunk in chunks:
            await asyncio.sleep(0)
            yield chunk


# ========== Capability fakes ==========

def text_result(value: Any) -> Dict[str, Any]:
    text = value if isinstance(value, str) else json.dumps(value)
    return {"content": [{"type": "text", "text": text}]}


class FakeConnection(MCPConnection):
    """In-process capability service with scripted tool handlers."""

    def __init__(self, service: str, tools: List[ToolSpec], handlers: Dict[str, Callable], env=None, fail_start=None):
        super().__init__(service, "fake", [], dict(env or {}))
        self.tools = list(tools)
        self.handlers = handlers
        self.fail_start = fail_start
        self.calls: List[tuple] = []
        self.starts = 0
        self.closes = 0

    async def start(self):
        self.starts += 1
        await asyncio.sleep(0.01)
        if self.fail_start is not None:
            raise self.fail_start
        self._initialized = True

    async def close(self):
        self.closes += 1
        self._initialized = False

    async def list_tools(self) -> List[ToolSpec]:
        return list(self.tools)

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((tool_name, arguments))
        handler = self.handlers[tool_name]
        try:
            return text_result(handler(arguments))
        except InvocationError:
            raise
        except Exception as exc:
            raise InvocationError(f"{self.service}.{tool_name} failed: {exc}") from exc


class FakeConnectionFactory:
    """Connection factory for ``ConnectionPool`` that records every connection it creates."""

    def __init__(self, specs: Optional[Dict[str, Dict[str, Any]]] = None):
        self.specs = dict(specs or {})
        self.created: List[FakeConnection] = []

    def __call__(self, config: ServiceConfig, env: Dict[str, str]) -> FakeConnection:
        spec = self.specs.get(config.name, {})
        connection = FakeConnection(
            config.name,
            spec.get("tools", []),
            spec.get("handlers", {}),
            env=env,
            fail_start=spec.get("fail_start"),
        )
        self.created.append(connection)
        return connection


# ========== Fixtures ==========

PRICE_TOOLS = [
    ToolSpec(
        name="get_price",
        description="Latest price of a coin",
        input_schema={"type": "object", "properties": {"symbol": {"type": "string"}}, "required": ["symbol"]},
    ),
    ToolSpec(
        name="get_history",
        description="Daily price history",
        input_schema={"type": "object", "properties": {"symbol": {"type": "string"}, "days": {"type": "integer"}}},
    ),
]


@pytest.fixture
def settings():
    """Settings with small budgets; no environment lookups needed."""
    return Settings(
        model=ModelSettings(model_id="fake-model"),
        engine=EngineSettings(max_iterations=5, max_consecutive_failures=3, raw_chunk_size=100),
        observability=ObservabilitySettings(log_level="WARNING"),
    )


@pytest.fixture
def catalog():
    return ServiceCatalogConfig(
        services={
            "coingecko-mcp": ServiceConfig(
                name="coingecko-mcp",
                description="Crypto market data",
                command="fake",
                env={"COINGECKO_API_KEY": ""},
            ),
            "twitter-client-mcp": ServiceConfig(
                name="twitter-client-mcp",
                description="Publish tweets",
                command="fake",
                env={"TWITTER_API_KEY": ""},
                auth_required=True,
            ),
        },
        aliases={"coingecko": "coingecko-mcp"},
        agent=AgentProfile(id="analyst", name="Analyst", description="Market analysis agent"),
    )


@pytest.fixture
def credential_store():
    return StaticCredentialStore({
        ("user-1", "coingecko-mcp"): Credential(verified=True, data={"COINGECKO_API_KEY": "cg-key"}),
    })


@pytest.fixture
def price_tools():
    return list(PRICE_TOOLS)


@pytest.fixture
def price_factory():
    return FakeConnectionFactory({
        "coingecko-mcp": {
            "tools": PRICE_TOOLS,
            "handlers": {
                "get_price": lambda args: {"symbol": args.get("symbol"), "price": 64250.5},
                "get_history": lambda args: [{"day": i, "price": 64000 + i * 50} for i in range(3)],
            },
        },
    })


@pytest.fixture
def make_engine(settings, catalog, credential_store):
    """Build a TaskEngine around a scripted oracle and fake connections."""

    def _make(oracle, factory=None, *, engine_settings=None, store=None):
        effective = settings
        if engine_settings is not None:
            effective = settings.model_copy(update={"engine": engine_settings})
        sink = InMemoryPersistenceSink()
        context = EngineContext(
            oracle=oracle,
            catalog=catalog,
            settings=effective,
            credential_store=store or credential_store,
            persistence=sink,
            connection_factory=factory or FakeConnectionFactory(),
        )
        return TaskEngine(context), sink

    return _make


@pytest.fixture
def scripted_oracle():
    """The ScriptedOracle class, for tests that script their own replies."""
    return ScriptedOracle


@pytest.fixture
def fake_factory():
    """The FakeConnectionFactory class."""
    return FakeConnectionFactory
