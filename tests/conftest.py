"""
Pytest configuration and fixtures for vault agent tests.

Fakes stand in for the three external services: MCP tool servers, the
critic model and the streaming chat-completion endpoint.
"""

import asyncio
import json
from types import SimpleNamespace
from typing import Optional

import pytest

from vault_agent.agent import AgentFactory
from vault_agent.errors import SafetyAssessmentError
from vault_agent.models import AgentConfig, AppConfig, McpServerConfig
from vault_agent.runtime import build_runtime
from vault_agent.safety import Assessment
from vault_agent.tools import ToolCallResult, ToolDescriptor

LISTING_TOOL = "obsidian_list_files_in_vault"

VAULT_PATHS = [
    "📅 Daily Note.md",
    "Projects/💡 Project Ideas.md",
    "Archive/Daily Note Template.md",
    "notes/todo.md",
]


def descriptor(name: str, server: str = "obsidian") -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        server=server,
        description=f"{name} tool",
        schema={"type": "object", "properties": {"filepath": {"type": "string"}}},
    )


class FakeToolProvider:
    """In-process ToolProvider with scripted tools and results."""

    def __init__(
        self,
        tools: Optional[dict[str, list[ToolDescriptor]]] = None,
        failing: tuple = (),
        delays: Optional[dict[str, float]] = None,
        vault_paths: Optional[list[str]] = None,
    ):
        self.tools = tools if tools is not None else {}
        self.failing = set(failing)
        self.delays = delays or {}
        self.vault_paths = list(VAULT_PATHS if vault_paths is None else vault_paths)
        self.results: dict[str, ToolCallResult] = {}
        self.list_calls: list[str] = []
        self.calls: list[tuple[str, str, dict]] = []

    async def list_tools(self, server: str) -> list[ToolDescriptor]:
        self.list_calls.append(server)
        delay = self.delays.get(server)
        if delay:
            await asyncio.sleep(delay)
        if server in self.failing:
            raise ConnectionError(f"{server} is down")
        return list(self.tools.get(server, []))

    async def call_tool(self, server, name, arguments, timeout=None) -> ToolCallResult:
        self.calls.append((server, name, dict(arguments)))
        if name in self.results:
            return self.results[name]
        if name == LISTING_TOOL:
            return ToolCallResult(is_error=False, content=json.dumps(self.vault_paths))
        return ToolCallResult(is_error=False, content=f"{name} ok")

    def executed(self) -> list[tuple[str, str, dict]]:
        """Calls other than vault listings."""
        return [call for call in self.calls if call[1] != LISTING_TOOL]


class FakeCritic:
    """Critic returning a fixed assessment, or raising when ``error`` is set."""

    def __init__(self, assessment: Optional[Assessment] = None, error: Optional[str] = None):
        self.assessment = assessment or Assessment(
            should_reject=False,
            needs_confirmation=True,
            reason="Single file operation on an explicit path",
            action_description="Delete the file",
            warnings=[],
        )
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    async def assess(self, function_name, arguments, tracing_context=None) -> Assessment:
        self.calls.append((function_name, dict(arguments)))
        if self.error:
            raise SafetyAssessmentError(self.error)
        return self.assessment


def text_chunk(text: str):
    delta = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=None)


def tool_call_chunk(index: int, call_id, name, arguments):
    fragment = SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )
    delta = SimpleNamespace(content=None, tool_calls=[fragment])
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=None)


def usage_chunk(prompt_tokens: int, completion_tokens: int):
    return SimpleNamespace(
        choices=[],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


def tool_round(call_id: str, name: str, arguments: dict) -> list:
    """One completion that asks for a single tool call."""
    return [tool_call_chunk(0, call_id, name, json.dumps(arguments)), usage_chunk(20, 5)]


class FakeStream:
    """Async-iterable completion stream."""

    def __init__(self, chunks, error: Optional[Exception] = None, block: Optional[asyncio.Event] = None):
        self.chunks = list(chunks)
        self.error = error
        self.block = block

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error
        if self.block is not None:
            await self.block.wait()


class FakeCompletions:
    def __init__(self, rounds):
        self.rounds = list(rounds)
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if not self.rounds:
            return FakeStream([text_chunk("(no more scripted rounds)")])
        item = self.rounds.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, FakeStream):
            return item
        return FakeStream(item)


class FakeOpenAIClient:
    """Stands in for AsyncOpenAI; each create() consumes one scripted round."""

    def __init__(self, rounds=()):
        self.chat = SimpleNamespace(completions=FakeCompletions(rounds))

    @property
    def requests(self) -> list[dict]:
        return self.chat.completions.requests


def default_tools() -> dict[str, list[ToolDescriptor]]:
    return {
        "obsidian": [
            descriptor(LISTING_TOOL),
            descriptor("obsidian_get_file_contents"),
            descriptor("obsidian_delete_file"),
            descriptor("obsidian_patch_content"),
            descriptor("obsidian_move_file"),
        ],
        "filesystem": [descriptor("read_file", "filesystem")],
    }


def make_app_config(**overrides) -> AppConfig:
    app_config = AppConfig(
        mcp_servers=[
            McpServerConfig(name="obsidian", endpoint="http://obsidian:8080/mcp"),
            McpServerConfig(name="filesystem", endpoint="http://filesystem:8080/mcp"),
        ],
    )
    for name, value in overrides.items():
        setattr(app_config, name, value)
    return app_config


@pytest.fixture
def fake_provider():
    return FakeToolProvider(tools=default_tools())


@pytest.fixture
def fake_critic():
    return FakeCritic()


@pytest.fixture
def make_runtime(fake_provider, fake_critic):
    """Build a Runtime around fakes; ``rounds`` scripts the chat model."""

    def _make(rounds=(), critic=None, provider=None, app_config=None):
        client = FakeOpenAIClient(rounds)
        app_config = app_config or make_app_config()
        runtime = build_runtime(
            app_config,
            provider=provider or fake_provider,
            critic=critic or fake_critic,
            agent_factory=AgentFactory(AgentConfig(), client=client),
        )
        runtime.client = client
        return runtime

    return _make


async def collect(stream) -> list:
    return [item async for item in stream]
