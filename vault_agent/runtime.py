"""
Explicit construction of the process-wide components.

The API lifespan and the interactive CLI both build one Runtime at
startup and call ``shutdown()`` when they stop; tests build their own
with fakes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .agent import AgentFactory
from .models import AppConfig
from .orchestration import StreamingOrchestrator
from .safety import CriticModel, SafetyGate
from .threads import InMemoryThreadStore, JsonFileThreadStore, ThreadStore
from .tools import McpToolProvider, ToolCatalog, ToolProvider, ToolRouter, create_selection_strategy
from .vault import VaultListing, VaultPathResolver

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Every long-lived component of a running agent."""

    config: AppConfig
    provider: ToolProvider
    catalog: ToolCatalog
    router: ToolRouter
    thread_store: ThreadStore
    resolver: VaultPathResolver
    gate: SafetyGate
    orchestrator: StreamingOrchestrator

    def shutdown(self) -> None:
        """Drop cached tools, threads and pending confirmations."""
        self.catalog.invalidate()
        self.resolver.listing.invalidate()
        self.gate.clear()
        self.thread_store.clear()
        logger.info("Runtime state cleared")


def create_thread_store(config: AppConfig) -> ThreadStore:
    if config.threads.backend == "json":
        return JsonFileThreadStore(config.threads.directory, shards=config.threads.shards)
    return InMemoryThreadStore(shards=config.threads.shards)


def build_runtime(
    config: AppConfig,
    provider: Optional[ToolProvider] = None,
    critic: Optional[CriticModel] = None,
    agent_factory: Optional[AgentFactory] = None,
) -> Runtime:
    """
    Wire up the pipeline from configuration.

    Args:
        config: Application configuration
        provider: Tool provider override (default: MCP over HTTP)
        critic: Critic override (default: from config.critic)
        agent_factory: Agent factory override (default: from config.agent)

    Returns:
        A ready Runtime
    """
    servers = config.enabled_servers
    provider = provider or McpToolProvider(servers)

    catalog = ToolCatalog(
        provider,
        [s.name for s in servers],
        ttl_seconds=config.catalog.ttl_seconds,
        discovery_timeout=config.catalog.discovery_timeout,
    )
    router = ToolRouter(catalog, provider)
    thread_store = create_thread_store(config)

    listing = VaultListing(
        provider,
        server=config.vault.listing_server,
        tool_name=config.vault.listing_tool,
        ttl_seconds=config.vault.index_ttl_seconds,
    )
    resolver = VaultPathResolver(listing, extension=config.vault.default_extension)

    gate = SafetyGate(
        critic=critic or CriticModel.from_config(config.critic),
        executor=router.execute,
        destructive_tools=config.safety.destructive_tools,
        fail_open_tools=config.safety.fail_open_tools,
        pending_ttl_seconds=config.safety.pending_ttl_seconds,
        path_resolver=resolver,
    )

    orchestrator = StreamingOrchestrator(
        catalog=catalog,
        thread_store=thread_store,
        agent_factory=agent_factory or AgentFactory(config.agent),
        gate=gate,
        selection=create_selection_strategy(config.selection),
        instructions=config.agent.instructions or None,
    )

    logger.debug(f"Runtime built with servers {[s.name for s in servers]}")
    return Runtime(
        config=config,
        provider=provider,
        catalog=catalog,
        router=router,
        thread_store=thread_store,
        resolver=resolver,
        gate=gate,
        orchestrator=orchestrator,
    )
