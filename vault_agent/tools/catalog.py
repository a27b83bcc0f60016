"""
Tool catalog with TTL caching across MCP provider servers.

Discovers tools from every configured server concurrently, merges them
first-seen-wins by case-insensitive name, and publishes the result as an
immutable snapshot. Concurrent refreshes are collapsed into a single
fan-out with double-checked locking.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

if TYPE_CHECKING:
    from .provider import ToolProvider

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable remote tool, scoped to one catalog snapshot."""

    name: str
    server: str
    description: str = ""
    schema: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def to_openai_tool(self) -> dict:
        """Render in the OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.schema)
                or {"type": "object", "properties": {}},
            },
        }


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable merged view of every provider's tools."""

    tools: tuple[ToolDescriptor, ...] = ()
    per_server_counts: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )
    expires_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def get(self, name: str) -> Optional[ToolDescriptor]:
        """Find a tool by name, ignoring case."""
        key = name.lower()
        for tool in self.tools:
            if tool.name.lower() == key:
                return tool
        return None

    def names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    def __len__(self) -> int:
        return len(self.tools)


class ToolCatalog:
    """
    Process-wide cache of discovered tools.

    Cached reads never block. A stale or missing snapshot triggers a
    refresh guarded by a per-instance lock; callers that were waiting on
    the lock re-check freshness and reuse the snapshot the winner built.

    Args:
        provider: Remote tool provider
        servers: Server names to query, in merge-priority order
        ttl_seconds: Lifetime of a published snapshot
        discovery_timeout: Per-server bound on a list_tools call
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        provider: "ToolProvider",
        servers: list[str],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        discovery_timeout: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.servers = list(servers)
        self.ttl_seconds = ttl_seconds
        self.discovery_timeout = discovery_timeout
        self._clock = clock
        self._snapshot: Optional[CatalogSnapshot] = None
        self._lock = asyncio.Lock()

    def _fresh_snapshot(self) -> Optional[CatalogSnapshot]:
        snapshot = self._snapshot
        if snapshot is not None and not snapshot.is_expired(self._clock()):
            return snapshot
        return None

    async def get_tools(self) -> CatalogSnapshot:
        """
        Return the current snapshot, refreshing it when stale.

        Returns:
            CatalogSnapshot shared by every caller within the TTL window
        """
        snapshot = self._fresh_snapshot()
        if snapshot is not None:
            return snapshot

        async with self._lock:
            snapshot = self._fresh_snapshot()
            if snapshot is not None:
                logger.debug("Tool catalog refreshed by a concurrent caller")
                return snapshot

            snapshot = await self._fetch(self.servers)
            self._snapshot = snapshot
            logger.info(
                f"Tool catalog refreshed: {len(snapshot)} tools, "
                f"counts={dict(snapshot.per_server_counts)}"
            )
            return snapshot

    async def get_tools_from_servers(self, servers: list[str]) -> CatalogSnapshot:
        """
        Fetch tools from a subset of servers, bypassing the cache.

        Args:
            servers: Server names to query

        Returns:
            A new snapshot that is not published to the cache
        """
        return await self._fetch(list(servers))

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next read refreshes."""
        self._snapshot = None
        logger.debug("Tool catalog invalidated")

    async def _fetch(self, servers: list[str]) -> CatalogSnapshot:
        if not servers:
            logger.debug("No tool servers configured, catalog is empty")
            return CatalogSnapshot(
                tools=(),
                per_server_counts=MappingProxyType({}),
                expires_at=self._clock() + self.ttl_seconds,
            )

        results = await asyncio.gather(
            *(self._list_server(server) for server in servers)
        )

        merged: list[ToolDescriptor] = []
        seen: set[str] = set()
        counts: dict[str, int] = {}
        for server, tools in zip(servers, results):
            counts[server] = len(tools)
            for tool in tools:
                key = tool.name.lower()
                if key in seen:
                    logger.debug(
                        f"Skipping duplicate tool '{tool.name}' from '{server}'"
                    )
                    continue
                seen.add(key)
                merged.append(tool)

        return CatalogSnapshot(
            tools=tuple(merged),
            per_server_counts=MappingProxyType(counts),
            expires_at=self._clock() + self.ttl_seconds,
        )

    async def _list_server(self, server: str) -> list[ToolDescriptor]:
        """List one server's tools; failures contribute nothing."""
        try:
            tools = await asyncio.wait_for(
                self.provider.list_tools(server), self.discovery_timeout
            )
            logger.debug(f"Server '{server}' returned {len(tools)} tools")
            return list(tools)
        except asyncio.TimeoutError:
            logger.warning(
                f"Tool discovery on '{server}' timed out after "
                f"{self.discovery_timeout}s"
            )
        except Exception as e:
            logger.warning(f"Tool discovery on '{server}' failed: {e}")
        return []
