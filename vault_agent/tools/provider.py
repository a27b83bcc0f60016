"""
Tool-provider access over the Model Context Protocol.

Each configured server exposes its tools over streamable HTTP. A fresh
MCP session is opened per call so that one slow or broken server never
holds shared state for the others.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from ..errors import ProviderUnavailableError
from ..models import McpServerConfig
from .catalog import ToolDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ToolCallResult:
    """Outcome of a single remote tool call."""

    is_error: bool
    content: str


class ToolProvider(Protocol):
    """Interface to the remote tool-provider services."""

    async def list_tools(self, server: str) -> list[ToolDescriptor]:
        ...

    async def call_tool(
        self, server: str, name: str, arguments: dict[str, Any]
    ) -> ToolCallResult:
        ...


def _content_to_text(content: Any) -> str:
    """Join MCP content parts into a single string."""
    parts = []
    for item in content or []:
        if hasattr(item, "text"):
            parts.append(item.text)
        else:
            parts.append(str(item))
    return "\n".join(parts)


class McpToolProvider:
    """
    ToolProvider backed by MCP streamable-HTTP servers.

    Args:
        servers: Server definitions keyed by name lookup (case-insensitive)
        init_timeout: Seconds allowed for the MCP initialize handshake
    """

    def __init__(
        self,
        servers: list[McpServerConfig],
        init_timeout: float = 10.0,
    ):
        self._servers = {s.name.lower(): s for s in servers}
        self.init_timeout = init_timeout

    def _server(self, server: str) -> McpServerConfig:
        config = self._servers.get(server.lower())
        if config is None or not config.endpoint:
            raise ProviderUnavailableError(server, "no endpoint configured")
        if not config.enabled:
            raise ProviderUnavailableError(server, "server disabled")
        return config

    async def list_tools(self, server: str) -> list[ToolDescriptor]:
        """
        Discover the tools a server exposes.

        Args:
            server: Configured server name

        Returns:
            Tool descriptors in server order

        Raises:
            ProviderUnavailableError: If the server cannot be reached
        """
        config = self._server(server)
        logger.debug(f"Listing tools from '{server}' at {config.endpoint}")

        try:
            async with streamablehttp_client(config.endpoint) as (read, write, _):
                async with ClientSession(read, write) as session:
                    await asyncio.wait_for(session.initialize(), self.init_timeout)
                    result = await session.list_tools()
        except asyncio.CancelledError:
            raise
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(server, str(e)[:500]) from e

        return [
            ToolDescriptor(
                name=tool.name,
                server=config.name,
                description=tool.description or "",
                schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]

    async def call_tool(
        self,
        server: str,
        name: str,
        arguments: dict[str, Any],
        timeout: Optional[float] = None,
    ) -> ToolCallResult:
        """
        Invoke a tool on a server.

        Args:
            server: Configured server name
            name: Tool name as advertised by the server
            arguments: JSON-compatible arguments
            timeout: Overrides the server's configured call timeout

        Returns:
            ToolCallResult with the joined text content

        Raises:
            ProviderUnavailableError: If the server cannot be reached
        """
        config = self._server(server)
        call_timeout = timeout or config.timeout
        logger.debug(f"Calling '{name}' on '{server}' with {arguments}")

        try:
            async with streamablehttp_client(config.endpoint) as (read, write, _):
                async with ClientSession(read, write) as session:
                    await asyncio.wait_for(session.initialize(), self.init_timeout)
                    result = await asyncio.wait_for(
                        session.call_tool(name, arguments), call_timeout
                    )
        except asyncio.CancelledError:
            raise
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(server, str(e)[:500]) from e

        return ToolCallResult(
            is_error=bool(result.isError),
            content=_content_to_text(result.content),
        )
