"""
Routes tool calls by name to the server that advertised them.
"""

import logging
from typing import Any

from ..errors import ExecutionError, ProviderUnavailableError
from .catalog import ToolCatalog
from .provider import ToolCallResult, ToolProvider

logger = logging.getLogger(__name__)


class ToolRouter:
    """
    Executes a tool by name using the catalog's server mapping.

    Args:
        catalog: Catalog used to find the owning server
        provider: Provider that performs the remote call
    """

    def __init__(self, catalog: ToolCatalog, provider: ToolProvider):
        self.catalog = catalog
        self.provider = provider

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolCallResult:
        """
        Execute a tool call.

        Args:
            name: Tool name (case-insensitive)
            arguments: Tool arguments

        Returns:
            ToolCallResult from the provider

        Raises:
            ExecutionError: If the tool is unknown or its server is unreachable
        """
        snapshot = await self.catalog.get_tools()
        tool = snapshot.get(name)
        if tool is None:
            raise ExecutionError(name, "tool not found in catalog")

        try:
            return await self.provider.call_tool(tool.server, tool.name, arguments)
        except ProviderUnavailableError as e:
            raise ExecutionError(name, str(e)) from e
