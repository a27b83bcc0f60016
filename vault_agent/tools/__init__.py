"""
Tool discovery and execution.

- catalog: TTL-cached, merged view of every MCP server's tools
- provider: MCP streamable-HTTP access to the servers
- selection: per-request tool filtering
- router: name-based dispatch to the owning server
"""

from .catalog import CatalogSnapshot, ToolCatalog, ToolDescriptor
from .provider import McpToolProvider, ToolCallResult, ToolProvider
from .router import ToolRouter
from .selection import (
    AllToolsSelection,
    KeywordToolSelection,
    ToolSelectionStrategy,
    create_selection_strategy,
)

__all__ = [
    "CatalogSnapshot",
    "ToolCatalog",
    "ToolDescriptor",
    "McpToolProvider",
    "ToolCallResult",
    "ToolProvider",
    "ToolRouter",
    "AllToolsSelection",
    "KeywordToolSelection",
    "ToolSelectionStrategy",
    "create_selection_strategy",
]
