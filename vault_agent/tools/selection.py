"""
Per-request tool selection strategies.

The orchestrator hands every turn's catalog snapshot to a strategy that
decides which tools the agent sees for that message.
"""

import logging
from typing import Protocol

from ..models import SelectionConfig
from .catalog import CatalogSnapshot, ToolDescriptor

logger = logging.getLogger(__name__)

MAX_TOOLS_PER_REQUEST = 20

FILESYSTEM_KEYWORDS = ("file", "folder", "directory", "path", ".txt", ".pdf")
DOCS_KEYWORDS = ("docs", "documentation", "microsoft", ".net", "azure", "learn", "tutorial", "guide")


class ToolSelectionStrategy(Protocol):
    def select(self, message: str, snapshot: CatalogSnapshot) -> list[ToolDescriptor]:
        ...


class AllToolsSelection:
    """Offer every tool in the snapshot."""

    def select(self, message: str, snapshot: CatalogSnapshot) -> list[ToolDescriptor]:
        return list(snapshot.tools)


class KeywordToolSelection:
    """
    Pick tool servers by keywords in the user message.

    Vault tools are always offered. Filesystem tools join when the message
    mentions files or paths, documentation tools when it asks about docs
    or Microsoft technologies. The result is capped at ``max_tools``.
    """

    def __init__(
        self,
        max_tools: int = MAX_TOOLS_PER_REQUEST,
        always_server: str = "obsidian",
        filesystem_server: str = "filesystem",
        docs_server: str = "microsoft-learn",
    ):
        self.max_tools = max_tools
        self.always_server = always_server
        self.filesystem_server = filesystem_server
        self.docs_server = docs_server

    def servers_for(self, message: str) -> list[str]:
        """Server names relevant to a message, in priority order."""
        text = message.lower()
        servers = [self.always_server]
        if any(keyword in text for keyword in FILESYSTEM_KEYWORDS):
            servers.append(self.filesystem_server)
        if any(keyword in text for keyword in DOCS_KEYWORDS):
            servers.append(self.docs_server)
        return servers

    def select(self, message: str, snapshot: CatalogSnapshot) -> list[ToolDescriptor]:
        wanted = [s.lower() for s in self.servers_for(message)]
        selected = [
            tool
            for server in wanted
            for tool in snapshot.tools
            if tool.server.lower() == server
        ]
        if len(selected) > self.max_tools:
            logger.debug(
                f"Capping tool selection at {self.max_tools} (had {len(selected)})"
            )
            selected = selected[: self.max_tools]
        logger.debug(f"Selected servers {wanted}: {len(selected)} tools")
        return selected


def create_selection_strategy(config: SelectionConfig) -> ToolSelectionStrategy:
    """Build the strategy named in configuration."""
    if config.strategy == "keyword":
        return KeywordToolSelection(max_tools=config.max_tools)
    return AllToolsSelection()
