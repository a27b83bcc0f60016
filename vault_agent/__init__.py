"""
vault-agent - streaming tool-calling assistant for an Obsidian vault

This package provides:
- Tool discovery across MCP servers with a TTL-cached catalog
- A safety gate that holds destructive tool calls for user confirmation
- A streaming orchestrator that turns agent output into ordered events
- A FastAPI server and an interactive CLI
"""

__version__ = "0.1.0"
