"""
Data models for the vault agent.
"""

from .config import (
    AgentConfig,
    CriticConfig,
    McpServerConfig,
    CatalogConfig,
    SelectionConfig,
    SafetyConfig,
    VaultConfig,
    ThreadsConfig,
    ServerConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    "AgentConfig",
    "CriticConfig",
    "McpServerConfig",
    "CatalogConfig",
    "SelectionConfig",
    "SafetyConfig",
    "VaultConfig",
    "ThreadsConfig",
    "ServerConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
