"""
Configuration models for the vault agent.

Defines dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_DESTRUCTIVE_TOOLS = [
    "obsidian_delete_file",
    "obsidian_patch_content",
    "obsidian_move_file",
]


@dataclass
class AgentConfig:
    """Configuration for the primary chat-completion model."""
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "openai/gpt-4o-mini"
    api_key: str = ""
    temperature: float = 0.3
    timeout: float = 120.0
    max_tool_rounds: int = 10
    instructions: str = ""


@dataclass
class CriticConfig:
    """Configuration for the secondary safety critic model."""
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "openai/gpt-4o-mini"
    api_key: str = ""
    temperature: float = 0.0
    timeout: float = 10.0


@dataclass
class McpServerConfig:
    """Configuration for a single MCP tool-provider server."""
    name: str
    endpoint: str = ""
    enabled: bool = True
    timeout: float = 30.0


@dataclass
class CatalogConfig:
    """Configuration for the tool catalog cache."""
    ttl_seconds: float = 300.0
    discovery_timeout: float = 15.0


@dataclass
class SelectionConfig:
    """Configuration for per-request tool selection."""
    strategy: str = "all"
    max_tools: int = 20


@dataclass
class SafetyConfig:
    """Configuration for the destructive-operation safety gate."""
    destructive_tools: list[str] = field(
        default_factory=lambda: list(DEFAULT_DESTRUCTIVE_TOOLS)
    )
    fail_open_tools: list[str] = field(default_factory=list)
    pending_ttl_seconds: float = 900.0


@dataclass
class VaultConfig:
    """Configuration for vault path resolution."""
    listing_server: str = "obsidian"
    listing_tool: str = "obsidian_list_files_in_vault"
    index_ttl_seconds: float = 15.0
    default_extension: str = ".md"


@dataclass
class ThreadsConfig:
    """Configuration for the conversation thread store."""
    backend: str = "memory"
    directory: str = "data/threads"
    shards: int = 16


@dataclass
class ServerConfig:
    """Configuration for the FastAPI server."""
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    agent: AgentConfig = field(default_factory=AgentConfig)
    critic: CriticConfig = field(default_factory=CriticConfig)
    mcp_servers: list[McpServerConfig] = field(default_factory=list)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    threads: ThreadsConfig = field(default_factory=ThreadsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level

    @property
    def enabled_servers(self) -> list[McpServerConfig]:
        """MCP servers that are enabled and have an endpoint."""
        return [s for s in self.mcp_servers if s.enabled and s.endpoint]

    def get_server(self, name: str) -> Optional[McpServerConfig]:
        """Look up an MCP server by name (case-insensitive)."""
        for server in self.mcp_servers:
            if server.name.lower() == name.lower():
                return server
        return None
