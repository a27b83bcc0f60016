"""
Configuration loader for the vault agent.

Loads configuration from YAML files with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import (
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
from .models.config import DEFAULT_DESTRUCTIVE_TOOLS

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """
    Recursively substitute environment variables in a data structure.

    Args:
        data: Any data structure (dict, list, str, etc.)

    Returns:
        Data structure with env vars resolved
    """
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any, default: bool) -> bool:
    """Coerce YAML/env values such as "true" or "0" to bool."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_list(value: Any, default: list[str]) -> list[str]:
    """Accept a YAML list or a comma-separated string."""
    if value is None or value == "":
        return list(default)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def endpoint_env_var(server_name: str) -> str:
    """Name of the environment variable that overrides a server endpoint."""
    return f"{server_name.upper().replace('-', '_')}_MCP_ENDPOINT"


def _parse_agent_config(data: dict) -> AgentConfig:
    """Parse primary agent configuration from dict."""
    return AgentConfig(
        base_url=data.get("base_url", AgentConfig.base_url),
        model=data.get("model", AgentConfig.model),
        api_key=data.get("api_key", "") or "",
        temperature=float(data.get("temperature", AgentConfig.temperature)),
        timeout=float(data.get("timeout", AgentConfig.timeout)),
        max_tool_rounds=int(data.get("max_tool_rounds", AgentConfig.max_tool_rounds)),
        instructions=data.get("instructions", "") or "",
    )


def _parse_critic_config(data: dict, agent: AgentConfig) -> CriticConfig:
    """Parse critic configuration; connection settings default to the agent's."""
    return CriticConfig(
        base_url=data.get("base_url") or agent.base_url,
        model=data.get("model") or agent.model,
        api_key=data.get("api_key") or agent.api_key,
        temperature=float(data.get("temperature", CriticConfig.temperature)),
        timeout=float(data.get("timeout", CriticConfig.timeout)),
    )


def _parse_mcp_servers(data: Any) -> list[McpServerConfig]:
    """
    Parse MCP server definitions.

    Accepts a mapping of name -> settings (order preserved) or a list of
    dicts with a ``name`` key. A ``<NAME>_MCP_ENDPOINT`` environment
    variable overrides the configured endpoint.
    """
    if not data:
        return []

    if isinstance(data, dict):
        items = [(name, settings or {}) for name, settings in data.items()]
    else:
        items = [(entry["name"], entry) for entry in data]

    servers = []
    for name, settings in items:
        endpoint = os.environ.get(endpoint_env_var(name)) or settings.get("endpoint", "")
        servers.append(
            McpServerConfig(
                name=name,
                endpoint=endpoint or "",
                enabled=_as_bool(settings.get("enabled"), True),
                timeout=float(settings.get("timeout", 30.0)),
            )
        )
    return servers


def _parse_catalog_config(data: dict) -> CatalogConfig:
    """Parse tool catalog configuration from dict."""
    return CatalogConfig(
        ttl_seconds=float(data.get("ttl_seconds", CatalogConfig.ttl_seconds)),
        discovery_timeout=float(
            data.get("discovery_timeout", CatalogConfig.discovery_timeout)
        ),
    )


def _parse_selection_config(data: dict) -> SelectionConfig:
    """Parse tool selection configuration from dict."""
    strategy = str(data.get("strategy", "all")).lower()
    if strategy not in ("all", "keyword"):
        raise ValueError(f"Unknown tool selection strategy: {strategy}")
    return SelectionConfig(
        strategy=strategy,
        max_tools=int(data.get("max_tools", SelectionConfig.max_tools)),
    )


def _parse_safety_config(data: dict) -> SafetyConfig:
    """Parse safety gate configuration from dict."""
    return SafetyConfig(
        destructive_tools=_as_list(
            data.get("destructive_tools"), DEFAULT_DESTRUCTIVE_TOOLS
        ),
        fail_open_tools=_as_list(data.get("fail_open_tools"), []),
        pending_ttl_seconds=float(
            data.get("pending_ttl_seconds", SafetyConfig.pending_ttl_seconds)
        ),
    )


def _parse_vault_config(data: dict) -> VaultConfig:
    """Parse vault path resolution configuration from dict."""
    return VaultConfig(
        listing_server=data.get("listing_server", VaultConfig.listing_server),
        listing_tool=data.get("listing_tool", VaultConfig.listing_tool),
        index_ttl_seconds=float(
            data.get("index_ttl_seconds", VaultConfig.index_ttl_seconds)
        ),
        default_extension=data.get("default_extension", VaultConfig.default_extension),
    )


def _parse_threads_config(data: dict) -> ThreadsConfig:
    """Parse thread store configuration from dict."""
    backend = str(data.get("backend", "memory")).lower()
    if backend not in ("memory", "json"):
        raise ValueError(f"Unknown thread store backend: {backend}")
    return ThreadsConfig(
        backend=backend,
        directory=data.get("directory", ThreadsConfig.directory),
        shards=int(data.get("shards", ThreadsConfig.shards)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server configuration from dict."""
    return ServerConfig(
        host=data.get("host", "0.0.0.0"),
        port=int(data.get("port", 8000)),
        workers=int(data.get("workers", 1)),
        reload=_as_bool(data.get("reload"), False),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=data.get("level", "INFO") or "INFO",
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key", "") or "",
        secret_key=data.get("secret_key", "") or "",
        host=data.get("host", "https://cloud.langfuse.com") or "",
        debug=_as_bool(data.get("debug"), False),
    )


def parse_app_config(raw_config: dict) -> AppConfig:
    """
    Build an AppConfig from a raw (already env-substituted) mapping.

    Args:
        raw_config: Parsed YAML document

    Returns:
        AppConfig with every section populated

    Raises:
        ValueError: If a section holds an unknown enum value
    """
    agent = _parse_agent_config(raw_config.get("agent") or {})
    return AppConfig(
        version=str(raw_config.get("version", "1.0")),
        agent=agent,
        critic=_parse_critic_config(raw_config.get("critic") or {}, agent),
        mcp_servers=_parse_mcp_servers(raw_config.get("mcp_servers")),
        catalog=_parse_catalog_config(raw_config.get("catalog") or {}),
        selection=_parse_selection_config(raw_config.get("selection") or {}),
        safety=_parse_safety_config(raw_config.get("safety") or {}),
        vault=_parse_vault_config(raw_config.get("vault") or {}),
        threads=_parse_threads_config(raw_config.get("threads") or {}),
        server=_parse_server_config(raw_config.get("server") or {}),
        logging=_parse_logging_config(raw_config.get("logging") or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
    )


def validate_app_config(app_config: AppConfig) -> list[str]:
    """
    Validate an application configuration.

    Args:
        app_config: Configuration to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if not app_config.agent.model:
        errors.append("agent: missing model")
    if app_config.agent.max_tool_rounds <= 0:
        errors.append("agent: max_tool_rounds must be positive")
    if app_config.critic.timeout <= 0:
        errors.append("critic: timeout must be positive")
    if app_config.catalog.ttl_seconds < 0:
        errors.append("catalog: ttl_seconds must not be negative")
    for server in app_config.mcp_servers:
        if server.enabled and not server.endpoint:
            errors.append(
                f"mcp_servers.{server.name}: enabled but no endpoint "
                f"(set endpoint or {endpoint_env_var(server.name)})"
            )
    unknown = set(t.lower() for t in app_config.safety.fail_open_tools) - set(
        t.lower() for t in app_config.safety.destructive_tools
    )
    for name in sorted(unknown):
        errors.append(f"safety.fail_open_tools: '{name}' is not a destructive tool")

    return errors


def load_app_config_from_dict(raw_config: dict) -> AppConfig:
    """Build an AppConfig from an in-memory mapping, resolving env vars."""
    return parse_app_config(_substitute_env_vars_recursive(raw_config))


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config is invalid
    """
    global _app_config

    # Return cached config if available and not reloading
    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml.template or set CONFIG_PATH env var."
        )

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Configuration file {config_path} is empty")

    raw_config = _substitute_env_vars_recursive(raw_config)
    app_config = parse_app_config(raw_config)

    for error in validate_app_config(app_config):
        logger.warning(f"Config validation warning: {error}")

    _app_config = app_config

    logger.debug(
        f"Configuration loaded: version={app_config.version}, "
        f"servers={[s.name for s in app_config.mcp_servers]}"
    )

    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
