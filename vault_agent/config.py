"""
Configuration management for the vault agent.

Reads config/config.yaml (or CONFIG_PATH) when present. Without a file,
falls back to environment variables with sensible defaults for local
development.
"""

import logging

from dotenv import load_dotenv

from .config_loader import load_app_config, load_app_config_from_dict
from .models import AppConfig

load_dotenv()

logger = logging.getLogger(__name__)

# Used when no YAML file exists. Same shape as config/config.yaml.template.
ENV_DEFAULTS = {
    "agent": {
        "base_url": "${AGENT_BASE_URL:-https://openrouter.ai/api/v1}",
        "model": "${AGENT_MODEL:-openai/gpt-4o-mini}",
        "api_key": "${OPENROUTER_API_KEY:-}",
        "temperature": "${AGENT_TEMPERATURE:-0.3}",
        "timeout": "${AGENT_TIMEOUT:-120}",
        "max_tool_rounds": "${AGENT_MAX_TOOL_ROUNDS:-10}",
    },
    "critic": {
        "base_url": "${CRITIC_BASE_URL:-}",
        "model": "${CRITIC_MODEL:-}",
        "api_key": "${CRITIC_API_KEY:-}",
        "timeout": "${CRITIC_TIMEOUT:-10}",
    },
    "mcp_servers": {
        "obsidian": {"endpoint": "", "enabled": "${OBSIDIAN_MCP_ENABLED:-true}"},
        "filesystem": {"endpoint": "", "enabled": "${FILESYSTEM_MCP_ENABLED:-true}"},
        "microsoft-learn": {
            "endpoint": "",
            "enabled": "${MICROSOFT_LEARN_MCP_ENABLED:-true}",
        },
    },
    "selection": {"strategy": "${TOOL_SELECTION_STRATEGY:-all}"},
    "safety": {"fail_open_tools": "${SAFETY_FAIL_OPEN_TOOLS:-}"},
    "threads": {
        "backend": "${THREAD_STORE_BACKEND:-memory}",
        "directory": "${THREAD_STORE_DIR:-data/threads}",
    },
    "server": {
        "host": "${SERVER_HOST:-0.0.0.0}",
        "port": "${SERVER_PORT:-8000}",
        "reload": "${SERVER_RELOAD:-false}",
    },
    "logging": {"level": "${LOG_LEVEL:-INFO}"},
    "langfuse": {
        "public_key": "${LANGFUSE_PUBLIC_KEY:-}",
        "secret_key": "${LANGFUSE_SECRET_KEY:-}",
        "host": "${LANGFUSE_HOST:-}",
        "debug": "${LANGFUSE_DEBUG:-false}",
    },
}


def get_config() -> AppConfig:
    """Get the application configuration."""
    try:
        return load_app_config()
    except FileNotFoundError:
        logger.debug("No config file found, using environment defaults")
        return load_app_config_from_dict(ENV_DEFAULTS)


# Global config instance
config = get_config()
