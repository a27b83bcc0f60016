"""
FastAPI application for the vault agent.

Run with:
    vault-agent-server
    uvicorn vault_agent.api.main:app --reload --port 8000

Set LOG_LEVEL=DEBUG to see per-turn tool routing and critic verdicts.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import config
from ..models import AppConfig
from ..runtime import Runtime, build_runtime
from ..tracing import init_tracing_client, shutdown_tracing
from .routes import action_cards, chat, health, tools


def configure_logging(level: Optional[str] = None):
    """Configure logging from the configured level (LOG_LEVEL by default)."""
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("vault_agent").setLevel(log_level)


configure_logging()
logger = logging.getLogger(__name__)


def log_configuration(app_config: AppConfig) -> None:
    """Log a startup banner describing the active configuration."""
    logger.info("=" * 60)
    logger.info("AGENT CONFIGURATION")
    logger.info(f"  Base URL: {app_config.agent.base_url}")
    logger.info(f"  Model: {app_config.agent.model}")
    logger.info(f"  Max Tool Rounds: {app_config.agent.max_tool_rounds}")
    logger.info(f"  Critic Model: {app_config.critic.model} (timeout {app_config.critic.timeout}s)")

    logger.info("-" * 60)
    logger.info("MCP SERVERS")
    for server in app_config.mcp_servers:
        state = "enabled" if server.enabled and server.endpoint else "disabled"
        logger.info(f"  [{server.name}] {server.endpoint or '(no endpoint)'} - {state}")

    logger.info("-" * 60)
    logger.info("SAFETY")
    logger.info(f"  Destructive tools: {', '.join(app_config.safety.destructive_tools)}")
    logger.info(
        f"  Fail-open tools: {', '.join(app_config.safety.fail_open_tools) or '(none)'}"
    )
    logger.info(f"  Tool selection: {app_config.selection.strategy}")
    logger.info(f"  Thread store: {app_config.threads.backend}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime on startup; clear its state on shutdown."""
    logger.info("Starting vault agent API server")
    log_configuration(config)

    tracing = init_tracing_client(config.langfuse)
    logger.info("-" * 60)
    logger.info(
        "TRACING: Langfuse "
        + ("enabled" if tracing.enabled else f"disabled ({tracing.error})")
    )
    logger.info("=" * 60)

    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = build_runtime(config)

    yield

    logger.info("Shutting down vault agent API server")
    app.state.runtime.shutdown()
    shutdown_tracing()


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        runtime: Pre-built runtime; built from configuration at startup
            when omitted

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Vault Agent API",
        description=(
            "Streaming chat agent for an Obsidian vault with MCP tools and "
            "human-confirmed destructive operations."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router, tags=["Chat"])
    app.include_router(action_cards.router, tags=["Action Cards"])
    app.include_router(tools.router, tags=["Tools"])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Log validation errors before returning 400 response."""
        logger.warning(
            f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
        )
        return JSONResponse(status_code=400, content={"detail": exc.errors()})

    return app


app = create_app()


def run_server():
    """Run the server using uvicorn."""
    import uvicorn

    uvicorn.run(
        "vault_agent.api.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        workers=1 if config.server.reload else config.server.workers,
    )


if __name__ == "__main__":
    run_server()
