"""
Process-wide Langfuse client.

Tracing is optional. Without credentials, or when the host rejects them at
startup, ``TracingClient.enabled`` is False and TracingContext skips every
observation.
"""

import logging
from typing import Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """
    Owns the Langfuse SDK client for the lifetime of the process.

    Args:
        public_key: Project public key
        secret_key: Project secret key
        host: Langfuse base URL; the SDK default when empty
        debug: Turn on the SDK's own debug logging
    """

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self.client: Optional[Langfuse] = None
        self.error: Optional[str] = None

        if not (public_key and secret_key):
            self.error = "Langfuse credentials not configured"
            logger.debug("Langfuse keys missing, tracing off")
            return

        if host and "://" not in host:
            logger.warning(
                f"Langfuse host '{host}' has no scheme; expected http(s)://host:port"
            )

        options = {"public_key": public_key, "secret_key": secret_key, "debug": debug}
        if host:
            options["host"] = host

        try:
            sdk = Langfuse(**options)
            authorized = sdk.auth_check()
        except Exception as e:
            self.error = f"Langfuse connectivity check failed: {e}"
        else:
            if authorized:
                self.client = sdk
            else:
                self.error = "Langfuse auth_check() failed - check host and credentials"

        if self.client is None:
            logger.warning(f"Langfuse tracing off: {self.error}")
        else:
            logger.info(f"Langfuse tracing on ({host or 'default host'})")

    @classmethod
    def from_config(cls, config: LangfuseConfig) -> "TracingClient":
        return cls(
            public_key=config.public_key,
            secret_key=config.secret_key,
            host=config.host,
            debug=config.debug,
        )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def flush(self) -> None:
        if self.client is None:
            return
        try:
            self.client.flush()
        except Exception as e:
            logger.warning(f"Langfuse flush failed: {e}")

    def shutdown(self) -> None:
        """Flush buffered observations and stop the exporter."""
        if self.client is None:
            return
        try:
            self.client.shutdown()
        except Exception as e:
            logger.warning(f"Langfuse shutdown failed: {e}")
        self.client = None


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(config: LangfuseConfig) -> TracingClient:
    """Create the process-wide tracing client from configuration."""
    global _tracing_client
    _tracing_client = TracingClient.from_config(config)
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    global _tracing_client
    if _tracing_client is not None:
        _tracing_client.shutdown()
    _tracing_client = None
