"""
Error taxonomy for the vault agent pipeline.

Each error maps to one recovery policy:

- ProviderUnavailableError: recovered locally (partial catalog, fallback path).
- SafetyAssessmentError: blocks destructive operations (fail closed).
- InvocationNotFoundError: non-fatal "already handled" on confirm/cancel.
- ExecutionError: confirmed tool call failed; the card becomes Failed.
- UpstreamAgentError: the agent runtime failed mid-stream; the turn ends
  with a single error event.
"""

from typing import Optional


class VaultAgentError(Exception):
    """Base class for all vault agent errors."""


class ProviderUnavailableError(VaultAgentError):
    """A tool provider or the vault listing service could not be reached."""

    def __init__(self, server: str, message: str):
        self.server = server
        super().__init__(f"Provider '{server}' unavailable: {message}")


class SafetyAssessmentError(VaultAgentError):
    """The critic model could not produce a usable assessment."""


class InvocationNotFoundError(VaultAgentError):
    """Confirm or cancel was called with an unknown, expired or used key."""

    def __init__(self, reflection_key: str):
        self.reflection_key = reflection_key
        super().__init__(f"No pending invocation for key '{reflection_key}'")


class ExecutionError(VaultAgentError):
    """A tool call failed while executing."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' failed: {message}")


class UpstreamAgentError(VaultAgentError):
    """The chat-completion runtime failed while streaming a turn."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
