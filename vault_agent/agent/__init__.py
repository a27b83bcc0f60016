"""
Chat agent runtime.
"""

from .chat_agent import AgentFactory, AgentUpdate, ChatAgent, UpdateKind
from .instructions import VAULT_ASSISTANT_INSTRUCTIONS

__all__ = [
    "AgentFactory",
    "AgentUpdate",
    "ChatAgent",
    "UpdateKind",
    "VAULT_ASSISTANT_INSTRUCTIONS",
]
