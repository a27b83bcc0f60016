"""
Human-confirmation safety workflow for destructive tool calls.
"""

from .action_cards import ActionCard, ActionCardStatus, PlannedOperation, build_action_card
from .critic import Assessment, CriticModel
from .gate import (
    ConfirmationResult,
    PendingInvocation,
    SafetyGate,
    ToolOutcome,
    run_tool,
)

__all__ = [
    "ActionCard",
    "ActionCardStatus",
    "PlannedOperation",
    "build_action_card",
    "Assessment",
    "CriticModel",
    "ConfirmationResult",
    "PendingInvocation",
    "SafetyGate",
    "ToolOutcome",
    "run_tool",
]
