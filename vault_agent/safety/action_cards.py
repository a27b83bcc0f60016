"""
Action cards: user-facing records of destructive operations awaiting a
decision.

A card owns its planned operations in a flat list. Other objects refer to
a card only by its id (the reflection key).
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .critic import Assessment

DELETE_TOOL = "obsidian_delete_file"
PATCH_TOOL = "obsidian_patch_content"
MOVE_TOOL = "obsidian_move_file"

_OPERATIONS = {DELETE_TOOL: "Delete", PATCH_TOOL: "Patch", MOVE_TOOL: "Move"}
_ACTION_TYPES = {DELETE_TOOL: "Delete", PATCH_TOOL: "Modify", MOVE_TOOL: "Move"}


class ActionCardStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ActionCardStatus.CANCELLED,
            ActionCardStatus.COMPLETED,
            ActionCardStatus.FAILED,
        )


_TRANSITIONS = {
    ActionCardStatus.PENDING: {ActionCardStatus.CONFIRMED, ActionCardStatus.CANCELLED},
    ActionCardStatus.CONFIRMED: {ActionCardStatus.COMPLETED, ActionCardStatus.FAILED},
}


class InvalidTransitionError(ValueError):
    """Raised when a card is moved to a status its current one cannot reach."""


@dataclass
class PlannedOperation:
    """One step an action card would carry out."""

    type: str
    source: str
    destination: str
    description: str
    operation: str
    content: Optional[str] = None
    sort_order: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "destination": self.destination,
            "description": self.description,
            "operation": self.operation,
            "content": self.content,
            "sortOrder": self.sort_order,
        }


@dataclass
class ActionCard:
    """
    A proposed destructive operation and its lifecycle.

    Status only moves Pending -> Confirmed -> Completed/Failed or
    Pending -> Cancelled. Transitions are serialized per card.
    """

    id: str
    title: str
    function_name: str
    operation: str
    planned_operations: list[PlannedOperation] = field(default_factory=list)
    status: ActionCardStatus = ActionCardStatus.PENDING
    status_message: str = ""
    reasoning: str = ""
    warnings: list[str] = field(default_factory=list)
    needs_confirmation: bool = True
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def reflection_key(self) -> str:
        return self.id

    def transition(self, status: ActionCardStatus, message: str = "") -> None:
        """
        Move the card to a new status.

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        with self._lock:
            allowed = _TRANSITIONS.get(self.status, set())
            if status not in allowed:
                raise InvalidTransitionError(
                    f"Action card {self.id}: cannot go from "
                    f"{self.status.value} to {status.value}"
                )
            self.status = status
            if message:
                self.status_message = message
            if status.is_terminal:
                self.completed_at = time.time()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "operation": self.operation.lower(),
            "functionName": self.function_name,
            "statusMessage": self.status_message,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
            "plannedActions": [op.to_dict() for op in self.planned_operations],
            "reflectionMetadata": {
                "reasoning": self.reasoning,
                "warnings": list(self.warnings),
                "needsConfirmation": self.needs_confirmation,
                "reflectionKey": self.id,
            },
        }


def _argument(arguments: dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = arguments.get(name)
        if value is not None:
            return str(value)
    return None


def build_action_card(
    reflection_key: str,
    function_name: str,
    arguments: dict[str, Any],
    assessment: Assessment,
) -> ActionCard:
    """
    Build a Pending card for a destructive invocation.

    Args:
        reflection_key: Token that will confirm or cancel the card
        function_name: Tool being deferred
        arguments: Tool arguments as the agent supplied them
        assessment: Critic verdict (reason and warnings are copied)

    Returns:
        ActionCard with a single planned operation
    """
    tool = function_name.lower()
    operation = _OPERATIONS.get(tool, "Modify")
    action_type = _ACTION_TYPES.get(tool, "Other")
    file_path = _argument(arguments, "filepath", "path", "source")

    destination = None
    if tool == MOVE_TOOL:
        destination = _argument(arguments, "destination")

    planned = PlannedOperation(
        type=action_type,
        source=file_path or "",
        destination=destination or file_path or "",
        description=assessment.action_description or f"{operation} {file_path or ''}".strip(),
        operation=operation.lower(),
        content=_argument(arguments, "content"),
    )

    return ActionCard(
        id=reflection_key,
        title=f"{operation} Operation",
        function_name=function_name,
        operation=operation,
        planned_operations=[planned],
        reasoning=assessment.reason,
        warnings=list(assessment.warnings),
        needs_confirmation=True,
    )
