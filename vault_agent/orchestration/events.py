"""
Stream events emitted by a conversational turn.

A single tagged type: ``kind`` says what happened, ``payload`` carries
the JSON-ready details. Every turn ends with exactly one DONE or ERROR.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..safety.action_cards import ActionCard
from ..safety.gate import ToolOutcome


class EventKind(str, Enum):
    TEXT = "text"
    TOOL_CALL_REQUESTED = "tool_call"
    TOOL_RESULT = "tool_result"
    ACTION_CARD = "action_card"
    METADATA = "metadata"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (EventKind.DONE, EventKind.ERROR)


@dataclass(frozen=True)
class StreamEvent:
    kind: EventKind
    payload: dict = field(default_factory=dict, hash=False)

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal

    @classmethod
    def text(cls, text: str) -> "StreamEvent":
        return cls(EventKind.TEXT, {"text": text})

    @classmethod
    def tool_call_requested(
        cls, call_id: str, name: str, arguments: dict[str, Any]
    ) -> "StreamEvent":
        return cls(
            EventKind.TOOL_CALL_REQUESTED,
            {"call_id": call_id, "name": name, "phase": "call", "arguments": arguments},
        )

    @classmethod
    def tool_result(cls, call_id: str, name: str, outcome: ToolOutcome) -> "StreamEvent":
        return cls(
            EventKind.TOOL_RESULT,
            {
                "call_id": call_id,
                "name": name,
                "phase": "result",
                "status": outcome.status,
                "is_error": outcome.is_error,
                "result": outcome.content,
            },
        )

    @classmethod
    def action_card(cls, card: ActionCard) -> "StreamEvent":
        return cls(EventKind.ACTION_CARD, card.to_dict())

    @classmethod
    def metadata(cls, usage: dict) -> "StreamEvent":
        return cls(EventKind.METADATA, {"type": "usage", "usage": dict(usage)})

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(EventKind.DONE, {})

    @classmethod
    def error(cls, message: str, error_type: Optional[str] = None) -> "StreamEvent":
        return cls(EventKind.ERROR, {"message": message, "type": error_type or "error"})
