"""
Turn orchestration and the stream event protocol.
"""

from .events import EventKind, StreamEvent
from .orchestrator import StreamingOrchestrator

__all__ = [
    "EventKind",
    "StreamEvent",
    "StreamingOrchestrator",
]
