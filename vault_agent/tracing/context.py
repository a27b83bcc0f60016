"""
Turn-scoped tracing context.

One trace per conversational turn, with child spans for tool executions
and generations for model calls. Parent links are passed explicitly as
Langfuse TraceContext values so nesting survives async task switches.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from langfuse.types import TraceContext

from .client import get_tracing_client

logger = logging.getLogger(__name__)


def _start_observation(trace_context: Optional[TraceContext], **kwargs) -> tuple[Any, Any]:
    """Open a Langfuse observation, returning (context manager, observation)."""
    client = get_tracing_client()
    if not client or not client.client:
        return None, None
    manager = client.client.start_as_current_observation(
        trace_context=trace_context, **kwargs
    )
    return manager, manager.__enter__()


def _finish_observation(manager: Any, observation: Any, **update) -> None:
    observation.update(**update)
    if manager:
        manager.__exit__(None, None, None)


@dataclass
class TracingContext:
    """
    Tracing state for a single turn.

    Attributes:
        turn_id: Identifier used in logs and trace metadata
        conversation_id: Recorded as the Langfuse session id
    """

    turn_id: str
    conversation_id: Optional[str] = None
    _manager: Any = field(default=None, repr=False)
    _root: Any = field(default=None, repr=False)
    _enabled: bool = field(default=False, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self._enabled = client is not None and client.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_trace(
        self,
        name: str = "turn",
        message: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Open the root span for this turn."""
        if not self._enabled:
            return
        try:
            self._manager, self._root = _start_observation(
                None,
                as_type="span",
                name=name,
                input={"message": message} if message else None,
                metadata={"turn_id": self.turn_id, **(metadata or {})},
            )
            if self._root is not None:
                self._root.update_trace(session_id=self.conversation_id)
            self._start_time = time.time()
        except Exception as e:
            logger.warning(f"[{self.turn_id}] Failed to start trace: {e}")
            self._root = None

    def end_trace(
        self,
        output: Optional[str] = None,
        status: str = "success",
        metadata: Optional[dict] = None,
    ) -> None:
        """Close the root span with the turn's outcome."""
        if not self._enabled or self._root is None:
            return
        try:
            duration_ms = (time.time() - self._start_time) * 1000
            _finish_observation(
                self._manager,
                self._root,
                output=output,
                metadata={
                    "status": status,
                    "duration_ms": round(duration_ms, 2),
                    **(metadata or {}),
                },
            )
        except Exception as e:
            logger.warning(f"[{self.turn_id}] Failed to end trace: {e}")
        finally:
            self._root = None

    def trace_context(self) -> Optional[TraceContext]:
        """Parent reference for child observations."""
        if self._root is None:
            return None
        trace_id = getattr(self._root, "trace_id", None)
        span_id = getattr(self._root, "id", None)
        if not trace_id or not span_id:
            return None
        return TraceContext(trace_id=trace_id, parent_span_id=span_id)

    @contextmanager
    def span(
        self,
        name: str,
        metadata: Optional[dict] = None,
        input: Optional[dict] = None,
    ) -> Iterator["ObservationContext"]:
        """Child span under the turn's root."""
        obs = ObservationContext(
            enabled=self._enabled,
            kwargs={"as_type": "span", "name": name, "metadata": metadata, "input": input},
            parent=self.trace_context(),
        )
        obs.start()
        try:
            yield obs
        finally:
            obs.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Iterator["ObservationContext"]:
        """Child generation for a model call."""
        obs = ObservationContext(
            enabled=self._enabled,
            kwargs={
                "as_type": "generation",
                "name": name,
                "model": model,
                "input": input,
                "metadata": metadata,
            },
            parent=self.trace_context(),
        )
        obs.start()
        try:
            yield obs
        finally:
            obs.end()


@dataclass
class ObservationContext:
    """A span or generation; every method is a no-op when tracing is off."""

    enabled: bool = False
    kwargs: dict = field(default_factory=dict)
    parent: Optional[TraceContext] = None
    _manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Any = field(default=None, repr=False)
    _usage: Optional[dict] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def start(self) -> None:
        if not self.enabled:
            return
        try:
            self._start_time = time.time()
            self._manager, self._observation = _start_observation(
                self.parent, **self.kwargs
            )
        except Exception as e:
            logger.warning(f"Failed to start observation '{self.kwargs.get('name')}': {e}")
            self._observation = None

    def end(self) -> None:
        if not self.enabled or self._observation is None:
            return
        try:
            update: dict[str, Any] = {
                "metadata": {
                    "status": self._status,
                    "duration_ms": round((time.time() - self._start_time) * 1000, 2),
                }
            }
            if self._output is not None:
                update["output"] = self._output
            if self._usage:
                update["usage_details"] = self._usage
            _finish_observation(self._manager, self._observation, **update)
        except Exception as e:
            logger.warning(f"Failed to end observation '{self.kwargs.get('name')}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status

    def set_usage(
        self,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
    ) -> None:
        self._usage = {}
        if input_tokens is not None:
            self._usage["input"] = input_tokens
        if output_tokens is not None:
            self._usage["output"] = output_tokens
