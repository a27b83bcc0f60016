"""
Streaming orchestrator for one conversational turn.

Resolves the conversation's thread, assembles the tool set, runs the
agent with its executor wrapped by the safety gate, and converts agent
output into ordered StreamEvents. A turn always ends with exactly one
DONE or ERROR event, including when it is cancelled.
"""

import asyncio
import logging
import uuid
import weakref
from typing import Any, AsyncIterator, Optional

from ..agent import AgentFactory, AgentUpdate, UpdateKind
from ..errors import UpstreamAgentError
from ..safety import ConfirmationResult, SafetyGate
from ..threads import ConversationThread, ThreadStore
from ..tools import AllToolsSelection, ToolCatalog, ToolSelectionStrategy
from ..tools.provider import ToolCallResult
from ..tracing import TracingContext
from .events import StreamEvent

logger = logging.getLogger(__name__)


class StreamingOrchestrator:
    """
    Drives conversational turns end to end.

    Turns on the same conversation run one at a time; different
    conversations run concurrently.

    Args:
        catalog: Tool catalog
        thread_store: Conversation thread registry
        agent_factory: Builds an agent per turn
        gate: Safety gate wrapping every tool call
        selection: Per-message tool selection (default: all tools)
        instructions: System prompt override for the agent
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        thread_store: ThreadStore,
        agent_factory: AgentFactory,
        gate: SafetyGate,
        selection: Optional[ToolSelectionStrategy] = None,
        instructions: Optional[str] = None,
    ):
        self.catalog = catalog
        self.thread_store = thread_store
        self.agent_factory = agent_factory
        self.gate = gate
        self.selection = selection or AllToolsSelection()
        self.instructions = instructions
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def start_conversation(self) -> str:
        """Create a thread for a new conversation and return its id."""
        return self.thread_store.create().thread_id

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def _resolve_thread(self, conversation_id: str) -> ConversationThread:
        thread = self.thread_store.get(conversation_id)
        if thread is None:
            thread = ConversationThread(thread_id=conversation_id)
            self.thread_store.register(thread)
            logger.debug(f"Started thread for {conversation_id}")
        return thread

    def _traced_executor(self, tracing_context: TracingContext):
        async def execute(name: str, arguments: dict[str, Any]) -> ToolCallResult:
            with tracing_context.span(name=f"tool:{name}", input=arguments) as span:
                result = await self.gate.executor(name, arguments)
                span.set_output(
                    {"is_error": result.is_error, "content": result.content[:500]}
                )
                if result.is_error:
                    span.set_status("error")
                return result

        return execute

    async def run_turn(
        self, conversation_id: str, message: str
    ) -> AsyncIterator[StreamEvent]:
        """
        Run one turn and stream its events.

        Args:
            conversation_id: Conversation the message belongs to
            message: The user's message

        Yields:
            StreamEvents in production order, ending with DONE or ERROR
        """
        turn_id = f"turn-{uuid.uuid4().hex[:8]}"
        id_prefix = f"[{turn_id}] "
        logger.info(f"{id_prefix}Turn started for {conversation_id}: {message[:100]}")

        tracing_context = TracingContext(turn_id=turn_id, conversation_id=conversation_id)
        tracing_context.start_trace(name="run_turn", message=message)

        lock = self._lock_for(conversation_id)
        event_count = 0
        try:
            async with lock:
                thread = self._resolve_thread(conversation_id)
                snapshot = await self.catalog.get_tools()
                tools = self.selection.select(message, snapshot)
                logger.debug(
                    f"{id_prefix}{len(tools)}/{len(snapshot)} tools selected"
                )

                executor = self.gate.guard(
                    self._traced_executor(tracing_context), tracing_context
                )
                agent = self.agent_factory.create_agent(
                    self.instructions, tools, self.thread_store, executor
                )

                updates = agent.stream(message, thread.thread_id, tracing_context)
                try:
                    async for update in updates:
                        for event in self._to_events(update):
                            event_count += 1
                            yield event
                finally:
                    await updates.aclose()
        except asyncio.CancelledError:
            logger.warning(f"{id_prefix}Turn cancelled after {event_count} events")
            tracing_context.end_trace(status="cancelled")
            yield StreamEvent.error("Turn cancelled", "cancelled")
            raise
        except GeneratorExit:
            logger.info(f"{id_prefix}Consumer closed the stream after {event_count} events")
            tracing_context.end_trace(status="closed")
            raise
        except UpstreamAgentError as e:
            logger.error(f"{id_prefix}Agent failed: {e}")
            tracing_context.end_trace(output=str(e), status="error")
            yield StreamEvent.error(str(e)[:500], "upstream_agent")
            return
        except Exception as e:
            logger.exception(f"{id_prefix}Turn failed: {e}")
            tracing_context.end_trace(output=str(e), status="error")
            yield StreamEvent.error(str(e)[:500], type(e).__name__)
            return

        logger.info(f"{id_prefix}Turn finished with {event_count} events")
        tracing_context.end_trace(status="success", metadata={"events": event_count})
        yield StreamEvent.done()

    def _to_events(self, update: AgentUpdate) -> list[StreamEvent]:
        if update.kind == UpdateKind.TEXT:
            return [StreamEvent.text(update.text)]
        if update.kind == UpdateKind.TOOL_CALL:
            return [
                StreamEvent.tool_call_requested(
                    update.call_id, update.tool_name, update.arguments
                )
            ]
        if update.kind == UpdateKind.TOOL_RESULT:
            events = [
                StreamEvent.tool_result(update.call_id, update.tool_name, update.outcome)
            ]
            if update.outcome.action_card is not None:
                events.append(StreamEvent.action_card(update.outcome.action_card))
            return events
        if update.kind == UpdateKind.USAGE:
            return [StreamEvent.metadata(update.usage)]
        raise ValueError(f"Unhandled agent update kind: {update.kind}")

    async def confirm(self, reflection_key: str) -> ConfirmationResult:
        return await self.gate.confirm(reflection_key)

    def cancel(self, reflection_key: str) -> ConfirmationResult:
        return self.gate.cancel(reflection_key)
