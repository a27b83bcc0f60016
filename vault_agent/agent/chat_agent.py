"""
Streaming chat agent over an OpenAI-compatible endpoint.

Runs the tool-calling loop for one user message: stream a completion,
execute any requested tools through the supplied executor, feed results
back, and repeat until the model answers in plain text or the round
limit is reached. Conversation history lives on the thread.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import openai
from openai import AsyncOpenAI

from ..errors import UpstreamAgentError
from ..models import AgentConfig
from ..safety.gate import ERROR, ToolOutcome
from ..threads import ConversationThread, ThreadStore
from ..tools.catalog import ToolDescriptor
from ..tracing import TracingContext
from .instructions import VAULT_ASSISTANT_INSTRUCTIONS

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 10

OutcomeExecutor = Callable[[str, dict[str, Any]], Awaitable[ToolOutcome]]


class UpdateKind(str, Enum):
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    USAGE = "usage"


@dataclass
class AgentUpdate:
    """One unit emitted by the agent while streaming a turn."""

    kind: UpdateKind
    text: str = ""
    call_id: str = ""
    tool_name: str = ""
    arguments: dict = field(default_factory=dict)
    outcome: Optional[ToolOutcome] = None
    usage: dict = field(default_factory=dict)


@dataclass
class _PendingCall:
    id: str = ""
    name: str = ""
    arguments: str = ""


def _parse_arguments(raw: str) -> tuple[dict, Optional[str]]:
    """Decode tool-call arguments, returning (arguments, error)."""
    if not raw or not raw.strip():
        return {}, None
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        return {}, f"Invalid JSON arguments: {e}"
    if not isinstance(parsed, dict):
        return {}, "Tool arguments must be a JSON object"
    return parsed, None


class ChatAgent:
    """
    Tool-calling chat agent bound to a thread store.

    Args:
        client: Async OpenAI client
        model: Model identifier
        instructions: System prompt
        tools: Tools offered to the model
        thread_store: Where conversation threads live
        executor: Runs a tool call and returns its outcome
        temperature: Sampling temperature
        timeout: Seconds allowed per completion request
        max_tool_rounds: Upper bound on completion/tool round trips
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        instructions: str,
        tools: list[ToolDescriptor],
        thread_store: ThreadStore,
        executor: OutcomeExecutor,
        temperature: float = 0.3,
        timeout: float = 120.0,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ):
        self.client = client
        self.model = model
        self.instructions = instructions
        self.tools = list(tools)
        self.thread_store = thread_store
        self.executor = executor
        self.temperature = temperature
        self.timeout = timeout
        self.max_tool_rounds = max_tool_rounds

    def new_thread(self) -> ConversationThread:
        return self.thread_store.create()

    async def send(self, message: str, thread_id: str) -> str:
        """Run a turn and return only the assistant's text."""
        parts = []
        async for update in self.stream(message, thread_id):
            if update.kind == UpdateKind.TEXT:
                parts.append(update.text)
        return "".join(parts)

    async def stream(
        self,
        message: str,
        thread_id: str,
        tracing_context: Optional[TracingContext] = None,
    ) -> AsyncIterator[AgentUpdate]:
        """
        Stream one turn.

        Args:
            message: The user's message
            thread_id: Thread holding prior history
            tracing_context: Optional turn trace

        Yields:
            AgentUpdate items in production order

        Raises:
            UpstreamAgentError: If the completion endpoint fails
            KeyError: If the thread does not exist
        """
        thread = self.thread_store.get(thread_id)
        if thread is None:
            raise KeyError(f"Unknown thread: {thread_id}")

        turn_messages: list[dict] = [{"role": "user", "content": message}]
        usage = {"inputTokens": 0, "outputTokens": 0, "totalTokens": 0}
        openai_tools = [tool.to_openai_tool() for tool in self.tools]

        for round_number in range(1, self.max_tool_rounds + 1):
            messages = (
                [{"role": "system", "content": self.instructions}]
                + thread.messages
                + turn_messages
            )
            text_parts: list[str] = []
            calls: dict[int, _PendingCall] = {}

            async for update in self._stream_round(
                messages, openai_tools, text_parts, calls, usage, tracing_context
            ):
                yield update

            assistant: dict[str, Any] = {
                "role": "assistant",
                "content": "".join(text_parts) or None,
            }
            if calls:
                assistant["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments or "{}"},
                    }
                    for _, call in sorted(calls.items())
                ]
            turn_messages.append(assistant)

            if not calls:
                break

            logger.debug(f"Round {round_number}: {len(calls)} tool call(s)")
            for _, call in sorted(calls.items()):
                arguments, error = _parse_arguments(call.arguments)
                yield AgentUpdate(
                    kind=UpdateKind.TOOL_CALL,
                    call_id=call.id,
                    tool_name=call.name,
                    arguments=arguments,
                )
                if error:
                    outcome = ToolOutcome(content=f"Error: {error}", status=ERROR)
                else:
                    outcome = await self.executor(call.name, arguments)
                yield AgentUpdate(
                    kind=UpdateKind.TOOL_RESULT,
                    call_id=call.id,
                    tool_name=call.name,
                    arguments=arguments,
                    outcome=outcome,
                )
                turn_messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": outcome.content}
                )
        else:
            logger.warning(
                f"Stopped after {self.max_tool_rounds} tool rounds without a final answer"
            )

        thread.messages.extend(turn_messages)
        self.thread_store.save(thread)

        yield AgentUpdate(kind=UpdateKind.USAGE, usage=usage)

    async def _stream_round(
        self,
        messages: list[dict],
        openai_tools: list[dict],
        text_parts: list[str],
        calls: dict[int, _PendingCall],
        usage: dict,
        tracing_context: Optional[TracingContext],
    ) -> AsyncIterator[AgentUpdate]:
        """Stream one completion, collecting text and tool-call fragments."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
            "timeout": self.timeout,
        }
        if openai_tools:
            kwargs["tools"] = openai_tools
        before = dict(usage)

        try:
            response = await self.client.chat.completions.create(**kwargs)
            async for chunk in response:
                if getattr(chunk, "usage", None):
                    usage["inputTokens"] += chunk.usage.prompt_tokens or 0
                    usage["outputTokens"] += chunk.usage.completion_tokens or 0
                    usage["totalTokens"] += chunk.usage.total_tokens or 0
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    text_parts.append(delta.content)
                    yield AgentUpdate(kind=UpdateKind.TEXT, text=delta.content)
                for fragment in delta.tool_calls or []:
                    call = calls.setdefault(fragment.index, _PendingCall())
                    if fragment.id:
                        call.id = fragment.id
                    if fragment.function is not None:
                        if fragment.function.name:
                            call.name += fragment.function.name
                        if fragment.function.arguments:
                            call.arguments += fragment.function.arguments
        except openai.OpenAIError as e:
            logger.error(f"Completion request failed: {e}")
            raise UpstreamAgentError(f"Agent completion failed: {e}", cause=e) from e

        if tracing_context is not None:
            with tracing_context.generation(
                name="agent_completion", model=self.model, input=messages
            ) as gen:
                gen.set_output("".join(text_parts))
                gen.set_usage(
                    usage["inputTokens"] - before["inputTokens"],
                    usage["outputTokens"] - before["outputTokens"],
                )


class AgentFactory:
    """
    Builds chat agents that share one OpenAI client.

    Args:
        config: Primary model configuration
        client: Optional pre-built client (tests inject fakes here)
    """

    def __init__(self, config: AgentConfig, client: Optional[AsyncOpenAI] = None):
        self.config = config
        self.client = client or AsyncOpenAI(
            base_url=config.base_url,
            api_key=config.api_key or "not-needed",
        )

    def create_agent(
        self,
        instructions: Optional[str],
        tools: list[ToolDescriptor],
        thread_store: ThreadStore,
        executor: OutcomeExecutor,
    ) -> ChatAgent:
        return ChatAgent(
            client=self.client,
            model=self.config.model,
            instructions=instructions
            or self.config.instructions
            or VAULT_ASSISTANT_INSTRUCTIONS,
            tools=tools,
            thread_store=thread_store,
            executor=executor,
            temperature=self.config.temperature,
            timeout=self.config.timeout,
            max_tool_rounds=self.config.max_tool_rounds,
        )
