"""
Safety gate for destructive tool calls.

Non-destructive calls pass straight through. Destructive calls are
assessed by the critic and parked behind an action card; they only run
when the user confirms the card's reflection key. Each key resolves at
most once: confirm, cancel and expiry race on a single atomic pop.
"""

import asyncio
import json
import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from ..errors import InvocationNotFoundError, SafetyAssessmentError
from ..tools.provider import ToolCallResult
from ..tracing import TracingContext
from .action_cards import ActionCard, ActionCardStatus, build_action_card
from .critic import Assessment, CriticModel

if TYPE_CHECKING:
    from ..vault.resolver import VaultPathResolver

logger = logging.getLogger(__name__)

PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
REJECTED = "REJECTED"
BLOCKED = "BLOCKED"
OK = "OK"
ERROR = "ERROR"

DEFAULT_PENDING_TTL_SECONDS = 900.0
MAX_RETAINED_CARDS = 1000
PATH_ARGUMENTS = ("filepath", "path", "source")

ToolExecutor = Callable[[str, dict[str, Any]], Awaitable[ToolCallResult]]


@dataclass
class ToolOutcome:
    """What a tool call produced, as reported back to the agent."""

    content: str
    status: str = OK
    action_card: Optional[ActionCard] = None

    @property
    def is_error(self) -> bool:
        return self.status in (ERROR, BLOCKED)


@dataclass(frozen=True)
class PendingInvocation:
    """A deferred destructive call, consumable exactly once."""

    reflection_key: str
    function_name: str
    arguments: dict = field(hash=False)
    expires_at: float = 0.0


@dataclass
class ConfirmationResult:
    """Result of a confirm or cancel request."""

    success: bool
    message: str
    function_name: str
    result: Optional[str] = None
    card: Optional[ActionCard] = None


async def run_tool(
    executor: ToolExecutor, name: str, arguments: dict[str, Any]
) -> ToolOutcome:
    """
    Execute a tool and fold failures into an error outcome.

    Cancellation propagates; every other failure becomes an ``Error: ...``
    result so the conversation can continue.
    """
    try:
        result = await executor(name, arguments)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Tool '{name}' failed: {e}")
        return ToolOutcome(content=f"Error: {str(e)[:500]}", status=ERROR)

    if result.is_error:
        return ToolOutcome(content=f"Error: {result.content[:500]}", status=ERROR)
    return ToolOutcome(content=result.content, status=OK)


class SafetyGate:
    """
    Intercepts tool calls and defers destructive ones behind confirmation.

    Args:
        critic: Risk assessor for destructive calls
        executor: Performs the real tool call once confirmed
        destructive_tools: Tool names that require confirmation
        fail_open_tools: Destructive tools that may still be carded (never
            executed) when the critic is unavailable
        pending_ttl_seconds: Lifetime of an unconfirmed invocation
        path_resolver: Resolves path arguments of destructive calls to real
            vault paths before they are assessed
        clock: Monotonic time source
    """

    def __init__(
        self,
        critic: CriticModel,
        executor: ToolExecutor,
        destructive_tools: list[str],
        fail_open_tools: Optional[list[str]] = None,
        pending_ttl_seconds: float = DEFAULT_PENDING_TTL_SECONDS,
        path_resolver: Optional["VaultPathResolver"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.critic = critic
        self.executor = executor
        self.destructive_tools = {name.lower() for name in destructive_tools}
        self.fail_open_tools = {name.lower() for name in fail_open_tools or []}
        self.pending_ttl_seconds = pending_ttl_seconds
        self.path_resolver = path_resolver
        self._clock = clock
        self._pending: dict[str, PendingInvocation] = {}
        self._cards: "OrderedDict[str, ActionCard]" = OrderedDict()
        self._lock = threading.Lock()

    def is_destructive(self, function_name: str) -> bool:
        return function_name.lower() in self.destructive_tools

    def guard(
        self,
        executor: Optional[ToolExecutor] = None,
        tracing_context: Optional[TracingContext] = None,
    ) -> Callable[[str, dict[str, Any]], Awaitable[ToolOutcome]]:
        """Wrap an executor so every call goes through ``intercept``."""
        target = executor or self.executor

        async def guarded(name: str, arguments: dict[str, Any]) -> ToolOutcome:
            async def proceed() -> ToolOutcome:
                return await run_tool(target, name, arguments)

            return await self.intercept(name, arguments, proceed, tracing_context)

        return guarded

    async def intercept(
        self,
        function_name: str,
        arguments: dict[str, Any],
        next: Callable[[], Awaitable[ToolOutcome]],
        tracing_context: Optional[TracingContext] = None,
    ) -> ToolOutcome:
        """
        Decide whether a tool call runs now, later, or never.

        Args:
            function_name: Tool the agent asked for
            arguments: Its arguments
            next: Runs the call; only awaited for non-destructive tools
            tracing_context: Optional request trace for the critic call

        Returns:
            The tool's outcome, a REJECTED/BLOCKED outcome, or a
            PENDING_CONFIRMATION outcome carrying an action card
        """
        if not self.is_destructive(function_name):
            logger.debug(f"Passing through non-destructive call: {function_name}")
            return await next()

        logger.info(f"Destructive call intercepted: {function_name}")
        arguments = await self._resolve_paths(arguments)

        try:
            assessment = await self.critic.assess(
                function_name, arguments, tracing_context
            )
        except SafetyAssessmentError as e:
            if function_name.lower() not in self.fail_open_tools:
                logger.error(f"Blocking {function_name}: safety check unavailable: {e}")
                return ToolOutcome(
                    content=(
                        f"BLOCKED: the safety check for {function_name} is "
                        f"unavailable ({e}). The operation was not executed."
                    ),
                    status=BLOCKED,
                )
            logger.warning(
                f"Safety check unavailable for {function_name}, "
                f"requiring confirmation without an assessment: {e}"
            )
            assessment = Assessment(
                needs_confirmation=True,
                reason=f"Safety check unavailable: {e}",
                warnings=["Automated safety review did not run; check the target carefully"],
            )

        if assessment.should_reject:
            logger.warning(f"Critic rejected {function_name}: {assessment.reason}")
            return ToolOutcome(content=f"REJECTED: {assessment.reason}", status=REJECTED)

        reflection_key = f"reflection_{uuid.uuid4()}"
        card = build_action_card(reflection_key, function_name, arguments, assessment)
        invocation = PendingInvocation(
            reflection_key=reflection_key,
            function_name=function_name,
            arguments=dict(arguments),
            expires_at=self._clock() + self.pending_ttl_seconds,
        )

        with self._lock:
            self._sweep_locked()
            self._pending[reflection_key] = invocation
            self._retain_locked(card)

        logger.info(f"{function_name} awaiting confirmation under {reflection_key}")

        payload = {
            "status": PENDING_CONFIRMATION,
            "reflection_key": reflection_key,
            "description": assessment.action_description
            or "Operation requires confirmation",
            "warnings": list(assessment.warnings),
            "action_card": card.to_dict(),
        }
        return ToolOutcome(
            content=json.dumps(payload, ensure_ascii=False),
            status=PENDING_CONFIRMATION,
            action_card=card,
        )

    async def _resolve_paths(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Replace loose path arguments with the matching vault path."""
        if self.path_resolver is None:
            return arguments
        resolved = dict(arguments)
        for name in PATH_ARGUMENTS:
            value = resolved.get(name)
            if isinstance(value, str) and value.strip():
                match = await self.path_resolver.find(value)
                if match is not None:
                    resolved[name] = match
        return resolved

    async def confirm(self, reflection_key: str) -> ConfirmationResult:
        """
        Execute a pending invocation.

        Raises:
            InvocationNotFoundError: If the key is unknown, expired or
                already confirmed/cancelled
        """
        invocation = self._take(reflection_key)
        card = self.get_card(reflection_key)
        if card is not None:
            card.transition(ActionCardStatus.CONFIRMED)

        logger.info(f"Executing confirmed {invocation.function_name} ({reflection_key})")
        try:
            outcome = await run_tool(
                self.executor, invocation.function_name, invocation.arguments
            )
        except asyncio.CancelledError:
            if card is not None:
                card.transition(ActionCardStatus.FAILED, "Execution cancelled")
            raise

        if outcome.is_error:
            if card is not None:
                card.transition(ActionCardStatus.FAILED, outcome.content)
            logger.warning(f"Confirmed {invocation.function_name} failed: {outcome.content}")
            return ConfirmationResult(
                success=False,
                message=f"Operation '{invocation.function_name}' failed",
                function_name=invocation.function_name,
                result=outcome.content,
                card=card,
            )

        if card is not None:
            card.transition(ActionCardStatus.COMPLETED)
        return ConfirmationResult(
            success=True,
            message=f"Operation '{invocation.function_name}' executed successfully",
            function_name=invocation.function_name,
            result=outcome.content,
            card=card,
        )

    def cancel(self, reflection_key: str) -> ConfirmationResult:
        """
        Discard a pending invocation without executing it.

        Raises:
            InvocationNotFoundError: If the key is unknown, expired or
                already confirmed/cancelled
        """
        invocation = self._take(reflection_key)
        card = self.get_card(reflection_key)
        if card is not None:
            card.transition(ActionCardStatus.CANCELLED, "Cancelled by user")
        logger.info(f"Cancelled {invocation.function_name} ({reflection_key})")
        return ConfirmationResult(
            success=True,
            message=f"Operation '{invocation.function_name}' cancelled successfully",
            function_name=invocation.function_name,
            card=card,
        )

    def get_card(self, reflection_key: str) -> Optional[ActionCard]:
        with self._lock:
            return self._cards.get(reflection_key)

    def pending_count(self) -> int:
        with self._lock:
            self._sweep_locked()
            return len(self._pending)

    def clear(self) -> None:
        """Forget every pending invocation and card."""
        with self._lock:
            self._pending.clear()
            self._cards.clear()

    def _take(self, reflection_key: str) -> PendingInvocation:
        with self._lock:
            self._sweep_locked()
            invocation = self._pending.pop(reflection_key, None)
        if invocation is None:
            logger.debug(f"No pending invocation for {reflection_key}")
            raise InvocationNotFoundError(reflection_key)
        return invocation

    def _sweep_locked(self) -> None:
        now = self._clock()
        expired = [k for k, inv in self._pending.items() if inv.expires_at <= now]
        for key in expired:
            del self._pending[key]
            card = self._cards.pop(key, None)
            if card is not None:
                card.status_message = "Expired"
        if expired:
            logger.debug(f"Swept {len(expired)} expired pending invocations")

    def _retain_locked(self, card: ActionCard) -> None:
        self._cards[card.id] = card
        while len(self._cards) > MAX_RETAINED_CARDS:
            key = next(iter(self._cards))
            if key in self._pending:
                break
            del self._cards[key]
