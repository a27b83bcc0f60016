#!/usr/bin/env python3
"""
Vault Agent Interactive CLI

Chat with the vault agent from a terminal. Destructive operations show
their action card; confirm or cancel them with /confirm and /cancel.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import threading
from typing import Optional

from .config import config
from .errors import InvocationNotFoundError
from .orchestration import EventKind, StreamEvent
from .runtime import Runtime, build_runtime
from .tracing import init_tracing_client, shutdown_tracing

_shutdown_requested = threading.Event()

logger = logging.getLogger(__name__)


def _signal_handler(signum: int, frame) -> None:
    """Handle SIGINT for graceful shutdown."""
    if _shutdown_requested.is_set():
        logger.debug("Force shutdown requested")
        sys.exit(1)
    logger.debug("Shutdown requested")
    _shutdown_requested.set()
    print("\n\nShutting down... (press Ctrl+C again to force)")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    banner = """
╔════════════════════════════════════════════════════════════════╗
║                     Vault Agent Interactive                     ║
║                                                                 ║
║  Chat with your Obsidian vault; destructive changes need a yes  ║
╚════════════════════════════════════════════════════════════════╝

Available commands:
  /help           - Show this help message
  /tools          - List discovered tools
  /confirm <key>  - Execute a pending action card
  /cancel <key>   - Discard a pending action card
  /new            - Start a new conversation
  /quit           - Exit the CLI

Type your requests below.
"""
    print(banner)


def render_event(event: StreamEvent) -> Optional[str]:
    """Terminal rendering of a stream event (None for silent events)."""
    kind = event.kind
    payload = event.payload
    if kind == EventKind.TEXT:
        return payload["text"]
    if kind == EventKind.TOOL_CALL_REQUESTED:
        return f"\n  → {payload['name']} {json.dumps(payload['arguments'], ensure_ascii=False)}\n"
    if kind == EventKind.TOOL_RESULT:
        if payload["is_error"]:
            return f"  ✗ {payload['name']}: {payload['result'][:200]}\n"
        return None
    if kind == EventKind.ACTION_CARD:
        lines = [f"\n┌─ {payload['title']} [{payload['status']}]"]
        for action in payload["plannedActions"]:
            lines.append(f"│  {action['description']}")
        for warning in payload["reflectionMetadata"]["warnings"]:
            lines.append(f"│  ⚠ {warning}")
        lines.append(f"│  /confirm {payload['id']}")
        lines.append(f"│  /cancel {payload['id']}")
        lines.append("└" + "─" * 68)
        return "\n".join(lines) + "\n"
    if kind == EventKind.METADATA:
        return None
    if kind == EventKind.DONE:
        return "\n"
    if kind == EventKind.ERROR:
        return f"\nError: {payload['message']}\n"
    raise ValueError(f"Unhandled stream event kind: {kind}")


class InteractiveCLI:
    """Interactive CLI for the vault agent."""

    def __init__(self, runtime: Runtime):
        self.runtime = runtime
        self.conversation_id = runtime.orchestrator.start_conversation()

    def new_conversation(self) -> None:
        self.conversation_id = self.runtime.orchestrator.start_conversation()
        print("\nStarted a new conversation.\n")

    async def print_tools(self) -> None:
        snapshot = await self.runtime.catalog.get_tools()
        print("\nAvailable Tools:")
        print("─" * 64)
        for tool in snapshot.tools:
            print(f"  {tool.name.ljust(36)} [{tool.server}]")
        print(f"\nPer server: {dict(snapshot.per_server_counts)}\n")

    async def confirm(self, key: str) -> None:
        try:
            result = await self.runtime.orchestrator.confirm(key)
        except InvocationNotFoundError:
            print("\nAction card not found or already executed.\n")
            return
        print(f"\n{result.message}")
        if result.result:
            print(result.result[:500])
        print()

    def cancel(self, key: str) -> None:
        try:
            result = self.runtime.orchestrator.cancel(key)
        except InvocationNotFoundError:
            print("\nAction card not found or already processed.\n")
            return
        print(f"\n{result.message}\n")

    async def process_message(self, message: str) -> None:
        async for event in self.runtime.orchestrator.run_turn(
            self.conversation_id, message
        ):
            text = render_event(event)
            if text:
                print(text, end="", flush=True)

    async def handle_command(self, user_input: str) -> bool:
        """Run a slash command. Returns False when the CLI should exit."""
        command, _, argument = user_input.partition(" ")
        command = command.lower()
        argument = argument.strip()

        if command in ("/quit", "/exit", "/q"):
            print("\nGoodbye!\n")
            return False
        if command in ("/help", "/h", "/?"):
            print_banner()
        elif command == "/tools":
            await self.print_tools()
        elif command == "/new":
            self.new_conversation()
        elif command in ("/confirm", "/cancel") and not argument:
            print(f"\nUsage: {command} <reflection key>\n")
        elif command == "/confirm":
            await self.confirm(argument)
        elif command == "/cancel":
            self.cancel(argument)
        else:
            print(f"\nUnknown command: {user_input}")
            print("Type /help for available commands.\n")
        return True

    async def run(self) -> None:
        """Run the interactive CLI loop."""
        print_banner()

        while not _shutdown_requested.is_set():
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                print("\nGoodbye!\n")
                break

            if _shutdown_requested.is_set():
                break
            if not user_input:
                continue

            if user_input.startswith("/"):
                if not await self.handle_command(user_input):
                    break
            else:
                await self.process_message(user_input)


async def _run_single(runtime: Runtime, message: str, as_json: bool) -> None:
    conversation_id = runtime.orchestrator.start_conversation()
    events = []
    async for event in runtime.orchestrator.run_turn(conversation_id, message):
        if as_json:
            events.append({"kind": event.kind.value, "payload": event.payload})
        else:
            text = render_event(event)
            if text:
                print(text, end="", flush=True)
    if as_json:
        print(json.dumps({"message": message, "events": events}, indent=2, ensure_ascii=False))


def main() -> None:
    """Main entry point."""
    signal.signal(signal.SIGINT, _signal_handler)

    parser = argparse.ArgumentParser(
        description="Vault Agent Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Start interactive mode
  %(prog)s -v                       # Start with verbose logging
  %(prog)s -m "list my notes"       # Run a single message and exit
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-m", "--message", type=str, help="Run a single message and exit")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output single-message events as JSON (for scripting)",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)
    init_tracing_client(config.langfuse)
    runtime = build_runtime(config)

    try:
        if args.message:
            asyncio.run(_run_single(runtime, args.message, args.json))
        else:
            asyncio.run(InteractiveCLI(runtime).run())
    finally:
        runtime.shutdown()
        shutdown_tracing()


if __name__ == "__main__":
    main()
