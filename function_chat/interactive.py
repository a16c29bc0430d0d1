#!/usr/bin/env python3
"""
function-chat Interactive CLI

Console front end for the conversation loop: reads user messages from
stdin, prints assistant replies and recoverable failures.
"""

import argparse
import asyncio
import logging
import sys
import threading
import uuid
from typing import Callable, Optional, TextIO

import httpx

from .capabilities import build_functions
from .config import get_config
from .config_loader import resolve_path
from .errors import (
    CompletionRequestError,
    ConfigurationError,
    TooManyFunctionCallsError,
    UnrecognizedFunctionError,
)
from .functions import FunctionRegistry
from .llm_call import CompletionClient
from .models import AppConfig
from .orchestration import ConversationLoop, load_system_prompt
from .session_log import SessionLogger
from .tracing import TracingClient, TracingContext

logger = logging.getLogger(__name__)

HELP_TEXT = """
Available commands:
  /help       - Show this help message
  /functions  - List registered functions
  /quit       - Exit the CLI

Type your questions below.
"""


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure logging based on config level and verbosity."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    print("function-chat: conversational assistant with function calling")
    print(HELP_TEXT)


class ConsoleInput:
    """
    Reads user messages from a text stream.

    Lines are read on a daemon thread so that cancelling the session never
    waits on a blocking read. ``/functions`` and ``/help`` are handled here;
    ``/quit`` and end of input raise ``EOFError``.
    """

    def __init__(
        self,
        registry: FunctionRegistry,
        prompt: str = "You: ",
        readline: Optional[Callable[[], str]] = None,
        stdout: Optional[TextIO] = None,
    ):
        self.registry = registry
        self.prompt = prompt
        self._readline = readline or sys.stdin.readline
        self._stdout = stdout or sys.stdout
        self._queue: Optional[asyncio.Queue] = None

    def _start_reader(self) -> None:
        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        thread = threading.Thread(target=self._read_lines, args=(loop,), daemon=True)
        thread.start()

    def _read_lines(self, loop: asyncio.AbstractEventLoop) -> None:
        while True:
            line = self._readline()
            try:
                loop.call_soon_threadsafe(self._queue.put_nowait, line)
            except RuntimeError:
                # Event loop already closed.
                return
            if not line:
                return

    async def read_user_message(self) -> str:
        if self._queue is None:
            self._start_reader()

        while True:
            print(self.prompt, end="", file=self._stdout, flush=True)
            line = await self._queue.get()
            if not line:
                raise EOFError("End of input")

            text = line.strip()
            if not text:
                continue

            command = text.lower()
            if command in ("/quit", "/exit", "/q"):
                raise EOFError("Quit requested")
            if command in ("/help", "/h", "/?"):
                print(HELP_TEXT, file=self._stdout)
                continue
            if command == "/functions":
                print(
                    "\nRegistered functions:\n" + (self.registry.get_functions_summary() or "(none)") + "\n",
                    file=self._stdout,
                )
                continue
            return text


class ConsoleOutput:
    """Prints assistant replies to stdout and failures to stderr."""

    def __init__(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr

    def show_assistant_message(self, content: str) -> None:
        print(f"\nAssistant: {content}\n", file=self._stdout, flush=True)

    def report_failure(self, message: str) -> None:
        print(f"[!] {message}", file=self._stderr, flush=True)


async def run_interactive(loop: ConversationLoop, output: ConsoleOutput) -> None:
    """Run the session until the user quits; failed completion requests only fail their turn."""
    while True:
        try:
            await loop.run_session()
        except CompletionRequestError as e:
            output.report_failure(str(e))
        except EOFError:
            return


async def run_chat(
    app_config: AppConfig,
    query: Optional[str] = None,
    output: Optional[ConsoleOutput] = None,
    completion_client: Optional[CompletionClient] = None,
    readline: Optional[Callable[[], str]] = None,
    tracing_client: Optional[TracingClient] = None,
) -> int:
    """
    Build the session from configuration and run it.

    Args:
        app_config: Loaded application configuration.
        query: Run this single message and exit instead of reading stdin.
        output: Console sink; defaults to stdout/stderr.
        completion_client: Pre-built client; defaults to one from config.
        readline: Line source for interactive mode; defaults to stdin.
        tracing_client: Langfuse handle; defaults to one built from the
            langfuse config section and shut down when the session ends.

    Returns:
        Process exit code.
    """
    output = output or ConsoleOutput()
    system_prompt = load_system_prompt(
        resolve_path(app_config, app_config.session.system_prompt_path)
    )
    completion_client = completion_client or CompletionClient(
        app_config.completion, app_config.sampling
    )

    session_log = SessionLogger(logger, uuid.uuid4().hex[:8])
    owns_tracing = tracing_client is None
    if owns_tracing:
        tracing_client = TracingClient.from_config(app_config.langfuse)
    tracing = TracingContext(session_id=session_log.session_id, client=tracing_client)

    try:
        async with httpx.AsyncClient() as http_client:
            registry = FunctionRegistry(
                build_functions(app_config, completion_client, http_client)
            )
            user_input = ConsoleInput(registry, readline=readline)
            loop = ConversationLoop(
                completion_client,
                registry,
                user_input,
                output,
                system_prompt,
                sampling=app_config.sampling,
                max_function_calls=app_config.session.max_function_calls,
                tracing_context=tracing,
                log=session_log,
            )

            session_log.info("Session started with functions: %s", registry.names)
            tracing.start_trace(metadata={"functions": registry.names, "single_query": bool(query)})
            status = "success"
            try:
                if query:
                    await loop.run_turn(query)
                else:
                    await run_interactive(loop, output)
            except UnrecognizedFunctionError as e:
                status = "error"
                output.report_failure(str(e))
                return 1
            except (CompletionRequestError, TooManyFunctionCallsError) as e:
                # Only reachable for a single query.
                status = "error"
                output.report_failure(str(e))
                return 1
            except BaseException:
                status = "cancelled"
                raise
            finally:
                tracing.end_trace(status=status)
    finally:
        await completion_client.close()
        if owns_tracing:
            tracing_client.shutdown()

    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="function-chat Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Start interactive mode
  %(prog)s -v                               # Start with debug logging
  %(prog)s -q "Show work orders from today"  # Run a single query

Use /functions in interactive mode to see registered functions.
""",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the YAML configuration file (default: CONFIG_PATH env or config/config.yaml)",
    )
    parser.add_argument(
        "-q",
        "--query",
        type=str,
        help="Run a single query and exit",
    )
    args = parser.parse_args()

    try:
        app_config = get_config(args.config)
    except ConfigurationError as e:
        setup_logging(verbose=args.verbose)
        logger.error(f"{e}")
        sys.exit(2)

    setup_logging(app_config.log_level, args.verbose)

    if not args.query:
        print_banner()

    exit_code = 0
    try:
        exit_code = asyncio.run(run_chat(app_config, query=args.query))
    except ConfigurationError as e:
        logger.error(f"{e}")
        exit_code = 2
    except KeyboardInterrupt:
        print("\nGoodbye!\n")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
