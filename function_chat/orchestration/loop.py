"""
Conversation loop with model-driven function calling.

Alternates user turns and assistant turns. An assistant turn is itself a
loop: the model either answers with content, which ends the turn, or asks
for a function call, which is dispatched through the registry and fed back
as a ``function`` message before asking the model again.

Messages of a turn are staged and only appended to the history once the
turn ends with a content message, so an error or cancellation midway
leaves the history exactly as it was before the turn started.
"""

import logging
from contextlib import nullcontext
from enum import Enum
from typing import Iterable, Iterator, Optional

from ..errors import TooManyFunctionCallsError, UnrecognizedFunctionError
from ..functions.registry import FunctionRegistry
from ..functions.result import FunctionResult
from ..llm_call import CompletionClient
from ..models import FunctionCall, Message, Role, SamplingConfig
from ..session_log import LoggerLike, SessionLogger
from ..tracing import TracingContext
from .channels import AssistantOutput, UserInput

logger = logging.getLogger(__name__)

# Longest text recorded in trace inputs/outputs.
TRACE_PREVIEW_CHARS = 500


class ConversationState(str, Enum):
    """Where the loop currently is within a session."""

    AWAITING_USER = "awaiting_user"
    AWAITING_ASSISTANT = "awaiting_assistant"
    DISPATCHING_FUNCTION = "dispatching_function"


class History:
    """Append-only message log that starts with exactly one system message."""

    def __init__(self, system_message: Message):
        if system_message.role != Role.SYSTEM:
            raise ValueError("History must start with a system message")
        self._messages: list[Message] = [system_message]

    def append(self, message: Message) -> None:
        if message.role == Role.SYSTEM:
            raise ValueError("History holds a single leading system message")
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.append(message)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def roles(self) -> list[Role]:
        return [m.role for m in self._messages]

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)


class ConversationLoop:
    """
    Drives one conversation session.

    Per-turn flow:
        1. Read the user message from the input collaborator
        2. Request the next assistant message with all function schemas
        3. Content message: show it, commit the turn, back to 1
        4. Function call: look it up, invoke it, stage the serialized
           result as a ``function`` message, back to 2
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        registry: FunctionRegistry,
        user_input: UserInput,
        output: AssistantOutput,
        system_prompt: str,
        sampling: Optional[SamplingConfig] = None,
        max_function_calls: int = 0,
        session_id: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
        log: Optional[LoggerLike] = None,
    ):
        self._client = completion_client
        self._registry = registry
        self._function_schemas = registry.schemas()
        self._input = user_input
        self._output = output
        self._sampling = sampling
        self.max_function_calls = max_function_calls
        self.tracing_context = tracing_context

        if log is None:
            log = SessionLogger(logger, session_id)
        self._log = log
        self.session_id = getattr(log, "session_id", session_id)

        self._history = History(Message.system(system_prompt))
        self.state = ConversationState.AWAITING_USER

    @property
    def history(self) -> tuple[Message, ...]:
        return self._history.messages

    async def run_session(self) -> None:
        """
        Run turns until cancelled or the input collaborator raises.

        A turn that exceeds the function-call limit is reported and
        dropped; the session then waits for the next user message. Other
        errors propagate with the history intact, so the owner may call
        ``run_session`` again to resume.
        """
        while True:
            self.state = ConversationState.AWAITING_USER
            self._log.debug("Waiting for user input")
            text = await self._input.read_user_message()
            try:
                await self.run_turn(text)
            except TooManyFunctionCallsError as e:
                self._log.warning("%s", e)
                self._output.report_failure(str(e))

    async def run_turn(self, user_text: str) -> Message:
        """
        Run one user turn through to a content-bearing assistant message.

        Returns:
            The final assistant message of the turn.

        Raises:
            UnrecognizedFunctionError: The model called an unregistered function.
            TooManyFunctionCallsError: The turn exceeded ``max_function_calls``.
            CompletionRequestError: The completion endpoint failed.
        """
        pending: list[Message] = [Message.user(user_text)]
        function_calls = 0
        committed = False

        try:
            with self._trace_span("turn", input={"user": user_text[:TRACE_PREVIEW_CHARS]}) as span:
                while True:
                    self.state = ConversationState.AWAITING_ASSISTANT
                    message = await self._next_assistant_message(pending)
                    pending.append(message)

                    if message.function_call is None:
                        self._history.extend(pending)
                        committed = True
                        content = message.content or ""
                        self._log.info("Assistant: %s", content)
                        if span:
                            span.set_output(
                                {
                                    "function_calls": function_calls,
                                    "answer": content[:TRACE_PREVIEW_CHARS],
                                }
                            )
                        self._output.show_assistant_message(content)
                        return message

                    call = message.function_call
                    if self.max_function_calls and function_calls >= self.max_function_calls:
                        if span:
                            span.set_status("error")
                        raise TooManyFunctionCallsError(self.max_function_calls, call.name)
                    function_calls += 1

                    self.state = ConversationState.DISPATCHING_FUNCTION
                    result = await self._invoke_function(call)
                    serialized = result.to_json()
                    pending.append(Message.function_result(call.name, serialized))

                    if not result.is_success:
                        self._log.warning("Function call failed: %s", serialized)
                        self._output.report_failure(
                            f"Function '{call.name}' failed: {serialized}"
                        )
        finally:
            if not committed:
                self._log.debug("Discarding %d uncommitted message(s)", len(pending))
            self.state = ConversationState.AWAITING_USER

    async def _next_assistant_message(self, pending: list[Message]) -> Message:
        """Request the next assistant message for history plus staged messages."""
        messages = [*self._history.messages, *pending]

        if not self.tracing_context:
            return await self._client.get_next_message(
                messages, self._function_schemas, self._sampling
            )

        sampling = self._sampling or self._client.sampling
        with self.tracing_context.generation(
            name="completion",
            model=self._client.model,
            input=[m.to_dict() for m in messages],
            model_parameters=sampling.to_request_kwargs(),
        ) as gen:
            try:
                message = await self._client.get_next_message(
                    messages, self._function_schemas, self._sampling
                )
            except Exception:
                gen.set_status("error")
                raise
            gen.set_output(message.to_dict())
            return message

    async def _invoke_function(self, call: FunctionCall) -> FunctionResult:
        """Dispatch a model-issued call to the registered function."""
        self._log.info("Function call requested: %s(%s)", call.name, call.arguments)

        function = self._registry.get(call.name)
        if function is None:
            self._log.error("Function name not recognized: %s", call.name)
            raise UnrecognizedFunctionError(call.name)

        with self._trace_span(
            f"function:{call.name}", input={"arguments": call.arguments[:TRACE_PREVIEW_CHARS]}
        ) as span:
            result = await function.invoke(call, self._log)
            if span:
                span.set_output({"result": result.to_json()[:TRACE_PREVIEW_CHARS]})
                if not result.is_success:
                    span.set_status("error")
        return result

    def _trace_span(self, name: str, input: Optional[dict] = None):
        if self.tracing_context is None:
            return nullcontext()
        return self.tracing_context.span(name=name, input=input)
