"""
Completion client for function-chat.

Thin async wrapper around the hosted chat-completion endpoint (OpenAI or
Azure OpenAI) using the legacy ``functions`` calling protocol. Network and
service errors surface as ``CompletionRequestError``; retries are left to
the caller.
"""

import logging
from typing import Iterable, Optional, Sequence

from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError

from .errors import CompletionRequestError
from .functions.builder import FunctionSchema
from .models import CompletionConfig, CompletionProvider, Message, SamplingConfig

logger = logging.getLogger(__name__)


def create_sdk_client(completion: CompletionConfig) -> AsyncOpenAI:
    """Build the async SDK client for the configured provider."""
    if completion.provider == CompletionProvider.AZURE:
        return AsyncAzureOpenAI(
            azure_endpoint=completion.azure_endpoint,
            api_key=completion.api_key,
            api_version=completion.api_version,
            timeout=completion.timeout,
        )
    return AsyncOpenAI(
        base_url=completion.base_url or None,
        api_key=completion.api_key or "not-needed",
        timeout=completion.timeout,
    )


class CompletionClient:
    """Request/response access to the chat-completion model."""

    def __init__(
        self,
        completion: Optional[CompletionConfig] = None,
        sampling: Optional[SamplingConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.completion = completion or CompletionConfig()
        self.sampling = sampling or SamplingConfig()
        self.model = self.completion.model
        self._client = client or create_sdk_client(self.completion)

    async def get_next_message(
        self,
        history: Sequence[Message],
        functions: Iterable[FunctionSchema] = (),
        sampling: Optional[SamplingConfig] = None,
    ) -> Message:
        """
        Ask the model for the next assistant message.

        Args:
            history: Full conversation so far, starting with the system message.
            functions: Schemas of the functions the model may call.
            sampling: Overrides the client's default sampling settings.

        Returns:
            The first choice's message; either content or a function call.

        Raises:
            CompletionRequestError: If the request fails or returns no choices.
        """
        create_kwargs: dict = {
            "model": self.model,
            "messages": [m.to_dict() for m in history],
            **(sampling or self.sampling).to_request_kwargs(),
        }
        function_defs = [schema.to_dict() for schema in functions]
        if function_defs:
            create_kwargs["functions"] = function_defs

        message = await self._create(create_kwargs)
        return Message.from_completion(message)

    async def get_single_function_completion(
        self,
        schema: FunctionSchema,
        prompt: str,
        system_message: Optional[str] = None,
    ) -> str:
        """
        Force the model to call ``schema`` for ``prompt`` and return the arguments.

        Used to translate free text into a structured query rather than to
        continue the conversation.

        Returns:
            The JSON-encoded arguments string of the forced call.

        Raises:
            CompletionRequestError: If the request fails or the model does not
                call the function.
        """
        create_kwargs: dict = {
            "model": self.model,
            "messages": self._single_shot_messages(prompt, system_message),
            **self.sampling.to_request_kwargs(),
            "functions": [schema.to_dict()],
            "function_call": {"name": schema.name},
        }

        message = await self._create(create_kwargs)
        call = getattr(message, "function_call", None)
        if call is None or call.name != schema.name:
            raise CompletionRequestError(
                f"Model did not call the forced function '{schema.name}'"
            )
        return call.arguments or ""

    async def get_single_completion(
        self, prompt: str, system_message: Optional[str] = None
    ) -> str:
        """Single-shot plain text completion."""
        create_kwargs: dict = {
            "model": self.model,
            "messages": self._single_shot_messages(prompt, system_message),
            **self.sampling.to_request_kwargs(),
        }
        message = await self._create(create_kwargs)
        return message.content or ""

    @staticmethod
    def _single_shot_messages(prompt: str, system_message: Optional[str]) -> list[dict]:
        messages = []
        if system_message is not None:
            messages.append(Message.system(system_message).to_dict())
        messages.append(Message.user(prompt).to_dict())
        return messages

    async def _create(self, create_kwargs: dict):
        """Send one request and return the first choice's SDK message."""
        try:
            logger.debug(
                "Requesting completion: %d messages, %d functions",
                len(create_kwargs["messages"]),
                len(create_kwargs.get("functions", ())),
            )
            response = await self._client.chat.completions.create(**create_kwargs)
        except OpenAIError as e:
            logger.error(f"Completion request failed: {e}")
            raise CompletionRequestError(f"Completion request failed: {e}") from e

        if not response.choices:
            raise CompletionRequestError("Completion response contained no choices")
        return response.choices[0].message

    async def close(self) -> None:
        """Close the underlying SDK client."""
        try:
            await self._client.close()
        except Exception as e:
            logger.debug("Error closing OpenAI client: %s", e)
