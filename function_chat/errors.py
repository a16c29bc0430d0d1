"""
Exception hierarchy for function-chat.

Configuration errors are raised at build time and never reach the
conversation loop. Completion and unrecognized-function errors propagate
to the session owner. Capability failures are not exceptions at all: they
travel back to the model inside a failure ``FunctionResult``.
"""

from typing import Optional


class FunctionChatError(Exception):
    """Base class for all function-chat errors."""


class ConfigurationError(FunctionChatError):
    """Invalid static setup: schema, registry or configuration file."""


class CompletionRequestError(FunctionChatError):
    """The chat-completion endpoint could not produce a usable response."""


class UnrecognizedFunctionError(FunctionChatError):
    """The model called a function name that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Function name not recognized: {name}")
        self.name = name


class TooManyFunctionCallsError(FunctionChatError):
    """A single turn issued more function calls than allowed."""

    def __init__(self, limit: int, last_function: Optional[str] = None):
        message = f"Too many function calls in one turn (limit {limit})"
        if last_function:
            message += f"; last requested: {last_function}"
        super().__init__(message)
        self.limit = limit
        self.last_function = last_function
