"""
Base class for functions the model may call.

A concrete function declares a pydantic model for its arguments, builds
its schema with ``FunctionBuilder`` and implements ``run``. ``invoke``
never raises for bad arguments or back-end failures: both come back as a
failure ``FunctionResult`` so the model can react in its next turn.
"""

import logging
from abc import ABC, abstractmethod
from functools import cached_property
from typing import ClassVar, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from ..models.messages import FunctionCall
from ..session_log import LoggerLike
from .builder import FunctionSchema
from .result import FunctionResult

logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT", bound=BaseModel)

# Error text longer than this is truncated before it reaches the model.
MAX_ERROR_CHARS = 500


def _truncate(text: str) -> str:
    if len(text) > MAX_ERROR_CHARS:
        return text[:MAX_ERROR_CHARS] + "..."
    return text


def describe_validation_error(error: ValidationError) -> str:
    """Compact, model-readable summary of a pydantic validation error."""
    parts = []
    for item in error.errors(include_url=False):
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts) or str(error)


class Function(ABC, Generic[ArgsT]):
    """A named, schema-described operation the model may request."""

    name: ClassVar[str]
    arguments_model: ClassVar[type[BaseModel]]

    @abstractmethod
    def build_schema(self) -> FunctionSchema:
        """Describe this function for the model."""

    @abstractmethod
    async def run(self, arguments: ArgsT, log: LoggerLike) -> FunctionResult:
        """Do the work for already-decoded arguments."""

    @cached_property
    def schema(self) -> FunctionSchema:
        return self.build_schema()

    def parse_arguments(self, raw_arguments: str) -> ArgsT:
        """Decode the JSON-encoded argument string sent by the model."""
        return self.arguments_model.model_validate_json(raw_arguments or "{}")  # type: ignore[return-value]

    async def invoke(
        self, call: FunctionCall, log: Optional[LoggerLike] = None
    ) -> FunctionResult:
        """
        Decode ``call.arguments`` and run the function.

        Args:
            call: The function call issued by the model.
            log: Session-scoped logger; falls back to the module logger.

        Returns:
            The function's result, or a failure result describing invalid
            arguments or a back-end error.
        """
        log = log or logger

        try:
            arguments = self.parse_arguments(call.arguments)
        except ValidationError as e:
            summary = describe_validation_error(e)
            log.warning("Invalid arguments for '%s': %s", self.name, summary)
            return FunctionResult.failure(
                _truncate(f"Invalid arguments for '{self.name}': {summary}")
            )

        try:
            result = await self.run(arguments, log)
        except Exception as e:
            log.error("Function '%s' failed: %s", self.name, e)
            return FunctionResult.failure(
                _truncate(f"Function '{self.name}' failed: {e}")
            )

        try:
            result.to_json()
        except Exception as e:
            log.error("Result of '%s' could not be serialized: %s", self.name, e)
            return FunctionResult.failure(
                _truncate(f"Result of '{self.name}' could not be serialized: {e}")
            )
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
