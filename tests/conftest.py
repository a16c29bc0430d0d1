"""
Pytest configuration and fixtures for function-chat tests.
"""

from typing import Any, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from pydantic import BaseModel, ConfigDict

from function_chat.config_loader import reset_config_cache
from function_chat.functions import (
    Function,
    FunctionBuilder,
    FunctionRegistry,
    FunctionResult,
    FunctionSchema,
    ParameterType,
)


class AnyArguments(BaseModel):
    """Accepts any JSON object."""

    model_config = ConfigDict(extra="allow")


class RecordingFunction(Function[AnyArguments]):
    """Function double that records raw calls and returns a canned result."""

    arguments_model = AnyArguments

    def __init__(self, name: str, result: Optional[FunctionResult] = None, error: Optional[Exception] = None):
        self.name = name
        self.result = result or FunctionResult.success({"ok": True})
        self.error = error
        self.calls: list[str] = []

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description(f"Test function {self.name}")
            .with_parameter("value", ParameterType.STRING, "Any value")
            .build()
        )

    async def invoke(self, call, log=None) -> FunctionResult:
        self.calls.append(call.arguments)
        return await super().invoke(call, log)

    async def run(self, arguments: AnyArguments, log) -> FunctionResult:
        if self.error is not None:
            raise self.error
        return self.result


class RecordingOutput:
    """Output collaborator that keeps everything it is given."""

    def __init__(self):
        self.shown: list[str] = []
        self.failures: list[str] = []

    def show_assistant_message(self, content: str) -> None:
        self.shown.append(content)

    def report_failure(self, message: str) -> None:
        self.failures.append(message)


class ScriptedInput:
    """Input collaborator replaying fixed lines, then raising EOFError."""

    def __init__(self, lines: list[str]):
        self._lines = list(lines)

    async def read_user_message(self) -> str:
        if not self._lines:
            raise EOFError("No more input")
        return self._lines.pop(0)


@pytest.fixture(autouse=True)
def reset_config():
    """Reset the cached configuration around each test."""
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def make_function():
    """Factory for RecordingFunction instances."""
    return RecordingFunction


@pytest.fixture
def make_registry():
    """Factory building a registry from RecordingFunction names or instances."""

    def _make(*functions: Any) -> FunctionRegistry:
        return FunctionRegistry(
            f if isinstance(f, Function) else RecordingFunction(f) for f in functions
        )

    return _make


@pytest.fixture
def output():
    return RecordingOutput()


@pytest.fixture
def scripted_input():
    return ScriptedInput


@pytest.fixture
def scripted_client():
    """Completion client double whose get_next_message replays messages."""

    def _make(*responses: Any) -> Mock:
        client = Mock()
        client.model = "test-model"
        client.get_next_message = AsyncMock(side_effect=list(responses))
        client.get_single_function_completion = AsyncMock()
        client.close = AsyncMock()
        return client

    return _make
