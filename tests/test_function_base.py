"""
Tests for the Function base class: argument decoding and error capture.
"""

import asyncio
import json
import logging
from typing import Literal

import pytest
from pydantic import BaseModel

from function_chat.functions import Function, FunctionBuilder, FunctionResult, ParameterType
from function_chat.models import FunctionCall


class _GreetArguments(BaseModel):
    name: str
    tone: Literal["warm", "formal"] = "warm"


class _Unprintable:
    """Value with no JSON form whose str() also fails."""

    def __str__(self):
        raise RuntimeError("no text form")


class _GreetFunction(Function[_GreetArguments]):
    name = "greet"
    arguments_model = _GreetArguments

    def __init__(self):
        self.received = None

    def build_schema(self):
        return (
            FunctionBuilder(self.name)
            .with_description("Greet someone")
            .with_parameter("name", ParameterType.STRING, "Who to greet", required=True)
            .with_enum_parameter("tone", "Tone", ["warm", "formal"])
            .build()
        )

    async def run(self, arguments, log):
        self.received = arguments
        if arguments.name == "explode":
            raise RuntimeError("kaboom")
        if arguments.name == "cancel":
            raise asyncio.CancelledError()
        if arguments.name == "unprintable":
            return FunctionResult.success({"value": _Unprintable()})
        return FunctionResult.success({"greeting": f"Hello {arguments.name}"})


class TestFunctionInvoke:
    """Tests for Function.invoke."""

    @pytest.mark.asyncio
    async def test_decodes_arguments_and_runs(self):
        """Valid JSON arguments reach run() as a model instance."""
        function = _GreetFunction()
        result = await function.invoke(FunctionCall("greet", '{"name": "Ada", "tone": "formal"}'))

        assert result.is_success
        assert result.payload == {"greeting": "Hello Ada"}
        assert function.received.tone == "formal"

    @pytest.mark.asyncio
    async def test_malformed_json_is_failure(self):
        """Undecodable arguments give a failure result instead of raising."""
        function = _GreetFunction()
        result = await function.invoke(FunctionCall("greet", "{not json"))

        assert result.is_success is False
        assert "Invalid arguments for 'greet'" in result.payload["error"]
        assert function.received is None

    @pytest.mark.asyncio
    async def test_missing_required_argument_is_failure(self):
        """Validation errors name the offending field."""
        result = await _GreetFunction().invoke(FunctionCall("greet", "{}"))

        assert result.is_success is False
        assert "name" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_enum_violation_is_failure(self):
        """Values outside an enum are rejected."""
        result = await _GreetFunction().invoke(FunctionCall("greet", '{"name": "x", "tone": "rude"}'))
        assert result.is_success is False
        assert "tone" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_empty_arguments_treated_as_empty_object(self):
        """An empty argument string decodes like '{}'."""
        result = await _GreetFunction().invoke(FunctionCall("greet", ""))
        assert "name" in json.loads(result.to_json())["error"]

    @pytest.mark.asyncio
    async def test_backend_exception_is_failure(self, caplog):
        """Exceptions from run() become failures and are logged."""
        with caplog.at_level(logging.ERROR):
            result = await _GreetFunction().invoke(FunctionCall("greet", '{"name": "explode"}'))

        assert result.is_success is False
        assert result.payload["error"] == "Function 'greet' failed: kaboom"
        assert "kaboom" in caplog.text

    @pytest.mark.asyncio
    async def test_unserializable_result_is_failure(self, caplog):
        """A payload that cannot be encoded becomes a failure result."""
        with caplog.at_level(logging.ERROR):
            result = await _GreetFunction().invoke(FunctionCall("greet", '{"name": "unprintable"}'))

        assert result.is_success is False
        assert result.payload["error"].startswith("Result of 'greet' could not be serialized")
        assert json.loads(result.to_json())["error"] == result.payload["error"]
        assert "could not be serialized" in caplog.text

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """CancelledError is never converted into a result."""
        with pytest.raises(asyncio.CancelledError):
            await _GreetFunction().invoke(FunctionCall("greet", '{"name": "cancel"}'))

    def test_schema_is_cached(self):
        """The schema is built once per instance."""
        function = _GreetFunction()
        assert function.schema is function.schema
        assert function.schema.required == ["name"]
