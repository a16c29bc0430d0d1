"""
Tests for Langfuse tracing integration with SDK v3.

Tests cover:
- Client disabled states (credentials, failed auth check)
- Context manager no-ops when disabled
- Trace lifecycle with a mocked Langfuse client
- Conversation loop recording turns, completions and function calls
"""

import pytest
from unittest.mock import MagicMock, patch

from function_chat.models import Message, SamplingConfig


class TestTracingClient:
    """Tests for TracingClient."""

    def test_client_disabled_without_credentials(self):
        """Test client is disabled when credentials not provided."""
        from function_chat.tracing.client import TracingClient

        client = TracingClient(public_key="", secret_key="")
        assert client.enabled is False
        assert "credentials not configured" in client.error.lower()

    def test_client_disabled_with_partial_credentials(self):
        """Test client is disabled with only public key."""
        from function_chat.tracing.client import TracingClient

        client = TracingClient(public_key="pk-test", secret_key="")
        assert client.enabled is False

    @patch("function_chat.tracing.client.Langfuse")
    def test_client_disabled_when_auth_check_fails(self, mock_langfuse):
        """Test client is disabled when auth_check() returns False."""
        from function_chat.tracing.client import TracingClient

        mock_langfuse.return_value.auth_check.return_value = False

        client = TracingClient(public_key="pk", secret_key="sk", host="http://localhost:3000")
        assert client.enabled is False
        assert client.client is None
        assert "auth_check" in client.error

    @patch("function_chat.tracing.client.Langfuse")
    def test_client_enabled_with_valid_credentials(self, mock_langfuse):
        """Test client is enabled when auth_check() passes."""
        from function_chat.tracing.client import TracingClient

        mock_langfuse.return_value.auth_check.return_value = True

        client = TracingClient(public_key="pk", secret_key="sk", host="http://localhost:3000")
        assert client.enabled is True
        assert mock_langfuse.call_args.kwargs["host"] == "http://localhost:3000"

        client.flush()
        mock_langfuse.return_value.flush.assert_called_once()

    def test_flush_and_shutdown_no_op_when_disabled(self):
        """Test flush/shutdown do nothing when tracing disabled."""
        from function_chat.tracing.client import TracingClient

        client = TracingClient()
        client.flush()
        client.shutdown()


class TestTracingClientFromConfig:
    """Tests for building the client from the langfuse config section."""

    def test_unconfigured_section_gives_disabled_client(self):
        """No keys means no Langfuse client is created."""
        from function_chat.models import LangfuseConfig
        from function_chat.tracing import TracingClient

        with patch("function_chat.tracing.client.Langfuse") as mock_langfuse:
            client = TracingClient.from_config(LangfuseConfig(public_key="", secret_key=""))

        assert client.enabled is False
        mock_langfuse.assert_not_called()

    @patch("function_chat.tracing.client.Langfuse")
    def test_shutdown_disables_client(self, mock_langfuse):
        """After shutdown the handle no longer traces."""
        from function_chat.models import LangfuseConfig
        from function_chat.tracing import TracingClient

        mock_langfuse.return_value.auth_check.return_value = True
        client = TracingClient.from_config(
            LangfuseConfig(public_key="pk", secret_key="sk", host="http://localhost:3000")
        )
        assert client.enabled is True

        client.shutdown()
        mock_langfuse.return_value.shutdown.assert_called_once()
        assert client.enabled is False


class TestTracingContext:
    """Tests for TracingContext."""

    def test_context_disabled_without_client(self):
        """Test context is disabled when no client initialized."""
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="test-123")
        assert ctx.enabled is False
        assert ctx.get_trace_context() is None

    def test_trace_lifecycle_no_op_when_disabled(self):
        """Test start/end trace are no-ops when disabled."""
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="test-123")
        ctx.start_trace(metadata={"functions": []})
        assert ctx._root_span is None
        ctx.end_trace(status="success")

    def test_span_and_generation_no_op_when_disabled(self):
        """Test span/generation context managers are no-ops when disabled."""
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="test-123")
        with ctx.span(name="turn") as span:
            assert span._observation is None
            span.set_output({"result": "test"})
            span.set_status("error")
        assert span._status == "error"

        with ctx.generation(name="completion", model="test-model") as gen:
            assert gen._observation is None
            gen.set_output("response text")


@pytest.fixture
def langfuse_client():
    """Mocked Langfuse behind an enabled TracingClient."""
    from function_chat.tracing import TracingClient

    with patch("function_chat.tracing.client.Langfuse") as mock_langfuse:
        langfuse = mock_langfuse.return_value
        langfuse.auth_check.return_value = True
        root_span = MagicMock(trace_id="trace-1", id="span-1")
        langfuse.start_as_current_observation.return_value.__enter__.return_value = root_span
        langfuse.tracing_client = TracingClient(public_key="pk", secret_key="sk")
        yield langfuse


class TestTracingEnabled:
    """Tests with a mocked, enabled Langfuse client."""

    def test_trace_lifecycle(self, langfuse_client):
        """start_trace opens a root span tagged with the session; end_trace closes it."""
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="sess-1", client=langfuse_client.tracing_client, user_id="user-1")
        assert ctx.enabled is True

        ctx.start_trace(metadata={"functions": ["a"]})
        root_span = langfuse_client.start_as_current_observation.return_value.__enter__.return_value
        root_span.update_trace.assert_called_once_with(user_id="user-1", session_id="sess-1")
        kwargs = langfuse_client.start_as_current_observation.call_args.kwargs
        assert kwargs["metadata"] == {"session_id": "sess-1", "functions": ["a"]}

        ctx.end_trace(status="success")
        root_span.update.assert_called_once()
        assert ctx._root_span is None

    @pytest.mark.asyncio
    async def test_loop_records_turn_completion_and_function(
        self, langfuse_client, scripted_client, make_registry, output
    ):
        """A turn with one call records a turn span, two generations and one function span."""
        from function_chat.orchestration import ConversationLoop
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="sess-1", client=langfuse_client.tracing_client)
        ctx.start_trace()
        client = scripted_client(Message.assistant_function_call("a", "{}"), Message.assistant("done"))
        loop = ConversationLoop(
            client,
            make_registry("a"),
            None,
            output,
            "sys",
            sampling=SamplingConfig(),
            tracing_context=ctx,
        )

        await loop.run_turn("go")
        ctx.end_trace()

        observations = [
            (c.kwargs["as_type"], c.kwargs["name"])
            for c in langfuse_client.start_as_current_observation.call_args_list[1:]
        ]
        assert observations == [
            ("span", "turn"),
            ("generation", "completion"),
            ("span", "function:a"),
            ("generation", "completion"),
        ]
        generation_kwargs = langfuse_client.start_as_current_observation.call_args_list[2].kwargs
        assert generation_kwargs["model"] == "test-model"
        assert generation_kwargs["model_parameters"]["temperature"] == 0.7
        assert generation_kwargs["trace_context"] == {"trace_id": "trace-1", "parent_span_id": "span-1"}

    def test_escaping_exception_marks_span_error(self, langfuse_client):
        """An exception leaving a span records it with error status and re-raises."""
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="sess-1", client=langfuse_client.tracing_client)
        ctx.start_trace()
        observation = langfuse_client.start_as_current_observation.return_value.__enter__.return_value

        with pytest.raises(RuntimeError):
            with ctx.span(name="turn"):
                raise RuntimeError("boom")

        update = observation.update.call_args.kwargs
        assert update["metadata"]["status"] == "error"
        assert update["level"] == "ERROR"

    @pytest.mark.asyncio
    async def test_aborted_turn_is_recorded_as_error(
        self, langfuse_client, scripted_client, make_registry, output
    ):
        """A turn ended by an unrecognized function is not recorded as a success."""
        from function_chat.errors import UnrecognizedFunctionError
        from function_chat.orchestration import ConversationLoop
        from function_chat.tracing import TracingContext

        ctx = TracingContext(session_id="sess-1", client=langfuse_client.tracing_client)
        ctx.start_trace()
        client = scripted_client(Message.assistant_function_call("missing", "{}"))
        loop = ConversationLoop(client, make_registry("a"), None, output, "sys", tracing_context=ctx)

        with pytest.raises(UnrecognizedFunctionError):
            await loop.run_turn("go")

        observation = langfuse_client.start_as_current_observation.return_value.__enter__.return_value
        turn_update = observation.update.call_args_list[-1].kwargs
        assert turn_update["metadata"]["status"] == "error"
