"""
Session-scoped tracing context using Langfuse SDK v3.

One ``TracingContext`` lives as long as a conversation session. Turns,
completion requests and function invocations are recorded as spans and
generations under the session's root span; everything degrades to a
no-op when tracing is disabled.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

from .client import TracingClient

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Tracing state for one conversation session."""

    session_id: str
    client: Optional[TracingClient] = None
    user_id: Optional[str] = None
    _context_manager: Any = field(default=None, repr=False)
    _root_span: Any = field(default=None, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)
    _trace_id: Optional[str] = field(default=None, repr=False)
    _root_span_id: Optional[str] = field(default=None, repr=False)

    @property
    def enabled(self) -> bool:
        return self.client is not None and self.client.enabled

    def start_trace(self, name: str = "conversation_session", metadata: Optional[dict] = None) -> None:
        """Open the root span for the session."""
        if not self.enabled:
            return

        try:
            self._context_manager = self.client.client.start_as_current_observation(
                as_type="span",
                name=name,
                metadata={"session_id": self.session_id, **(metadata or {})},
            )
            self._root_span = self._context_manager.__enter__()
            self._trace_id = getattr(self._root_span, "trace_id", None)
            self._root_span_id = getattr(self._root_span, "id", None)
            self._root_span.update_trace(user_id=self.user_id, session_id=self.session_id)
            self._start_time = time.time()
        except Exception as e:
            logger.warning("[%s] Failed to start trace: %s", self.session_id, e)
            self._root_span = None

    def get_trace_context(self) -> Optional[dict]:
        """TraceContext linking children to the session's root span."""
        if not self._trace_id or not self._root_span_id:
            return None
        from langfuse.types import TraceContext

        return TraceContext(trace_id=self._trace_id, parent_span_id=self._root_span_id)

    def end_trace(self, status: str = "success", metadata: Optional[dict] = None) -> None:
        """Close the root span and flush it."""
        if not self._root_span:
            return

        try:
            elapsed_ms = round((time.time() - self._start_time) * 1000, 2)
            self._root_span.update(metadata={"status": status, "duration_ms": elapsed_ms, **(metadata or {})})
            if self._context_manager:
                self._context_manager.__exit__(None, None, None)
            self.client.flush()
        except Exception as e:
            logger.warning("[%s] Failed to end trace: %s", self.session_id, e)
        finally:
            self._root_span = None

    @contextmanager
    def _observe(self, observation: "ObservationContext") -> Generator["ObservationContext", None, None]:
        observation.start()
        try:
            yield observation
        except BaseException:
            observation.set_status("error")
            raise
        finally:
            observation.end()

    def span(
        self,
        name: str,
        metadata: Optional[dict] = None,
        input: Optional[Any] = None,
    ):
        """Span context manager; marked as an error if an exception escapes it."""
        return self._observe(
            ObservationContext(
                name=name,
                as_type="span",
                client=self.client if self.enabled else None,
                metadata=metadata,
                input=input,
                _trace_context=self.get_trace_context(),
            )
        )

    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        model_parameters: Optional[dict] = None,
    ):
        """Generation context manager for one completion request."""
        return self._observe(
            ObservationContext(
                name=name,
                as_type="generation",
                client=self.client if self.enabled else None,
                input=input,
                model=model,
                model_parameters=model_parameters,
                _trace_context=self.get_trace_context(),
            )
        )


@dataclass
class ObservationContext:
    """A span or generation recorded under the session trace."""

    name: str
    as_type: str = "span"
    client: Optional[TracingClient] = None
    metadata: Optional[dict] = None
    input: Optional[Any] = None
    model: Optional[str] = None
    model_parameters: Optional[dict] = None
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)
    _trace_context: Optional[Any] = field(default=None, repr=False)

    def start(self) -> None:
        if self.client is None or self.client.client is None:
            return

        kwargs: dict[str, Any] = {
            "trace_context": self._trace_context,
            "as_type": self.as_type,
            "name": self.name,
            "metadata": self.metadata,
            "input": self.input,
        }
        if self.as_type == "generation":
            kwargs.update(model=self.model, model_parameters=self.model_parameters)

        try:
            self._start_time = time.time()
            self._context_manager = self.client.client.start_as_current_observation(**kwargs)
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning("Failed to start %s '%s': %s", self.as_type, self.name, e)
            self._observation = None

    def end(self) -> None:
        if not self._observation:
            return

        try:
            elapsed_ms = round((time.time() - self._start_time) * 1000, 2)
            update: dict[str, Any] = {"metadata": {"status": self._status, "duration_ms": elapsed_ms}}
            if self._status == "error":
                update["level"] = "ERROR"
            if self._output is not None:
                update["output"] = self._output
            self._observation.update(**update)
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning("Failed to end %s '%s': %s", self.as_type, self.name, e)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status
