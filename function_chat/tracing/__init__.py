"""
Langfuse tracing integration for function-chat.

Provides observability for completion requests, function invocations and
conversation turns.
"""

from .client import TracingClient
from .context import ObservationContext, TracingContext

__all__ = [
    "TracingClient",
    "TracingContext",
    "ObservationContext",
]
