"""
Function result envelope.

Wraps the outcome of one function invocation. Strings are assumed to be
already serialized and pass through verbatim; anything else is encoded as
JSON before it is appended to the history.
"""

from typing import Any, Optional

from pydantic_core import to_json


class FunctionResult:
    """Success flag plus payload returned by ``Function.invoke``."""

    __slots__ = ("_is_success", "_payload", "_serialized")

    def __init__(self, is_success: bool, payload: Any):
        self._is_success = bool(is_success)
        self._payload = payload
        self._serialized: Optional[str] = None

    @classmethod
    def success(cls, payload: Any) -> "FunctionResult":
        return cls(True, payload)

    @classmethod
    def failure(cls, error: str, **details: Any) -> "FunctionResult":
        """Failure envelope with an ``{"error": ...}`` payload the model can read."""
        return cls(False, {"error": error, **details})

    @property
    def is_success(self) -> bool:
        return self._is_success

    @property
    def payload(self) -> Any:
        return self._payload

    def to_json(self) -> str:
        """
        Serialized payload, computed once.

        Pydantic models, dataclasses, datetimes, decimals and UUIDs use their
        JSON form; other unknown objects fall back to ``str()``.
        """
        if self._serialized is None:
            if isinstance(self._payload, str):
                self._serialized = self._payload
            else:
                self._serialized = to_json(self._payload, fallback=str).decode()
        return self._serialized

    def __repr__(self) -> str:
        status = "success" if self._is_success else "failure"
        try:
            preview = self.to_json()[:80]
        except Exception:
            preview = "<unserializable>"
        return f"FunctionResult({status}, {preview!r})"
