"""
Chat message models.

Mirrors the chat-completion wire format for the legacy ``functions``
protocol: assistant messages carry either ``content`` or a
``function_call`` whose ``arguments`` is a JSON-encoded string, and
function results are sent back with role ``function`` and the function
name.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"


@dataclass(frozen=True)
class FunctionCall:
    """A function call issued by the model.

    ``arguments`` stays a JSON-encoded string; each function decodes it.
    """

    name: str
    arguments: str

    def to_dict(self) -> dict:
        return {"name": self.name, "arguments": self.arguments}


@dataclass(frozen=True)
class Message:
    """A single entry of the conversation history."""

    role: Role
    content: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    function_name: Optional[str] = None

    def __post_init__(self):
        if self.role == Role.ASSISTANT:
            if (self.content is None) == (self.function_call is None):
                raise ValueError(
                    "Assistant message must have exactly one of content or function_call"
                )
        elif self.function_call is not None:
            raise ValueError(f"Only assistant messages carry a function_call, not {self.role.value}")

        if self.role == Role.FUNCTION:
            if not self.function_name or self.content is None:
                raise ValueError("Function result message requires function_name and content")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def assistant_function_call(cls, name: str, arguments: str) -> "Message":
        return cls(role=Role.ASSISTANT, function_call=FunctionCall(name, arguments))

    @classmethod
    def function_result(cls, name: str, content: str) -> "Message":
        return cls(role=Role.FUNCTION, content=content, function_name=name)

    @classmethod
    def from_completion(cls, message: Any) -> "Message":
        """
        Convert the first-choice message of an SDK response.

        When the model returns both text and a function call, the call wins
        and the text is dropped.
        """
        call = getattr(message, "function_call", None)
        if call is not None:
            return cls.assistant_function_call(call.name, call.arguments or "")
        return cls.assistant(message.content or "")

    @property
    def is_function_call(self) -> bool:
        return self.function_call is not None

    def to_dict(self) -> dict:
        """Serialize to the chat-completion request format."""
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.function_call is not None:
            data["function_call"] = self.function_call.to_dict()
        if self.function_name is not None:
            data["name"] = self.function_name
        return data
