"""
Input and output collaborators of the conversation loop.
"""

from typing import Protocol


class UserInput(Protocol):
    """Source of user utterances."""

    async def read_user_message(self) -> str:
        """Wait for and return the next user message."""
        ...


class AssistantOutput(Protocol):
    """Sink for visible assistant replies and recoverable failures."""

    def show_assistant_message(self, content: str) -> None:
        ...

    def report_failure(self, message: str) -> None:
        ...
