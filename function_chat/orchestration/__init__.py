"""
Conversation orchestration: the session state machine, its input/output
collaborators and system prompt loading.
"""

from .channels import AssistantOutput, UserInput
from .loop import ConversationLoop, ConversationState, History
from .prompt import load_system_prompt, render_system_prompt

__all__ = [
    "AssistantOutput",
    "UserInput",
    "ConversationLoop",
    "ConversationState",
    "History",
    "load_system_prompt",
    "render_system_prompt",
]
