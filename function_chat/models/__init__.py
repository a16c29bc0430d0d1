"""
Data models for function-chat.
"""

from .messages import FunctionCall, Message, Role
from .config import (
    CompletionProvider,
    CompletionConfig,
    SamplingConfig,
    SessionConfig,
    FunctionsConfig,
    OAuthConfig,
    DataverseConfig,
    GraphConfig,
    DocumentSearchConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    # Message models
    "FunctionCall",
    "Message",
    "Role",
    # Config models
    "CompletionProvider",
    "CompletionConfig",
    "SamplingConfig",
    "SessionConfig",
    "FunctionsConfig",
    "OAuthConfig",
    "DataverseConfig",
    "GraphConfig",
    "DocumentSearchConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
