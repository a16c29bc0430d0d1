"""
function-chat - conversational assistant with model-driven function calling

This package provides:
- Function schemas, the function base class, result envelopes and registry
- Async completion client for OpenAI / Azure OpenAI
- Conversation loop that dispatches function calls requested by the model
- Dataverse, Microsoft Graph and document search functions
- Interactive CLI
"""

from .functions import Function, FunctionBuilder, FunctionRegistry, FunctionResult
from .llm_call import CompletionClient
from .orchestration import ConversationLoop

__all__ = [
    "CompletionClient",
    "ConversationLoop",
    "Function",
    "FunctionBuilder",
    "FunctionRegistry",
    "FunctionResult",
]

__version__ = "0.1.0"
