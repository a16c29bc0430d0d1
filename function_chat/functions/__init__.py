"""
Function-calling building blocks: schemas, the function base class,
result envelopes and the registry.
"""

from .builder import FunctionBuilder, FunctionSchema, Parameter, ParameterType
from .result import FunctionResult
from .base import Function
from .registry import FunctionRegistry

__all__ = [
    "FunctionBuilder",
    "FunctionSchema",
    "Parameter",
    "ParameterType",
    "FunctionResult",
    "Function",
    "FunctionRegistry",
]
