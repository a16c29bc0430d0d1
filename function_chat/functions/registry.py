"""
Function Registry - the fixed set of functions available to one session.

Built once at startup from concrete ``Function`` instances and read-only
afterwards: dispatch is a name lookup, and schema listing follows
registration order.
"""

from types import MappingProxyType
from typing import Iterable, Iterator, Optional

from ..errors import ConfigurationError
from .base import Function
from .builder import FunctionSchema


class FunctionRegistry:
    """Immutable, ordered name -> function mapping."""

    def __init__(self, functions: Iterable[Function]):
        entries: dict[str, Function] = {}
        for function in functions:
            schema = function.schema
            if schema.name != function.name:
                raise ConfigurationError(
                    f"Schema name '{schema.name}' does not match function name '{function.name}'"
                )
            if function.name in entries:
                raise ConfigurationError(f"Duplicate function name: {function.name}")
            entries[function.name] = function
        self._functions = MappingProxyType(entries)

    def get(self, name: str) -> Optional[Function]:
        """Get a function by name."""
        return self._functions.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._functions)

    def schemas(self) -> list[FunctionSchema]:
        """Schemas of all functions, in registration order."""
        return [f.schema for f in self._functions.values()]

    def get_functions_summary(self) -> str:
        """Get formatted summary of all functions for display."""
        lines = []
        for name, function in self._functions.items():
            lines.append(f"- {name}: {function.schema.description or ''}".rstrip())
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[Function]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)
