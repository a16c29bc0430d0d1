"""
Function schema builder.

Produces the JSON-schema description the chat-completion API expects for
each callable function::

    schema = (
        FunctionBuilder("get_entity_by_guid")
        .with_description("Retrieve an entity as json, given a guid of its ID.")
        .with_parameter("entity_id", ParameterType.STRING, "The guid ID", required=True)
        .with_enum_parameter("entity_type", "Entity type", ["msdyn_workorders"], required=True)
        .build()
    )
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..errors import ConfigurationError


class ParameterType(str, Enum):
    """JSON-schema type tags supported for function parameters."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"


@dataclass(frozen=True)
class Parameter:
    """One property of a function's parameter object."""

    name: str
    type: ParameterType
    description: str
    required: bool = False
    enum: Optional[tuple[str, ...]] = None

    def to_dict(self) -> dict:
        data: dict = {"type": self.type.value, "description": self.description}
        if self.enum is not None:
            data["enum"] = list(self.enum)
        return data


@dataclass(frozen=True)
class FunctionSchema:
    """Immutable description of a function as advertised to the model."""

    name: str
    description: Optional[str]
    parameters: tuple[Parameter, ...]

    @property
    def required(self) -> list[str]:
        """Names of required parameters, in declaration order."""
        return [p.name for p in self.parameters if p.required]

    def get_parameter(self, name: str) -> Optional[Parameter]:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    def to_dict(self) -> dict:
        """Serialize to the ``functions`` entry format of the completion API."""
        data: dict = {"name": self.name}
        if self.description is not None:
            data["description"] = self.description
        data["parameters"] = {
            "type": "object",
            "properties": {p.name: p.to_dict() for p in self.parameters},
            "required": self.required,
        }
        return data


class FunctionBuilder:
    """
    Accumulates a function's name, description and parameters.

    Declaring the same parameter twice keeps its original position; the
    latest type, description and enum win, and ``required`` is sticky once
    set.
    """

    def __init__(self, name: str):
        self._name = name
        self._description: Optional[str] = None
        self._parameters: dict[str, Parameter] = {}

    def with_description(self, description: str) -> "FunctionBuilder":
        self._description = description
        return self

    def with_parameter(
        self,
        name: str,
        type: ParameterType,
        description: str,
        required: bool = False,
    ) -> "FunctionBuilder":
        try:
            param_type = ParameterType(type)
        except ValueError:
            raise ConfigurationError(
                f"Unsupported type '{type}' for parameter '{name}' of '{self._name}'"
            ) from None
        self._put(Parameter(name, param_type, description, required))
        return self

    def with_enum_parameter(
        self,
        name: str,
        description: str,
        values: Iterable[str],
        required: bool = False,
    ) -> "FunctionBuilder":
        allowed = tuple(values)
        if not allowed:
            raise ConfigurationError(
                f"Enum parameter '{name}' of '{self._name}' has no allowed values"
            )
        self._put(Parameter(name, ParameterType.STRING, description, required, allowed))
        return self

    def with_required_parameter(self, name: str) -> "FunctionBuilder":
        """Mark an already declared parameter as required."""
        existing = self._parameters.get(name)
        if existing is None:
            raise ConfigurationError(
                f"Cannot require undeclared parameter '{name}' of '{self._name}'"
            )
        self._parameters[name] = Parameter(
            existing.name, existing.type, existing.description, True, existing.enum
        )
        return self

    def _put(self, parameter: Parameter) -> None:
        previous = self._parameters.get(parameter.name)
        if previous is not None and previous.required and not parameter.required:
            parameter = Parameter(
                parameter.name,
                parameter.type,
                parameter.description,
                True,
                parameter.enum,
            )
        # Re-assigning an existing key keeps its insertion position.
        self._parameters[parameter.name] = parameter

    def build(self) -> FunctionSchema:
        if not self._name or not str(self._name).strip():
            raise ConfigurationError("Function schema requires a name")
        return FunctionSchema(
            name=self._name,
            description=self._description,
            parameters=tuple(self._parameters.values()),
        )
