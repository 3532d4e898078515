"""Function declarations exposed to the model as tools."""

from __future__ import annotations

from dataclasses import dataclass, field

FUNCTION_NAME_SEPARATOR = "-"


def empty_parameters_schema() -> dict[str, object]:
    return {"type": "object", "properties": {}}


def split_function_name(name: str) -> tuple[str, str]:
    """Split ``plugin-function`` into its parts, using "" for a missing part."""
    parts = name.split(FUNCTION_NAME_SEPARATOR)
    plugin_name = parts[0] if len(parts) > 0 else ""
    function_name = parts[1] if len(parts) > 1 else ""
    return plugin_name, function_name


def join_function_name(plugin_name: str | None, function_name: str | None) -> str:
    return FUNCTION_NAME_SEPARATOR.join(part for part in (plugin_name, function_name) if part)


@dataclass(frozen=True, slots=True)
class FunctionParameter:
    name: str
    description: str | None = None
    type: str = "string"
    is_required: bool = False
    default_value: str | None = None


def parameters_schema(parameters: list[FunctionParameter]) -> dict[str, object]:
    """Translate parameter descriptors into a JSON-schema object."""
    if not parameters:
        return empty_parameters_schema()
    properties: dict[str, object] = {}
    required: list[str] = []
    for parameter in parameters:
        prop: dict[str, object] = {"type": parameter.type or "string"}
        if parameter.description:
            prop["description"] = parameter.description
        if parameter.default_value is not None:
            prop["default"] = parameter.default_value
        properties[parameter.name] = prop
        if parameter.is_required:
            required.append(parameter.name)
    schema: dict[str, object] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


@dataclass(frozen=True, slots=True)
class FunctionDeclaration:
    name: str
    description: str | None = None
    parameters_schema: dict[str, object] = field(default_factory=empty_parameters_schema)

    @property
    def plugin_name(self) -> str:
        return split_function_name(self.name)[0]

    @property
    def function_name(self) -> str:
        return split_function_name(self.name)[1]

    def to_tool_definition(self) -> dict[str, object]:
        function: dict[str, object] = {
            "name": self.name,
            "parameters": self.parameters_schema,
        }
        if self.description:
            function["description"] = self.description
        return {"type": "function", "function": function}
