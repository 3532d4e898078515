"""Function registration helpers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from promptkernel.chat.functions import (
    FUNCTION_NAME_SEPARATOR,
    FunctionDeclaration,
    empty_parameters_schema,
    join_function_name,
)
from promptkernel.errors import ToolError

FunctionHandler = Callable[[dict[str, str]], Awaitable[object] | object]


@dataclass(slots=True)
class KernelFunction:
    plugin_name: str
    name: str
    description: str
    handler: FunctionHandler
    parameters: dict[str, object] = field(default_factory=empty_parameters_schema)

    @property
    def full_name(self) -> str:
        return join_function_name(self.plugin_name, self.name)

    def declaration(self) -> FunctionDeclaration:
        return FunctionDeclaration(
            name=self.full_name,
            description=self.description or None,
            parameters_schema=self.parameters,
        )


class FunctionResolver(Protocol):
    def resolve(self, plugin_name: str, function_name: str) -> KernelFunction | None: ...


class FunctionRegistry:
    def __init__(self) -> None:
        self._functions: dict[tuple[str, str], KernelFunction] = {}

    def register(
        self,
        plugin_name: str,
        name: str,
        description: str,
        handler: FunctionHandler,
        parameters: Mapping[str, object] | None = None,
    ) -> KernelFunction:
        if not name:
            raise ToolError("function name must not be empty")
        if FUNCTION_NAME_SEPARATOR in plugin_name or FUNCTION_NAME_SEPARATOR in name:
            raise ToolError(
                f"'{plugin_name}'/'{name}': names must not contain '{FUNCTION_NAME_SEPARATOR}'"
            )
        function = KernelFunction(
            plugin_name=plugin_name,
            name=name,
            description=description,
            handler=handler,
            parameters=dict(parameters) if parameters else empty_parameters_schema(),
        )
        self._functions[(plugin_name, name)] = function
        return function

    def resolve(self, plugin_name: str, function_name: str) -> KernelFunction | None:
        function = self._functions.get((plugin_name, function_name))
        if function is None and not function_name:
            # A bare tool name splits into (name, ""); it was registered plugin-less.
            function = self._functions.get(("", plugin_name))
        return function

    def declarations(self) -> list[FunctionDeclaration]:
        return [function.declaration() for function in self._functions.values()]

    def __len__(self) -> int:
        return len(self._functions)
