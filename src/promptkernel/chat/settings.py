"""Execution settings and tool-call behavior policies."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from promptkernel.chat.functions import join_function_name

MAX_RESULTS_PER_PROMPT = 128


@runtime_checkable
class ToolCallPolicy(Protocol):
    def kernel_functions_enabled(self) -> bool: ...

    def auto_invoke_enabled(self) -> bool: ...

    def function_enabled(self, plugin_name: str, function_name: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class ToolCallBehavior:
    """Controls which declared functions are exposed to the model.

    ``allowed`` holds ``plugin-function`` names; ``None`` means every
    function is allowed once kernel functions are enabled.
    """

    kernel_functions: bool = False
    auto_invoke: bool = False
    allowed: frozenset[str] | None = None

    @classmethod
    def disabled(cls) -> ToolCallBehavior:
        return cls()

    @classmethod
    def allow_all_kernel_functions(cls, auto_invoke: bool) -> ToolCallBehavior:
        return cls(kernel_functions=True, auto_invoke=auto_invoke)

    @classmethod
    def allow_only_kernel_functions(
        cls, auto_invoke: bool, names: Iterable[str]
    ) -> ToolCallBehavior:
        return cls(kernel_functions=True, auto_invoke=auto_invoke, allowed=frozenset(names))

    def kernel_functions_enabled(self) -> bool:
        return self.kernel_functions

    def auto_invoke_enabled(self) -> bool:
        return self.auto_invoke

    def function_enabled(self, plugin_name: str, function_name: str) -> bool:
        if self.allowed is None:
            return True
        return join_function_name(plugin_name, function_name) in self.allowed


@dataclass(slots=True)
class ExecutionSettings:
    temperature: float = 1.0
    top_p: float = 1.0
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    max_tokens: int = 256
    results_per_prompt: int = 1
    stop_sequences: list[str] | None = None
    user: str | None = None
    token_selection_biases: Mapping[int | str, int] | None = None
    tool_call_behavior: ToolCallPolicy = field(default_factory=ToolCallBehavior.disabled)
    stream: bool = False
    model_id: str | None = None
