"""Parsed prompt results and the builders that produce them."""

from __future__ import annotations

from typing import Protocol, TypeVar

from promptkernel.chat.functions import (
    FunctionDeclaration,
    FunctionParameter,
    join_function_name,
    parameters_schema,
)
from promptkernel.chat.messages import AuthorRole, Conversation, Message

T_co = TypeVar("T_co", covariant=True)


class ParsedPrompt(Protocol):
    @property
    def conversation(self) -> Conversation: ...

    @property
    def functions(self) -> tuple[FunctionDeclaration, ...]: ...


class PromptParseVisitor(Protocol[T_co]):
    """Single-writer builder driven by the markup scanner."""

    def add_message(self, role: str, content: str) -> PromptParseVisitor[T_co]: ...

    def add_function(
        self,
        name: str,
        plugin_name: str | None,
        description: str | None,
        parameters: list[FunctionParameter],
    ) -> PromptParseVisitor[T_co]: ...

    def are_messages_empty(self) -> bool: ...

    def from_raw_prompt(self, raw_prompt: str) -> PromptParseVisitor[T_co]: ...

    def get(self) -> T_co: ...

    def reset(self) -> PromptParseVisitor[T_co]: ...


class ChatParsedPrompt:
    """Conversation plus function declarations for OpenAI-compatible chat."""

    def __init__(
        self,
        conversation: Conversation,
        functions: list[FunctionDeclaration] | None = None,
    ) -> None:
        self._conversation = conversation
        self._functions = tuple(functions or ())

    @property
    def conversation(self) -> Conversation:
        return self._conversation.copy()

    @property
    def functions(self) -> tuple[FunctionDeclaration, ...]:
        return self._functions

    def __repr__(self) -> str:
        return (
            f"ChatParsedPrompt(conversation={self._conversation!r}, "
            f"functions={self._functions!r})"
        )


class ChatPromptVisitor:
    def __init__(self) -> None:
        self._conversation = Conversation()
        self._functions: list[FunctionDeclaration] = []
        self._parsed_raw: ChatParsedPrompt | None = None

    def add_message(self, role: str, content: str) -> ChatPromptVisitor:
        self._conversation.add_message(Message(role=AuthorRole(role), content=content))
        return self

    def add_function(
        self,
        name: str,
        plugin_name: str | None,
        description: str | None,
        parameters: list[FunctionParameter],
    ) -> ChatPromptVisitor:
        self._functions.append(
            FunctionDeclaration(
                name=join_function_name(plugin_name, name),
                description=description,
                parameters_schema=parameters_schema(parameters),
            )
        )
        return self

    def are_messages_empty(self) -> bool:
        return len(self._conversation) == 0

    def from_raw_prompt(self, raw_prompt: str) -> ChatPromptVisitor:
        self._parsed_raw = ChatParsedPrompt(
            Conversation([Message(role=AuthorRole.USER, content=raw_prompt)])
        )
        return self

    def get(self) -> ChatParsedPrompt:
        if self._parsed_raw is not None:
            return self._parsed_raw
        return ChatParsedPrompt(self._conversation.copy(), self._functions)

    def reset(self) -> ChatPromptVisitor:
        return ChatPromptVisitor()
