"""Conversation data model."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class AuthorRole(str, Enum):
    """Speaker of a message.

    Lookup is total: ``AuthorRole("narrator")`` logs and returns ``USER``
    instead of raising, so prompt text with a stray role never fails a parse.
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def _missing_(cls, value: object) -> AuthorRole:
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        logger.error("Unknown role: %s", value)
        return cls.USER


@dataclass(frozen=True, slots=True)
class Message:
    role: AuthorRole
    content: str
    id: str | None = None
    metadata: dict[str, Any] | None = None


class Conversation:
    """Append-only, ordered list of messages.

    Every read hands out a copy; the backing list is only reachable through
    the ``add_*`` methods.
    """

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or [])

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def add_message(self, message: Message) -> Conversation:
        self._messages.append(message)
        return self

    def add_system_message(self, content: str) -> Conversation:
        return self.add_message(Message(role=AuthorRole.SYSTEM, content=content))

    def add_user_message(self, content: str) -> Conversation:
        return self.add_message(Message(role=AuthorRole.USER, content=content))

    def add_assistant_message(self, content: str) -> Conversation:
        return self.add_message(Message(role=AuthorRole.ASSISTANT, content=content))

    def add_tool_message(
        self,
        content: str,
        call_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        return self.add_message(
            Message(role=AuthorRole.TOOL, content=content, id=call_id, metadata=metadata)
        )

    def copy(self) -> Conversation:
        return Conversation(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __repr__(self) -> str:
        return f"Conversation(messages={self._messages!r})"
