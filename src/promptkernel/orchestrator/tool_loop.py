"""Request/accumulate rounds with transparent function invocation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from promptkernel.chat.functions import FunctionDeclaration
from promptkernel.chat.messages import AuthorRole, Conversation, Message
from promptkernel.chat.settings import ExecutionSettings
from promptkernel.config import get_settings
from promptkernel.errors import InvalidRequestError
from promptkernel.providers.accumulator import (
    MergedToolCallBuffer,
    ToolCallBufferFactory,
    accumulate,
)
from promptkernel.providers.request import ProviderRequest, build_request
from promptkernel.tools.invocation import ToolInvocationFailure, ToolInvocationResult, invoke_tool
from promptkernel.tools.registry import FunctionResolver

logger = logging.getLogger(__name__)

RawResponse = Mapping[str, Any] | Iterable[Mapping[str, Any]] | AsyncIterable[Mapping[str, Any]]
Send = Callable[[ProviderRequest], Awaitable[RawResponse]]


class CompletionStatus(str, Enum):
    FINAL = "final"
    ROUND_BUDGET_EXHAUSTED = "round_budget_exhausted"


@dataclass(slots=True)
class ToolLoopOutcome:
    messages: list[Message]
    status: CompletionStatus
    rounds: int
    invocations: list[ToolInvocationResult] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return self.status is CompletionStatus.FINAL

    @property
    def failures(self) -> list[ToolInvocationFailure]:
        return [item for item in self.invocations if isinstance(item, ToolInvocationFailure)]

    @property
    def unresolved_tool_calls(self) -> list[Message]:
        return [message for message in self.messages if message.role is AuthorRole.TOOL]


async def _finalize(
    raw: RawResponse,
    tool_buffer_factory: ToolCallBufferFactory,
) -> list[Message]:
    if isinstance(raw, AsyncIterable):
        chunks = [chunk async for chunk in raw]
        return accumulate(chunks, tool_buffer_factory)
    return accumulate(raw, tool_buffer_factory)


async def complete_with_tools(
    conversation: Conversation,
    functions: Sequence[FunctionDeclaration],
    settings: ExecutionSettings | None,
    send: Send,
    registry: FunctionResolver,
    *,
    model: str | None = None,
    max_rounds: int | None = None,
    tool_buffer_factory: ToolCallBufferFactory = MergedToolCallBuffer,
) -> ToolLoopOutcome:
    """Send the conversation, run any requested functions, and send again.

    Successful function results are appended to ``conversation`` as tool
    messages. At most ``max_rounds`` requests are issued; when the last one
    still asks for a function the outcome is ``ROUND_BUDGET_EXHAUSTED`` and
    carries the unresolved tool message.
    """
    if max_rounds is None:
        max_rounds = get_settings().tool_max_rounds
    if max_rounds < 1:
        raise InvalidRequestError(f"max_rounds must be at least 1, got {max_rounds}")

    invocations: list[ToolInvocationResult] = []
    rounds = 0
    while True:
        request = build_request(conversation, functions, settings, model=model)
        raw = await send(request)
        rounds += 1
        messages = await _finalize(raw, tool_buffer_factory)

        tool_messages = [message for message in messages if message.role is AuthorRole.TOOL]
        if not tool_messages:
            return ToolLoopOutcome(messages, CompletionStatus.FINAL, rounds, invocations)
        if rounds >= max_rounds:
            logger.warning(
                "Tool round budget of %d exhausted with %d unresolved tool call(s)",
                max_rounds,
                len(tool_messages),
            )
            return ToolLoopOutcome(
                messages, CompletionStatus.ROUND_BUDGET_EXHAUSTED, rounds, invocations
            )

        for tool_message in tool_messages:
            result = await invoke_tool(registry, tool_message.content)
            invocations.append(result)
            if isinstance(result, ToolInvocationFailure):
                logger.warning(
                    "Tool call %s produced no result (%s): %s",
                    result.function_name or "<unknown>",
                    result.kind.value,
                    result.message,
                )
                continue
            conversation.add_message(result)
        logger.info("Round %d requested %d tool call(s)", rounds, len(tool_messages))
