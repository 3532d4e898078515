"""Provider request assembly."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from promptkernel.chat.functions import FunctionDeclaration, split_function_name
from promptkernel.chat.messages import AuthorRole, Message
from promptkernel.chat.settings import MAX_RESULTS_PER_PROMPT, ExecutionSettings, ToolCallPolicy
from promptkernel.errors import InvalidRequestError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SystemRequestMessage:
    content: str

    def to_payload(self) -> list[dict[str, Any]]:
        return [{"role": "system", "content": self.content}]


@dataclass(slots=True)
class UserRequestMessage:
    content: str

    def to_payload(self) -> list[dict[str, Any]]:
        return [{"role": "user", "content": self.content}]


@dataclass(slots=True)
class AssistantRequestMessage:
    content: str

    def to_payload(self) -> list[dict[str, Any]]:
        return [{"role": "assistant", "content": self.content}]


@dataclass(slots=True)
class ToolRequestMessage:
    content: str
    tool_call_id: str | None = None
    function_name: str | None = None
    arguments: str | None = None

    def to_payload(self) -> list[dict[str, Any]]:
        tool_message: dict[str, Any] = {"role": "tool", "content": self.content}
        if self.tool_call_id:
            tool_message["tool_call_id"] = self.tool_call_id
        if not (self.tool_call_id and self.function_name):
            return [tool_message]
        # OpenAI-compatible APIs only accept a tool result that answers an
        # assistant turn carrying the matching call.
        call_turn = {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": self.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": self.function_name,
                        "arguments": self.arguments or "{}",
                    },
                }
            ],
        }
        return [call_turn, tool_message]


RequestMessage = (
    SystemRequestMessage | UserRequestMessage | AssistantRequestMessage | ToolRequestMessage
)


def to_request_message(
    role: AuthorRole | str,
    content: str,
    *,
    tool_call_id: str | None = None,
    function_name: str | None = None,
    arguments: str | None = None,
) -> RequestMessage | None:
    """Map one conversation entry to its request variant, or None for an unknown role."""
    if role == AuthorRole.ASSISTANT:
        return AssistantRequestMessage(content)
    if role == AuthorRole.SYSTEM:
        return SystemRequestMessage(content)
    if role == AuthorRole.USER:
        return UserRequestMessage(content)
    if role == AuthorRole.TOOL:
        return ToolRequestMessage(
            content,
            tool_call_id=tool_call_id,
            function_name=function_name,
            arguments=arguments,
        )
    logger.debug("Unexpected author role: %s", role)
    return None


def _message_to_request(message: Message) -> RequestMessage | None:
    metadata = message.metadata or {}
    function_name = metadata.get("function_name")
    arguments = metadata.get("arguments")
    return to_request_message(
        message.role,
        message.content,
        tool_call_id=message.id,
        function_name=function_name if isinstance(function_name, str) else None,
        arguments=arguments if isinstance(arguments, str) else None,
    )


def request_messages(messages: Iterable[Message]) -> list[RequestMessage]:
    mapped: list[RequestMessage] = []
    for message in messages:
        request_message = _message_to_request(message)
        if request_message is None:
            logger.warning("Dropping message with unmappable role: %s", message.role)
            continue
        mapped.append(request_message)
    return mapped


def tool_definitions(
    behavior: ToolCallPolicy | None,
    functions: Sequence[FunctionDeclaration],
) -> list[dict[str, object]] | None:
    """Tools to expose, or None when nothing should be sent."""
    if not functions:
        return None
    if behavior is None or not (
        behavior.kernel_functions_enabled() or behavior.auto_invoke_enabled()
    ):
        return None
    definitions: list[dict[str, object]] = []
    for function in functions:
        plugin_name, function_name = split_function_name(function.name)
        if behavior.function_enabled(plugin_name, function_name):
            definitions.append(function.to_tool_definition())
    # Some providers reject an empty tools array.
    if not definitions:
        return None
    return definitions


@dataclass(slots=True)
class ProviderRequest:
    messages: list[RequestMessage]
    model: str | None = None
    tools: list[dict[str, object]] | None = None
    temperature: float | None = None
    top_p: float | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    max_tokens: int | None = None
    n: int | None = None
    stop: list[str] | None = None
    user: str | None = None
    logit_bias: dict[str, int] | None = None
    stream: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """OpenAI-compatible chat completions body with unset fields omitted."""
        payload: dict[str, Any] = {
            "messages": [
                entry for message in self.messages for entry in message.to_payload()
            ],
        }
        optional: dict[str, Any] = {
            "model": self.model,
            "tools": self.tools,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "max_tokens": self.max_tokens,
            "n": self.n,
            "stop": self.stop,
            "user": self.user,
            "logit_bias": self.logit_bias,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        if self.stream:
            payload["stream"] = True
        payload.update(self.extra)
        return payload


def build_request(
    conversation: Iterable[Message],
    functions: Sequence[FunctionDeclaration],
    settings: ExecutionSettings | None,
    *,
    model: str | None = None,
) -> ProviderRequest:
    request = ProviderRequest(messages=request_messages(conversation), model=model)
    if settings is None:
        return request

    if (
        settings.results_per_prompt < 1
        or settings.results_per_prompt > MAX_RESULTS_PER_PROMPT
    ):
        raise InvalidRequestError(
            "Results per prompt must be in range between 1 and "
            f"{MAX_RESULTS_PER_PROMPT}, inclusive."
        )

    request.model = settings.model_id or model
    request.tools = tool_definitions(settings.tool_call_behavior, functions)
    request.temperature = settings.temperature
    request.top_p = settings.top_p
    request.presence_penalty = settings.presence_penalty
    request.frequency_penalty = settings.frequency_penalty
    request.max_tokens = settings.max_tokens
    request.n = settings.results_per_prompt
    # Empty stop arrays are rejected by some deployments; send nothing instead.
    request.stop = list(settings.stop_sequences) if settings.stop_sequences else None
    request.user = settings.user
    if settings.token_selection_biases is not None:
        request.logit_bias = {
            str(token): bias for token, bias in settings.token_selection_biases.items()
        }
    request.stream = settings.stream
    return request
