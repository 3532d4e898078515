"""Response accumulation: provider output fragments to finalized messages.

Both a full chat completion and a sequence of streamed chunks go through the
same per-choice collector. A collector buffers assistant text and tool-call
fragments separately and finalizes to exactly one tagged result.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from promptkernel.chat.messages import AuthorRole, Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolCallFragment:
    call_id: str | None = None
    function_name: str | None = None
    argument_chunk: str = ""


@dataclass(frozen=True, slots=True)
class AssistantText:
    text: str

    def to_message(self, metadata: dict[str, Any] | None = None) -> Message:
        return Message(role=AuthorRole.ASSISTANT, content=self.text, metadata=metadata)


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    call_id: str | None
    function_name: str | None
    arguments: str

    def to_json(self) -> str:
        # The argument text is spliced in verbatim: it is already JSON once
        # every fragment has arrived.
        return (
            '{"type": "function", "id": %s, "function": {"name": %s, "parameters": %s}}'
            % (
                json.dumps(self.call_id or ""),
                json.dumps(self.function_name or ""),
                self.arguments or "{}",
            )
        )

    def to_message(self, metadata: dict[str, Any] | None = None) -> Message:
        return Message(
            role=AuthorRole.TOOL,
            content=self.to_json(),
            id=self.call_id,
            metadata=metadata,
        )


ChoiceResult = AssistantText | ToolCallRequest


class AssistantTextBuffer:
    def __init__(self) -> None:
        self._parts: list[str] = []

    def append(self, text: str) -> None:
        self._parts.append(text)

    def finalize(self) -> AssistantText:
        return AssistantText("".join(self._parts))


class ToolCallBuffer(Protocol):
    def append(self, fragment: ToolCallFragment) -> None: ...

    def finalize(self) -> ToolCallRequest: ...


class MergedToolCallBuffer:
    """Folds every tool-call fragment of a choice into a single call.

    The first non-empty id and name win and every argument chunk is
    concatenated in arrival order, even across distinct calls. Several
    parallel calls in one response therefore collapse into one merged call.
    """

    def __init__(self) -> None:
        self.call_id: str | None = None
        self.function_name: str | None = None
        self._arguments: list[str] = []

    def append(self, fragment: ToolCallFragment) -> None:
        if self.call_id is None and fragment.call_id:
            self.call_id = fragment.call_id
        if self.function_name is None and fragment.function_name:
            self.function_name = fragment.function_name
        if fragment.argument_chunk:
            self._arguments.append(fragment.argument_chunk)

    @property
    def arguments(self) -> str:
        return "".join(self._arguments)

    def finalize(self) -> ToolCallRequest:
        return ToolCallRequest(
            call_id=self.call_id,
            function_name=self.function_name,
            arguments=self.arguments,
        )


ToolCallBufferFactory = Callable[[], ToolCallBuffer]


class ChoiceCollector:
    def __init__(self, tool_buffer_factory: ToolCallBufferFactory = MergedToolCallBuffer) -> None:
        self._tool_buffer_factory = tool_buffer_factory
        self._text: AssistantTextBuffer | None = None
        self._tool: ToolCallBuffer | None = None

    def append_text(self, text: str) -> None:
        if self._text is None:
            self._text = AssistantTextBuffer()
        self._text.append(text)

    def append_tool_fragment(self, fragment: ToolCallFragment) -> None:
        if self._tool is None:
            self._tool = self._tool_buffer_factory()
        self._tool.append(fragment)

    def finalize(self) -> ChoiceResult | None:
        if self._tool is not None:
            if self._text is not None:
                dropped = self._text.finalize().text
                if dropped.strip():
                    logger.warning(
                        "Choice carried both text and a tool call; dropping %d chars of text",
                        len(dropped),
                    )
            return self._tool.finalize()
        if self._text is not None:
            return self._text.finalize()
        return None


def _tool_call_fragments(raw_calls: object) -> list[ToolCallFragment]:
    fragments: list[ToolCallFragment] = []
    if not isinstance(raw_calls, list):
        return fragments
    for call in raw_calls:
        if not isinstance(call, dict):
            continue
        call_type = call.get("type")
        # Continuation deltas from some servers carry "type": null.
        if call_type is not None and call_type != "function":
            continue
        function = call.get("function")
        if not isinstance(function, dict):
            function = {}
        call_id = call.get("id")
        name = function.get("name")
        arguments = function.get("arguments")
        if isinstance(arguments, (dict, list)):
            arguments = json.dumps(arguments)
        fragments.append(
            ToolCallFragment(
                call_id=call_id if isinstance(call_id, str) else None,
                function_name=name if isinstance(name, str) else None,
                argument_chunk=arguments if isinstance(arguments, str) else "",
            )
        )
    return fragments


def _feed_delta(collector: ChoiceCollector, body: Mapping[str, Any]) -> None:
    content = body.get("content")
    fragments = _tool_call_fragments(body.get("tool_calls"))
    if isinstance(content, str) and (content or not fragments):
        collector.append_text(content)
    for fragment in fragments:
        collector.append_tool_fragment(fragment)


def _feed_message(collector: ChoiceCollector, body: Mapping[str, Any]) -> None:
    """Classify a complete message once: non-empty text wins over tool calls."""
    content = body.get("content")
    if isinstance(content, str) and content:
        collector.append_text(content)
        return
    fragments = _tool_call_fragments(body.get("tool_calls"))
    if fragments:
        for fragment in fragments:
            collector.append_tool_fragment(fragment)
    elif isinstance(content, str):
        collector.append_text(content)


def _response_metadata(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": payload.get("id"),
        "created": payload.get("created"),
        "model": payload.get("model"),
        "usage": payload.get("usage"),
    }


def _choices(payload: Mapping[str, Any]) -> list[dict[str, Any]]:
    choices = payload.get("choices")
    if not isinstance(choices, list):
        return []
    return [choice for choice in choices if isinstance(choice, dict)]


class ResponseAccumulator:
    """Accumulates a complete (non-streamed) chat completion."""

    def __init__(self, tool_buffer_factory: ToolCallBufferFactory = MergedToolCallBuffer) -> None:
        self._tool_buffer_factory = tool_buffer_factory

    def accumulate(self, payload: Mapping[str, Any]) -> list[Message]:
        metadata = _response_metadata(payload)
        messages: list[Message] = []
        for choice in _choices(payload):
            body = choice.get("message")
            if not isinstance(body, dict):
                continue
            collector = ChoiceCollector(self._tool_buffer_factory)
            _feed_message(collector, body)
            result = collector.finalize()
            if result is None:
                logger.debug("Choice %s carried no content", choice.get("index"))
                continue
            messages.append(result.to_message(dict(metadata)))
        return messages


class StreamAccumulator:
    """Accumulates streamed chunks, one collector per choice index."""

    def __init__(self, tool_buffer_factory: ToolCallBufferFactory = MergedToolCallBuffer) -> None:
        self._tool_buffer_factory = tool_buffer_factory
        self._collectors: dict[int, ChoiceCollector] = {}
        self._finished: set[int] = set()
        self._metadata: dict[str, Any] = {}

    def feed(self, chunk: Mapping[str, Any]) -> None:
        for key, value in _response_metadata(chunk).items():
            if value is not None and (key == "usage" or key not in self._metadata):
                self._metadata[key] = value
        for position, choice in enumerate(_choices(chunk)):
            raw_index = choice.get("index")
            index = raw_index if isinstance(raw_index, int) else position
            if index in self._finished:
                logger.debug("Ignoring delta for finished choice %d", index)
                continue
            delta = choice.get("delta")
            if isinstance(delta, dict):
                collector = self._collectors.get(index)
                if collector is None:
                    collector = ChoiceCollector(self._tool_buffer_factory)
                    self._collectors[index] = collector
                _feed_delta(collector, delta)
            if choice.get("finish_reason"):
                self._finished.add(index)

    def is_finished(self, index: int) -> bool:
        return index in self._finished

    def finish_choice(self, index: int) -> Message | None:
        """Finalize one choice; the collector is discarded."""
        self._finished.add(index)
        collector = self._collectors.pop(index, None)
        if collector is None:
            return None
        result = collector.finalize()
        if result is None:
            return None
        return result.to_message(self._metadata_snapshot())

    def finish(self) -> list[Message]:
        messages: list[Message] = []
        for index in sorted(self._collectors):
            message = self.finish_choice(index)
            if message is not None:
                messages.append(message)
        return messages

    def _metadata_snapshot(self) -> dict[str, Any]:
        snapshot = {"id": None, "created": None, "model": None, "usage": None}
        snapshot.update(self._metadata)
        return snapshot


def accumulate_stream(
    chunks: Iterable[Mapping[str, Any]],
    tool_buffer_factory: ToolCallBufferFactory = MergedToolCallBuffer,
) -> list[Message]:
    accumulator = StreamAccumulator(tool_buffer_factory)
    for chunk in chunks:
        accumulator.feed(chunk)
    return accumulator.finish()


def accumulate(
    raw_response: Mapping[str, Any] | Iterable[Mapping[str, Any]],
    tool_buffer_factory: ToolCallBufferFactory = MergedToolCallBuffer,
) -> list[Message]:
    """Finalized messages, one per choice, from a full response or streamed chunks."""
    if isinstance(raw_response, Mapping):
        return ResponseAccumulator(tool_buffer_factory).accumulate(raw_response)
    return accumulate_stream(raw_response, tool_buffer_factory)
