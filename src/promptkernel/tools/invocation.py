"""Execute a model-requested function call against a registry."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from promptkernel.chat.functions import split_function_name
from promptkernel.chat.messages import AuthorRole, Message
from promptkernel.tools.registry import FunctionResolver

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    MALFORMED_PAYLOAD = "malformed_payload"
    UNRESOLVED_FUNCTION = "unresolved_function"
    FUNCTION_ERROR = "function_error"


@dataclass(frozen=True, slots=True)
class ToolInvocationFailure:
    kind: FailureKind
    message: str
    call_id: str | None = None
    function_name: str | None = None


ToolInvocationResult = Message | ToolInvocationFailure


def argument_text(value: Any) -> str:
    """Render one JSON argument value as the text handed to a function."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def _result_text(result: object) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if isinstance(result, (dict, list)):
        return json.dumps(result, separators=(",", ":"), default=str)
    return str(result)


async def invoke_tool(registry: FunctionResolver, tool_call_json: str) -> ToolInvocationResult:
    """Run the call described by ``tool_call_json``.

    The payload has the shape produced by response accumulation::

        {"type": "function", "id": "call_1",
         "function": {"name": "search-web", "parameters": {"query": "Banksy"}}}

    Returns a tool-role message carrying the textual result and the call id,
    or a failure record. Failures are logged here and never raised.
    """
    try:
        payload = json.loads(tool_call_json)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse tool call json: %s", exc)
        return ToolInvocationFailure(FailureKind.MALFORMED_PAYLOAD, f"invalid json: {exc}")
    if not isinstance(payload, dict):
        logger.error("Tool call payload is not an object")
        return ToolInvocationFailure(FailureKind.MALFORMED_PAYLOAD, "payload is not an object")

    raw_id = payload.get("id")
    call_id = raw_id if isinstance(raw_id, str) and raw_id else None
    function = payload.get("function")
    if not isinstance(function, dict):
        logger.error("Tool call %s carries no function", call_id)
        return ToolInvocationFailure(
            FailureKind.MALFORMED_PAYLOAD, "missing function", call_id=call_id
        )

    name = function.get("name")
    if not isinstance(name, str) or not name:
        logger.error("Tool call %s carries no function name", call_id)
        return ToolInvocationFailure(
            FailureKind.MALFORMED_PAYLOAD, "missing function name", call_id=call_id
        )
    parameters = function.get("parameters")
    if parameters is not None and not isinstance(parameters, dict):
        logger.error("Tool call %s parameters are not an object", call_id)
        return ToolInvocationFailure(
            FailureKind.MALFORMED_PAYLOAD,
            "parameters are not an object",
            call_id=call_id,
            function_name=name,
        )

    plugin_name, function_name = split_function_name(name)
    kernel_function = registry.resolve(plugin_name, function_name)
    if kernel_function is None:
        logger.warning("No function registered for tool call '%s'", name)
        return ToolInvocationFailure(
            FailureKind.UNRESOLVED_FUNCTION,
            f"function '{name}' not found",
            call_id=call_id,
            function_name=name,
        )

    arguments = {key: argument_text(value) for key, value in (parameters or {}).items()}
    try:
        result = kernel_function.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        logger.exception("Tool execution failed for '%s'", name)
        return ToolInvocationFailure(
            FailureKind.FUNCTION_ERROR,
            f"{type(exc).__name__}: {exc}",
            call_id=call_id,
            function_name=name,
        )

    return Message(
        role=AuthorRole.TOOL,
        content=_result_text(result),
        id=call_id,
        metadata={
            "function_name": name,
            "arguments": json.dumps(parameters or {}, separators=(",", ":")),
        },
    )
