"""Chat completion core: prompt parsing, request assembly, accumulation, tool calls."""

from promptkernel.chat.functions import FunctionDeclaration, FunctionParameter
from promptkernel.chat.messages import AuthorRole, Conversation, Message
from promptkernel.chat.settings import MAX_RESULTS_PER_PROMPT, ExecutionSettings, ToolCallBehavior
from promptkernel.errors import InvalidRequestError, PromptKernelError, ProviderError
from promptkernel.orchestrator.service import ChatCompletionService
from promptkernel.orchestrator.tool_loop import (
    CompletionStatus,
    ToolLoopOutcome,
    complete_with_tools,
)
from promptkernel.prompt.parser import parse
from promptkernel.providers.accumulator import accumulate
from promptkernel.providers.request import ProviderRequest, build_request
from promptkernel.tools.invocation import ToolInvocationFailure, invoke_tool
from promptkernel.tools.registry import FunctionRegistry

__all__ = [
    "MAX_RESULTS_PER_PROMPT",
    "AuthorRole",
    "ChatCompletionService",
    "CompletionStatus",
    "Conversation",
    "ExecutionSettings",
    "FunctionDeclaration",
    "FunctionParameter",
    "FunctionRegistry",
    "InvalidRequestError",
    "Message",
    "PromptKernelError",
    "ProviderError",
    "ProviderRequest",
    "ToolCallBehavior",
    "ToolInvocationFailure",
    "ToolLoopOutcome",
    "accumulate",
    "build_request",
    "complete_with_tools",
    "invoke_tool",
    "parse",
]
