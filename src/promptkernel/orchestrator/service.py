"""Chat completion entry points."""

from __future__ import annotations

import logging

from promptkernel.chat.messages import Conversation
from promptkernel.chat.settings import ExecutionSettings
from promptkernel.ids import new_request_id
from promptkernel.logging import bound_context
from promptkernel.orchestrator.tool_loop import Send, ToolLoopOutcome, complete_with_tools
from promptkernel.prompt.parser import parse
from promptkernel.tools.registry import FunctionRegistry, FunctionResolver

logger = logging.getLogger(__name__)


class ChatCompletionService:
    def __init__(
        self,
        send: Send,
        registry: FunctionResolver | None = None,
        *,
        model_id: str | None = None,
        service_id: str = "default",
        max_rounds: int | None = None,
    ) -> None:
        self._send = send
        self.registry = registry if registry is not None else FunctionRegistry()
        self.model_id = model_id
        self.service_id = service_id
        self.max_rounds = max_rounds

    async def get_chat_message_contents(
        self,
        prompt: str,
        settings: ExecutionSettings | None = None,
    ) -> ToolLoopOutcome:
        """Parse a rendered prompt and complete it, invoking requested functions."""
        parsed = parse(prompt)
        conversation = parsed.conversation
        with bound_context(request_id=new_request_id(), service_id=self.service_id):
            logger.info(
                "Completing prompt with %d message(s) and %d function(s)",
                len(conversation),
                len(parsed.functions),
            )
            return await complete_with_tools(
                conversation,
                parsed.functions,
                settings,
                self._send,
                self.registry,
                model=self.model_id,
                max_rounds=self.max_rounds,
            )

    async def get_history_message_contents(
        self,
        history: Conversation,
        settings: ExecutionSettings | None = None,
    ) -> ToolLoopOutcome:
        """Complete an existing conversation; no functions are declared to the model."""
        with bound_context(request_id=new_request_id(), service_id=self.service_id):
            return await complete_with_tools(
                history,
                (),
                settings,
                self._send,
                self.registry,
                model=self.model_id,
                max_rounds=self.max_rounds,
            )
