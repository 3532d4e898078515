"""Prompt markup scanner.

A templated prompt may carry chat structure as XML-ish markup::

    <message role="system">You are terse.</message>
    <message role="user">Find {{$topic}}</message>
    <function pluginName="search" name="web" description="Search the web">
        <parameter name="query" type="string" isRequired="true"/>
    </function>

Each ``message`` element becomes one conversation entry and each ``function``
element one function declaration. Text that is not well-formed markup, or
markup without a single ``message`` element, is treated as one user message
holding the raw prompt verbatim. Parsing never raises.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import TypeVar

from promptkernel.chat.functions import FunctionParameter
from promptkernel.prompt.parsed import ChatParsedPrompt, ChatPromptVisitor, PromptParseVisitor

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ROOT_TAG = "prompt"


def _text_of(element: ET.Element) -> str:
    return "".join(element.itertext())


def _optional_attr(element: ET.Element, name: str) -> str | None:
    value = element.get(name)
    if value is None or value == "":
        return None
    return value


def _parse_parameters(function_element: ET.Element) -> list[FunctionParameter]:
    parameters: list[FunctionParameter] = []
    for node in function_element.iter("parameter"):
        name = _optional_attr(node, "name")
        if name is None:
            logger.warning("Skipping function parameter without a name")
            continue
        parameters.append(
            FunctionParameter(
                name=name,
                description=_optional_attr(node, "description"),
                type=_optional_attr(node, "type") or "string",
                is_required=(node.get("isRequired", "").strip().lower() == "true"),
                default_value=node.get("defaultValue"),
            )
        )
    return parameters


def _scan(raw_prompt: str, visitor: PromptParseVisitor[T]) -> PromptParseVisitor[T]:
    try:
        root = ET.fromstring(f"<{_ROOT_TAG}>{raw_prompt}</{_ROOT_TAG}>")
    except ET.ParseError as exc:
        logger.debug("Prompt is not structured markup, using raw prompt: %s", exc)
        return visitor

    for node in root.iter("message"):
        visitor = visitor.add_message(node.get("role", ""), _text_of(node))

    for node in root.iter("function"):
        name = _optional_attr(node, "name")
        if name is None:
            logger.warning("Skipping function declaration without a name")
            continue
        visitor = visitor.add_function(
            name,
            _optional_attr(node, "pluginName"),
            _optional_attr(node, "description"),
            _parse_parameters(node),
        )
    return visitor


def parse_with(raw_prompt: str, visitor: PromptParseVisitor[T]) -> T:
    """Drive ``visitor`` over ``raw_prompt`` and return its finalized result."""
    visitor = _scan(raw_prompt, visitor)
    if visitor.are_messages_empty():
        # Partial structure (e.g. functions only) is dropped with the builder.
        visitor = visitor.reset().from_raw_prompt(raw_prompt)
    return visitor.get()


def parse(raw_prompt: str) -> ChatParsedPrompt:
    return parse_with(raw_prompt, ChatPromptVisitor())
