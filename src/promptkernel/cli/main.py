"""Click CLI group: parse and complete commands."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from promptkernel.chat.messages import Message
from promptkernel.chat.settings import ExecutionSettings
from promptkernel.config import get_settings
from promptkernel.errors import PromptKernelError
from promptkernel.logging import bind_context, clear_context, configure_logging
from promptkernel.orchestrator.service import ChatCompletionService
from promptkernel.prompt.parser import parse
from promptkernel.providers.openai_compat import OpenAIChatTransport


def _read_prompt(prompt_file: str) -> str:
    if prompt_file == "-":
        return sys.stdin.read()
    return Path(prompt_file).read_text(encoding="utf-8")


def _message_dict(message: Message) -> dict[str, object]:
    item: dict[str, object] = {"role": message.role.value, "content": message.content}
    if message.id:
        item["id"] = message.id
    return item


@click.group()
def cli() -> None:
    """promptkernel chat completion CLI."""
    settings = get_settings()
    configure_logging(settings.log_level)
    clear_context()
    bind_context(app_env=settings.app_env)


@cli.command("parse")
@click.argument("prompt_file", type=click.Path(allow_dash=True, path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Print structured JSON output.")
def parse_command(prompt_file: str, json_output: bool) -> None:
    """Show the conversation and functions a rendered prompt parses to."""
    parsed = parse(_read_prompt(prompt_file))
    if json_output:
        click.echo(
            json.dumps(
                {
                    "messages": [_message_dict(message) for message in parsed.conversation],
                    "functions": [
                        function.to_tool_definition()["function"] for function in parsed.functions
                    ],
                },
                indent=2,
            )
        )
        return
    for message in parsed.conversation:
        click.echo(f"[{message.role.value}] {message.content}")
    for function in parsed.functions:
        click.echo(f"function: {function.name} - {function.description or ''}")


@cli.command()
@click.argument("prompt_file", type=click.Path(allow_dash=True, path_type=str))
@click.option("--model", type=str, default=None, help="Override OPENAI_MODEL.")
@click.option("--stream", is_flag=True, help="Request a streamed response.")
@click.option("--temperature", type=float, default=1.0, show_default=True)
@click.option("--max-tokens", type=int, default=256, show_default=True)
@click.option("--results", type=int, default=1, show_default=True, help="Choices per prompt.")
@click.option("--max-rounds", type=int, default=None, help="Override TOOL_MAX_ROUNDS.")
@click.option("--json", "json_output", is_flag=True, help="Print structured JSON output.")
def complete(
    prompt_file: str,
    model: str | None,
    stream: bool,
    temperature: float,
    max_tokens: int,
    results: int,
    max_rounds: int | None,
    json_output: bool,
) -> None:
    """Send a rendered prompt to the configured provider and print the answer."""
    settings = ExecutionSettings(
        temperature=temperature,
        max_tokens=max_tokens,
        results_per_prompt=results,
        stream=stream,
    )
    try:
        transport = OpenAIChatTransport(model)
        service = ChatCompletionService(
            transport.send, model_id=transport.model, max_rounds=max_rounds
        )
        outcome = asyncio.run(
            service.get_chat_message_contents(_read_prompt(prompt_file), settings)
        )
    except PromptKernelError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        click.echo(
            json.dumps(
                {
                    "status": outcome.status.value,
                    "rounds": outcome.rounds,
                    "messages": [_message_dict(message) for message in outcome.messages],
                    "failures": [
                        {"kind": failure.kind.value, "message": failure.message}
                        for failure in outcome.failures
                    ],
                },
                indent=2,
            )
        )
        return
    for message in outcome.messages:
        click.echo(message.content)
    if not outcome.is_final:
        click.echo(f"[{outcome.status.value}] tool call left unresolved", err=True)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
