import json

import pytest

from promptkernel.chat.functions import FunctionDeclaration
from promptkernel.chat.messages import AuthorRole, Conversation
from promptkernel.chat.settings import ExecutionSettings, ToolCallBehavior
from promptkernel.config import get_settings
from promptkernel.errors import InvalidRequestError
from promptkernel.orchestrator.tool_loop import CompletionStatus, complete_with_tools
from promptkernel.providers.request import ProviderRequest
from promptkernel.tools.invocation import FailureKind
from promptkernel.tools.registry import FunctionRegistry

SETTINGS = ExecutionSettings(
    tool_call_behavior=ToolCallBehavior.allow_all_kernel_functions(auto_invoke=True)
)
FUNCTIONS = [FunctionDeclaration(name="weather-current", description="Current conditions")]


def _text(content: str) -> dict:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def _tool_call(name: str, arguments: str = "{}", call_id: str = "call_1") -> dict:
    return {
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": name, "arguments": arguments},
                        }
                    ],
                },
            }
        ]
    }


class FakeProvider:
    def __init__(self, *responses: object) -> None:
        self._responses = list(responses)
        self.requests: list[ProviderRequest] = []

    async def send(self, request: ProviderRequest) -> object:
        self.requests.append(request)
        return self._responses.pop(0)


@pytest.fixture
def registry() -> FunctionRegistry:
    registry = FunctionRegistry()
    registry.register("weather", "current", "Current conditions", lambda args: "22C")
    return registry


@pytest.mark.asyncio
async def test_plain_answer_takes_one_round(registry: FunctionRegistry) -> None:
    provider = FakeProvider(_text("Hello!"))
    conversation = Conversation().add_user_message("Hi")

    outcome = await complete_with_tools(conversation, [], SETTINGS, provider.send, registry)

    assert outcome.status is CompletionStatus.FINAL
    assert outcome.is_final
    assert outcome.rounds == 1
    assert [(m.role, m.content) for m in outcome.messages] == [(AuthorRole.ASSISTANT, "Hello!")]
    assert len(provider.requests) == 1


@pytest.mark.asyncio
async def test_tool_result_is_sent_back_in_second_round(registry: FunctionRegistry) -> None:
    provider = FakeProvider(
        _tool_call("weather-current", '{"city":"Paris"}'),
        _text("It is 22C in Paris."),
    )
    conversation = Conversation().add_user_message("Weather in Paris?")

    outcome = await complete_with_tools(
        conversation, FUNCTIONS, SETTINGS, provider.send, registry
    )

    assert outcome.is_final
    assert outcome.rounds == 2
    assert [m.content for m in outcome.messages] == ["It is 22C in Paris."]
    assert len(provider.requests) == 2

    first, second = (request.to_payload() for request in provider.requests)
    assert first["tools"][0]["function"]["name"] == "weather-current"
    assert second["messages"][1:] == [
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "weather-current", "arguments": '{"city":"Paris"}'},
                }
            ],
        },
        {"role": "tool", "content": "22C", "tool_call_id": "call_1"},
    ]
    assert conversation.messages[-1].role is AuthorRole.TOOL


@pytest.mark.asyncio
async def test_default_budget_stops_after_two_rounds(registry: FunctionRegistry) -> None:
    provider = FakeProvider(
        _tool_call("weather-current", call_id="call_1"),
        _tool_call("weather-current", call_id="call_2"),
        _text("never sent"),
    )

    outcome = await complete_with_tools(
        Conversation().add_user_message("Hi"), FUNCTIONS, SETTINGS, provider.send, registry
    )

    assert outcome.status is CompletionStatus.ROUND_BUDGET_EXHAUSTED
    assert outcome.rounds == 2
    assert len(provider.requests) == 2
    [unresolved] = outcome.unresolved_tool_calls
    assert json.loads(unresolved.content)["id"] == "call_2"


@pytest.mark.asyncio
async def test_round_budget_comes_from_settings(
    registry: FunctionRegistry, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TOOL_MAX_ROUNDS", "3")
    get_settings.cache_clear()
    provider = FakeProvider(
        _tool_call("weather-current", call_id="call_1"),
        _tool_call("weather-current", call_id="call_2"),
        _text("Done."),
    )

    outcome = await complete_with_tools(
        Conversation().add_user_message("Hi"), FUNCTIONS, SETTINGS, provider.send, registry
    )

    assert outcome.is_final
    assert outcome.rounds == 3
    assert [m.content for m in outcome.messages] == ["Done."]


@pytest.mark.asyncio
async def test_single_round_budget_returns_the_tool_call(registry: FunctionRegistry) -> None:
    provider = FakeProvider(_tool_call("weather-current"))
    conversation = Conversation().add_user_message("Hi")

    outcome = await complete_with_tools(
        conversation, FUNCTIONS, SETTINGS, provider.send, registry, max_rounds=1
    )

    assert outcome.status is CompletionStatus.ROUND_BUDGET_EXHAUSTED
    assert outcome.invocations == []
    assert len(conversation) == 1


@pytest.mark.asyncio
async def test_invalid_round_budget_is_rejected(registry: FunctionRegistry) -> None:
    provider = FakeProvider()
    with pytest.raises(InvalidRequestError):
        await complete_with_tools(
            Conversation(), [], SETTINGS, provider.send, registry, max_rounds=0
        )
    assert provider.requests == []


@pytest.mark.asyncio
async def test_invalid_settings_fail_before_sending(registry: FunctionRegistry) -> None:
    provider = FakeProvider(_text("unused"))
    with pytest.raises(InvalidRequestError):
        await complete_with_tools(
            Conversation().add_user_message("Hi"),
            [],
            ExecutionSettings(results_per_prompt=0),
            provider.send,
            registry,
        )
    assert provider.requests == []


@pytest.mark.asyncio
async def test_unresolved_function_still_gets_follow_up(registry: FunctionRegistry) -> None:
    provider = FakeProvider(_tool_call("search-web"), _text("I could not search."))
    conversation = Conversation().add_user_message("Search")

    outcome = await complete_with_tools(
        conversation, FUNCTIONS, SETTINGS, provider.send, registry
    )

    assert outcome.is_final
    [failure] = outcome.failures
    assert failure.kind is FailureKind.UNRESOLVED_FUNCTION
    assert len(conversation) == 1
    assert len(provider.requests) == 2


@pytest.mark.asyncio
async def test_async_iterable_response_is_collected(registry: FunctionRegistry) -> None:
    async def chunks():
        yield {"choices": [{"index": 0, "delta": {"content": "Hel"}}]}
        yield {"choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": "stop"}]}

    provider = FakeProvider(chunks())

    outcome = await complete_with_tools(
        Conversation().add_user_message("Hi"),
        [],
        ExecutionSettings(stream=True),
        provider.send,
        registry,
    )

    assert [m.content for m in outcome.messages] == ["Hello"]
    assert provider.requests[0].stream is True
