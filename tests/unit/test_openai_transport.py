import json

import httpx
import pytest

from promptkernel.chat.messages import Conversation
from promptkernel.chat.settings import ExecutionSettings
from promptkernel.errors import ConfigError, ProviderError
from promptkernel.logging import bound_context
from promptkernel.providers.openai_compat import OpenAIChatTransport
from promptkernel.providers.request import build_request


def _request(**settings):
    conversation = Conversation().add_user_message("hi")
    return build_request(conversation, [], ExecutionSettings(**settings))


@pytest.mark.asyncio
async def test_send_posts_chat_completion() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["X-Request-Id"].startswith("req_")
        payload = json.loads(request.content.decode("utf-8"))
        assert payload["model"] == "test-model"
        assert payload["messages"] == [{"role": "user", "content": "hi"}]
        assert payload["n"] == 1
        assert "stream" not in payload
        return httpx.Response(
            200, json={"id": "chatcmpl-1", "choices": [{"message": {"content": "hello"}}]}
        )

    transport = OpenAIChatTransport(transport=httpx.MockTransport(handler))
    response = await transport.send(_request())
    assert response == {"id": "chatcmpl-1", "choices": [{"message": {"content": "hello"}}]}


@pytest.mark.asyncio
async def test_request_model_overrides_transport_model() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content.decode("utf-8"))["model"])
        return httpx.Response(200, json={"choices": []})

    transport = OpenAIChatTransport("default-model", transport=httpx.MockTransport(handler))
    await transport.send(_request(model_id="pinned-model"))
    await transport.send(_request())
    assert seen == ["pinned-model", "default-model"]


@pytest.mark.asyncio
async def test_stream_collects_sse_chunks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content.decode("utf-8"))
        assert payload["stream"] is True
        return httpx.Response(
            200,
            text="\n\n".join(
                [
                    'data: {"choices":[{"index":0,"delta":{"content":"Hel"}}]}',
                    ": keep-alive",
                    "data: not-json",
                    'data: {"choices":[{"index":0,"delta":{"content":"lo"}}]}',
                    "data: [DONE]",
                    'data: {"choices":[{"index":0,"delta":{"content":"ignored"}}]}',
                    "",
                ]
            ),
        )

    transport = OpenAIChatTransport(transport=httpx.MockTransport(handler))
    chunks = await transport.send(_request(stream=True))
    assert [chunk["choices"][0]["delta"]["content"] for chunk in chunks] == ["Hel", "lo"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "retryable"),
    [(408, True), (429, True), (503, True), (400, False), (409, False)],
)
async def test_error_status_raises_provider_error(status: int, retryable: bool) -> None:
    transport = OpenAIChatTransport(
        transport=httpx.MockTransport(lambda request: httpx.Response(status, text="nope"))
    )
    with pytest.raises(ProviderError) as exc_info:
        await transport.send(_request())
    assert exc_info.value.retryable is retryable
    assert str(status) in str(exc_info.value)


@pytest.mark.asyncio
async def test_stream_error_status_raises_provider_error() -> None:
    transport = OpenAIChatTransport(
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    )
    with pytest.raises(ProviderError, match="status 500"):
        await transport.send(_request(stream=True))


@pytest.mark.asyncio
async def test_timeout_raises_retryable_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    transport = OpenAIChatTransport(transport=httpx.MockTransport(handler))
    with pytest.raises(ProviderError) as exc_info:
        await transport.send(_request())
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_health_check() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": []})
        return httpx.Response(404)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert await OpenAIChatTransport(transport=httpx.MockTransport(handler)).health_check()
    assert not await OpenAIChatTransport(transport=httpx.MockTransport(unreachable)).health_check()


def test_base_url_is_normalized() -> None:
    transport = OpenAIChatTransport(base_url="http://other.local/v1/")
    assert transport.base_url == "http://other.local/v1"
    assert transport.model == "test-model"


def test_base_url_without_scheme_is_a_config_error() -> None:
    with pytest.raises(ConfigError, match="OPENAI_BASE_URL"):
        OpenAIChatTransport(base_url="llm.local/v1")


@pytest.mark.asyncio
async def test_request_id_header_matches_log_context() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["X-Request-Id"])
        return httpx.Response(200, json={"choices": []})

    transport = OpenAIChatTransport(transport=httpx.MockTransport(handler))
    with bound_context(request_id="req_abc"):
        await transport.send(_request())
    assert seen == ["req_abc"]
