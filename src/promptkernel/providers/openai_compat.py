"""OpenAI-compatible chat completions transport."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from promptkernel.config import get_settings
from promptkernel.errors import ConfigError, ProviderError
from promptkernel.ids import current_request_id
from promptkernel.providers.request import ProviderRequest

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 429}


class OpenAIChatTransport:
    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.openai_model
        self.base_url = self._normalize_base_url(base_url or settings.openai_base_url)
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self.timeout_seconds = max(
            1, int(timeout_seconds or settings.openai_timeout_seconds)
        )
        self._transport = transport

    @staticmethod
    def _normalize_base_url(base_url: str) -> str:
        if not base_url.startswith(("http://", "https://")):
            raise ConfigError(f"OPENAI_BASE_URL must be an http(s) URL, got '{base_url}'")
        return base_url.rstrip("/")

    def _headers(self, request_id: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Request-Id": request_id}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _body(self, request: ProviderRequest) -> dict[str, Any]:
        body = request.to_payload()
        body.setdefault("model", self.model)
        return body

    @staticmethod
    def _raise_for_status(status_code: int, detail: str) -> None:
        retryable = status_code in _RETRYABLE_STATUS or status_code >= 500
        raise ProviderError(
            f"chat completions request failed with status {status_code}: {detail[:500]}",
            retryable=retryable,
        )

    async def send(self, request: ProviderRequest) -> dict[str, Any] | list[dict[str, Any]]:
        """One round trip: the response object, or every chunk when streaming."""
        if request.stream:
            return [chunk async for chunk in self.iter_chunks(request)]
        request_id = current_request_id()
        endpoint = f"{self.base_url}/chat/completions"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    endpoint, json=self._body(request), headers=self._headers(request_id)
                )
        except httpx.TimeoutException as exc:
            raise ProviderError("chat completions request timed out") from exc
        if response.status_code >= 400:
            self._raise_for_status(response.status_code, response.text)
        payload = response.json()
        if not isinstance(payload, dict):
            raise ProviderError("chat completions response is not an object", retryable=False)
        return payload

    async def iter_chunks(self, request: ProviderRequest) -> AsyncIterator[dict[str, Any]]:
        """Yield streamed chunk objects as they arrive over SSE."""
        request_id = current_request_id()
        endpoint = f"{self.base_url}/chat/completions"
        body = self._body(request)
        body["stream"] = True
        chunk_count = 0
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST",
                    endpoint,
                    headers=self._headers(request_id),
                    content=json.dumps(body),
                ) as response:
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode("utf-8", errors="replace")
                        self._raise_for_status(response.status_code, detail)
                    async for raw in response.aiter_lines():
                        if not raw:
                            continue
                        line = raw.strip()
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:") :].strip()
                        if data == "[DONE]":
                            break
                        try:
                            event = json.loads(data)
                        except json.JSONDecodeError:
                            logger.warning("Skipping undecodable stream event: %s", data[:200])
                            continue
                        if not isinstance(event, dict):
                            continue
                        chunk_count += 1
                        yield event
        except httpx.TimeoutException as exc:
            raise ProviderError("chat completions stream timed out") from exc
        logger.debug("Stream %s finished after %d chunk(s)", request_id, chunk_count)

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/models", headers=self._headers(current_request_id())
                )
            return response.status_code < 400
        except Exception:
            return False
