"""Shared fixtures: settings builders and a scripted stand-in for the OpenAI API."""

import asyncio
import json
from typing import Any, Callable, List

import httpx
import pytest

from generate_proxy.features.generate.client import OpenAIClient
from generate_proxy.features.generate.handler import GenerateHandler
from generate_proxy.shared.config import OpenAIConfig, Settings

TEST_API_KEY = "sk-test-0123456789abcdef"


def completion_body(content: str = "Hello there!", model: str = "gpt-4o-mini") -> dict:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 9, "completion_tokens": 3, "total_tokens": 12},
    }


def make_settings(api_key: str | None = TEST_API_KEY, **openai_overrides: Any) -> Settings:
    return Settings(openai=OpenAIConfig(api_key=api_key, **openai_overrides))


class FakeUpstream:
    """Records every request and answers with whatever the test scripted."""

    def __init__(self, responder: Callable[[httpx.Request], Any]):
        self.responder = responder
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self.responder(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream(lambda request: httpx.Response(200, json=completion_body()))


@pytest.fixture
def run_handler(settings: Settings, upstream: FakeUpstream):
    """Runs GenerateHandler.handle against the fake upstream."""

    def _run(method: str, body: Any = None, *, settings_: Settings | None = None):
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        effective = settings_ or settings

        async def _go():
            async with httpx.AsyncClient(transport=upstream.transport) as http_client:
                handler = GenerateHandler(effective, OpenAIClient(http_client, effective.openai))
                return await handler.handle(method, body)

        return asyncio.run(_go())

    return _run
