"""Tests for the OllamaGenerator backend."""

from __future__ import annotations

import json

import httpx
import pytest

from chatpilot.domain.models import OcrContext
from chatpilot.generator.base import GeneratorError
from chatpilot.generator.ollama import OllamaGenerator


def make_generator(handler) -> OllamaGenerator:
    return OllamaGenerator(model="qwen2.5", transport=httpx.MockTransport(handler))


class TestOllamaGenerator:
    def test_init_defaults(self) -> None:
        generator = OllamaGenerator()
        assert generator.model == "qwen2.5"
        assert generator._base_url == "http://localhost:11434"
        assert generator.is_configured is True

    def test_stall_reply(self) -> None:
        assert OllamaGenerator.stall_reply.startswith("I'm still thinking")

    async def test_generate_posts_chat_request(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "Sure!"}})

        generator = make_generator(handler)
        reply = await generator.generate("coffee?", [], OcrContext(text="coffee?"))
        await generator.close()

        assert reply == "Sure!"
        assert requests[0].url.path == "/api/chat"
        body = json.loads(requests[0].content)
        assert body["model"] == "qwen2.5"
        assert body["stream"] is False
        assert body["messages"][-1] == {"role": "user", "content": "coffee?"}

    async def test_http_error_raises_generator_error(self) -> None:
        generator = make_generator(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(GeneratorError) as exc_info:
            await generator.generate("hi", [], OcrContext(text="hi"))
        assert exc_info.value.provider == "ollama"

    async def test_error_payload_raises(self) -> None:
        generator = make_generator(
            lambda request: httpx.Response(200, json={"error": "model 'x' not found"})
        )
        with pytest.raises(GeneratorError, match="not found"):
            await generator.generate("hi", [], OcrContext(text="hi"))

    async def test_list_models(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "qwen2.5"}, {"name": "llama3"}]})

        generator = make_generator(handler)
        assert await generator.list_models() == ["qwen2.5", "llama3"]

    async def test_health_check(self) -> None:
        healthy = make_generator(lambda request: httpx.Response(200, json={"models": []}))
        down = make_generator(lambda request: httpx.Response(503))
        assert await healthy.health_check() is True
        assert await down.health_check() is False
