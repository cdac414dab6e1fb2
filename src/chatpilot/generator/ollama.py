"""Ollama response generator.

Talks to a local Ollama server over its HTTP API. No API key is
needed, so the generator is always configured.
"""

from __future__ import annotations

import logging

import httpx

from chatpilot.generator.base import GeneratorError, ResponseGenerator

logger = logging.getLogger(__name__)


class OllamaGenerator(ResponseGenerator):
    """Reply generator backed by a local Ollama model.

    Example usage::

        generator = OllamaGenerator(model="qwen2.5")
        reply = await generator.generate(message, history, context)
    """

    stall_reply = "I'm still thinking about your last message. I'll respond in a moment."

    def __init__(
        self,
        model: str = "qwen2.5",
        base_url: str = "http://localhost:11434",
        system_prompt: str | None = None,
        max_tokens: int = 512,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(model=model, system_prompt=system_prompt)
        self._base_url = base_url.rstrip("/")
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
            logger.info("Initialized Ollama client (model=%s, base_url=%s)", self._model, self._base_url)
        return self._client

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        client = self._ensure_client()
        payload = {
            "model": self._model,
            "messages": messages,
            "stream": False,
            "options": {"num_predict": self._max_tokens},
        }
        try:
            resp = await client.post("/api/chat", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise GeneratorError(f"Ollama request failed: {e}", provider="ollama") from e
        except ValueError as e:
            raise GeneratorError(f"Ollama returned invalid JSON: {e}", provider="ollama") from e

        if data.get("error"):
            raise GeneratorError(f"Ollama error: {data['error']}", provider="ollama")
        return (data.get("message") or {}).get("content", "")

    async def list_models(self) -> list[str]:
        client = self._ensure_client()
        try:
            resp = await client.get("/api/tags")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeneratorError(f"Failed to list Ollama models: {e}", provider="ollama") from e
        return [m["name"] for m in data.get("models", []) if m.get("name")]

    async def health_check(self) -> bool:
        try:
            await self.list_models()
            return True
        except GeneratorError as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
