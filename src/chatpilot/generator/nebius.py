"""Nebius AI Studio response generator.

Nebius serves open models behind an OpenAI-compatible API, so this
backend uses the OpenAI SDK with a custom base_url.
"""

from __future__ import annotations

import logging

from chatpilot.generator.base import GeneratorError, ResponseGenerator

logger = logging.getLogger(__name__)

NEBIUS_BASE_URL = "https://api.studio.nebius.ai/v1/"


class NebiusGenerator(ResponseGenerator):
    """Reply generator using Nebius' chat completions API.

    Without an API key the generator reports itself unconfigured and the
    monitoring loop answers with ``stall_reply`` instead of calling out.
    """

    stall_reply = "Let me think about this for a moment."

    def __init__(
        self,
        api_key: str,
        model: str = "meta-llama/Meta-Llama-3.1-70B-Instruct",
        base_url: str | None = None,
        system_prompt: str | None = None,
        max_tokens: int = 512,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(model=model, system_prompt=system_prompt)
        self._api_key = api_key
        self._base_url = base_url or NEBIUS_BASE_URL
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        if not self._api_key:
            raise GeneratorError("Nebius API key is not set", provider="nebius")
        from openai import AsyncOpenAI
        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            timeout=self._timeout,
        )
        logger.info("Initialized Nebius client (model=%s, base_url=%s)", self._model, self._base_url)

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        await self._ensure_client()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=messages,
            )
        except Exception as e:
            raise GeneratorError(f"Nebius API call failed: {e}", provider="nebius") from e
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def list_models(self) -> list[str]:
        await self._ensure_client()
        try:
            page = await self._client.models.list()
        except Exception as e:
            raise GeneratorError(f"Failed to list Nebius models: {e}", provider="nebius") from e
        return sorted(model.id for model in page.data)

    async def health_check(self) -> bool:
        try:
            await self.list_models()
            return True
        except GeneratorError as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
