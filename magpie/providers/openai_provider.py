"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

import openai
from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from magpie.models import Message
from magpie.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK. Also serves OpenAI-compatible endpoints via base_url."""

    def __init__(self, config: ProviderConfig, model: str) -> None:
        self._config = config
        self._model = model
        api_key = os.environ.get(config.api_key_env or "", "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, timeout=config.timeout_sec)

    def name(self) -> str:
        return self._config.name

    @staticmethod
    def _payload(messages: list[Message], system_prompt: str | None) -> list[dict]:
        payload = [{"role": "system", "content": system_prompt}] if system_prompt else []
        payload.extend({"role": m.role, "content": m.content} for m in messages)
        return payload

    async def chat(self, messages: list[Message], system_prompt: str | None = None) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=self._payload(messages, system_prompt),
                    max_completion_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        logger.info("OpenAI %s: %.2fs", self._model, time.monotonic() - start)
        return choice.message.content

    async def chat_stream(
        self, messages: list[Message], system_prompt: str | None = None
    ) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=self._payload(messages, system_prompt),
                max_completion_tokens=self._config.max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APITimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except openai.APIError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
