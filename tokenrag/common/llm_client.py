"""
Provider-agnostic LLM client for TokenRAG pipelines.

Supports OpenAI and Anthropic chat completions behind one message-based
interface.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from .errors import ConfigurationError, ProviderError

logger = logging.getLogger("tokenrag.common.llm_client")

_PROVIDERS = ("openai", "anthropic")


@dataclass
class Completion:
    """Generated text plus provider-reported token usage"""
    text: str
    tokens_used: int = 0


class LLMClient:
    """Unified chat completion client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self._api_key = {"openai": openai_api_key, "anthropic": anthropic_api_key}.get(self.provider)
        self._client = None

        if self.provider not in _PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
        elif not self._api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
        else:
            self._client = self._build_client()

    def _build_client(self):
        if self.provider == "anthropic":
            return AsyncAnthropic(api_key=self._api_key, max_retries=0)
        return AsyncOpenAI(api_key=self._api_key, max_retries=0)

    @property
    def is_configured(self) -> bool:
        return self.provider in _PROVIDERS and bool(self._api_key)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """(Re)open the provider client after stop()"""
        if self._client is None and self.is_configured:
            self._client = self._build_client()
            logger.info("LLM client started (provider=%s, model=%s)", self.provider, self.model)

    async def stop(self) -> None:
        """Close the provider client; start() opens a new one"""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def generate(
        self,
        messages: List[Dict[str, str]],
        *,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        top_p: float = 0.9,
        presence_penalty: float = 0.1,
        frequency_penalty: float = 0.1,
        timeout: float = 60.0,
    ) -> Completion:
        """
        Run one chat completion.

        Args:
            messages: Ordered role/content dicts; a leading system message is allowed
            max_tokens: Completion token cap
            temperature: Sampling temperature
            top_p: Nucleus sampling, OpenAI only
            presence_penalty: OpenAI only
            frequency_penalty: OpenAI only
            timeout: Request timeout in seconds

        Returns:
            Completion with the first choice's text and total tokens used
        """
        if not self.is_available:
            raise ConfigurationError("LLM client is not available")

        if self.provider == "openai":
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    top_p=top_p,
                    presence_penalty=presence_penalty,
                    frequency_penalty=frequency_penalty,
                    timeout=timeout,
                )
            except openai.OpenAIError as e:
                raise ProviderError(f"Completion provider error: {e}", provider="openai") from e

            if not response.choices or not response.choices[0].message.content:
                raise ProviderError("No response generated", provider="openai")

            usage = getattr(response, "usage", None)
            return Completion(
                text=response.choices[0].message.content.strip(),
                tokens_used=getattr(usage, "total_tokens", 0) or 0,
            )

        if self.provider == "anthropic":
            system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
            turns = [m for m in messages if m["role"] != "system"]
            kwargs = {}
            if system:
                kwargs["system"] = system
            try:
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=turns,
                    timeout=timeout,
                    **kwargs,
                )
            except anthropic.AnthropicError as e:
                raise ProviderError(f"Completion provider error: {e}", provider="anthropic") from e

            text = "".join(
                block.text for block in (response.content or []) if getattr(block, "type", "") == "text"
            )
            if not text:
                raise ProviderError("No response generated", provider="anthropic")

            usage = getattr(response, "usage", None)
            tokens = 0
            if usage is not None:
                tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0)
            return Completion(text=text.strip(), tokens_used=tokens)

        raise ConfigurationError(f"Unsupported LLM provider: {self.provider}")
