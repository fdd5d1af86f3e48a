#!/usr/bin/env python3
"""
LLM transport - Anthropic Messages API or a local Ollama server.

Configuration problems (missing key, 401/403) and non-200 responses raise
typed errors. Network failures and timeouts are left untyped so the
pipeline can classify them by stage.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .constants import DEFAULTS
from .errors import LLMError, LLMNotAvailableError
from .models import TokenUsage

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
AVAILABILITY_TIMEOUT = 5


@dataclass
class LLMResponse:
    content: str
    tokens: Optional[TokenUsage] = None


class LLMClient:
    """Async client for one provider/model pair"""

    def __init__(
        self,
        provider: str = DEFAULTS["llm_provider"],
        model: str = DEFAULTS["llm_model"],
        timeout: float = DEFAULTS["llm_timeout"],
        max_tokens: int = DEFAULTS["llm_max_tokens"],
        ollama_host: str = DEFAULTS["ollama_host"],
        api_key: Optional[str] = None,
        temperature: float = 0.2,
    ):
        self.provider = provider
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.ollama_host = ollama_host.rstrip("/")
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.temperature = temperature

    @classmethod
    def from_config(cls, config) -> "LLMClient":
        llm = config.llm
        return cls(
            provider=llm.provider,
            model=llm.model,
            timeout=llm.timeout,
            max_tokens=llm.max_tokens,
            ollama_host=llm.ollama_host,
            api_key=llm.api_key,
        )

    async def ask(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        """Send one prompt and return the text reply."""
        logger.debug(f"🤖 LLM request ({self.provider}/{self.model}), prompt {len(prompt)} chars")
        if self.provider == "anthropic":
            response = await self._ask_anthropic(prompt, system)
        elif self.provider == "ollama":
            response = await self._ask_ollama(prompt, system)
        else:
            raise LLMNotAvailableError(f"Unsupported LLM provider: {self.provider}")
        if response.tokens:
            logger.debug(f"LLM tokens: {response.tokens.input} in / {response.tokens.output} out")
        return response

    async def _ask_anthropic(self, prompt: str, system: Optional[str]) -> LLMResponse:
        if not self.api_key:
            raise LLMNotAvailableError("ANTHROPIC_API_KEY is not set")

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system

        timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout_obj) as session:
            async with session.post(ANTHROPIC_URL, headers=headers, json=payload) as resp:
                if resp.status in (401, 403):
                    error_text = await resp.text()
                    raise LLMNotAvailableError(f"Anthropic API rejected credentials ({resp.status}): {error_text}")
                if resp.status != 200:
                    error_text = await resp.text()
                    raise LLMError(f"Anthropic API error {resp.status}: {error_text}")
                data = await resp.json()

        blocks = data.get("content", []) if isinstance(data, dict) else []
        text = "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")
        usage = data.get("usage") if isinstance(data, dict) else None
        tokens = None
        if usage:
            tokens = TokenUsage(input=usage.get("input_tokens", 0), output=usage.get("output_tokens", 0))
        return LLMResponse(content=text, tokens=tokens)

    async def _ask_ollama(self, prompt: str, system: Optional[str]) -> LLMResponse:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        if system:
            payload["system"] = system

        timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout_obj) as session:
            async with session.post(f"{self.ollama_host}/api/generate", json=payload) as resp:
                if resp.status == 404:
                    error_text = await resp.text()
                    raise LLMNotAvailableError(f"Ollama model not available: {error_text}")
                if resp.status != 200:
                    error_text = await resp.text()
                    raise LLMError(f"Ollama error {resp.status}: {error_text}")
                data = await resp.json()

        text = data.get("response", "") if isinstance(data, dict) else str(data)
        tokens = None
        if isinstance(data, dict) and "prompt_eval_count" in data:
            tokens = TokenUsage(input=data.get("prompt_eval_count", 0), output=data.get("eval_count", 0))
        return LLMResponse(content=text, tokens=tokens)

    async def check_availability(self) -> bool:
        """True when the provider looks usable (key present / Ollama reachable)."""
        if self.provider == "anthropic":
            return bool(self.api_key)
        if self.provider == "ollama":
            try:
                timeout_obj = aiohttp.ClientTimeout(total=AVAILABILITY_TIMEOUT)
                async with aiohttp.ClientSession(timeout=timeout_obj) as session:
                    async with session.get(f"{self.ollama_host}/api/tags") as resp:
                        return resp.status == 200
            except (aiohttp.ClientError, OSError) as e:
                logger.debug(f"Ollama not reachable at {self.ollama_host}: {e}")
                return False
            except asyncio.TimeoutError:
                return False
        return False
