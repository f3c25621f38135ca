"""
OpenAI-compatible Providers
===========================

aiohttp clients for any server speaking the OpenAI REST dialect
(OpenAI, OpenRouter, vLLM, Ollama's /v1 endpoint, ...).

Usage:
    embedder = OpenAICompatibleEmbedder(ProviderConfig(model="text-embedding-3-small"))
    llm = OpenAICompatibleLLM(ProviderConfig(model="gpt-4o-mini"))

    vector = await embedder.embed("Alice works on Project Alpha")
    answer = await llm.generate("Summarize ...")

    await embedder.close()
    await llm.close()

Environment Variables:
    AGENTKG_LLM_BASE_URL: API base url (default: https://api.openai.com/v1)
    AGENTKG_LLM_API_KEY: Bearer token (falls back to OPENAI_API_KEY)
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import structlog

from agentkg.errors import UpstreamError
from agentkg.providers.base import EmbeddingProvider, LLMProvider

log = structlog.get_logger()


def _default_api_key() -> Optional[str]:
    return os.environ.get("AGENTKG_LLM_API_KEY") or os.environ.get("OPENAI_API_KEY") or None


@dataclass
class ProviderConfig:
    """Connection settings for an OpenAI-compatible endpoint."""
    model: str
    base_url: str = field(
        default_factory=lambda: os.environ.get("AGENTKG_LLM_BASE_URL", "https://api.openai.com/v1")
    )
    api_key: Optional[str] = field(default_factory=_default_api_key)
    timeout_seconds: float = 30.0
    temperature: float = 0.0
    max_tokens: int = 2048


class _OpenAICompatibleClient:
    """Shared session handling and POST helper."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            )
        return self.session

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        url = f"{self.config.base_url.rstrip('/')}/{path}"
        try:
            async with session.post(url, json=payload, headers=self._headers()) as response:
                if response.status != 200:
                    error_text = await response.text()
                    log.error(f"Provider API error {response.status}: {error_text}", url=url)
                    raise UpstreamError(f"Provider API error: {response.status} - {error_text}")
                return await response.json()
        except aiohttp.ClientError as e:
            raise UpstreamError(f"Provider request failed: {e}") from e


class OpenAICompatibleEmbedder(_OpenAICompatibleClient, EmbeddingProvider):
    """Embeddings via POST /embeddings."""

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        data = await self._post("embeddings", {"model": self.config.model, "input": list(texts)})
        items = data.get("data") or []
        if len(items) != len(texts):
            raise UpstreamError(f"Expected {len(texts)} embeddings, got {len(items)}")
        # Servers may return items out of order; "index" is authoritative
        items = sorted(items, key=lambda item: item.get("index", 0))
        log.debug(f"Embedded {len(texts)} texts", model=self.config.model)
        return [item["embedding"] for item in items]


class OpenAICompatibleLLM(_OpenAICompatibleClient, LLMProvider):
    """Completions via POST /chat/completions."""

    def __init__(self, config: ProviderConfig, system_prompt: Optional[str] = None):
        super().__init__(config)
        self.system_prompt = system_prompt
        self._last_usage: Dict[str, int] = {}

    def get_last_usage(self) -> Dict[str, int]:
        """Get usage data from the last API call."""
        return self._last_usage.copy()

    async def generate(self, prompt: str) -> str:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

        log.info(f"Generating completion with model: {self.config.model}")
        data = await self._post("chat/completions", payload)

        if "choices" not in data or not data["choices"]:
            log.error(f"Invalid completion response: {data}")
            raise UpstreamError("Invalid response from completion API")

        completion = data["choices"][0]["message"]["content"] or ""

        usage = data.get("usage", {})
        self._last_usage = {
            "total_tokens": usage.get("total_tokens", 0),
            "prompt_tokens": usage.get("prompt_tokens", 0),
            "completion_tokens": usage.get("completion_tokens", 0),
        }
        log.info(
            f"Generated completion ({len(completion)} chars, "
            f"{self._last_usage['total_tokens']} tokens)"
        )
        return completion
