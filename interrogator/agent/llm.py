"""
Text generation transports: OpenAI, Hugging Face router, and local Ollama.

The detective uses OpenAI or Hugging Face for question generation and answer
analysis; the retrieval witness uses Ollama to phrase answers from retrieved
chunks. Failures raise TransportError / AuthorizationError; nothing here retries.
"""

import logging
from typing import Protocol

import httpx
import openai
from openai import AsyncOpenAI

from interrogator.core.config import (
    GENERATION_API_TIMEOUT,
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OLLAMA_BASE_URL,
    OLLAMA_GENERATION_MODEL,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)
from interrogator.core.errors import AuthorizationError, ConfigurationError, TransportError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, max_tokens: int = 256, temperature: float | None = None) -> str:
        ...


def _raise_for_status(response: httpx.Response, service: str) -> None:
    if response.status_code in (401, 403):
        raise AuthorizationError(f"Unauthorized: {service} rejected the API key", response.status_code)
    if response.status_code >= 400:
        raise TransportError(f"{service} request failed: {response.text[:200]}", response.status_code)


class OpenAIGenerator:
    """OpenAI chat completions, single user message."""

    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = OPENAI_LLM_MODEL, client: AsyncOpenAI | None = None) -> None:
        if not api_key and client is None:
            raise ConfigurationError("OPENAI_API_KEY is required for the openai provider")
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=LLM_API_TIMEOUT)

    async def generate(self, prompt: str, max_tokens: int = 256, temperature: float | None = None) -> str:
        logger.info("[llm:openai] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
        kwargs = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                **kwargs,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AuthorizationError(f"Unauthorized: OpenAI rejected the API key: {e}", e.status_code) from e
        except openai.APIStatusError as e:
            raise TransportError(f"OpenAI request failed: {e}", e.status_code) from e
        except openai.APIError as e:
            raise TransportError(f"OpenAI request failed: {e}") from e
        msg = response.choices[0].message if response.choices else None
        out = ((msg.content if msg else None) or "").strip()
        logger.info("[llm:openai] OUT response_len=%d", len(out))
        return out


class HuggingFaceGenerator:
    """Hugging Face router chat completions (OpenAI-compatible JSON)."""

    def __init__(
        self,
        api_key: str = HF_API_KEY,
        model: str = HF_LLM_MODEL,
        url: str = HF_CHAT_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("HF_API_KEY is required for the huggingface provider")
        self.api_key = api_key
        self.model = model
        self.url = url
        self._transport = transport

    async def generate(self, prompt: str, max_tokens: int = 256, temperature: float | None = None) -> str:
        logger.info("[llm:hf] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        try:
            async with httpx.AsyncClient(timeout=LLM_API_TIMEOUT, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Hugging Face request failed: {e}") from e
        _raise_for_status(response, "Hugging Face")
        choices = response.json().get("choices") or []
        out = ""
        if choices and isinstance(choices[0], dict):
            out = ((choices[0].get("message") or {}).get("content") or "").strip()
        logger.info("[llm:hf] OUT response_len=%d", len(out))
        return out


class OllamaGenerator:
    """Local Ollama /api/generate, non-streaming."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = OLLAMA_GENERATION_MODEL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._transport = transport

    async def generate(self, prompt: str, max_tokens: int = 1000, temperature: float | None = None) -> str:
        logger.info("[llm:ollama] IN  model=%s prompt_len=%d", self.model, len(prompt))
        options: dict = {"num_predict": max_tokens}
        if temperature is not None:
            options["temperature"] = temperature
        payload = {"model": self.model, "prompt": prompt, "stream": False, "options": options}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=GENERATION_API_TIMEOUT, transport=self._transport
            ) as client:
                response = await client.post("/api/generate", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Ollama request failed: {e}") from e
        _raise_for_status(response, "Ollama")
        out = (response.json().get("response") or "").strip()
        logger.info("[llm:ollama] OUT response_len=%d", len(out))
        return out


def build_generator(provider: str = "auto") -> TextGenerator | None:
    """
    Detective LLM for the given provider.

    "openai" / "huggingface" require their API key (ConfigurationError otherwise).
    "auto" prefers OpenAI when OPENAI_API_KEY is set, else Hugging Face, else
    returns None and the detective runs on its fixed questions and heuristics.
    """
    if provider == "openai":
        return OpenAIGenerator()
    if provider == "huggingface":
        return HuggingFaceGenerator()
    if provider == "auto":
        if OPENAI_API_KEY:
            return OpenAIGenerator()
        if HF_API_KEY:
            return HuggingFaceGenerator()
        logger.warning("[llm] no detective LLM configured; using heuristic questioning")
        return None
    raise ConfigurationError(f"Unknown detective provider: {provider}")
