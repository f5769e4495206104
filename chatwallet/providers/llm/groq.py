"""Async LLM provider for Groq's OpenAI-compatible chat completion API."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from .base import (
    LLMMessage,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderRateLimitError,
    LLMResponse,
)


class GroqProvider(LLMProvider):
    """Groq chat completion provider (primary NLU model)."""

    name = "groq"

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.1-8b-instant",
        *,
        base_url: str | None = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs: Any,
    ) -> None:
        self.base_url = (base_url or "https://api.groq.com/openai").rstrip("/")
        self.timeout = timeout
        self._chat_completions_path = "/v1/chat/completions"
        super().__init__(api_key, model, transport=transport, **kwargs)

    def _setup_client(self, **kwargs: Any) -> None:
        client_kwargs: Dict[str, Any] = {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "headers": {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        }
        if kwargs.get("transport") is not None:
            client_kwargs["transport"] = kwargs["transport"]
        self._client = httpx.AsyncClient(**client_kwargs)

    async def _post(self, path: str, json: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = exc.response.text[:300]
            if status in (401, 403):
                raise LLMProviderAuthError(f"Groq authentication failed: {message}") from exc
            if status == 429:
                raise LLMProviderRateLimitError("Groq rate limit exceeded") from exc
            raise LLMProviderAPIError(f"Groq API error ({status}): {message}") from exc
        except httpx.RequestError as exc:
            raise LLMProviderAPIError(f"Groq request error: {exc}") from exc
        except ValueError as exc:
            raise LLMProviderAPIError("Groq returned a non-JSON body") from exc

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
        **kwargs: Any,
    ) -> LLMResponse:
        start_time = time.time()

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        for key, value in kwargs.items():
            if value is not None:
                payload[key] = value

        data = await self._post(self._chat_completions_path, json=payload)

        choices = data.get("choices", [])
        if not choices:
            raise LLMProviderError("Groq response missing choices")

        choice = choices[0]
        content = (choice.get("message") or {}).get("content")
        usage = data.get("usage", {})
        return LLMResponse(
            content=content if isinstance(content, str) else None,
            tokens_used=usage.get("total_tokens"),
            model=self.model,
            finish_reason=choice.get("finish_reason"),
            response_time_ms=self._measure_time(start_time),
        )

    async def close(self) -> None:
        await self._client.aclose()
