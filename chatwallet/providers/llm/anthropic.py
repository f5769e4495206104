from typing import List, Optional
import time

import anthropic
from anthropic import AsyncAnthropic

from .base import (
    LLMProvider, LLMMessage, LLMResponse,
    LLMProviderAPIError, LLMProviderAuthError, LLMProviderRateLimitError,
)


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider, used as the NLU fallback"""

    name = "anthropic"

    def __init__(self, api_key: str, model: Optional[str] = None, **kwargs):
        if not model:
            raise ValueError("AnthropicProvider requires a model to be specified")
        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs) -> None:
        self.client = kwargs.get("client") or AsyncAnthropic(api_key=self.api_key)

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
        **kwargs
    ) -> LLMResponse:
        start_time = time.time()
        system_message, conversation = self._split_system(messages)

        request_params = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in conversation],
            "max_tokens": max_tokens or 1000,
        }
        if system_message:
            request_params["system"] = system_message
        if temperature is not None:
            request_params["temperature"] = temperature
        request_params.update(kwargs)

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.AuthenticationError as e:
            raise LLMProviderAuthError(f"Authentication failed: {e}") from e
        except anthropic.RateLimitError as e:
            raise LLMProviderRateLimitError(f"Rate limit exceeded: {e}") from e
        except anthropic.APIError as e:
            raise LLMProviderAPIError(f"API error: {e}") from e

        content = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", None) == "text"
        )
        usage = getattr(response, "usage", None)

        return LLMResponse(
            content=content or None,
            tokens_used=getattr(usage, "output_tokens", None),
            model=self.model,
            finish_reason=getattr(response, "stop_reason", None),
            response_time_ms=self._measure_time(start_time),
        )
