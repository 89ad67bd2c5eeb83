"""
Perplexity Adapter
Citation-rich answers, also used as the reasoning service for AI analysis
"""

from typing import List, Optional

import httpx

from app.config import get_settings
from app.models import EngineType
from .base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMUsage,
    LLMAdapterError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMTimeoutError,
)


class PerplexityAdapter(BaseLLMAdapter):
    """
    Adapter for Perplexity API
    Perplexity natively returns the source URLs behind each answer.
    """

    API_BASE = "https://api.perplexity.ai"

    def __init__(self, api_key: Optional[str] = None, config: Optional[LLMConfig] = None):
        settings = get_settings()
        super().__init__(api_key or settings.PERPLEXITY_API_KEY, config)
        self._model = settings.PERPLEXITY_ANALYSIS_MODEL
        self._timeout = settings.LLM_REQUEST_TIMEOUT

    @property
    def provider(self) -> EngineType:
        return EngineType.PERPLEXITY

    @property
    def default_model(self) -> str:
        return self._model

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Execute a chat conversation"""
        cfg = config or self.config or LLMConfig(model=self.default_model, timeout=self._timeout)

        # OpenAI-compatible request format
        payload = {
            "model": cfg.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            "return_citations": True,
            "return_related_questions": False,
        }

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=cfg.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/chat/completions",
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException:
            raise LLMTimeoutError(
                f"Request timed out after {cfg.timeout}s",
                self.provider,
            )
        except httpx.RequestError as e:
            raise LLMAdapterError(
                f"Request failed: {str(e)}",
                self.provider,
            )

        if response.status_code == 401:
            raise LLMAuthenticationError(
                "Invalid API key",
                self.provider,
                {"status_code": response.status_code}
            )
        elif response.status_code == 429:
            raise LLMRateLimitError(
                "Rate limit exceeded",
                self.provider,
                {"status_code": response.status_code}
            )
        elif response.status_code != 200:
            raise LLMAdapterError(
                f"API error: {response.text}",
                self.provider,
                {"status_code": response.status_code, "response": response.text}
            )

        data = response.json()
        choices = data.get("choices") or [{}]
        choice = choices[0]
        usage_data = data.get("usage", {})

        usage = LLMUsage(
            prompt_tokens=usage_data.get("prompt_tokens", 0),
            completion_tokens=usage_data.get("completion_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0),
        )

        return LLMResponse(
            content=(choice.get("message") or {}).get("content") or "",
            raw_response=data,
            provider=self.provider,
            model=data.get("model", cfg.model),
            usage=usage,
            citations=data.get("citations", []),
        )
