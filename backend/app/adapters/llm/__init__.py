"""
LLM Adapters - Unified interface for AI answer engines
"""

from typing import Optional

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
from .mock_adapter import MockAdapter
from .perplexity_adapter import PerplexityAdapter


def get_adapter(
    engine: str,
    api_key: Optional[str] = None,
    config: Optional[LLMConfig] = None
) -> BaseLLMAdapter:
    """
    Factory function to get the adapter for an engine.

    With USE_MOCK_ENGINE set, every engine is served by the mock adapter.

    Args:
        engine: Engine type value, e.g. "perplexity"
        api_key: Optional API key (uses env var if not provided)
        config: Optional LLM configuration

    Returns:
        Configured adapter instance

    Raises:
        ValueError: If the engine has no adapter
    """
    engine_type = EngineType(engine)

    if get_settings().USE_MOCK_ENGINE:
        return MockAdapter(engine_type, config=config)

    adapters = {
        EngineType.PERPLEXITY: PerplexityAdapter,
    }

    if engine_type not in adapters:
        raise ValueError(
            f"Engine adapter not implemented: {engine_type.value}. "
            f"Must be one of {[e.value for e in adapters]}"
        )

    return adapters[engine_type](api_key=api_key, config=config)


__all__ = [
    # Factory
    "get_adapter",
    # Base classes
    "BaseLLMAdapter",
    "LLMConfig",
    "LLMMessage",
    "LLMResponse",
    "LLMUsage",
    # Exceptions
    "LLMAdapterError",
    "LLMRateLimitError",
    "LLMAuthenticationError",
    "LLMTimeoutError",
    # Adapters
    "MockAdapter",
    "PerplexityAdapter",
]
