"""
Base adapter for answer engines and the reasoning service
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.models import EngineType


@dataclass
class LLMConfig:
    """Per-request model settings"""
    model: str
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: int = 60  # seconds


@dataclass
class LLMMessage:
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class LLMResponse:
    """One completed answer"""
    content: str
    raw_response: Dict[str, Any]
    provider: EngineType
    model: str
    usage: Optional[LLMUsage] = None
    # Source URLs the engine reported alongside the answer
    citations: List[str] = field(default_factory=list)


class BaseLLMAdapter(ABC):
    """
    An engine that answers chat messages.

    Subclasses implement execute_chat; execute wraps a single prompt.
    """

    def __init__(self, api_key: Optional[str], config: Optional[LLMConfig] = None):
        self.api_key = api_key
        self.config = config

    @property
    @abstractmethod
    def provider(self) -> EngineType:
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        pass

    @abstractmethod
    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """
        Send a conversation and return the engine's answer.

        Raises:
            LLMAdapterError: on transport or API failure
        """

    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Send a single user prompt"""
        return await self.execute_chat([LLMMessage(role="user", content=prompt)], config)


class LLMAdapterError(Exception):
    """Engine call failed"""
    def __init__(self, message: str, provider: EngineType, details: Optional[Dict] = None):
        super().__init__(message)
        self.provider = provider
        self.details = details or {}


class LLMRateLimitError(LLMAdapterError):
    pass


class LLMAuthenticationError(LLMAdapterError):
    pass


class LLMTimeoutError(LLMAdapterError):
    pass
