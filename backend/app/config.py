"""
Configuration management for the citation & visibility engine
Environment-based settings with safe defaults
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "citation-engine"
    APP_ENV: str = "development"  # development, staging, production
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/citation_engine"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # External reasoning service for the AI analyzer (disabled when unset)
    PERPLEXITY_API_KEY: Optional[str] = None
    PERPLEXITY_ANALYSIS_MODEL: str = "sonar"
    LLM_REQUEST_TIMEOUT: int = 60  # seconds

    # AI analyzer batching
    AI_ANALYSIS_BATCH_SIZE: int = 5
    AI_ANALYSIS_BATCH_DELAY_SECONDS: float = 2.0
    AI_ANALYSIS_DEFAULT_IMPACT: float = 15.0
    AI_ANALYSIS_MAX_TOKENS: int = 1024
    AI_ANALYSIS_TEMPERATURE: float = 0.1

    # Mention detection
    MENTION_CONTEXT_WINDOW: int = 100  # characters before/after a match
    FUZZY_MAX_DISTANCE: int = 2
    FUZZY_MIN_NAME_LENGTH: int = 5
    FUZZY_MATCH_CONFIDENCE: float = 0.7
    DOMAIN_MENTION_CONFIDENCE: float = 0.9

    # Scoring
    CONFIDENCE_SAMPLE_SIZE: int = 5  # runs needed before confidence is undamped
    PROMINENCE_DECAY_PER_POSITION: float = 0.1
    UNRANKED_PROMINENCE: float = 0.5

    # Rule engine
    LOW_PROMINENCE_POSITION: int = 4
    HIGH_WEIGHT_ENGINE_THRESHOLD: float = 1.5

    # Test fixtures
    USE_MOCK_ENGINE: bool = False

    @property
    def ai_analysis_enabled(self) -> bool:
        return bool(self.PERPLEXITY_API_KEY)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()


# Engine importance weights for the visibility score
ENGINE_WEIGHTS = {
    "google_ai_overview": 1.5,  # Largest audience
    "perplexity": 1.0,          # Citation-focused, high value for GEO
    "chatgpt": 0.8,
    "bing_copilot": 0.6,
    "claude": 0.5,
}

DEFAULT_ENGINE_WEIGHT = 1.0

# Sentiment lexicon (matched on word boundaries, case-insensitive)
POSITIVE_CUES = [
    "best", "recommended", "recommend", "excellent", "top choice", "leading",
    "great", "popular", "trusted", "reliable", "innovative", "powerful",
    "highly rated", "top-rated", "outstanding", "go-to",
]

NEGATIVE_CUES = [
    "expensive", "complicated", "poor", "worse than", "worst", "avoid",
    "outdated", "unreliable", "limited", "lacks", "downside", "drawback",
    "overpriced", "buggy", "difficult",
]

# Negation words that flip a cue found right after them
NEGATION_WORDS = ["not", "no", "never", "hardly", "isn't", "aren't", "doesn't", "don't"]

# Base estimated impact (percentage points) by recommendation type
RECOMMENDATION_BASE_IMPACT = {
    "create_content": 15,
    "add_comparison": 12,
    "update_content": 10,
    "improve_authority": 7,
    "improve_structure": 6,
    "add_schema": 5,
    "optimize_citations": 5,
}
