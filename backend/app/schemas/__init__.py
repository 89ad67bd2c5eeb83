"""
Pydantic Schemas for payload validation and read models
"""

from .optimization import (
    AiRecommendationPayload,
    OptimizationScoreResponse,
    RecommendationSummary,
    ScoreTrendResponse,
)

__all__ = [
    "AiRecommendationPayload",
    "OptimizationScoreResponse",
    "RecommendationSummary",
    "ScoreTrendResponse",
]
