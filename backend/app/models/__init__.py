"""
Database Models for the citation & visibility engine
"""

from .database import (
    Base,
    # Enums
    EngineType,
    QueryRunStatus,
    MentionType,
    SentimentPolarity,
    RecommendationType,
    RecommendationPriority,
    RecommendationStatus,
    AnalysisSource,
    ContentGapType,
    # Models
    Project,
    Competitor,
    Keyword,
    QueryRun,
    QueryResult,
    Citation,
    CompetitorCitation,
    BrandMention,
    OptimizationRecommendation,
    ContentGap,
    OptimizationScore,
)

__all__ = [
    "Base",
    # Enums
    "EngineType",
    "QueryRunStatus",
    "MentionType",
    "SentimentPolarity",
    "RecommendationType",
    "RecommendationPriority",
    "RecommendationStatus",
    "AnalysisSource",
    "ContentGapType",
    # Models
    "Project",
    "Competitor",
    "Keyword",
    "QueryRun",
    "QueryResult",
    "Citation",
    "CompetitorCitation",
    "BrandMention",
    "OptimizationRecommendation",
    "ContentGap",
    "OptimizationScore",
]
