"""
Business Logic Services
"""

from .scoring_engine import (
    calculate_citation_confidence,
    calculate_prominence_score,
    calculate_share_of_voice,
    calculate_trend,
    calculate_visibility_score,
)
from .score_calculator import calculate_optimization_score
from .rule_engine import analyze_with_rules
from .ai_analyzer import AiAnalyzer, analyze_with_ai
from .data_loader import OptimizationDataLoader
from .citation_service import CitationService
from .optimization_store import OptimizationStore

__all__ = [
    "calculate_citation_confidence",
    "calculate_prominence_score",
    "calculate_share_of_voice",
    "calculate_trend",
    "calculate_visibility_score",
    "calculate_optimization_score",
    "analyze_with_rules",
    "AiAnalyzer",
    "analyze_with_ai",
    "OptimizationDataLoader",
    "CitationService",
    "OptimizationStore",
]
