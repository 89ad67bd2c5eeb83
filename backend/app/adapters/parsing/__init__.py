"""
Response Parsing Adapters
"""

from .brand_matcher import BrandMatcher, DetectedMention, MentionQuery, detect_brand_mentions
from .citation_extractor import (
    CitationExtractor,
    ClassifiedCitation,
    CompetitorDomain,
    ExtractedCitation,
    classify_citations,
    extract_citations,
)
from .sentiment_analyzer import SentimentAnalyzer, SentimentResult, analyze_sentiment

__all__ = [
    "BrandMatcher",
    "DetectedMention",
    "MentionQuery",
    "detect_brand_mentions",
    "CitationExtractor",
    "ClassifiedCitation",
    "CompetitorDomain",
    "ExtractedCitation",
    "classify_citations",
    "extract_citations",
    "SentimentAnalyzer",
    "SentimentResult",
    "analyze_sentiment",
]
