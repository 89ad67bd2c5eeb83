"""
Optimization analysis read model and output shapes
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models import (
    AnalysisSource,
    ContentGapType,
    EngineType,
    RecommendationPriority,
    RecommendationType,
)


# Analysis context (input to the analyzers)

@dataclass
class ProjectContext:
    id: str
    domain: str
    brand_name: str
    brand_aliases: List[str] = field(default_factory=list)


@dataclass
class KeywordContext:
    id: str
    keyword: str
    category: Optional[str] = None


@dataclass
class CompetitorContext:
    id: str
    domain: str
    name: str


@dataclass
class AnalysisContext:
    """Project, keywords and competitors for one analysis run"""
    project: ProjectContext
    keywords: List[KeywordContext]
    competitors: List[CompetitorContext]
    query_run_id: str


# Per-keyword analysis data

@dataclass
class CompetitorCitationSummary:
    competitor_id: str
    competitor_name: str
    count: int
    urls: List[str] = field(default_factory=list)


@dataclass
class EngineBreakdown:
    engine: EngineType
    has_brand_citation: bool
    brand_citation_count: int
    competitor_citation_count: int


@dataclass
class KeywordAnalysis:
    """What the engines said about one keyword in one run"""
    keyword_id: str
    keyword: str
    category: Optional[str] = None
    has_brand_citation: bool = False
    brand_citation_count: int = 0
    brand_citation_positions: List[Optional[int]] = field(default_factory=list)
    competitor_citations: List[CompetitorCitationSummary] = field(default_factory=list)
    engines: List[EngineBreakdown] = field(default_factory=list)
    mention_type: Optional[str] = None
    sentiment: Optional[str] = None
    brand_mention_count: int = 0
    negative_contexts: List[str] = field(default_factory=list)


@dataclass
class PreviousRunKeywordData:
    keyword_id: str
    has_brand_citation: bool
    brand_citation_count: int
    last_cited_at: Optional[datetime] = None


@dataclass
class AnalysisData:
    keyword_analyses: List[KeywordAnalysis]
    previous_run_data: List[PreviousRunKeywordData] = field(default_factory=list)
    total_keywords: int = 0
    keywords_with_brand_citation: int = 0
    keywords_with_competitor_citation: int = 0


# Generated outputs

@dataclass
class GeneratedRecommendation:
    type: RecommendationType
    priority: RecommendationPriority
    source: AnalysisSource
    title: str
    description: str
    actionable_steps: List[str]
    estimated_impact: float
    keyword_id: Optional[str] = None
    competitor_id: Optional[str] = None
    target_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self):
        return (self.keyword_id, self.type.value, self.competitor_id)


@dataclass
class GeneratedContentGap:
    keyword_id: str
    gap_type: ContentGapType
    severity: float
    source: AnalysisSource
    engine_types: List[EngineType] = field(default_factory=list)
    competitor_id: Optional[str] = None
    competitor_url: Optional[str] = None
    brand_last_cited_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OptimizationScoreData:
    overall_score: float
    content_coverage: float
    competitive_gap: float
    citation_consistency: float
    freshness: float


@dataclass
class AnalysisResult:
    recommendations: List[GeneratedRecommendation]
    content_gaps: List[GeneratedContentGap]
    score: OptimizationScoreData
