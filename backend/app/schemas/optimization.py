"""
Optimization Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import RecommendationType

VALID_RECOMMENDATION_TYPES = {t.value for t in RecommendationType}


class AiRecommendationPayload(BaseModel):
    """One recommendation as returned by the reasoning service"""
    type: str = RecommendationType.CREATE_CONTENT.value
    title: str = Field(..., min_length=1)
    description: str = ""
    steps: List[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> str:
        value = str(v or "").strip().lower()
        if value not in VALID_RECOMMENDATION_TYPES:
            return RecommendationType.CREATE_CONTENT.value
        return value

    @field_validator("steps", mode="before")
    @classmethod
    def coerce_steps(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(step) for step in v]


class OptimizationScoreResponse(BaseModel):
    """Stored optimization score snapshot"""
    id: UUID
    project_id: UUID
    query_run_id: Optional[UUID] = None
    overall_score: float
    content_coverage: float
    competitive_gap: float
    citation_consistency: float
    freshness: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ScoreTrendResponse(BaseModel):
    """Latest score compared with the one before it"""
    current: Optional[OptimizationScoreResponse] = None
    previous: Optional[OptimizationScoreResponse] = None
    overall_trend: float = 0.0
    component_trends: Dict[str, float] = Field(default_factory=dict)


class RecommendationSummary(BaseModel):
    """Recommendation counts for a project"""
    total: int = 0
    active: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    open_content_gaps: int = 0
