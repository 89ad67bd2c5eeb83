"""
Optimization Store
Persists analysis output and manages the recommendation lifecycle
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

from sqlalchemy import and_, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    AnalysisSource,
    ContentGap,
    OptimizationRecommendation,
    OptimizationScore,
    RecommendationStatus,
    RecommendationType,
)
from app.schemas.optimization import (
    OptimizationScoreResponse,
    RecommendationSummary,
    ScoreTrendResponse,
)
from app.services.analysis_types import (
    AnalysisData,
    GeneratedContentGap,
    GeneratedRecommendation,
    OptimizationScoreData,
)
from app.services.scoring_engine import calculate_trend

logger = logging.getLogger(__name__)

# Only these types become pointless once the keyword is cited
EXPIRABLE_TYPES = [RecommendationType.CREATE_CONTENT, RecommendationType.ADD_SCHEMA]

GAP_CONFLICT_COLUMNS = ["project_id", "keyword_id", "gap_type", "competitor_id"]

SCORE_COMPONENTS = ["content_coverage", "competitive_gap", "citation_consistency", "freshness"]


def _as_uuid(value: Optional[Union[str, UUID]]) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def _json_safe(value: Any) -> Any:
    """Enum values and ISO timestamps for JSON columns"""
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


class OptimizationStore:
    """Writes recommendations, content gaps and score snapshots"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @property
    def dialect(self) -> str:
        return self.db.get_bind().dialect.name

    # =========================================================================
    # RECOMMENDATIONS
    # =========================================================================

    async def expire_recommendations(
        self,
        project_id: Union[str, UUID],
        data: AnalysisData,
        source: AnalysisSource = AnalysisSource.RULE_BASED,
    ) -> int:
        """
        Expire active content/schema recommendations for keywords that are
        now cited. Returns the number of expired recommendations.
        """
        cited = [_as_uuid(ka.keyword_id) for ka in data.keyword_analyses if ka.has_brand_citation]
        if not cited:
            return 0

        result = await self.db.execute(
            update(OptimizationRecommendation)
            .where(and_(
                OptimizationRecommendation.project_id == _as_uuid(project_id),
                OptimizationRecommendation.status == RecommendationStatus.ACTIVE,
                OptimizationRecommendation.source == source,
                OptimizationRecommendation.type.in_(EXPIRABLE_TYPES),
                OptimizationRecommendation.keyword_id.in_(cited),
            ))
            .values(status=RecommendationStatus.EXPIRED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def save_recommendations(
        self,
        project_id: Union[str, UUID],
        query_run_id: Optional[Union[str, UUID]],
        recommendations: List[GeneratedRecommendation],
    ) -> List[OptimizationRecommendation]:
        """Store generated recommendations as active"""
        rows = [
            OptimizationRecommendation(
                project_id=_as_uuid(project_id),
                query_run_id=_as_uuid(query_run_id),
                keyword_id=_as_uuid(rec.keyword_id),
                competitor_id=_as_uuid(rec.competitor_id),
                type=rec.type,
                priority=rec.priority,
                status=RecommendationStatus.ACTIVE,
                source=rec.source,
                title=rec.title[:500],
                description=rec.description,
                actionable_steps=list(rec.actionable_steps),
                estimated_impact=rec.estimated_impact,
                target_url=rec.target_url,
                extra_data=_json_safe(rec.metadata),
            )
            for rec in recommendations
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def _get_recommendation(self, recommendation_id: Union[str, UUID]) -> OptimizationRecommendation:
        result = await self.db.execute(
            select(OptimizationRecommendation)
            .where(OptimizationRecommendation.id == _as_uuid(recommendation_id))
        )
        rec = result.scalar_one_or_none()
        if not rec:
            raise ValueError(f"Recommendation not found: {recommendation_id}")
        return rec

    async def dismiss_recommendation(self, recommendation_id: Union[str, UUID]) -> OptimizationRecommendation:
        rec = await self._get_recommendation(recommendation_id)
        rec.status = RecommendationStatus.DISMISSED
        rec.updated_at = datetime.utcnow()
        await self.db.flush()
        return rec

    async def complete_recommendation(self, recommendation_id: Union[str, UUID]) -> OptimizationRecommendation:
        rec = await self._get_recommendation(recommendation_id)
        now = datetime.utcnow()
        rec.status = RecommendationStatus.COMPLETED
        rec.completed_at = now
        rec.updated_at = now
        await self.db.flush()
        return rec

    async def get_recommendation_summary(self, project_id: Union[str, UUID]) -> RecommendationSummary:
        """Counts by status, and by type and priority among active ones"""
        project_id = _as_uuid(project_id)
        summary = RecommendationSummary()

        result = await self.db.execute(
            select(OptimizationRecommendation.status, func.count(OptimizationRecommendation.id))
            .where(OptimizationRecommendation.project_id == project_id)
            .group_by(OptimizationRecommendation.status)
        )
        for status, count in result.all():
            summary.by_status[status.value] = count
        summary.total = sum(summary.by_status.values())
        summary.active = summary.by_status.get(RecommendationStatus.ACTIVE.value, 0)

        active = and_(
            OptimizationRecommendation.project_id == project_id,
            OptimizationRecommendation.status == RecommendationStatus.ACTIVE,
        )
        result = await self.db.execute(
            select(OptimizationRecommendation.type, func.count(OptimizationRecommendation.id))
            .where(active)
            .group_by(OptimizationRecommendation.type)
        )
        summary.by_type = {t.value: count for t, count in result.all()}

        result = await self.db.execute(
            select(OptimizationRecommendation.priority, func.count(OptimizationRecommendation.id))
            .where(active)
            .group_by(OptimizationRecommendation.priority)
        )
        summary.by_priority = {p.value: count for p, count in result.all()}

        result = await self.db.execute(
            select(func.count(ContentGap.id)).where(ContentGap.project_id == project_id)
        )
        summary.open_content_gaps = result.scalar() or 0

        return summary

    # =========================================================================
    # CONTENT GAPS
    # =========================================================================

    def _gap_values(self, project_id: UUID, gap: GeneratedContentGap) -> Dict[str, Any]:
        return {
            "project_id": project_id,
            "keyword_id": _as_uuid(gap.keyword_id),
            "competitor_id": _as_uuid(gap.competitor_id),
            "gap_type": gap.gap_type,
            "competitor_url": gap.competitor_url,
            "brand_last_cited_at": gap.brand_last_cited_at,
            "engine_types": _json_safe(gap.engine_types),
            "severity": gap.severity,
            "source": gap.source,
            "extra_data": _json_safe(gap.metadata),
        }

    async def _native_upsert(self, values: Dict[str, Any]):
        """INSERT ... ON CONFLICT on the gap's unique key"""
        insert = pg_insert if self.dialect == "postgresql" else sqlite_insert
        now = datetime.utcnow()
        row = {("metadata" if k == "extra_data" else k): v for k, v in values.items()}
        row.update(id=uuid4(), created_at=now, updated_at=now)

        stmt = insert(ContentGap.__table__).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=GAP_CONFLICT_COLUMNS,
            set_={
                name: stmt.excluded[name]
                for name in ("competitor_url", "brand_last_cited_at", "engine_types",
                             "severity", "source", "metadata")
            } | {"updated_at": now},
        )
        await self.db.execute(stmt)

    async def _check_then_write(self, values: Dict[str, Any]):
        """Explicit existence check, for keys a unique constraint cannot dedupe"""
        competitor_id = values["competitor_id"]
        competitor_clause = (
            ContentGap.competitor_id.is_(None) if competitor_id is None
            else ContentGap.competitor_id == competitor_id
        )
        result = await self.db.execute(
            select(ContentGap).where(and_(
                ContentGap.project_id == values["project_id"],
                ContentGap.keyword_id == values["keyword_id"],
                ContentGap.gap_type == values["gap_type"],
                competitor_clause,
            ))
        )
        existing = result.scalars().first()

        if existing:
            for key in ("competitor_url", "brand_last_cited_at", "engine_types", "severity", "source", "extra_data"):
                setattr(existing, key, values[key])
            existing.updated_at = datetime.utcnow()
        else:
            self.db.add(ContentGap(**values))
        await self.db.flush()

    async def upsert_content_gaps(
        self,
        project_id: Union[str, UUID],
        gaps: List[GeneratedContentGap],
    ) -> int:
        """
        Insert or refresh content gaps keyed by (project, keyword, gap type,
        competitor). A failing gap is logged and skipped.

        Returns:
            Number of gaps written
        """
        project_id = _as_uuid(project_id)
        native = self.dialect in ("postgresql", "sqlite")
        written = 0

        for gap in gaps:
            values = self._gap_values(project_id, gap)
            try:
                async with self.db.begin_nested():
                    if values["competitor_id"] is not None and native:
                        await self._native_upsert(values)
                    else:
                        await self._check_then_write(values)
                written += 1
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to upsert %s gap for keyword %s: %s",
                    gap.gap_type.value, gap.keyword_id, e,
                )

        return written

    # =========================================================================
    # SCORES
    # =========================================================================

    async def save_score(
        self,
        project_id: Union[str, UUID],
        query_run_id: Optional[Union[str, UUID]],
        score: OptimizationScoreData,
    ) -> OptimizationScore:
        """Store a new score snapshot; snapshots are never updated"""
        row = OptimizationScore(
            project_id=_as_uuid(project_id),
            query_run_id=_as_uuid(query_run_id),
            overall_score=score.overall_score,
            content_coverage=score.content_coverage,
            competitive_gap=score.competitive_gap,
            citation_consistency=score.citation_consistency,
            freshness=score.freshness,
        )
        self.db.add(row)
        await self.db.flush()
        return row

    async def get_score_trend(self, project_id: Union[str, UUID]) -> ScoreTrendResponse:
        """Compare the two most recent project-level snapshots"""
        result = await self.db.execute(
            select(OptimizationScore)
            .where(and_(
                OptimizationScore.project_id == _as_uuid(project_id),
                OptimizationScore.keyword_id.is_(None),
            ))
            .order_by(OptimizationScore.created_at.desc())
            .limit(2)
        )
        snapshots = list(result.scalars().all())
        if not snapshots:
            return ScoreTrendResponse()

        current = snapshots[0]
        previous = snapshots[1] if len(snapshots) > 1 else None
        trend = ScoreTrendResponse(current=OptimizationScoreResponse.model_validate(current))
        if previous is None:
            return trend

        trend.previous = OptimizationScoreResponse.model_validate(previous)
        trend.overall_trend = calculate_trend(current.overall_score, previous.overall_score)
        trend.component_trends = {
            name: calculate_trend(getattr(current, name), getattr(previous, name))
            for name in SCORE_COMPONENTS
        }
        return trend
