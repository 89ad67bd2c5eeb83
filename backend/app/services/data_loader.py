"""
Optimization Data Loader
Builds the per-keyword analysis read model for a completed query run
"""

from collections import defaultdict
from typing import Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    BrandMention,
    Citation,
    Competitor,
    CompetitorCitation,
    EngineType,
    Keyword,
    MentionType,
    Project,
    QueryResult,
    QueryRun,
    QueryRunStatus,
    SentimentPolarity,
)
from app.services.analysis_types import (
    AnalysisContext,
    AnalysisData,
    CompetitorCitationSummary,
    CompetitorContext,
    EngineBreakdown,
    KeywordAnalysis,
    KeywordContext,
    PreviousRunKeywordData,
    ProjectContext,
)

# Most specific mention type first
MENTION_PRECEDENCE = [
    MentionType.DIRECT_CITATION,
    MentionType.BRAND_NAME,
    MentionType.INDIRECT_MENTION,
    MentionType.NOT_FOUND,
]

ENGINE_ORDER = {engine: i for i, engine in enumerate(EngineType)}


def _as_uuid(value: Union[str, UUID]) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class OptimizationDataLoader:
    """
    Read-only loader over persisted citations, competitor citations and
    mentions. Everything for a run is read once and returned as plain
    dataclasses.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _active_keywords(self, project_id: UUID) -> List[Keyword]:
        result = await self.db.execute(
            select(Keyword)
            .where(and_(Keyword.project_id == project_id, Keyword.is_active == True))
            .order_by(Keyword.created_at, Keyword.keyword)
        )
        return list(result.scalars().all())

    async def _competitors(self, project_id: UUID) -> List[Competitor]:
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.project_id == project_id)
            .order_by(Competitor.name)
        )
        return list(result.scalars().all())

    async def load_analysis_context(
        self,
        project_id: Union[str, UUID],
        query_run_id: Union[str, UUID],
    ) -> AnalysisContext:
        """
        Load project brand data, active keywords and competitors.

        Raises:
            ValueError: If the project does not exist
        """
        project_id = _as_uuid(project_id)
        result = await self.db.execute(select(Project).where(Project.id == project_id))
        project = result.scalar_one_or_none()
        if not project:
            raise ValueError(f"Project not found: {project_id}")

        keywords = await self._active_keywords(project_id)
        competitors = await self._competitors(project_id)

        return AnalysisContext(
            project=ProjectContext(
                id=str(project.id),
                domain=project.domain,
                brand_name=project.brand_name,
                brand_aliases=list(project.brand_aliases or []),
            ),
            keywords=[KeywordContext(id=str(k.id), keyword=k.keyword, category=k.category) for k in keywords],
            competitors=[CompetitorContext(id=str(c.id), domain=c.domain, name=c.name) for c in competitors],
            query_run_id=str(query_run_id),
        )

    async def load_analysis_data(
        self,
        project_id: Union[str, UUID],
        query_run_id: Union[str, UUID],
    ) -> AnalysisData:
        """
        Build the analysis data for one run.

        Engines per keyword are the engines that returned a result for that
        keyword in this run, whether or not anything was cited.
        """
        project_id = _as_uuid(project_id)
        query_run_id = _as_uuid(query_run_id)

        keywords = await self._active_keywords(project_id)
        competitors = {c.id: c for c in await self._competitors(project_id)}

        result = await self.db.execute(
            select(QueryResult.keyword_id, QueryResult.engine_type)
            .where(and_(
                QueryResult.query_run_id == query_run_id,
                QueryResult.project_id == project_id,
            ))
        )
        engines_by_keyword: Dict[UUID, set] = defaultdict(set)
        for keyword_id, engine in result.all():
            engines_by_keyword[keyword_id].add(engine)

        result = await self.db.execute(
            select(Citation)
            .join(QueryResult, Citation.query_result_id == QueryResult.id)
            .where(and_(
                QueryResult.query_run_id == query_run_id,
                Citation.project_id == project_id,
                Citation.is_brand_citation == True,
            ))
            .order_by(Citation.position)
        )
        brand_citations: Dict[UUID, List[Citation]] = defaultdict(list)
        for citation in result.scalars().all():
            brand_citations[citation.keyword_id].append(citation)

        result = await self.db.execute(
            select(CompetitorCitation)
            .join(QueryResult, CompetitorCitation.query_result_id == QueryResult.id)
            .where(and_(
                QueryResult.query_run_id == query_run_id,
                CompetitorCitation.project_id == project_id,
            ))
            .order_by(CompetitorCitation.position)
        )
        competitor_citations: Dict[UUID, List[CompetitorCitation]] = defaultdict(list)
        for citation in result.scalars().all():
            competitor_citations[citation.keyword_id].append(citation)

        result = await self.db.execute(
            select(BrandMention)
            .join(QueryResult, BrandMention.query_result_id == QueryResult.id)
            .where(and_(
                QueryResult.query_run_id == query_run_id,
                BrandMention.project_id == project_id,
            ))
        )
        mentions: Dict[UUID, List[BrandMention]] = defaultdict(list)
        for mention in result.scalars().all():
            mentions[mention.keyword_id].append(mention)

        analyses = [
            self._build_keyword_analysis(
                keyword,
                brand_citations.get(keyword.id, []),
                competitor_citations.get(keyword.id, []),
                mentions.get(keyword.id, []),
                engines_by_keyword.get(keyword.id, set()),
                competitors,
            )
            for keyword in keywords
        ]

        previous = await self._load_previous_run_data(project_id, query_run_id)

        return AnalysisData(
            keyword_analyses=analyses,
            previous_run_data=previous,
            total_keywords=len(keywords),
            keywords_with_brand_citation=sum(1 for ka in analyses if ka.has_brand_citation),
            keywords_with_competitor_citation=sum(1 for ka in analyses if ka.competitor_citations),
        )

    def _build_keyword_analysis(
        self,
        keyword: Keyword,
        brand_citations: List[Citation],
        competitor_citations: List[CompetitorCitation],
        mentions: List[BrandMention],
        engines: set,
        competitors: Dict[UUID, Competitor],
    ) -> KeywordAnalysis:
        # Citations imply the engine answered even without a result row
        engines = set(engines)
        engines.update(c.engine_type for c in brand_citations)
        engines.update(c.engine_type for c in competitor_citations)

        by_competitor: Dict[UUID, List[str]] = defaultdict(list)
        for cc in competitor_citations:
            by_competitor[cc.competitor_id].append(cc.cited_url)

        summaries = []
        for competitor_id, urls in by_competitor.items():
            competitor = competitors.get(competitor_id)
            summaries.append(CompetitorCitationSummary(
                competitor_id=str(competitor_id),
                competitor_name=competitor.name if competitor else "Unknown",
                count=len(urls),
                urls=urls,
            ))
        summaries.sort(key=lambda s: (-s.count, s.competitor_name, s.competitor_id))

        breakdown = []
        for engine in sorted(engines, key=lambda e: ENGINE_ORDER.get(e, len(ENGINE_ORDER))):
            brand_count = sum(1 for c in brand_citations if c.engine_type == engine)
            breakdown.append(EngineBreakdown(
                engine=engine,
                has_brand_citation=brand_count > 0,
                brand_citation_count=brand_count,
                competitor_citation_count=sum(1 for c in competitor_citations if c.engine_type == engine),
            ))

        found = [m for m in mentions if m.mention_type != MentionType.NOT_FOUND]
        negative = [m for m in found if m.sentiment == SentimentPolarity.NEGATIVE]

        return KeywordAnalysis(
            keyword_id=str(keyword.id),
            keyword=keyword.keyword,
            category=keyword.category,
            has_brand_citation=bool(brand_citations),
            brand_citation_count=len(brand_citations),
            brand_citation_positions=[c.position for c in brand_citations],
            competitor_citations=summaries,
            engines=breakdown,
            mention_type=self._dominant_mention_type(mentions),
            sentiment=self._overall_sentiment(found),
            brand_mention_count=len(found),
            negative_contexts=[m.context for m in negative if m.context],
        )

    def _dominant_mention_type(self, mentions: List[BrandMention]) -> Optional[str]:
        types = {m.mention_type for m in mentions}
        for mention_type in MENTION_PRECEDENCE:
            if mention_type in types:
                return mention_type.value
        return None

    def _overall_sentiment(self, mentions: List[BrandMention]) -> Optional[str]:
        """Negative if any mention is negative, else positive if any, else neutral"""
        sentiments = {m.sentiment for m in mentions if m.sentiment is not None}
        for polarity in (SentimentPolarity.NEGATIVE, SentimentPolarity.POSITIVE, SentimentPolarity.NEUTRAL):
            if polarity in sentiments:
                return polarity.value
        return None

    async def _load_previous_run_data(
        self,
        project_id: UUID,
        query_run_id: UUID,
    ) -> List[PreviousRunKeywordData]:
        """Brand citations per keyword from the latest completed run before this one"""
        result = await self.db.execute(select(QueryRun).where(QueryRun.id == query_run_id))
        current = result.scalar_one_or_none()
        if not current:
            return []

        result = await self.db.execute(
            select(QueryRun.id)
            .where(and_(
                QueryRun.project_id == project_id,
                QueryRun.status == QueryRunStatus.COMPLETED,
                QueryRun.id != query_run_id,
                QueryRun.created_at < current.created_at,
            ))
            .order_by(QueryRun.created_at.desc())
            .limit(1)
        )
        previous_run_id = result.scalar_one_or_none()
        if not previous_run_id:
            return []

        result = await self.db.execute(
            select(
                Citation.keyword_id,
                func.count(Citation.id),
                func.max(Citation.created_at),
            )
            .join(QueryResult, Citation.query_result_id == QueryResult.id)
            .where(and_(
                QueryResult.query_run_id == previous_run_id,
                Citation.is_brand_citation == True,
            ))
            .group_by(Citation.keyword_id)
        )

        return [
            PreviousRunKeywordData(
                keyword_id=str(keyword_id),
                has_brand_citation=count > 0,
                brand_citation_count=count,
                last_cited_at=last_cited_at,
            )
            for keyword_id, count, last_cited_at in result.all()
        ]
