"""
Citation Service
Extraction pass for one stored engine response
"""

import logging
from dataclasses import dataclass, field
from typing import List, Union
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.parsing import (
    BrandMatcher,
    CitationExtractor,
    ClassifiedCitation,
    CompetitorDomain,
    DetectedMention,
    MentionQuery,
)
from app.models import (
    BrandMention,
    Citation,
    Competitor,
    CompetitorCitation,
    Project,
    QueryResult,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtractionSummary:
    """What one extraction pass stored"""
    query_result_id: str
    citations: List[ClassifiedCitation] = field(default_factory=list)
    mentions: List[DetectedMention] = field(default_factory=list)

    @property
    def brand_citation_count(self) -> int:
        return sum(1 for c in self.citations if c.is_brand_citation)

    @property
    def competitor_citation_count(self) -> int:
        return sum(1 for c in self.citations if c.matched_competitor_id is not None)


class CitationService:
    """
    Extract -> classify -> detect mentions -> persist, for one query result.

    Output from any earlier pass over the same result is deleted first, so
    running the pass twice stores the same rows once.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.extractor = CitationExtractor()
        self.matcher = BrandMatcher()

    async def _clear_previous_output(self, query_result_id: UUID):
        for model in (Citation, CompetitorCitation, BrandMention):
            await self.db.execute(delete(model).where(model.query_result_id == query_result_id))

    async def process_query_result(self, query_result_id: Union[str, UUID]) -> ExtractionSummary:
        """
        Run the extraction pass for one stored response.

        Raises:
            ValueError: If the query result or its project does not exist
        """
        if not isinstance(query_result_id, UUID):
            query_result_id = UUID(str(query_result_id))

        result = await self.db.execute(select(QueryResult).where(QueryResult.id == query_result_id))
        query_result = result.scalar_one_or_none()
        if not query_result:
            raise ValueError(f"Query result not found: {query_result_id}")

        result = await self.db.execute(select(Project).where(Project.id == query_result.project_id))
        project = result.scalar_one_or_none()
        if not project:
            raise ValueError(f"Project not found: {query_result.project_id}")

        result = await self.db.execute(
            select(Competitor).where(Competitor.project_id == project.id).order_by(Competitor.name)
        )
        competitors = [
            CompetitorDomain(id=str(c.id), domain=c.domain, aliases=list(c.aliases or []))
            for c in result.scalars().all()
        ]

        raw_text = query_result.raw_response or ""
        extracted = self.extractor.extract_citations(query_result.citation_urls or [], raw_text)
        classified = self.extractor.classify_citations(extracted, project.domain, competitors)

        mentions = self.matcher.detect(MentionQuery(
            response_text=raw_text,
            brand_name=project.brand_name,
            brand_aliases=list(project.brand_aliases or []),
            project_domain=project.domain,
            has_citation_match=any(c.is_brand_citation for c in classified),
        ))

        await self._clear_previous_output(query_result.id)

        for citation in classified:
            self.db.add(Citation(
                project_id=project.id,
                keyword_id=query_result.keyword_id,
                query_result_id=query_result.id,
                engine_type=query_result.engine_type,
                cited_url=citation.url,
                domain=citation.domain,
                position=citation.position,
                source=citation.source,
                is_brand_citation=citation.is_brand_citation,
            ))
            if citation.matched_competitor_id is not None:
                self.db.add(CompetitorCitation(
                    project_id=project.id,
                    keyword_id=query_result.keyword_id,
                    competitor_id=UUID(citation.matched_competitor_id),
                    query_result_id=query_result.id,
                    engine_type=query_result.engine_type,
                    cited_url=citation.url,
                    position=citation.position,
                ))

        for mention in mentions:
            self.db.add(BrandMention(
                project_id=project.id,
                keyword_id=query_result.keyword_id,
                query_result_id=query_result.id,
                engine_type=query_result.engine_type,
                mention_type=mention.mention_type,
                matched_text=mention.matched_text[:500],
                context=mention.context,
                confidence=mention.confidence,
                sentiment=mention.sentiment,
            ))

        await self.db.flush()

        summary = ExtractionSummary(
            query_result_id=str(query_result.id),
            citations=classified,
            mentions=mentions,
        )
        logger.info(
            "Extracted %d citations (%d brand, %d competitor) and %d mentions from result %s",
            len(classified), summary.brand_citation_count,
            summary.competitor_citation_count, len(mentions), query_result.id,
        )
        return summary
