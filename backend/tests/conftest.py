"""
Pytest Configuration and Shared Fixtures

In-memory SQLite database for persistence tests and builders for the
analysis read model.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import get_settings
from app.models import (
    Base,
    Competitor,
    EngineType,
    Keyword,
    Project,
    QueryResult,
    QueryRun,
    QueryRunStatus,
)
from app.services.analysis_types import (
    CompetitorCitationSummary,
    EngineBreakdown,
    KeywordAnalysis,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; tests that patch the env need a fresh copy."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(db_engine) -> AsyncSession:
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture
async def project(db) -> Project:
    project = Project(
        name="SoldierData",
        domain="soldierdata.com",
        brand_name="SoldierData",
        brand_aliases=["Soldier Data"],
    )
    db.add(project)
    await db.flush()
    return project


@pytest.fixture
async def competitors(db, project) -> List[Competitor]:
    rows = [
        Competitor(project_id=project.id, name="Ahrefs", domain="ahrefs.com"),
        Competitor(project_id=project.id, name="Semrush", domain="semrush.com"),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest.fixture
async def keywords(db, project) -> List[Keyword]:
    base = datetime(2025, 1, 1)
    rows = [
        Keyword(project_id=project.id, keyword="best seo tools", category="comparison", created_at=base),
        Keyword(project_id=project.id, keyword="how to track ai citations", created_at=base + timedelta(minutes=1)),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest.fixture
def make_run(db, project):
    """Create a query run at a given time."""
    async def _make(created_at: datetime, status: QueryRunStatus = QueryRunStatus.COMPLETED) -> QueryRun:
        run = QueryRun(project_id=project.id, status=status, created_at=created_at)
        db.add(run)
        await db.flush()
        return run
    return _make


@pytest.fixture
def make_result(db, project):
    """Store one raw engine response."""
    async def _make(
        run: QueryRun,
        keyword: Keyword,
        text: str,
        citation_urls: Optional[List[str]] = None,
        engine: EngineType = EngineType.PERPLEXITY,
    ) -> QueryResult:
        result = QueryResult(
            query_run_id=run.id,
            project_id=project.id,
            keyword_id=keyword.id,
            engine_type=engine,
            raw_response=text,
            citation_urls=citation_urls or [],
        )
        db.add(result)
        await db.flush()
        return result
    return _make


# ============================================================================
# Analysis read model builders
# ============================================================================

def engine(engine_type: EngineType, cited: bool = False, competitors: int = 0) -> EngineBreakdown:
    return EngineBreakdown(
        engine=engine_type,
        has_brand_citation=cited,
        brand_citation_count=1 if cited else 0,
        competitor_citation_count=competitors,
    )


def competitor(competitor_id: str = "comp-1", name: str = "Ahrefs", count: int = 1) -> CompetitorCitationSummary:
    return CompetitorCitationSummary(
        competitor_id=competitor_id,
        competitor_name=name,
        count=count,
        urls=[f"https://{name.lower()}.com/page{i}" for i in range(1, count + 1)],
    )


def keyword_analysis(keyword_id: str = "kw-1", keyword: str = "seo software", **kwargs) -> KeywordAnalysis:
    if kwargs.get("has_brand_citation") and "brand_citation_count" not in kwargs:
        kwargs["brand_citation_count"] = len(kwargs.get("brand_citation_positions", [])) or 1
    return KeywordAnalysis(keyword_id=keyword_id, keyword=keyword, **kwargs)
