"""
Tests for the Celery tasks that sequence a run.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from app.models import AnalysisSource, ContentGap, OptimizationRecommendation, OptimizationScore
from app.services.citation_service import CitationService
from app.workers.tasks import optimization_tasks
from app.workers.tasks.citation_tasks import extract_citations
from app.workers.tasks.optimization_tasks import analyze_optimization, run_optimization


@pytest.fixture
def use_session(db, monkeypatch):
    """Route the task's session context to the test session."""
    @asynccontextmanager
    async def session_context():
        yield db
    monkeypatch.setattr(optimization_tasks, "get_db_context", session_context)


class TestRunOptimization:
    """Load, analyze and persist in one pass."""

    async def test_rule_based_pass(self, db, project, competitors, keywords, make_run, make_result, use_session):
        run = await make_run(datetime(2025, 1, 20))
        result = await make_result(run, keywords[0], "Ahrefs is popular.", ["https://ahrefs.com/blog"])
        await CitationService(db).process_query_result(result.id)

        summary = await run_optimization(str(project.id), str(run.id), AnalysisSource.RULE_BASED)

        assert summary["source"] == "rule_based"
        assert summary["recommendations"] > 0
        assert summary["content_gaps"] > 0

        recs = (await db.execute(select(func.count()).select_from(OptimizationRecommendation))).scalar()
        gaps = (await db.execute(select(func.count()).select_from(ContentGap))).scalar()
        scores = (await db.execute(select(func.count()).select_from(OptimizationScore))).scalar()
        assert recs == summary["recommendations"]
        assert gaps == summary["content_gaps"]
        assert scores == 1

    async def test_rerun_does_not_duplicate_gaps(self, db, project, competitors, keywords, make_run,
                                                 make_result, use_session):
        run = await make_run(datetime(2025, 1, 20))
        result = await make_result(run, keywords[0], "Ahrefs is popular.", ["https://ahrefs.com/blog"])
        await CitationService(db).process_query_result(result.id)

        first = await run_optimization(str(project.id), str(run.id), AnalysisSource.RULE_BASED)
        await run_optimization(str(project.id), str(run.id), AnalysisSource.RULE_BASED)

        gaps = (await db.execute(select(func.count()).select_from(ContentGap))).scalar()
        assert gaps == first["content_gaps"]

    async def test_ai_pass_without_credential(self, db, project, keywords, make_run, use_session, monkeypatch):
        monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)
        run = await make_run(datetime(2025, 1, 20))

        summary = await run_optimization(str(project.id), str(run.id), AnalysisSource.AI_POWERED)

        assert summary["recommendations"] == 0
        assert summary["content_gaps"] == 0


class TestTasks:
    """Task wrappers run eagerly."""

    def test_unknown_source(self):
        result = analyze_optimization.apply(args=["p", "r"], kwargs={"source": "magic"}).get()
        assert result == {"error": "Unknown analysis source: magic"}

    def test_missing_project_not_retried(self):
        with patch.object(optimization_tasks, "run_optimization",
                          AsyncMock(side_effect=ValueError("Project not found: p"))):
            result = analyze_optimization.apply(args=["p", "r"]).get()
        assert result == {"error": "Project not found: p"}

    def test_extraction_summary(self):
        counts = {"query_result_id": "r", "citations": 3, "brand_citations": 1,
                  "competitor_citations": 1, "mentions": 2}
        with patch("app.workers.tasks.citation_tasks._process_result", AsyncMock(return_value=counts)):
            result = extract_citations.apply(args=["r"]).get()
        assert result == counts
