"""
Tests for the AI-powered analyzer and its response parser.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from app.adapters.llm import LLMRateLimitError, LLMResponse
from app.config import Settings
from app.models import AnalysisSource, EngineType, RecommendationPriority, RecommendationType
from app.services.ai_analyzer import AiAnalyzer, AiResponseParser
from app.services.analysis_types import (
    AnalysisContext,
    AnalysisData,
    CompetitorContext,
    ProjectContext,
)

from conftest import competitor, keyword_analysis


VALID_REPLY = """{
  "recommendations": [
    {"type": "add_comparison", "title": "Compare with Ahrefs", "description": "d", "steps": ["a", "b"]}
  ]
}"""


class FakeAdapter:
    """Answers by keyword; an Exception value is raised instead of returned."""

    default_model = "fake-model"

    def __init__(self, replies):
        self.replies = replies
        self.prompts = []

    async def execute(self, prompt, config=None, system_prompt=None):
        self.prompts.append(prompt)
        for keyword, reply in self.replies.items():
            if f'"{keyword}"' in prompt:
                if isinstance(reply, Exception):
                    raise reply
                return LLMResponse(content=reply, raw_response={}, provider=EngineType.PERPLEXITY, model="fake")
        return LLMResponse(content="", raw_response={}, provider=EngineType.PERPLEXITY, model="fake")


@pytest.fixture
def context():
    return AnalysisContext(
        project=ProjectContext(id="p1", domain="soldierdata.com", brand_name="SoldierData"),
        keywords=[],
        competitors=[CompetitorContext(id="comp-1", domain="ahrefs.com", name="Ahrefs")],
        query_run_id="run-1",
    )


@pytest.fixture
def settings():
    return Settings(PERPLEXITY_API_KEY="test-key", AI_ANALYSIS_BATCH_SIZE=2, AI_ANALYSIS_BATCH_DELAY_SECONDS=0.5)


def gap_keyword(keyword_id, keyword):
    return keyword_analysis(keyword_id, keyword, competitor_citations=[competitor()])


# ============================================================================
# Parser
# ============================================================================

class TestResponseParser:
    """Three-stage JSON recovery."""

    @pytest.fixture
    def parser(self):
        return AiResponseParser()

    def test_whole_text(self, parser):
        assert parser.parse_object('{"a": 1}') == {"a": 1}

    def test_fenced_block(self, parser):
        content = 'Here you go:\n```json\n{"a": 2}\n```\nThanks'
        assert parser.parse_object(content) == {"a": 2}

    def test_outer_braces(self, parser):
        content = 'Sure! {"a": {"b": 3}} Hope that helps.'
        assert parser.parse_object(content) == {"a": {"b": 3}}

    def test_unparseable(self, parser):
        assert parser.parse_object("no json here") is None
        assert parser.parse_object("") is None
        assert parser.parse_recommendations("{broken") is None

    def test_missing_list(self, parser):
        assert parser.parse_recommendations('{"other": []}') == []

    def test_invalid_entries_skipped(self, parser):
        content = '{"recommendations": [{"title": ""}, {"title": "Keep me", "steps": "one step"}, "junk"]}'
        recs = parser.parse_recommendations(content)
        assert [r.title for r in recs] == ["Keep me"]
        assert recs[0].steps == ["one step"]
        assert recs[0].type == "create_content"

    def test_unknown_type_normalized(self, parser):
        recs = parser.parse_recommendations('{"recommendations": [{"type": "Write_Blog", "title": "x"}]}')
        assert recs[0].type == "create_content"

    def test_type_case_insensitive(self, parser):
        recs = parser.parse_recommendations('{"recommendations": [{"type": "ADD_SCHEMA", "title": "x"}]}')
        assert recs[0].type == "add_schema"


# ============================================================================
# Analyzer
# ============================================================================

class TestAiAnalyzer:
    """Batched analysis of competitor-only keywords."""

    async def test_recommendation_fields(self, context, settings):
        adapter = FakeAdapter({"seo tools": VALID_REPLY})
        data = AnalysisData(keyword_analyses=[gap_keyword("kw-1", "seo tools")], total_keywords=1)

        result = await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        assert len(result.recommendations) == 1
        rec = result.recommendations[0]
        assert rec.type == RecommendationType.ADD_COMPARISON
        assert rec.priority == RecommendationPriority.HIGH
        assert rec.source == AnalysisSource.AI_POWERED
        assert rec.estimated_impact == 15.0
        assert rec.competitor_id == "comp-1"
        assert rec.actionable_steps == ["a", "b"]
        assert result.content_gaps == []
        assert result.score is not None

    async def test_prompt_describes_gap(self, context, settings):
        adapter = FakeAdapter({})
        data = AnalysisData(keyword_analyses=[gap_keyword("kw-1", "seo tools")], total_keywords=1)

        await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        prompt = adapter.prompts[0]
        assert '"seo tools"' in prompt
        assert "SoldierData (soldierdata.com)" in prompt
        assert "Ahrefs: 1 citation(s)" in prompt

    async def test_only_competitor_only_keywords_analyzed(self, context, settings):
        adapter = FakeAdapter({})
        data = AnalysisData(keyword_analyses=[
            gap_keyword("kw-1", "seo tools"),
            keyword_analysis("kw-2", "cited", has_brand_citation=True, competitor_citations=[competitor()]),
            keyword_analysis("kw-3", "nobody"),
        ], total_keywords=3)

        await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        assert len(adapter.prompts) == 1

    async def test_batches_pause_between(self, context, settings):
        adapter = FakeAdapter({"one": VALID_REPLY, "two": VALID_REPLY, "three": VALID_REPLY})
        data = AnalysisData(keyword_analyses=[
            gap_keyword("kw-1", "one"),
            gap_keyword("kw-2", "two"),
            gap_keyword("kw-3", "three"),
        ], total_keywords=3)

        with patch("app.services.ai_analyzer.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        sleep.assert_awaited_once_with(0.5)
        assert len(result.recommendations) == 3

    async def test_failed_keyword_isolated(self, context, settings, caplog):
        adapter = FakeAdapter({
            "one": VALID_REPLY,
            "two": LLMRateLimitError("Rate limit exceeded", EngineType.PERPLEXITY),
        })
        data = AnalysisData(keyword_analyses=[gap_keyword("kw-1", "one"), gap_keyword("kw-2", "two")],
                            total_keywords=2)

        with caplog.at_level(logging.WARNING, logger="app.services.ai_analyzer"):
            result = await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        assert [r.keyword_id for r in result.recommendations] == ["kw-1"]
        assert "AI analysis failed" in caplog.text

    async def test_unparseable_reply_yields_nothing(self, context, settings):
        adapter = FakeAdapter({"one": "I cannot help with that."})
        data = AnalysisData(keyword_analyses=[gap_keyword("kw-1", "one")], total_keywords=1)

        result = await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        assert result.recommendations == []

    async def test_duplicates_collapsed(self, context, settings):
        reply = '{"recommendations": [{"type": "create_content", "title": "A"}, {"type": "create_content", "title": "B"}]}'
        adapter = FakeAdapter({"one": reply})
        data = AnalysisData(keyword_analyses=[gap_keyword("kw-1", "one")], total_keywords=1)

        result = await AiAnalyzer(adapter=adapter, settings=settings).analyze(data, context)

        assert [r.title for r in result.recommendations] == ["A"]

    async def test_disabled_without_credential(self, context, caplog):
        analyzer = AiAnalyzer(settings=Settings(PERPLEXITY_API_KEY=None))
        data = AnalysisData(keyword_analyses=[gap_keyword("kw-1", "one")], total_keywords=1)

        with caplog.at_level(logging.WARNING, logger="app.services.ai_analyzer"):
            result = await analyzer.analyze(data, context)

        assert not analyzer.enabled
        assert result.recommendations == []
        assert result.score.competitive_gap == 0.0
        assert "skipping AI analysis" in caplog.text
