"""
AI-Powered Analyzer
Asks an external reasoning service why competitors are cited instead of the
brand, and turns its JSON answer into recommendations
"""

import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.adapters.llm import BaseLLMAdapter, LLMConfig, get_adapter
from app.config import Settings, get_settings
from app.models import (
    AnalysisSource,
    EngineType,
    RecommendationPriority,
    RecommendationType,
)
from app.schemas.optimization import AiRecommendationPayload
from app.services.analysis_types import (
    AnalysisContext,
    AnalysisData,
    AnalysisResult,
    GeneratedRecommendation,
    KeywordAnalysis,
)
from app.services.rule_engine import deduplicate_recommendations
from app.services.score_calculator import calculate_optimization_score

logger = logging.getLogger(__name__)


ANALYSIS_PROMPT_TEMPLATE = """You are an AI visibility optimization expert. Analyze why the following competitor pages are cited by AI answer engines for the query "{keyword}" while {brand_name} ({brand_domain}) is not.

Competitor citations for this query:
{competitor_details}

Provide specific, actionable recommendations. Respond ONLY with valid JSON in this exact format:
{{
  "recommendations": [
    {{
      "type": "create_content" | "update_content" | "add_schema" | "improve_structure" | "add_comparison" | "improve_authority" | "optimize_citations",
      "title": "Brief actionable title",
      "description": "Why this matters and what to do",
      "steps": ["Step 1", "Step 2", "Step 3"]
    }}
  ]
}}"""


class AiResponseParser:
    """
    Best-effort extraction of the JSON object from free-form model output.

    Strategies are tried in order: the whole text, a fenced code block, the
    outermost {...} span. The first one that yields a JSON object wins.
    """

    FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

    def __init__(self):
        self.strategies: List[Callable[[str], Optional[str]]] = [
            self._whole_text,
            self._fenced_block,
            self._outer_braces,
        ]

    def _whole_text(self, content: str) -> Optional[str]:
        return content.strip()

    def _fenced_block(self, content: str) -> Optional[str]:
        match = self.FENCED_BLOCK.search(content)
        return match.group(1).strip() if match else None

    def _outer_braces(self, content: str) -> Optional[str]:
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end <= start:
            return None
        return content[start:end + 1]

    def parse_object(self, content: str) -> Optional[Dict[str, Any]]:
        """Return the first JSON object any strategy can decode, else None"""
        if not content:
            return None

        for strategy in self.strategies:
            candidate = strategy(content)
            if not candidate:
                continue
            try:
                parsed = json.loads(candidate)
            except ValueError:
                continue
            if isinstance(parsed, dict):
                return parsed
        return None

    def parse_recommendations(self, content: str) -> Optional[List[AiRecommendationPayload]]:
        """
        Parse and validate the recommendation list.

        Returns None when no JSON object could be recovered. Individual
        entries that fail validation are skipped.
        """
        parsed = self.parse_object(content)
        if parsed is None:
            return None

        items = parsed.get("recommendations")
        if not isinstance(items, list):
            return []

        recommendations = []
        for item in items:
            try:
                recommendations.append(AiRecommendationPayload.model_validate(item))
            except ValidationError as e:
                logger.debug("Skipping invalid AI recommendation: %s", e)
        return recommendations


class AiAnalyzer:
    """
    Runs the reasoning service over keywords where competitors are cited and
    the brand is not, in fixed-size batches with a pause between batches.

    A failed keyword contributes no recommendations; the rest of the batch
    still completes.
    """

    def __init__(
        self,
        adapter: Optional[BaseLLMAdapter] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.adapter = adapter
        self.parser = AiResponseParser()

    @property
    def enabled(self) -> bool:
        return self.adapter is not None or self.settings.ai_analysis_enabled

    def _get_adapter(self) -> BaseLLMAdapter:
        if self.adapter is None:
            self.adapter = get_adapter(EngineType.PERPLEXITY.value)
        return self.adapter

    def build_prompt(self, kw: KeywordAnalysis, context: AnalysisContext) -> str:
        """Describe the competitor citations for one keyword"""
        competitor_details = "\n".join(
            f"- {c.competitor_name}: {c.count} citation(s), URLs: {', '.join(c.urls[:3])}"
            for c in kw.competitor_citations
        )
        return ANALYSIS_PROMPT_TEMPLATE.format(
            keyword=kw.keyword,
            brand_name=context.project.brand_name,
            brand_domain=context.project.domain,
            competitor_details=competitor_details or "No competitor data available",
        )

    def _to_recommendation(
        self,
        kw: KeywordAnalysis,
        payload: AiRecommendationPayload,
    ) -> GeneratedRecommendation:
        first_competitor = kw.competitor_citations[0] if kw.competitor_citations else None
        return GeneratedRecommendation(
            keyword_id=kw.keyword_id,
            type=RecommendationType(payload.type),
            priority=RecommendationPriority.HIGH,
            source=AnalysisSource.AI_POWERED,
            title=payload.title,
            description=payload.description,
            actionable_steps=list(payload.steps),
            estimated_impact=self.settings.AI_ANALYSIS_DEFAULT_IMPACT,
            competitor_id=first_competitor.competitor_id if first_competitor else None,
            metadata={
                "keyword": kw.keyword,
                "ai_generated": True,
                "competitors_cited": [c.competitor_name for c in kw.competitor_citations],
            },
        )

    async def analyze_keyword(
        self,
        kw: KeywordAnalysis,
        context: AnalysisContext,
    ) -> List[GeneratedRecommendation]:
        """Ask the reasoning service about one keyword"""
        adapter = self._get_adapter()
        config = LLMConfig(
            model=adapter.default_model,
            temperature=self.settings.AI_ANALYSIS_TEMPERATURE,
            max_tokens=self.settings.AI_ANALYSIS_MAX_TOKENS,
            timeout=self.settings.LLM_REQUEST_TIMEOUT,
        )
        response = await adapter.execute(self.build_prompt(kw, context), config)

        payloads = self.parser.parse_recommendations(response.content)
        if payloads is None:
            logger.warning("Could not parse AI response as JSON for keyword %r", kw.keyword)
            return []

        return [self._to_recommendation(kw, p) for p in payloads]

    async def analyze(self, data: AnalysisData, context: AnalysisContext) -> AnalysisResult:
        """
        Analyze the keyword gaps of a run.

        Args:
            data: Analysis data for the run
            context: Project brand data

        Returns:
            AnalysisResult with AI recommendations, no content gaps and the
            optimization score
        """
        score = calculate_optimization_score(data)

        if not self.enabled:
            logger.warning("PERPLEXITY_API_KEY not set, skipping AI analysis")
            return AnalysisResult(recommendations=[], content_gaps=[], score=score)

        targets = [
            kw for kw in data.keyword_analyses
            if not kw.has_brand_citation and kw.competitor_citations
        ]
        batch_size = max(1, self.settings.AI_ANALYSIS_BATCH_SIZE)
        recommendations: List[GeneratedRecommendation] = []
        failed = 0

        for start in range(0, len(targets), batch_size):
            batch = targets[start:start + batch_size]
            results = await asyncio.gather(
                *(self.analyze_keyword(kw, context) for kw in batch),
                return_exceptions=True,
            )

            for kw, result in zip(batch, results):
                if isinstance(result, Exception):
                    failed += 1
                    logger.warning("AI analysis failed for keyword %r: %s", kw.keyword, result)
                    continue
                if isinstance(result, BaseException):
                    raise result
                recommendations.extend(result)

            if start + batch_size < len(targets):
                await asyncio.sleep(self.settings.AI_ANALYSIS_BATCH_DELAY_SECONDS)

        deduped = deduplicate_recommendations(recommendations)
        logger.info(
            "AI analysis produced %d recommendations for %d keywords (%d failed)",
            len(deduped), len(targets), failed,
        )
        return AnalysisResult(recommendations=deduped, content_gaps=[], score=score)


async def analyze_with_ai(
    data: AnalysisData,
    context: AnalysisContext,
    adapter: Optional[BaseLLMAdapter] = None,
) -> AnalysisResult:
    """Run the AI analyzer with default settings"""
    return await AiAnalyzer(adapter=adapter).analyze(data, context)
