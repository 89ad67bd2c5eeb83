"""
Optimization Rule Engine
Deterministic, explainable rules that turn analysis data into recommendations
and content gaps
"""

import re
from typing import Dict, List, Optional, Tuple

from app.config import RECOMMENDATION_BASE_IMPACT, get_settings
from app.models import (
    AnalysisSource,
    ContentGapType,
    RecommendationPriority,
    RecommendationType,
)
from app.services.analysis_types import (
    AnalysisData,
    AnalysisResult,
    GeneratedContentGap,
    GeneratedRecommendation,
    KeywordAnalysis,
    PreviousRunKeywordData,
)
from app.services.score_calculator import calculate_optimization_score
from app.services.scoring_engine import get_engine_weight

# Question keywords that benefit from FAQ / HowTo schema
FAQ_PATTERN = re.compile(
    r"^(how to|what is|what are|why|when|where|which|can you|should i|do i need|best way to)\b",
    re.IGNORECASE,
)

# Keywords asking for a comparison
COMPARISON_PATTERN = re.compile(
    r"\bvs\.?(?!\w)|\bversus\b|\bcompare\b|\bcomparison\b|\bbest\b|\btop\b",
    re.IGNORECASE,
)

PRIORITY_RANK = {
    RecommendationPriority.CRITICAL: 0,
    RecommendationPriority.HIGH: 1,
    RecommendationPriority.MEDIUM: 2,
    RecommendationPriority.LOW: 3,
}

RuleOutput = Tuple[List[GeneratedRecommendation], List[GeneratedContentGap]]


# =========================================================================
# IMPACT & PRIORITY
# =========================================================================

def calculate_impact(rec_type: RecommendationType, kw: KeywordAnalysis) -> float:
    """
    Heuristic impact in percentage points.

    base * (1 + 0.2 per cited competitor) * (0.5 + 0.5 * share of engines
    not citing the brand), capped at 50.
    """
    base = RECOMMENDATION_BASE_IMPACT.get(rec_type.value, 5)
    competitor_factor = 1 + 0.2 * len(kw.competitor_citations)
    if kw.engines:
        not_citing = sum(1 for e in kw.engines if not e.has_brand_citation)
        coverage = not_citing / len(kw.engines)
    else:
        coverage = 1.0

    impact = base * competitor_factor * (0.5 + 0.5 * coverage)
    return round(min(50.0, impact), 1)


def assign_priority(impact: float, kw: KeywordAnalysis) -> RecommendationPriority:
    """Escalate with impact, competitor presence and absence on a high-weight engine"""
    has_competitor = bool(kw.competitor_citations)
    threshold = get_settings().HIGH_WEIGHT_ENGINE_THRESHOLD
    absent_on_key_engine = any(
        not e.has_brand_citation and get_engine_weight(e.engine) >= threshold
        for e in kw.engines
    )

    if has_competitor and (impact >= 25 or absent_on_key_engine):
        return RecommendationPriority.CRITICAL
    if impact >= 15:
        return RecommendationPriority.HIGH
    if impact >= 8:
        return RecommendationPriority.MEDIUM
    return RecommendationPriority.LOW


def _engine_values(engines) -> List[str]:
    return [getattr(e, "value", e) for e in engines]


def _recommendation(
    kw: KeywordAnalysis,
    rec_type: RecommendationType,
    title: str,
    description: str,
    steps: List[str],
    priority: Optional[RecommendationPriority] = None,
    competitor_id: Optional[str] = None,
    target_url: Optional[str] = None,
    metadata: Optional[Dict] = None,
) -> GeneratedRecommendation:
    impact = calculate_impact(rec_type, kw)
    return GeneratedRecommendation(
        keyword_id=kw.keyword_id,
        type=rec_type,
        priority=priority or assign_priority(impact, kw),
        source=AnalysisSource.RULE_BASED,
        title=title,
        description=description,
        actionable_steps=steps,
        estimated_impact=impact,
        competitor_id=competitor_id,
        target_url=target_url,
        metadata=metadata or {},
    )


# =========================================================================
# RULES
# =========================================================================

def check_no_brand_citation(kw: KeywordAnalysis) -> RuleOutput:
    """Keyword has zero brand citations across all engines"""
    if kw.has_brand_citation:
        return [], []

    has_competitor = bool(kw.competitor_citations)
    engines_missing = _engine_values(e.engine for e in kw.engines if not e.has_brand_citation)

    steps = [
        f'Research top-ranking content for "{kw.keyword}"',
        "Create comprehensive, authoritative content addressing this topic",
        "Include structured data (FAQ schema, HowTo schema) where applicable",
        "Ensure content directly answers the query with specific data points",
    ]
    if has_competitor:
        steps.append("Analyze competitor content that is being cited for gaps you can fill")
        detail = f"{len(kw.competitor_citations)} competitor(s) are being cited instead."
    else:
        detail = "Creating targeted content could establish visibility."

    rec = _recommendation(
        kw,
        RecommendationType.CREATE_CONTENT,
        title=f'Create content for "{kw.keyword}"',
        description=(
            f"Your brand has no citations for this keyword across "
            f"{len(engines_missing) or 'any'} AI engine(s). {detail}"
        ),
        steps=steps,
        metadata={
            "competitors_cited": len(kw.competitor_citations),
            "engines_missing": engines_missing,
        },
    )

    gap = GeneratedContentGap(
        keyword_id=kw.keyword_id,
        gap_type=ContentGapType.NO_BRAND_CITATION,
        severity=0.8 if has_competitor else 0.5,
        source=AnalysisSource.RULE_BASED,
        engine_types=[e.engine for e in kw.engines if not e.has_brand_citation],
        metadata={"competitors_cited": len(kw.competitor_citations)},
    )
    return [rec], [gap]


def check_competitor_cited_brand_not(kw: KeywordAnalysis) -> RuleOutput:
    """Competitors are cited for the keyword but the brand is not"""
    if kw.has_brand_citation or not kw.competitor_citations:
        return [], []

    is_comparison = bool(COMPARISON_PATTERN.search(kw.keyword))
    rec_type = RecommendationType.ADD_COMPARISON if is_comparison else RecommendationType.IMPROVE_AUTHORITY
    gap_engines = [
        e.engine for e in kw.engines
        if not e.has_brand_citation and e.competitor_citation_count > 0
    ]

    recommendations = []
    gaps = []
    for comp in kw.competitor_citations:
        first_url = comp.urls[0] if comp.urls else None

        if is_comparison:
            title = f'Create comparison content vs {comp.competitor_name} for "{kw.keyword}"'
            approach = "A comparison table or guide could help you get cited."
            main_step = "Create a detailed comparison page with tables, pros/cons, and data"
        else:
            title = f'Build authority to compete with {comp.competitor_name} on "{kw.keyword}"'
            approach = "Stronger expertise and trust signals are needed to be cited alongside them."
            main_step = "Publish original research, data or expert commentary on this topic"

        recommendations.append(_recommendation(
            kw,
            rec_type,
            title=title,
            description=f"{comp.competitor_name} is cited {comp.count} time(s) for this keyword. {approach}",
            steps=[
                f"Review {comp.competitor_name}'s cited content: {first_url or comp.competitor_name}",
                main_step,
                "Include unique data, statistics, or expert insights",
                "Earn references from the sources AI engines already cite for this topic",
            ],
            competitor_id=comp.competitor_id,
            target_url=first_url,
            metadata={
                "competitor_urls": list(comp.urls),
                "competitor_citation_count": comp.count,
            },
        ))

        gaps.append(GeneratedContentGap(
            keyword_id=kw.keyword_id,
            gap_type=ContentGapType.COMPETITOR_ONLY,
            severity=round(min(0.9, 0.6 + 0.1 * comp.count), 2),
            source=AnalysisSource.RULE_BASED,
            engine_types=list(gap_engines),
            competitor_id=comp.competitor_id,
            competitor_url=first_url,
            metadata={"competitor_name": comp.competitor_name},
        ))

    return recommendations, gaps


def check_stale_content(kw: KeywordAnalysis, previous: Optional[PreviousRunKeywordData]) -> RuleOutput:
    """Brand was cited in the previous completed run but not in this one"""
    if kw.has_brand_citation or previous is None or not previous.has_brand_citation:
        return [], []

    last_cited = previous.last_cited_at.isoformat() if previous.last_cited_at else None

    rec = _recommendation(
        kw,
        RecommendationType.UPDATE_CONTENT,
        title=f'Lost citation for "{kw.keyword}": content may be stale',
        description=(
            "Your brand was previously cited for this keyword but is no longer appearing. "
            "This could indicate outdated content, or that competitors have published "
            "better alternatives."
        ),
        steps=[
            "Review your existing content for this topic",
            "Update statistics, dates, and references",
            "Add new information or insights that weren't in the original",
            "Verify that the page is still accessible and indexed",
            "Check if competitors have published newer content",
        ],
        priority=RecommendationPriority.HIGH,
        metadata={
            "previous_citation_count": previous.brand_citation_count,
            "last_cited_at": last_cited,
        },
    )

    gap = GeneratedContentGap(
        keyword_id=kw.keyword_id,
        gap_type=ContentGapType.STALE_CONTENT,
        severity=0.7,
        source=AnalysisSource.RULE_BASED,
        engine_types=[e.engine for e in kw.engines if not e.has_brand_citation],
        brand_last_cited_at=previous.last_cited_at,
        metadata={"previous_citation_count": previous.brand_citation_count},
    )
    return [rec], [gap]


def check_low_prominence(kw: KeywordAnalysis) -> RuleOutput:
    """Brand is cited, but its average position is still low in the list"""
    if not kw.has_brand_citation:
        return [], []

    positions = [p for p in kw.brand_citation_positions if p is not None]
    if not positions:
        return [], []

    average = round(sum(positions) / len(positions), 1)
    if average < get_settings().LOW_PROMINENCE_POSITION:
        return [], []

    rec = _recommendation(
        kw,
        RecommendationType.IMPROVE_STRUCTURE,
        title=f'Improve citation position for "{kw.keyword}"',
        description=(
            f"Your brand is cited for this keyword at an average position of {average}. "
            "Higher positions get more visibility and clicks."
        ),
        steps=[
            "Put the key answer in the first paragraph of the page",
            "Add structured data (FAQ schema, definition lists)",
            "Include comparison tables and data visualizations",
            "Make the page title and headings match the query intent",
        ],
        metadata={"average_position": average, "positions": sorted(positions)},
    )

    gap = GeneratedContentGap(
        keyword_id=kw.keyword_id,
        gap_type=ContentGapType.LOW_PROMINENCE,
        severity=round(min(0.9, 0.3 + 0.1 * (average - 3)), 2),
        source=AnalysisSource.RULE_BASED,
        engine_types=[e.engine for e in kw.engines if e.has_brand_citation],
        metadata={"average_position": average},
    )
    return [rec], [gap]


def check_single_engine_citation(kw: KeywordAnalysis) -> RuleOutput:
    """Brand is cited on exactly one of several engines"""
    cited = [e for e in kw.engines if e.has_brand_citation]
    missing = [e for e in kw.engines if not e.has_brand_citation]
    if len(kw.engines) < 2 or len(cited) != 1:
        return [], []

    cited_on = _engine_values([cited[0].engine])[0]
    missing_on = _engine_values(e.engine for e in missing)

    rec = _recommendation(
        kw,
        RecommendationType.OPTIMIZE_CITATIONS,
        title=f'Expand visibility for "{kw.keyword}" beyond {cited_on}',
        description=(
            f"Your brand is only cited on {cited_on} for this keyword, "
            f"not on {', '.join(missing_on)}."
        ),
        steps=[
            "Compare how each engine answers this query and which sources it prefers",
            "Get listed on the third-party sites the other engines cite",
            "Improve content structure with clear headings and direct answers",
            "Make sure the page is crawlable and indexed by every major search index",
        ],
        metadata={"cited_on": [cited_on], "missing_on": missing_on},
    )
    return [rec], []


def check_negative_sentiment(kw: KeywordAnalysis) -> RuleOutput:
    """A mention of the brand for this keyword reads negatively"""
    if kw.sentiment != "negative":
        return [], []

    context = kw.negative_contexts[0] if kw.negative_contexts else None
    description = "AI engines mention your brand in a negative context for this keyword."
    if context:
        description += f' Example: "{context.strip()}"'

    rec = _recommendation(
        kw,
        RecommendationType.IMPROVE_AUTHORITY,
        title=f'Negative sentiment detected for "{kw.keyword}"',
        description=description,
        steps=[
            "Review the AI engine responses mentioning your brand negatively",
            "Identify the source of negative information",
            "Create or update content that addresses the concerns raised",
            "Publish positive case studies, reviews, or testimonials",
        ],
        priority=RecommendationPriority.HIGH,
        metadata={
            "sentiment": "negative",
            "mention_count": kw.brand_mention_count,
            "negative_context": context,
        },
    )
    return [rec], []


def check_missing_schema_hint(
    kw: KeywordAnalysis,
    queued: List[GeneratedRecommendation],
) -> RuleOutput:
    """Question keyword without a brand citation and no schema recommendation yet"""
    if kw.has_brand_citation or not FAQ_PATTERN.search(kw.keyword.strip()):
        return [], []
    if any(r.keyword_id == kw.keyword_id and r.type == RecommendationType.ADD_SCHEMA for r in queued):
        return [], []

    rec = _recommendation(
        kw,
        RecommendationType.ADD_SCHEMA,
        title=f'Add FAQ/HowTo schema for "{kw.keyword}"',
        description=(
            "This keyword has a question format that AI engines commonly answer from "
            "FAQ and HowTo structured data."
        ),
        steps=[
            f'Create a page or section that directly answers "{kw.keyword}"',
            "Add FAQ schema markup with the question and a concise answer",
            'For a "how to" keyword, add HowTo schema with step-by-step instructions',
            "Keep the answer factual and specific",
        ],
        metadata={"pattern": "question_keyword"},
    )
    return [rec], []


# =========================================================================
# ENTRY POINT
# =========================================================================

def deduplicate_recommendations(recs: List[GeneratedRecommendation]) -> List[GeneratedRecommendation]:
    """
    Collapse by (keyword_id, type, competitor_id), keeping the highest
    priority instance at the position of the first occurrence.
    """
    kept: Dict[tuple, GeneratedRecommendation] = {}
    for rec in recs:
        current = kept.get(rec.dedup_key)
        if current is None or PRIORITY_RANK[rec.priority] < PRIORITY_RANK[current.priority]:
            kept[rec.dedup_key] = rec
    return list(kept.values())


def analyze_with_rules(data: AnalysisData) -> AnalysisResult:
    """
    Run every rule against every keyword.

    Rules are independent and all applicable ones fire; recommendations are
    then de-duplicated and the optimization score is computed.
    """
    previous = {p.keyword_id: p for p in data.previous_run_data}
    recommendations: List[GeneratedRecommendation] = []
    gaps: List[GeneratedContentGap] = []

    for kw in data.keyword_analyses:
        outputs = [
            check_no_brand_citation(kw),
            check_competitor_cited_brand_not(kw),
            check_stale_content(kw, previous.get(kw.keyword_id)),
            check_low_prominence(kw),
            check_single_engine_citation(kw),
            check_negative_sentiment(kw),
        ]
        for recs, kw_gaps in outputs:
            recommendations.extend(recs)
            gaps.extend(kw_gaps)

        recs, _ = check_missing_schema_hint(kw, recommendations)
        recommendations.extend(recs)

    return AnalysisResult(
        recommendations=deduplicate_recommendations(recommendations),
        content_gaps=gaps,
        score=calculate_optimization_score(data),
    )
