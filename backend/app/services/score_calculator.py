"""
Optimization Score Calculator

overall = content_coverage * 0.35 + competitive_gap * 0.25
        + citation_consistency * 0.25 + freshness * 0.15

Each sub-score is 0-100 and rounded to one decimal.
"""

import math

from app.services.analysis_types import AnalysisData, OptimizationScoreData

SCORE_WEIGHTS = {
    "content_coverage": 0.35,
    "competitive_gap": 0.25,
    "citation_consistency": 0.25,
    "freshness": 0.15,
}


def calculate_content_coverage(data: AnalysisData) -> float:
    """Share of keywords with at least one brand citation"""
    if data.total_keywords <= 0:
        return 0.0
    return data.keywords_with_brand_citation / data.total_keywords * 100


def calculate_competitive_gap(data: AnalysisData) -> float:
    """100 minus the share of keywords where a competitor is cited and the brand is not"""
    if data.total_keywords <= 0:
        return 100.0

    gaps = sum(
        1 for ka in data.keyword_analyses
        if not ka.has_brand_citation and ka.competitor_citations
    )
    return max(0.0, 100 - gaps / data.total_keywords * 100)


def calculate_citation_consistency(data: AnalysisData) -> float:
    """Average share of engines citing the brand, over cited keywords with engine data"""
    ratios = [
        sum(1 for e in ka.engines if e.has_brand_citation) / len(ka.engines) * 100
        for ka in data.keyword_analyses
        if ka.has_brand_citation and ka.engines
    ]
    if not ratios:
        return 0.0
    # Order-independent sum
    return math.fsum(ratios) / len(ratios)


def calculate_freshness(data: AnalysisData) -> float:
    """100 minus the share of previously cited keywords that lost their citation"""
    previously_cited = [p for p in data.previous_run_data if p.has_brand_citation]
    if not previously_cited:
        return 100.0

    current = {ka.keyword_id: ka for ka in data.keyword_analyses}
    stale = sum(
        1 for p in previously_cited
        if p.keyword_id in current and not current[p.keyword_id].has_brand_citation
    )
    return max(0.0, 100 - stale / len(previously_cited) * 100)


def calculate_optimization_score(data: AnalysisData) -> OptimizationScoreData:
    """Combine the four sub-scores into the overall optimization score"""
    content_coverage = calculate_content_coverage(data)
    competitive_gap = calculate_competitive_gap(data)
    citation_consistency = calculate_citation_consistency(data)
    freshness = calculate_freshness(data)

    overall = (
        content_coverage * SCORE_WEIGHTS["content_coverage"]
        + competitive_gap * SCORE_WEIGHTS["competitive_gap"]
        + citation_consistency * SCORE_WEIGHTS["citation_consistency"]
        + freshness * SCORE_WEIGHTS["freshness"]
    )

    return OptimizationScoreData(
        overall_score=round(overall, 1),
        content_coverage=round(content_coverage, 1),
        competitive_gap=round(competitive_gap, 1),
        citation_consistency=round(citation_consistency, 1),
        freshness=round(freshness, 1),
    )
