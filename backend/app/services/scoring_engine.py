"""
Visibility Scoring Engine
Pure, deterministic aggregation functions used by dashboards and reports
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from app.config import DEFAULT_ENGINE_WEIGHT, ENGINE_WEIGHTS, get_settings


@dataclass
class EngineVisibilityInput:
    """Keyword coverage of one engine"""
    engine: str
    keywords_cited: int
    total_keywords: int


@dataclass
class EngineScore:
    """Per-engine component of the visibility score"""
    engine: str
    score: float      # 0-100, before weighting
    weight: float
    weighted: float   # score * weight


@dataclass
class VisibilityBreakdown:
    score: float
    by_engine: List[EngineScore] = field(default_factory=list)


@dataclass
class ShareOfVoiceResult:
    brand_share: float
    competitor_shares: Dict[str, float] = field(default_factory=dict)
    total_citations: int = 0


def get_engine_weight(engine) -> float:
    """Importance weight of an engine"""
    key = getattr(engine, "value", engine)
    return ENGINE_WEIGHTS.get(key, DEFAULT_ENGINE_WEIGHT)


def calculate_visibility_score(per_engine: Sequence[EngineVisibilityInput]) -> VisibilityBreakdown:
    """
    Weighted percentage of keywords cited, across engines.

    engine_score = 100 * keywords_cited / total_keywords
    score = sum(engine_score * weight) / sum(weight)

    Engines that queried no keywords are left out of the average.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    by_engine = []

    for item in per_engine:
        if item.total_keywords <= 0:
            continue
        cited = min(max(item.keywords_cited, 0), item.total_keywords)
        engine_score = cited / item.total_keywords * 100
        weight = get_engine_weight(item.engine)
        weighted = engine_score * weight

        weighted_sum += weighted
        total_weight += weight
        by_engine.append(EngineScore(
            engine=getattr(item.engine, "value", item.engine),
            score=round(engine_score, 1),
            weight=weight,
            weighted=round(weighted, 1),
        ))

    score = weighted_sum / total_weight if total_weight > 0 else 0.0
    return VisibilityBreakdown(score=round(score, 1), by_engine=by_engine)


def calculate_citation_confidence(cited_runs: int, total_runs: int) -> float:
    """
    Confidence in [0, 1] that a keyword is reliably cited.

    The citation rate is damped while fewer than CONFIDENCE_SAMPLE_SIZE runs
    exist, so 1 of 1 scores below 8 of 10.
    """
    if total_runs <= 0:
        return 0.0

    ratio = min(1.0, max(cited_runs, 0) / total_runs)
    damping = min(1.0, total_runs / get_settings().CONFIDENCE_SAMPLE_SIZE)
    return round(ratio * damping, 3)


def calculate_prominence_score(position: Optional[int]) -> float:
    """1.0 at position 1, decaying per rank, 0.5 when unranked"""
    settings = get_settings()
    if position is None:
        return settings.UNRANKED_PROMINENCE
    if position <= 1:
        return 1.0
    score = 1.0 - settings.PROMINENCE_DECAY_PER_POSITION * (position - 1)
    return round(max(0.0, score), 2)


def _floor_share(count: int, total: int) -> float:
    # Floor to one decimal so shares never sum past 100
    return math.floor(round(count / total * 1000, 6)) / 10


def calculate_share_of_voice(brand_count: int, competitor_counts: Mapping[str, int]) -> ShareOfVoiceResult:
    """
    Brand and competitor shares of all citations, as percentages.

    Args:
        brand_count: Brand citations in the period
        competitor_counts: {competitor_id: citations}

    Returns:
        ShareOfVoiceResult; all shares are 0 when there are no citations
    """
    brand_count = max(brand_count, 0)
    counts = {str(k): max(v, 0) for k, v in competitor_counts.items()}
    total = brand_count + sum(counts.values())

    if total == 0:
        return ShareOfVoiceResult(
            brand_share=0.0,
            competitor_shares={k: 0.0 for k in counts},
            total_citations=0,
        )

    return ShareOfVoiceResult(
        brand_share=_floor_share(brand_count, total),
        competitor_shares={k: _floor_share(v, total) for k, v in counts.items()},
        total_citations=total,
    )


def calculate_trend(current: float, previous: float) -> float:
    """Percent change from previous to current"""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)
