"""
Brand Matching Engine
Detects brand mentions in response text with exact, domain and fuzzy matching
"""

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from app.config import Settings, get_settings
from app.models import MentionType, SentimentPolarity
from .sentiment_analyzer import SentimentAnalyzer


@dataclass
class DetectedMention:
    """A detected brand mention"""
    mention_type: MentionType
    matched_text: str                # Exact text found in response
    context: str                     # Surrounding context, clipped to the text
    confidence: float                # 0.0 - 1.0
    sentiment: Optional[SentimentPolarity]
    character_offset: Optional[int] = None
    match_strategy: str = "none"     # "citation", "exact", "domain", "fuzzy", "none"


@dataclass
class MentionQuery:
    """Everything the detector needs for one response"""
    response_text: str
    brand_name: str
    brand_aliases: List[str] = field(default_factory=list)
    project_domain: str = ""
    has_citation_match: bool = False


# A stage returns the mentions it found and whether detection stops there
StageResult = Tuple[List[DetectedMention], bool]
Stage = Callable[[MentionQuery, List[DetectedMention]], StageResult]


class BrandMatcher:
    """
    Detects brand presence in a response as an ordered chain of stages:
    1. Empty text (short-circuits to not_found)
    2. Brand URL already cited by the response
    3. Exact brand name / alias match (case-insensitive, whole words)
    4. Project domain written in the text
    5. Fuzzy match on the brand name (only without a name or domain match)
    6. not_found when nothing above matched

    Every mention except not_found carries a sentiment computed on its
    context window.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
    ):
        settings = settings or get_settings()
        self.context_window = settings.MENTION_CONTEXT_WINDOW
        self.fuzzy_max_distance = settings.FUZZY_MAX_DISTANCE
        self.fuzzy_min_length = settings.FUZZY_MIN_NAME_LENGTH
        self.fuzzy_confidence = settings.FUZZY_MATCH_CONFIDENCE
        self.domain_confidence = settings.DOMAIN_MENTION_CONFIDENCE
        self.sentiment = sentiment_analyzer or SentimentAnalyzer()

        self.stages: List[Stage] = [
            self._empty_text_stage,
            self._citation_stage,
            self._exact_name_stage,
            self._domain_stage,
            self._fuzzy_stage,
        ]

    def detect(self, query: MentionQuery) -> List[DetectedMention]:
        """Run every stage in order and return the detected mentions"""
        mentions: List[DetectedMention] = []

        for stage in self.stages:
            found, halt = stage(query, mentions)
            mentions.extend(found)
            if halt:
                return mentions

        if not mentions:
            mentions.append(self._not_found())
        return mentions

    def _not_found(self) -> DetectedMention:
        return DetectedMention(
            mention_type=MentionType.NOT_FOUND,
            matched_text="",
            context="",
            confidence=1.0,
            sentiment=None,
        )

    def _get_context(self, text: str, start: int, end: int) -> str:
        """Extract context around a match"""
        context_start = max(0, start - self.context_window)
        context_end = min(len(text), end + self.context_window)
        return text[context_start:context_end]

    def _mention(
        self,
        text: str,
        start: int,
        end: int,
        mention_type: MentionType,
        confidence: float,
        strategy: str,
    ) -> DetectedMention:
        context = self._get_context(text, start, end)
        return DetectedMention(
            mention_type=mention_type,
            matched_text=text[start:end],
            context=context,
            confidence=confidence,
            sentiment=self.sentiment.analyze(context).polarity,
            character_offset=start,
            match_strategy=strategy,
        )

    def _domain_pattern(self, domain: str) -> Optional[re.Pattern]:
        domain = (domain or "").strip().lower()
        if domain.startswith("www."):
            domain = domain[4:]
        if not domain:
            return None
        return re.compile(
            r"(?<![\w.-])(?:www\.)?" + re.escape(domain) + r"(?![\w-])",
            re.IGNORECASE,
        )

    # Stages

    def _empty_text_stage(self, query: MentionQuery, found: List[DetectedMention]) -> StageResult:
        if not query.response_text or not query.response_text.strip():
            return [self._not_found()], True
        return [], False

    def _citation_stage(self, query: MentionQuery, found: List[DetectedMention]) -> StageResult:
        if not query.has_citation_match:
            return [], False

        text = query.response_text
        domain = query.project_domain
        # The window must hold the domain exactly as configured
        offset = text.find(domain) if domain else -1
        if offset >= 0:
            context = self._get_context(text, offset, offset + len(domain))
        else:
            context = domain
            offset = None

        return [DetectedMention(
            mention_type=MentionType.DIRECT_CITATION,
            matched_text=query.project_domain,
            context=context,
            confidence=1.0,
            sentiment=self.sentiment.analyze(context).polarity,
            character_offset=offset,
            match_strategy="citation",
        )], False

    def _exact_name_stage(self, query: MentionQuery, found: List[DetectedMention]) -> StageResult:
        text = query.response_text
        names = []
        for name in [query.brand_name] + list(query.brand_aliases or []):
            name = (name or "").strip()
            if name and name.lower() not in {n.lower() for n in names}:
                names.append(name)

        hits = []
        for name in names:
            pattern = re.compile(
                r"(?<![A-Za-z0-9])" + re.escape(name) + r"(?![A-Za-z0-9])",
                re.IGNORECASE,
            )
            hits.extend((m.start(), m.end()) for m in pattern.finditer(text))

        # Earliest first, longer match wins at the same offset
        hits.sort(key=lambda span: (span[0], -(span[1] - span[0])))

        mentions = []
        seen_text = set()
        taken: List[Tuple[int, int]] = []
        for start, end in hits:
            if any(s < end and start < e for s, e in taken):
                continue
            taken.append((start, end))
            matched = text[start:end]
            if matched in seen_text:
                continue
            seen_text.add(matched)
            mentions.append(self._mention(text, start, end, MentionType.BRAND_NAME, 1.0, "exact"))

        return mentions, False

    def _domain_stage(self, query: MentionQuery, found: List[DetectedMention]) -> StageResult:
        # Already counted through the structured citation
        if query.has_citation_match:
            return [], False

        pattern = self._domain_pattern(query.project_domain)
        match = pattern.search(query.response_text) if pattern else None
        if not match:
            return [], False

        return [self._mention(
            query.response_text,
            match.start(),
            match.end(),
            MentionType.BRAND_NAME,
            self.domain_confidence,
            "domain",
        )], False

    def _fuzzy_targets(self, query: MentionQuery) -> List[str]:
        tokens = re.findall(r"[A-Za-z0-9]+", query.brand_name or "")
        targets = tokens[:1]
        for alias in query.brand_aliases or []:
            alias_tokens = re.findall(r"[A-Za-z0-9]+", alias or "")
            if len(alias_tokens) == 1:
                targets.append(alias_tokens[0])

        unique = []
        for target in targets:
            target = target.lower()
            if len(target) >= self.fuzzy_min_length and target not in unique:
                unique.append(target)
        return unique

    def _fuzzy_stage(self, query: MentionQuery, found: List[DetectedMention]) -> StageResult:
        if any(m.match_strategy in ("exact", "domain") for m in found):
            return [], False

        targets = self._fuzzy_targets(query)
        if not targets:
            return [], False

        text = query.response_text
        best = None  # (distance, start, end)
        for word in re.finditer(r"[A-Za-z0-9]+", text):
            candidate = word.group().lower()
            for target in targets:
                distance = Levenshtein.distance(
                    candidate, target, score_cutoff=self.fuzzy_max_distance
                )
                if distance > self.fuzzy_max_distance:
                    continue
                if best is None or distance < best[0]:
                    best = (distance, word.start(), word.end())

        if best is None:
            return [], False

        _, start, end = best
        return [self._mention(
            text, start, end, MentionType.INDIRECT_MENTION, self.fuzzy_confidence, "fuzzy"
        )], False


def detect_brand_mentions(
    response_text: str,
    brand_name: str,
    brand_aliases: Sequence[str] = (),
    project_domain: str = "",
    has_citation_match: bool = False,
) -> List[DetectedMention]:
    """
    Detect brand mentions in one engine response.

    Args:
        response_text: Full response text
        brand_name: Project brand name
        brand_aliases: Alternative names for the brand
        project_domain: Project's own domain
        has_citation_match: True when the response cites a brand URL

    Returns:
        One or more mentions; a single not_found mention when nothing matched
    """
    matcher = BrandMatcher()
    return matcher.detect(MentionQuery(
        response_text=response_text or "",
        brand_name=brand_name or "",
        brand_aliases=list(brand_aliases or []),
        project_domain=project_domain or "",
        has_citation_match=has_citation_match,
    ))
