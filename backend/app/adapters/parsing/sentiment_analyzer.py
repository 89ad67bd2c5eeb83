"""
Sentiment Analyzer
Lexical polarity detection for the context around a brand mention
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from app.config import NEGATION_WORDS, NEGATIVE_CUES, POSITIVE_CUES
from app.models import SentimentPolarity


@dataclass
class SentimentResult:
    """Result of sentiment analysis"""
    polarity: SentimentPolarity
    score: float  # -1.0 to 1.0
    positive_count: int = 0
    negative_count: int = 0
    matched_indicators: List[str] = field(default_factory=list)


class SentimentAnalyzer:
    """
    Counts positive and negative cue phrases in a context window.

    A cue preceded (within a few words) by a negation counts towards the
    opposite polarity, so "not reliable" is negative and "not expensive"
    is positive. Ties, including no cues at all, are neutral.
    """

    # Words looked back from a cue when checking for negation
    NEGATION_LOOKBACK = 3

    def __init__(
        self,
        positive_cues: Optional[Sequence[str]] = None,
        negative_cues: Optional[Sequence[str]] = None,
        negation_words: Optional[Sequence[str]] = None,
    ):
        self._positive_pattern = self._build_pattern(positive_cues or POSITIVE_CUES)
        self._negative_pattern = self._build_pattern(negative_cues or NEGATIVE_CUES)
        self._negation_words = {w.lower() for w in (negation_words or NEGATION_WORDS)}

    def _build_pattern(self, cues: Sequence[str]) -> re.Pattern:
        """Build a word-boundary regex, longest cues first"""
        escaped = [re.escape(c) for c in sorted(cues, key=len, reverse=True)]
        return re.compile(r"(?<![\w-])(" + "|".join(escaped) + r")(?![\w-])", re.IGNORECASE)

    def _is_negated(self, text: str, match_start: int) -> bool:
        preceding = re.findall(r"[\w']+", text[:match_start].lower())
        return any(w in self._negation_words for w in preceding[-self.NEGATION_LOOKBACK:])

    def analyze(self, text: str) -> SentimentResult:
        """
        Analyze sentiment of text.

        Args:
            text: Context window around a mention

        Returns:
            SentimentResult with polarity, score and the cues that counted
        """
        if not text:
            return SentimentResult(polarity=SentimentPolarity.NEUTRAL, score=0.0)

        positive = 0
        negative = 0
        matched = []

        for match in self._positive_pattern.finditer(text):
            cue = match.group().lower()
            if self._is_negated(text, match.start()):
                negative += 1
                matched.append(f"not {cue}")
            else:
                positive += 1
                matched.append(cue)

        for match in self._negative_pattern.finditer(text):
            cue = match.group().lower()
            if self._is_negated(text, match.start()):
                positive += 1
                matched.append(f"not {cue}")
            else:
                negative += 1
                matched.append(cue)

        if positive > negative:
            polarity = SentimentPolarity.POSITIVE
        elif negative > positive:
            polarity = SentimentPolarity.NEGATIVE
        else:
            polarity = SentimentPolarity.NEUTRAL

        total = positive + negative
        score = round((positive - negative) / total, 2) if total else 0.0

        return SentimentResult(
            polarity=polarity,
            score=score,
            positive_count=positive,
            negative_count=negative,
            matched_indicators=matched,
        )


_default_analyzer = SentimentAnalyzer()


def analyze_sentiment(text: str) -> SentimentPolarity:
    """Polarity of a context window using the configured lexicon"""
    return _default_analyzer.analyze(text).polarity
