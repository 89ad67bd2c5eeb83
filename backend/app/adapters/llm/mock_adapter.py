"""
Mock Engine Adapter
Deterministic answers with citations, for running the pipeline without API costs
"""

import hashlib
import random
from typing import List, Optional

from app.models import EngineType
from .base import BaseLLMAdapter, LLMConfig, LLMMessage, LLMResponse, LLMUsage


# Sample domains and pages cited by mock answers
SAMPLE_SITES = [
    ("techcrunch.com", ["/2025/best-tools", "/reviews/software"]),
    ("g2.com", ["/categories/crm", "/products/compare"]),
    ("forbes.com", ["/advisor/business/software"]),
    ("pcmag.com", ["/picks/best-software"]),
    ("capterra.com", ["/reviews", "/compare"]),
    ("trustpilot.com", ["/review"]),
    ("reddit.com", ["/r/software/comments/best"]),
    ("wikipedia.org", ["/wiki/Comparison_of_software"]),
]

INTROS = [
    'Based on current analysis and expert reviews, here\'s what you need to know about "{prompt}":',
    'There are several highly-rated options when it comes to "{prompt}". Here\'s an overview:',
    'When evaluating "{prompt}", experts and users consistently highlight these key points:',
]

MID_SECTIONS = [
    "According to industry analysts, the market leaders in this space offer a strong "
    "combination of features, reliability, and customer support.",
    "Recent reviews indicate that users prioritize ease of use, integration capabilities, "
    "and pricing transparency when making their decision.",
    "Competitive analysis shows significant differentiation in areas like AI-powered "
    "features, scalability, and enterprise readiness.",
]

CLOSINGS = [
    "For the most up-to-date comparisons, consulting recent user reviews and analyst reports is recommended.",
    "The best choice depends on your specific needs, budget, and existing technology stack.",
    "Consider starting with free trials to evaluate which solution best fits your workflow.",
]


def seeded_random(seed: str) -> random.Random:
    """PRNG seeded from a stable hash of the seed text"""
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return random.Random(int(digest[:16], 16))


class MockAdapter(BaseLLMAdapter):
    """
    Mock engine for tests and local runs.

    The same engine + prompt always produces the same answer text and the
    same 3-6 citation URLs.
    """

    def __init__(self, engine_type: EngineType = EngineType.PERPLEXITY, config: Optional[LLMConfig] = None):
        super().__init__(api_key=None, config=config)
        self.engine_type = EngineType(engine_type)

    @property
    def provider(self) -> EngineType:
        return self.engine_type

    @property
    def default_model(self) -> str:
        return f"mock-{self.engine_type.value}"

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        prompt = messages[-1].content if messages else ""
        return self._respond(f"{self.engine_type.value}:{prompt}", prompt)

    def pick_citations(self, rng: random.Random) -> List[str]:
        """Pick 3-6 citation URLs, one per domain"""
        citation_count = rng.randint(3, 6)
        citations = []
        used_domains = set()

        for domain, pages in rng.sample(SAMPLE_SITES, len(SAMPLE_SITES)):
            if len(citations) >= citation_count:
                break
            if domain in used_domains:
                continue
            used_domains.add(domain)
            citations.append(f"https://{domain}{rng.choice(pages)}")

        return citations

    def _respond(self, seed: str, prompt: str) -> LLMResponse:
        rng = seeded_random(seed)

        citations = self.pick_citations(rng)
        intro = rng.choice(INTROS).format(prompt=prompt)
        mid = rng.choice(MID_SECTIONS)
        closing = rng.choice(CLOSINGS)
        refs = "\n".join(f"[{i + 1}] {url}" for i, url in enumerate(citations))
        content = f"{intro}\n\n{mid}\n\n{closing}\n\nSources:\n{refs}"

        tokens = 200 + rng.randint(0, 299)

        return LLMResponse(
            content=content,
            raw_response={"model": self.default_model, "citations": citations},
            provider=self.provider,
            model=self.default_model,
            usage=LLMUsage(prompt_tokens=len(prompt) // 4, completion_tokens=tokens, total_tokens=tokens),
            citations=citations,
        )
