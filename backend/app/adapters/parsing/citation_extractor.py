"""
Citation Extractor
Extracts, de-duplicates and classifies URLs cited by AI engine responses
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlparse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractedCitation:
    """A raw citation candidate from an engine response"""
    url: str                     # Normalized URL
    domain: str                  # Lowercase host without www.
    position: Optional[int]      # 1-based rank in the de-duplicated list
    source: str = "structured"   # "structured" or "text_extracted"


@dataclass(frozen=True)
class ClassifiedCitation(ExtractedCitation):
    """A citation labelled as brand, competitor or other"""
    is_brand_citation: bool = False
    matched_competitor_id: Optional[str] = None

    @property
    def classification(self) -> str:
        if self.is_brand_citation:
            return "brand"
        if self.matched_competitor_id is not None:
            return f"competitor:{self.matched_competitor_id}"
        return "other"


@dataclass
class CompetitorDomain:
    """Competitor identity used for classification"""
    id: str
    domain: str
    aliases: List[str] = field(default_factory=list)


def normalize_domain(value: str) -> str:
    """Lowercase a domain (or URL) and drop a leading www. label"""
    value = (value or "").strip().lower()
    if "://" in value:
        value = urlparse(value).hostname or ""
    value = value.rstrip("/")
    if value.startswith("www."):
        value = value[4:]
    return value


def domain_matches(cited_domain: str, target_domain: str) -> bool:
    """Exact domain or sub-domain match (blog.example.com matches example.com)"""
    if not cited_domain or not target_domain:
        return False
    return cited_domain == target_domain or cited_domain.endswith(f".{target_domain}")


class CitationExtractor:
    """
    Builds the ordered citation list for one engine response.

    Structured citations (reported by the engine) come first, then any
    additional URLs recovered from the response text. The same normalized
    URL is kept only once, at its first position.
    """

    # Bare URLs, markdown link targets and protocol-less www. links
    URL_PATTERN = re.compile(
        r'https?://[^\s<>"\'()\[\]{}]+|(?<![/@\w.])www\.[^\s<>"\'()\[\]{}]+',
        re.IGNORECASE,
    )

    # Tracking parameters dropped during normalization
    TRACKING_PARAMS = {"utm_source", "utm_medium", "utm_campaign"}

    def _clean_url(self, url: str) -> str:
        """Trim punctuation caught at the end of a URL and add a missing scheme"""
        url = url.strip()
        url = re.sub(r'[.,;:!?\'"*]+$', '', url)

        if url.lower().startswith("www."):
            url = "https://" + url

        return url

    def normalize_url(self, url: str) -> Optional[str]:
        """
        Normalize a URL for de-duplication.

        Drops the fragment and tracking parameters and strips trailing
        slashes. Returns None for URLs that cannot be parsed into an
        http(s) URL with a host.
        """
        try:
            parsed = urlparse(self._clean_url(url))
            hostname = parsed.hostname
            port = parsed.port
        except ValueError:
            return None

        if parsed.scheme.lower() not in ("http", "https") or not hostname:
            return None

        query = urlencode(
            [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
             if k not in self.TRACKING_PARAMS]
        )
        path = parsed.path.rstrip("/") or "/"
        host = f"{hostname}:{port}" if port else hostname
        normalized = f"{parsed.scheme.lower()}://{host}{path}"
        if query:
            normalized += f"?{query}"
        return normalized

    def _candidates(self, structured: Iterable[str], text: str):
        for url in structured or []:
            yield url, "structured"
        for match in self.URL_PATTERN.finditer(text or ""):
            yield match.group(), "text_extracted"

    def extract_citations(
        self,
        structured_citations: Sequence[str],
        raw_response_text: str,
    ) -> List[ExtractedCitation]:
        """
        Extract all citations from a response.

        Args:
            structured_citations: URLs reported by the engine (may be empty)
            raw_response_text: Full response text

        Returns:
            De-duplicated citations ordered by first occurrence
        """
        citations: List[ExtractedCitation] = []
        seen = set()

        for raw_url, source in self._candidates(structured_citations, raw_response_text):
            if not isinstance(raw_url, str):
                continue
            url = self.normalize_url(raw_url)
            if url is None:
                logger.debug("Skipping malformed citation URL: %r", raw_url)
                continue
            if url in seen:
                continue
            seen.add(url)

            citations.append(ExtractedCitation(
                url=url,
                domain=normalize_domain(urlparse(url).hostname or ""),
                position=len(citations) + 1,
                source=source,
            ))

        return citations

    def classify_citations(
        self,
        citations: Sequence[ExtractedCitation],
        project_domain: str,
        competitors: Sequence[CompetitorDomain],
    ) -> List[ClassifiedCitation]:
        """
        Label each citation as brand, competitor or other.

        A domain matching the project's own domain is always a brand
        citation, even if a competitor entry would also match it.
        """
        brand_domain = normalize_domain(project_domain)
        competitor_domains = [
            (str(c.id), normalize_domain(c.domain), {a.strip().lower() for a in (c.aliases or []) if a})
            for c in competitors
        ]

        classified = []
        for citation in citations:
            cited = normalize_domain(citation.domain)
            is_brand = domain_matches(cited, brand_domain)

            matched_competitor_id = None
            if not is_brand:
                for comp_id, comp_domain, aliases in competitor_domains:
                    if domain_matches(cited, comp_domain) or cited in aliases:
                        matched_competitor_id = comp_id
                        break

            classified.append(ClassifiedCitation(
                url=citation.url,
                domain=citation.domain,
                position=citation.position,
                source=citation.source,
                is_brand_citation=is_brand,
                matched_competitor_id=matched_competitor_id,
            ))

        return classified


_default_extractor = CitationExtractor()


def extract_citations(structured_citations: Sequence[str], raw_response_text: str) -> List[ExtractedCitation]:
    """Extract citations with the default extractor"""
    return _default_extractor.extract_citations(structured_citations, raw_response_text)


def classify_citations(
    citations: Sequence[ExtractedCitation],
    project_domain: str,
    competitors: Sequence[CompetitorDomain],
) -> List[ClassifiedCitation]:
    """Classify citations with the default extractor"""
    return _default_extractor.classify_citations(citations, project_domain, competitors)
