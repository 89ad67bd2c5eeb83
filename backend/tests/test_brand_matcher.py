"""
Tests for brand mention detection.
"""

import pytest

from app.adapters.parsing.brand_matcher import BrandMatcher, MentionQuery, detect_brand_mentions
from app.config import Settings
from app.models import MentionType, SentimentPolarity


@pytest.fixture
def matcher():
    return BrandMatcher()


class TestNotFound:
    """Responses without the brand."""

    def test_empty_text(self):
        mentions = detect_brand_mentions("", "Soldierdata")
        assert len(mentions) == 1
        assert mentions[0].mention_type == MentionType.NOT_FOUND
        assert mentions[0].confidence == 1.0
        assert mentions[0].sentiment is None

    def test_whitespace_text_ignores_citation(self):
        mentions = detect_brand_mentions("   ", "Soldierdata", project_domain="soldierdata.com",
                                         has_citation_match=True)
        assert [m.mention_type for m in mentions] == [MentionType.NOT_FOUND]

    def test_brand_absent(self):
        mentions = detect_brand_mentions("Ahrefs and Semrush are popular.", "Soldierdata")
        assert [m.mention_type for m in mentions] == [MentionType.NOT_FOUND]

    def test_short_brand_not_fuzzy_matched(self):
        mentions = detect_brand_mentions("Acne treatment guide", "Acme")
        assert [m.mention_type for m in mentions] == [MentionType.NOT_FOUND]


class TestExactMatch:
    """Brand name and alias matching."""

    def test_brand_name(self):
        mentions = detect_brand_mentions("Acme Analytics is the best tool.", "Acme Analytics")
        assert len(mentions) == 1
        mention = mentions[0]
        assert mention.mention_type == MentionType.BRAND_NAME
        assert mention.matched_text == "Acme Analytics"
        assert mention.confidence == 1.0
        assert mention.match_strategy == "exact"
        assert mention.character_offset == 0
        assert mention.sentiment == SentimentPolarity.POSITIVE

    def test_repeated_text_counted_once(self):
        text = "Acme Analytics works. Many teams pick Acme Analytics."
        mentions = detect_brand_mentions(text, "Acme Analytics")
        assert len(mentions) == 1

    def test_case_insensitive(self):
        mentions = detect_brand_mentions("try acme analytics today", "Acme Analytics")
        assert mentions[0].matched_text == "acme analytics"

    def test_alias_inside_name_not_double_counted(self):
        text = "Acme Analytics leads. Acme also offers support."
        mentions = detect_brand_mentions(text, "Acme Analytics", brand_aliases=["Acme"])
        assert [m.matched_text for m in mentions] == ["Acme Analytics", "Acme"]

    def test_whole_words_only(self):
        mentions = detect_brand_mentions("Visit Acmeology for more", "Acme")
        assert [m.mention_type for m in mentions] == [MentionType.NOT_FOUND]

    def test_negative_context(self):
        mentions = detect_brand_mentions("Acme Analytics is expensive and buggy.", "Acme Analytics")
        assert mentions[0].sentiment == SentimentPolarity.NEGATIVE


class TestCitationAndDomain:
    """Direct citations and domains written in text."""

    def test_direct_citation(self):
        mentions = detect_brand_mentions(
            "Try acme.io for analytics.", "Acme Analytics",
            project_domain="acme.io", has_citation_match=True,
        )
        assert len(mentions) == 1
        assert mentions[0].mention_type == MentionType.DIRECT_CITATION
        assert mentions[0].matched_text == "acme.io"
        assert mentions[0].confidence == 1.0
        assert mentions[0].sentiment == SentimentPolarity.NEUTRAL

    def test_direct_citation_without_domain_in_text(self):
        mentions = detect_brand_mentions(
            "Several tools exist.", "Acme Analytics",
            project_domain="acme.io", has_citation_match=True,
        )
        assert mentions[0].mention_type == MentionType.DIRECT_CITATION
        assert mentions[0].context == "acme.io"
        assert mentions[0].character_offset is None

    def test_direct_citation_context_holds_configured_domain(self):
        text = "According to WWW.SoldierData.COM the best tool is here."
        mentions = detect_brand_mentions(
            text, "Acme", project_domain="soldierdata.com", has_citation_match=True,
        )
        assert mentions[0].mention_type == MentionType.DIRECT_CITATION
        assert mentions[0].matched_text == "soldierdata.com"
        assert mentions[0].matched_text in mentions[0].context

    def test_direct_citation_window_around_exact_domain(self):
        text = "Docs at SoldierData.com and also at soldierdata.com today."
        mentions = detect_brand_mentions(
            text, "Acme", project_domain="soldierdata.com", has_citation_match=True,
        )
        assert mentions[0].character_offset == text.index("soldierdata.com")
        assert mentions[0].context == text

    def test_direct_citation_plus_name(self):
        mentions = detect_brand_mentions(
            "Acme Analytics (acme.io) is trusted.", "Acme Analytics",
            project_domain="acme.io", has_citation_match=True,
        )
        assert [m.mention_type for m in mentions] == [MentionType.DIRECT_CITATION, MentionType.BRAND_NAME]

    def test_domain_in_text(self):
        mentions = detect_brand_mentions("Check out www.acme.io for details", "Acme Analytics",
                                         project_domain="acme.io")
        assert len(mentions) == 1
        assert mentions[0].mention_type == MentionType.BRAND_NAME
        assert mentions[0].match_strategy == "domain"
        assert mentions[0].matched_text == "www.acme.io"
        assert mentions[0].confidence == 0.9

    def test_domain_not_matched_inside_other_domain(self):
        mentions = detect_brand_mentions("See notacme.io instead", "Acme Analytics", project_domain="acme.io")
        assert [m.mention_type for m in mentions] == [MentionType.NOT_FOUND]


class TestFuzzyMatch:
    """Approximate matching on the brand name."""

    def test_typo_is_indirect_mention(self):
        mentions = detect_brand_mentions("Many users like Soldierdta for data.", "Soldierdata")
        assert len(mentions) == 1
        assert mentions[0].mention_type == MentionType.INDIRECT_MENTION
        assert mentions[0].matched_text == "Soldierdta"
        assert mentions[0].confidence == 0.7

    def test_skipped_after_exact_match(self):
        mentions = detect_brand_mentions("Soldierdata and Soldierdta", "Soldierdata")
        assert len(mentions) == 1
        assert mentions[0].match_strategy == "exact"

    def test_skipped_after_domain_match(self):
        mentions = detect_brand_mentions(
            "Visit soldierdata.com for reports. Soldierr tools are common.",
            "Soldier Data", project_domain="soldierdata.com",
        )
        assert [(m.mention_type, m.matched_text) for m in mentions] == [
            (MentionType.BRAND_NAME, "soldierdata.com"),
        ]

    def test_runs_after_direct_citation_only(self):
        mentions = detect_brand_mentions(
            "Several Soldierr tools exist.", "Soldier Data",
            project_domain="soldierdata.com", has_citation_match=True,
        )
        assert [m.mention_type for m in mentions] == [
            MentionType.DIRECT_CITATION, MentionType.INDIRECT_MENTION,
        ]

    def test_distance_over_threshold(self):
        mentions = detect_brand_mentions("Soldering tools", "Soldierdata")
        assert [m.mention_type for m in mentions] == [MentionType.NOT_FOUND]

    def test_closest_hit_kept(self):
        mentions = detect_brand_mentions("Brendex and Brandax and Brandex", "Brandex Pro")
        # "Brandex" alone is an exact token match of the first brand word
        assert mentions[0].matched_text == "Brandex"
        assert mentions[0].mention_type == MentionType.INDIRECT_MENTION


class TestContextWindow:
    """Context clipping around a match."""

    def test_window_clipped_to_text(self):
        matcher = BrandMatcher(settings=Settings(MENTION_CONTEXT_WINDOW=5))
        text = "xxxxxxxxxx Acme Analytics yyyyyyyyyy"
        mentions = matcher.detect(MentionQuery(response_text=text, brand_name="Acme Analytics"))
        assert mentions[0].context == "xxxx Acme Analytics yyyy"

    def test_window_at_text_start(self, matcher):
        mentions = matcher.detect(MentionQuery(response_text="Acme Analytics", brand_name="Acme Analytics"))
        assert mentions[0].context == "Acme Analytics"


class TestMentionProperties:
    """Invariants over a spread of responses."""

    RESPONSES = [
        "",
        "Soldier Data is the best option for data teams.",
        "Many people use soldierdata, and soldierdata.com has docs.",
        "Soldeir Data is mentioned with a typo here.",
        "Nothing to see in this answer.",
        "x" * 300 + " Soldier Data " + "y" * 300,
        "According to WWW.SoldierData.COM the best tool is here.",
    ]

    @pytest.mark.parametrize("text", RESPONSES)
    @pytest.mark.parametrize("cited", [False, True])
    def test_not_found_exclusive(self, text, cited):
        mentions = detect_brand_mentions(text, "Soldier Data", ["soldierdata"], "soldierdata.com", cited)
        types = [m.mention_type for m in mentions]
        if MentionType.NOT_FOUND in types:
            assert types == [MentionType.NOT_FOUND]
        else:
            assert types
        for mention in mentions:
            assert (mention.sentiment is None) == (mention.mention_type == MentionType.NOT_FOUND)

    @pytest.mark.parametrize("text", RESPONSES[1:])
    @pytest.mark.parametrize("cited", [False, True])
    def test_context_bounds(self, text, cited):
        for mention in detect_brand_mentions(text, "Soldier Data", ["soldierdata"], "soldierdata.com", cited):
            if mention.mention_type == MentionType.NOT_FOUND:
                continue
            assert mention.matched_text in mention.context
            assert len(mention.context) <= 200 + len(mention.matched_text)

    def test_empty_text_example(self):
        mentions = detect_brand_mentions("", "Soldier Data", ["soldierdata"], has_citation_match=False)
        assert len(mentions) == 1
        assert mentions[0].mention_type == MentionType.NOT_FOUND
        assert mentions[0].confidence == 1.0
