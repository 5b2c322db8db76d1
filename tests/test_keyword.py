"""Tests for keyword relevance analysis."""

import pytest

from seoaudit.extractor import extract
from seoaudit.keyword import analyze, count_mentions
from seoaudit.models import Heading, PageFacts
from tests.conftest import KEYWORD, PAGE_URL


class TestCountMentions:
    """Non-overlapping, case-insensitive occurrence counting."""

    def test_non_overlapping(self):
        assert count_mentions("aaa", "aa") == 1
        assert count_mentions("aaaa", "aa") == 2

    def test_case_insensitive(self):
        assert count_mentions("Rental CALCULATOR and rental calculator", "rental calculator") == 2

    def test_empty_inputs(self):
        assert count_mentions("", "x") == 0
        assert count_mentions("some text", "") == 0


class TestAnalyze:
    """Placement flags, mentions and density."""

    def test_positions_from_facts(self):
        facts = PageFacts(
            url=PAGE_URL,
            title="Rental Calculator Guide",
            meta_description="No keyword here",
            headings=(Heading("H1", "Other heading"), Heading("H1", "The RENTAL calculator")),
            first_paragraph="Start with the rental calculator.",
            content_text="rental calculator one two rental calculator",
            word_count=6,
        )
        relevance = analyze(facts, "  Rental Calculator ")
        assert relevance.keyword == "Rental Calculator"
        assert relevance.in_title is True
        assert relevance.in_h1 is True
        assert relevance.in_meta_description is False
        assert relevance.in_first_paragraph is True
        assert relevance.positions() == ["title", "H1", "first paragraph"]
        assert relevance.mention_count == 2
        assert relevance.word_count == 6
        assert relevance.density == pytest.approx(2 / 6)

    def test_zero_words_means_zero_density(self):
        relevance = analyze(PageFacts(url=PAGE_URL), KEYWORD)
        assert relevance.mention_count == 0
        assert relevance.density == 0.0
        assert relevance.positions() == []

    def test_blank_keyword_matches_nothing(self, a_grade_html):
        relevance = analyze(extract(a_grade_html, PAGE_URL), "   ")
        assert relevance.keyword == ""
        assert relevance.positions() == []
        assert relevance.mention_count == 0

    def test_mentions_exclude_boilerplate(self):
        html = (
            "<title>Nothing</title>"
            "<nav>rental calculator</nav><footer>rental calculator</footer>"
            "<p>Our rental calculator works.</p>"
        )
        relevance = analyze(extract(html, PAGE_URL), KEYWORD)
        assert relevance.mention_count == 1
        assert relevance.in_first_paragraph is True

    def test_full_page(self, a_grade_html):
        relevance = analyze(extract(a_grade_html, PAGE_URL), KEYWORD)
        assert relevance.positions() == ["title", "H1", "meta description", "first paragraph"]
        assert relevance.mention_count == 4
        assert 0 < relevance.density < 0.01
