"""Tests for audit type descriptors and the LLM context builder."""

import pytest

from seoaudit.audit_types import AUDIT_TYPES, get_audit_type
from seoaudit.context import build_page_context, truncate
from seoaudit.errors import InputError
from seoaudit.extractor import extract
from seoaudit.keyword import analyze
from seoaudit.models import Heading, PageFacts
from seoaudit.rubric import grade
from tests.conftest import KEYWORD, PAGE_URL, build_page


class TestAuditTypes:
    """Registry lookups and prompt assembly."""

    def test_registry(self):
        assert set(AUDIT_TYPES) == {"seo", "content", "aeo", "schema", "compliance", "performance", "recommendations"}

    def test_lookup_normalizes_name(self):
        assert get_audit_type("  Compliance ").name == "compliance"

    @pytest.mark.parametrize("name", ["", None, "backlinks"])
    def test_unknown_type(self, name):
        with pytest.raises(InputError):
            get_audit_type(name)

    def test_standards_only_in_standards_prompts(self):
        assert '"standards"' in get_audit_type("compliance").full_system_prompt()
        assert '"standards"' in get_audit_type("performance").full_system_prompt()
        assert '"standards"' not in get_audit_type("seo").full_system_prompt()

    def test_every_prompt_carries_response_contract(self):
        for audit_type in AUDIT_TYPES.values():
            prompt = audit_type.full_system_prompt()
            assert prompt.startswith(audit_type.system_prompt)
            assert '"howToFix"' in prompt
            assert "%(" not in prompt

    def test_graded_types(self):
        graded = {name for name, t in AUDIT_TYPES.items() if t.requires_grade}
        assert graded == {"seo", "compliance", "performance", "recommendations"}


class TestTruncate:
    """Character budgets."""

    def test_short_text_untouched(self):
        assert truncate("hello", 10) == "hello"

    def test_long_text_marked(self):
        cut = truncate("abcdefghijklmnop", 10)
        assert cut == "abcdefg..."
        assert len(cut) == 10

    def test_zero_budget(self):
        assert truncate("hello", 0) == ""


class TestBuildPageContext:
    """Labeled context sent to the model."""

    @pytest.fixture
    def facts(self):
        return extract(build_page(), PAGE_URL, {"strict-transport-security": "max-age=1"})

    def test_core_fields(self, facts):
        context = build_page_context(facts, get_audit_type("content"))
        assert f"PAGE URL: {PAGE_URL}" in context
        assert "TITLE: Best Rental Calculator for Vacation Property Owners" in context
        assert f"CANONICAL: {PAGE_URL}" in context
        assert "OG TITLE: (none)" in context
        assert "H1: Best Rental Calculator" in context
        assert "INTERNAL LINKS: 13" in context
        assert "SCHEMA TYPES: WebPage, SoftwareApplication" in context
        assert "TARGET KEYWORD" not in context
        assert "COMPLIANCE SIGNALS" not in context

    def test_body_budget_follows_audit_type(self, facts):
        performance = build_page_context(facts, get_audit_type("performance"))
        recommendations = build_page_context(facts, get_audit_type("recommendations"))
        assert "BODY TEXT (first 1000 chars" in performance
        assert len(recommendations) > len(performance)

    def test_keyword_and_grades(self, facts):
        relevance = analyze(facts, KEYWORD)
        sheet = grade(facts, relevance)
        context = build_page_context(facts, get_audit_type("seo"), relevance, sheet)
        assert f"TARGET KEYWORD: {KEYWORD}" in context
        assert "KEYWORD IN H1: yes" in context
        assert "DETERMINISTIC GRADES (overall A):" in context
        assert "- title_tag: A |" in context

    def test_compliance_and_performance_sections(self, facts):
        compliance = build_page_context(facts, get_audit_type("compliance"))
        performance = build_page_context(facts, get_audit_type("performance"))
        assert "SECURITY HEADERS PRESENT: strict-transport-security" in compliance
        assert "PROTOCOL: https" in compliance
        assert "PERFORMANCE SIGNALS" not in compliance
        assert "PERFORMANCE SIGNALS:" in performance
        assert "COMPLIANCE SIGNALS" not in performance

    def test_unavailable_headers_are_labelled(self):
        facts = extract("<p>x</p>", PAGE_URL)
        context = build_page_context(facts, get_audit_type("compliance"))
        assert "SECURITY HEADERS PRESENT: (response headers unavailable)" in context

    def test_headings_are_capped(self):
        facts = PageFacts(url=PAGE_URL, headings=tuple(Heading("H2", f"Section {i}") for i in range(40)))
        context = build_page_context(facts, get_audit_type("content"))
        assert "H2: Section 29" in context
        assert "H2: Section 30" not in context
        assert "... 10 more" in context

    def test_schema_markup_is_capped(self):
        blocks = tuple({"@type": "Thing", "description": "x" * 500} for _ in range(10))
        facts = PageFacts(url=PAGE_URL, schema_blocks=blocks, schema_types=("Thing",) * 10)
        context = build_page_context(facts, get_audit_type("schema"))
        markup = context.split("SCHEMA MARKUP:\n", 1)[1]
        assert len(markup) == 2000
        assert markup.endswith("...")

    def test_business_context(self, facts):
        context = build_page_context(facts, get_audit_type("content"), business_context="  " + "b" * 2000)
        section = context.split("BUSINESS CONTEXT:\n", 1)[1]
        assert len(section) == 1500
        assert "BUSINESS CONTEXT" not in build_page_context(facts, get_audit_type("content"), business_context="   ")
