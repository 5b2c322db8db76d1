"""Build the bounded text context sent to the LLM for one page."""

import json
from typing import Optional

from seoaudit.audit_types import AuditType
from seoaudit.constants import (
    BUSINESS_CONTEXT_CHAR_LIMIT,
    HEADINGS_CONTEXT_LIMIT,
    LINK_SAMPLE_CONTEXT_LIMIT,
    MIXED_CONTENT_CONTEXT_LIMIT,
    SCHEMA_CONTEXT_CHAR_LIMIT,
)
from seoaudit.models import GradeSheet, KeywordRelevance, PageFacts

NONE = "(none)"


def truncate(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters, marking the cut."""
    if limit <= 0 or not text:
        return ""
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)].rstrip() + "..."


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def _schema_section(facts: PageFacts) -> str:
    if not facts.schema_blocks:
        return "(none found)"
    blocks = "\n---\n".join(json.dumps(block, ensure_ascii=False) for block in facts.schema_blocks)
    return truncate(blocks, SCHEMA_CONTEXT_CHAR_LIMIT)


def _headings_section(facts: PageFacts) -> str:
    lines = [f"{h.level}: {h.text}" for h in facts.headings[:HEADINGS_CONTEXT_LIMIT]]
    if len(facts.headings) > HEADINGS_CONTEXT_LIMIT:
        lines.append(f"... {len(facts.headings) - HEADINGS_CONTEXT_LIMIT} more")
    return "\n".join(lines) or "(none found)"


def _keyword_section(relevance: KeywordRelevance) -> list[str]:
    return [
        "",
        f"TARGET KEYWORD: {relevance.keyword}",
        f"KEYWORD IN TITLE: {_yes_no(relevance.in_title)}",
        f"KEYWORD IN H1: {_yes_no(relevance.in_h1)}",
        f"KEYWORD IN META DESCRIPTION: {_yes_no(relevance.in_meta_description)}",
        f"KEYWORD IN FIRST PARAGRAPH: {_yes_no(relevance.in_first_paragraph)}",
        f"KEYWORD MENTIONS: {relevance.mention_count} ({relevance.density * 100:.2f}% density)",
    ]


def _grades_section(grades: GradeSheet) -> list[str]:
    lines = ["", f"DETERMINISTIC GRADES (overall {grades.overall_grade}):"]
    for name, criterion in grades.grades.items():
        lines.append(f"- {name}: {criterion.grade} | {criterion.value} | {criterion.notes}")
    return lines


def _compliance_section(facts: PageFacts) -> list[str]:
    security = facts.security
    compliance = facts.compliance
    if security.headers_available:
        present = ", ".join(security.present_headers()) or NONE
    else:
        present = "(response headers unavailable)"
    mixed = compliance.mixed_content_urls[:MIXED_CONTENT_CONTEXT_LIMIT]
    return [
        "",
        "COMPLIANCE SIGNALS:",
        f"PROTOCOL: {compliance.protocol or 'unknown'}",
        f"SECURITY HEADERS PRESENT: {present}",
        f"MIXED CONTENT ({len(compliance.mixed_content_urls)}): {', '.join(mixed) or NONE}",
        f"HTML LANG: {compliance.lang or NONE}",
        f"ARIA LANDMARKS: {', '.join(compliance.aria_landmarks) or NONE}",
        f"SKIP LINK: {_yes_no(compliance.has_skip_link)}",
        f"FORMS: {compliance.form_count}, fields {compliance.form_field_count}, "
        f"labelled {compliance.labelled_field_count} ({compliance.form_label_coverage:.0%})",
        f"COOKIE CONSENT: {', '.join(compliance.consent_platforms) or 'not detected'}",
        f"PRIVACY POLICY LINK: {compliance.privacy_policy_link or NONE}",
        f"TERMS LINK: {compliance.terms_link or NONE}",
        f"DO NOT SELL LINK: {compliance.do_not_sell_link or NONE}",
        f"PAYMENT FORM: {_yes_no(compliance.payment_form_detected)}"
        + (f" (iframes: {', '.join(compliance.payment_iframes)})" if compliance.payment_iframes else ""),
        f"IFRAMES: {compliance.iframe_count}",
    ]


def _performance_section(facts: PageFacts) -> list[str]:
    perf = facts.performance
    hints = ", ".join(f"{rel}={count}" for rel, count in sorted(perf.resource_hints.items()))
    return [
        "",
        "PERFORMANCE SIGNALS:",
        f"SCRIPTS: {perf.script_count} external ({perf.async_scripts} async, {perf.defer_scripts} defer, "
        f"{perf.module_scripts} module, {len(perf.blocking_scripts)} blocking), {perf.inline_script_count} inline",
        f"STYLESHEETS: {perf.stylesheet_count} ({len(perf.blocking_stylesheets)} render-blocking)",
        f"RESOURCE HINTS: {hints or NONE}",
        f"THIRD-PARTY DOMAINS ({len(perf.third_party_domains)}): {', '.join(perf.third_party_domains) or NONE}",
        f"IMAGES: {perf.image_count} ({perf.lazy_images} lazy, {perf.images_with_dimensions} with dimensions)",
        f"WEB FONTS: {', '.join(perf.web_font_providers) or NONE}; font-display swap: "
        f"{_yes_no(perf.font_display_swap)}; preloaded fonts: {perf.preloaded_fonts}",
    ]


def build_page_context(
    facts: PageFacts,
    audit_type: AuditType,
    relevance: Optional[KeywordRelevance] = None,
    grades: Optional[GradeSheet] = None,
    business_context: str = "",
) -> str:
    """Serialize page facts as labeled fields for the LLM.

    Long fields are truncated to fixed budgets so the prompt stays within
    the model's input limits.

    Args:
        facts: Extracted page facts
        audit_type: Audit descriptor (decides body budget and extra sections)
        relevance: Keyword relevance, when a keyword was given
        grades: Deterministic grade sheet, when the audit type requires one
        business_context: Free-form description of the business

    Returns:
        Context document
    """
    lines = [
        f"PAGE URL: {facts.url}",
        f"TITLE: {facts.title or NONE}",
        f"META DESCRIPTION: {facts.meta_description or NONE}",
        f"CANONICAL: {facts.canonical or NONE}",
        f"OG TITLE: {facts.og_title or NONE}",
        f"OG DESCRIPTION: {facts.og_description or NONE}",
        f"TWITTER CARD: {facts.twitter_card or NONE}",
        "",
        "HEADINGS:",
        _headings_section(facts),
        "",
        f"BODY TEXT (first {audit_type.body_chars} chars, {facts.word_count} words total):",
        truncate(facts.body_text, audit_type.body_chars) or "(empty)",
        "",
        f"IMAGES: {facts.image_count} total, {facts.images_without_alt} without alt text",
        f"INTERNAL LINKS: {facts.internal_link_count}",
        f"EXTERNAL LINKS: {facts.external_link_count}",
    ]
    sample = facts.internal_links[:LINK_SAMPLE_CONTEXT_LIMIT]
    if sample:
        lines.append(f"INTERNAL LINK SAMPLE: {', '.join(sample)}")
    lines += [
        f"HTML SIZE: {round(facts.html_length / 1024)}KB",
        f"SCHEMA TYPES: {', '.join(facts.schema_types) or NONE}",
        "SCHEMA MARKUP:",
        _schema_section(facts),
    ]

    if relevance is not None and relevance.keyword:
        lines += _keyword_section(relevance)
    if grades is not None:
        lines += _grades_section(grades)
    if audit_type.include_compliance:
        lines += _compliance_section(facts)
    if audit_type.include_performance:
        lines += _performance_section(facts)

    business_context = (business_context or "").strip()
    if business_context:
        lines += ["", "BUSINESS CONTEXT:", truncate(business_context, BUSINESS_CONTEXT_CHAR_LIMIT)]

    return "\n".join(lines)
