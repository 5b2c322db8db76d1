"""Audit types as data.

Every audit shares one response envelope; an AuditType only decides the
system prompt, the context budget and which deterministic checks run first.
"""

from dataclasses import dataclass
from typing import Optional

from seoaudit.errors import InputError

RESPONSE_FORMAT = """
Respond with ONLY valid JSON in this format:
{
  "score": <number 0-100>,
  "summary": "<2-3 sentence overview of the page's overall status>",
  "strengths": ["<what the page already does well, 3-5 items>"],
  "recommendations": [
    {
      "priority": "high" | "medium" | "low",
      "category": "<short category name>",
      "issue": "<the exact problem, referencing the specific element or text>",
      "recommendation": "<the exact fix>",
      "howToFix": "<step-by-step implementation instructions>",
      "impact": "<expected improvement>"
    }
  ]%(standards)s
}

Rules:
- Every recommendation must reference a specific element on the page.
- Every recommendation must give an exact fix, not general advice.
- Do not recommend anything the page already does correctly.

Return 5-15 recommendations sorted by priority (high first).
Return 3-5 strengths."""

STANDARDS_FORMAT = """,
  "standards": [
    {
      "standard": "<framework or criterion, e.g. GDPR, WCAG 2.1 AA, Core Web Vitals>",
      "status": "pass" | "fail" | "partial" | "unknown",
      "notes": "<evidence from the page>"
    }
  ]"""


@dataclass(frozen=True)
class AuditType:
    """Descriptor for one kind of LLM audit."""

    name: str
    system_prompt: str
    body_chars: int = 3000
    requires_grade: bool = False
    rubric_scope: Optional[str] = None  # "compliance", "performance" or None
    include_compliance: bool = False
    include_performance: bool = False
    wants_standards: bool = False
    max_tokens: int = 3000

    def full_system_prompt(self) -> str:
        """System prompt with the response-shape contract appended."""
        standards = STANDARDS_FORMAT if self.wants_standards else ""
        return f"{self.system_prompt}\n{RESPONSE_FORMAT % {'standards': standards}}"


SEO_PROMPT = """You are an expert SEO auditor. Analyze this page and provide actionable recommendations.

Evaluate the title tag, meta description, heading hierarchy, internal linking,
image alt text, URL structure, content depth and keyword coverage, canonical tag,
Open Graph tags and any render-blocking resources. Deterministic grades for the
page are included; explain and prioritize fixes for the weakest ones.

SCORING: Rate 0-100 based on how well the page follows SEO best practices."""

CONTENT_PROMPT = """You are an expert marketing strategist and copy editor. Analyze this page holistically.

Evaluate headline clarity, the value proposition, call-to-action strength,
persuasion and trust signals, benefit versus feature balance, readability,
grammar and spelling, above-the-fold content and friction in the user journey.

SCORING: Rate 0-100 based on overall marketing effectiveness."""

AEO_PROMPT = """You are an expert in answer engine optimization. Analyze how likely AI assistants and AI search overviews are to cite this page.

Evaluate question-based content, concise quotable answers, lists and tables,
entity coverage, authority signals and citations, comprehensiveness, freshness
and original data.

SCORING: Rate 0-100 based on AI search visibility potential."""

SCHEMA_PROMPT = """You are an expert in structured data. Analyze this page's schema.org markup.

List the schema types present, check required properties for each, identify
missing types that fit the page (Organization, WebSite, BreadcrumbList, FAQ,
HowTo, Product, Review, Article, Person, Event, Video) and name the rich result
opportunities they would unlock.

SCORING: Rate 0-100 based on schema completeness and correctness."""

COMPLIANCE_PROMPT = """You are an expert web compliance auditor covering privacy law, accessibility and security.

Evaluate privacy (GDPR cookie consent, privacy policy, CCPA "Do Not Sell" link),
accessibility (WCAG 2.1 AA signals: lang attribute, landmarks, skip link, form
labels, image alt text), legal pages (terms, cookie policy) and security
(HTTPS, mixed content, security headers, payment form handling). The detected
signals and deterministic compliance grades are included. For each framework
you assess, add an entry to "standards".

SCORING: Rate 0-100 based on overall compliance posture. Score severely for
missing cookie consent, no privacy policy or critical accessibility failures."""

PERFORMANCE_PROMPT = """You are an expert in web performance. Analyze this page's loading strategy from its markup.

Evaluate render-blocking scripts and stylesheets, async/defer usage, resource
hints, third-party script load, image sizing and lazy loading, and web font
strategy. The detected signals and deterministic performance grades are
included. Relate findings to Core Web Vitals in "standards".

SCORING: Rate 0-100 based on expected loading performance."""

RECOMMENDATIONS_PROMPT = """You are an expert SEO strategist. Produce keyword-specific recommendations for this page.

The target keyword, its placement on the page and a deterministic grade sheet
are included. Focus on the lowest-graded criteria first and give exact
rewrites (titles, meta descriptions, headings, copy) that work the keyword in
naturally.

SCORING: Rate 0-100 based on how well the page can rank for the target keyword."""


AUDIT_TYPES: dict[str, AuditType] = {
    "seo": AuditType("seo", SEO_PROMPT, requires_grade=True),
    "content": AuditType("content", CONTENT_PROMPT),
    "aeo": AuditType("aeo", AEO_PROMPT),
    "schema": AuditType("schema", SCHEMA_PROMPT, body_chars=1500),
    "compliance": AuditType(
        "compliance",
        COMPLIANCE_PROMPT,
        body_chars=2000,
        requires_grade=True,
        rubric_scope="compliance",
        include_compliance=True,
        wants_standards=True,
        max_tokens=4000,
    ),
    "performance": AuditType(
        "performance",
        PERFORMANCE_PROMPT,
        body_chars=1000,
        requires_grade=True,
        rubric_scope="performance",
        include_performance=True,
        wants_standards=True,
    ),
    "recommendations": AuditType(
        "recommendations", RECOMMENDATIONS_PROMPT, body_chars=4000, requires_grade=True
    ),
}


def get_audit_type(name: str) -> AuditType:
    """Look up an audit type by name.

    Raises:
        InputError: If the name is not a registered audit type
    """
    audit_type = AUDIT_TYPES.get((name or "").strip().lower())
    if audit_type is None:
        raise InputError(
            f"Unknown auditType '{name}'. Expected one of: {', '.join(AUDIT_TYPES)}"
        )
    return audit_type
