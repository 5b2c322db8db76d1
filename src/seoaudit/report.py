"""Markdown reports for grade sheets and audit results."""

from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from seoaudit.models import AuditResult, GradeSheet, KeywordRelevance, PageFacts

TEMPLATE_DIR = Path(__file__).parent / "templates"

GRADE_MARKS = {"A": "✅", "B": "🟢", "C": "🟡", "D": "🟠", "F": "❌"}


def _format_number(value):
    """Format number with thousand separators."""
    try:
        return "{:,}".format(int(value))
    except (ValueError, TypeError):
        return value


def _criterion_label(name: str) -> str:
    labels = {"h1_tag": "H1 tag", "technical_seo": "Technical SEO", "https_security": "HTTPS security"}
    return labels.get(name, name.replace("_", " ").capitalize())


def _md_cell(value) -> str:
    """Make a value safe inside a Markdown table cell."""
    return str(value).replace("|", "\\|").replace("\n", " ")


def _build_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["format_number"] = _format_number
    env.filters["criterion_label"] = _criterion_label
    env.filters["md_cell"] = _md_cell
    env.filters["grade_mark"] = lambda letter: GRADE_MARKS.get(letter, "")
    return env


_env = _build_env()


def render_grade_report(
    sheet: GradeSheet,
    facts: Optional[PageFacts] = None,
    relevance: Optional[KeywordRelevance] = None,
) -> str:
    """Render a deterministic grade sheet as Markdown."""
    template = _env.get_template("grade_report.md.j2")
    return template.render(sheet=sheet, facts=facts, relevance=relevance)


def render_audit_report(result: AuditResult) -> str:
    """Render an LLM audit result (and its grades, if any) as Markdown."""
    template = _env.get_template("audit_report.md.j2")
    priority_order = {"high": 0, "medium": 1, "low": 2}
    recommendations = sorted(
        (r for r in result.recommendations if isinstance(r, dict)),
        key=lambda r: priority_order.get(str(r.get("priority", "")).lower(), 3),
    )
    return template.render(result=result, recommendations=recommendations)
