"""Deterministic page grading rubric.

Every criterion is a pure function of (facts, relevance, thresholds) returning
a CriterionGrade. Missing data maps to the worst grade the table allows for
that criterion; nothing is skipped as "N/A".
"""

from typing import Callable, Optional

from seoaudit.config import RubricThresholds, default_thresholds
from seoaudit.models import CriterionGrade, GradeSheet, KeywordRelevance, PageFacts

Criterion = Callable[[PageFacts, KeywordRelevance, RubricThresholds], CriterionGrade]


def letter_for_average(average: float) -> str:
    """Map an average of grade points (A=4 .. F=0) to a letter."""
    if average >= 3.5:
        return "A"
    if average >= 2.5:
        return "B"
    if average >= 1.5:
        return "C"
    if average >= 0.5:
        return "D"
    return "F"


# ---------------------------------------------------------------------------
# Base criteria (always computed)
# ---------------------------------------------------------------------------

def grade_title_tag(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    if not facts.title:
        return CriterionGrade("F", "Missing", "No title tag found")
    length = len(facts.title)
    right_length = t.title_min <= length <= t.title_max
    if relevance.in_title and right_length:
        return CriterionGrade("A", facts.title, f"Includes keyword, {length} chars")
    if relevance.in_title:
        return CriterionGrade(
            "B", facts.title, f"Includes keyword but {length} chars (aim for {t.title_min}-{t.title_max})"
        )
    if right_length:
        return CriterionGrade("C", facts.title, f"Good length ({length} chars) but missing target keyword")
    return CriterionGrade("D", facts.title, f"Missing keyword, {length} chars; needs optimization")


def grade_meta_description(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    meta = facts.meta_description
    if not meta:
        return CriterionGrade("F", "Missing", "No meta description found")
    length = len(meta)
    right_length = t.meta_description_min <= length <= t.meta_description_max
    if relevance.in_meta_description and right_length:
        return CriterionGrade("A", meta, f"Includes keyword, {length} chars")
    if relevance.in_meta_description:
        return CriterionGrade(
            "B", meta,
            f"Includes keyword, {length} chars (aim for {t.meta_description_min}-{t.meta_description_max})",
        )
    if right_length:
        return CriterionGrade("C", meta, "Good length but missing target keyword")
    return CriterionGrade("D", meta, f"Missing keyword, {length} chars; needs rewriting")


def grade_h1_tag(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    h1s = facts.h1s
    if not h1s:
        return CriterionGrade("F", "Missing", "No H1 tag found on the page")
    if len(h1s) == 1 and relevance.in_h1:
        return CriterionGrade("A", h1s[0], "Single H1 with target keyword")
    if len(h1s) == 1:
        return CriterionGrade("B", h1s[0], "Single H1 but missing target keyword")
    if relevance.in_h1:
        return CriterionGrade("C", " | ".join(h1s), f"{len(h1s)} H1 tags found (should be exactly 1)")
    return CriterionGrade("D", " | ".join(h1s), f"{len(h1s)} H1 tags, none include keyword")


def grade_heading_structure(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    h1, h2, h3 = len(facts.h1s), len(facts.h2s), len(facts.h3s)
    counts = f"H1:{h1}, H2:{h2}, H3:{h3}"
    if h1 == 1 and h2 >= t.heading_structure_min_h2 and h3 > 0:
        return CriterionGrade("A", counts, "Well-structured heading hierarchy")
    if h1 >= 1 and h2 > 0:
        return CriterionGrade("B", counts, "Decent structure, could add more sub-headings")
    if h1 >= 1:
        return CriterionGrade("C", counts, "Weak heading hierarchy; add H2/H3 sections")
    return CriterionGrade("F", "No headings", "No heading structure found")


def grade_schema_markup(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    distinct = list(dict.fromkeys(facts.schema_types))
    if facts.has_schema and len(distinct) >= t.schema_rich_types:
        return CriterionGrade("A", ", ".join(distinct), "Rich structured data present")
    if facts.has_schema:
        return CriterionGrade("B", ", ".join(distinct) or "Present", "Schema found; consider adding more types")
    return CriterionGrade("F", "None", "No structured data / schema markup found")


def grade_keyword_optimization(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    positions = relevance.positions()
    mentions = relevance.mention_count
    usage = f"{mentions} mentions ({relevance.density * 100:.2f}%)"
    if len(positions) >= t.keyword_strong_positions and mentions >= t.keyword_strong_mentions:
        return CriterionGrade(
            "A", f"In: {', '.join(positions)} | {usage}", "Strong keyword presence across key positions"
        )
    if len(positions) >= t.keyword_good_positions:
        return CriterionGrade("B", f"In: {', '.join(positions)} | {usage}", "Good keyword placement, some gaps remain")
    if positions:
        return CriterionGrade("C", f"In: {', '.join(positions)} | {usage}", "Keyword underrepresented in key positions")
    return CriterionGrade("F", usage, "Keyword missing from all key positions")


def grade_content_volume(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    words = facts.word_count
    value = f"{words:,} words"
    if words >= t.content_words_a:
        return CriterionGrade("A", value, "Comprehensive content length")
    if words >= t.content_words_b:
        return CriterionGrade("B", value, f"Good content length; consider expanding to {t.content_words_a:,}+")
    if words >= t.content_words_c:
        return CriterionGrade("C", value, f"Thin content; aim for {t.content_words_b:,}+ words")
    if words >= t.content_words_d:
        return CriterionGrade("D", value, "Very thin content; significant expansion needed")
    return CriterionGrade("F", value, "Critically thin content")


def grade_internal_linking(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    links = facts.internal_link_count
    value = f"{links} internal links"
    if links >= t.internal_links_a:
        return CriterionGrade("A", value, "Strong internal link profile")
    if links >= t.internal_links_b:
        return CriterionGrade("B", value, "Decent; add more relevant internal links")
    if links >= t.internal_links_c:
        return CriterionGrade("C", value, "Weak internal linking; add 5-10 more")
    return CriterionGrade("F", value, "Almost no internal links")


def grade_image_optimization(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    total = facts.image_count
    with_alt = facts.images_with_alt
    missing = facts.images_without_alt
    if total == 0:
        return CriterionGrade("D", "No images", "Consider adding relevant images with alt text")
    if missing == 0:
        return CriterionGrade("A", f"{total} images, all with alt text", "All images have alt text")
    if with_alt >= total * t.image_alt_ratio_b:
        return CriterionGrade("B", f"{with_alt}/{total} with alt text", f"{missing} images missing alt text")
    return CriterionGrade("D", f"{with_alt}/{total} with alt text", f"{missing} images missing alt text; needs fixing")


def grade_technical_seo(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    present = [name for name, ok in (("canonical", facts.has_canonical), ("schema", facts.has_schema)) if ok]
    if len(present) == 2:
        return CriterionGrade("A", ", ".join(present), "Core technical elements in place")
    if present:
        return CriterionGrade("C", present[0], "Some technical elements missing")
    return CriterionGrade("F", "None", "Missing canonical and schema markup")


# ---------------------------------------------------------------------------
# Compliance criteria (audit-type scoped)
# ---------------------------------------------------------------------------

_GRADED_SECURITY_HEADERS = (
    "strict-transport-security",
    "content-security-policy",
    "x-frame-options",
    "referrer-policy",
    "permissions-policy",
)


def grade_security_headers(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    security = facts.security
    if not security.headers_available:
        return CriterionGrade("F", "Unavailable", "Response headers were not available for this page")
    present = [h for h in security.present_headers() if h in _GRADED_SECURITY_HEADERS]
    missing = [h for h in _GRADED_SECURITY_HEADERS if h not in present]
    value = f"{len(present)}/{len(_GRADED_SECURITY_HEADERS)} security headers"
    notes = f"Missing: {', '.join(missing)}" if missing else "All key security headers present"
    letter = {5: "A", 4: "B", 3: "C", 2: "C", 1: "D"}.get(len(present), "F")
    return CriterionGrade(letter, value, notes)


def grade_https_security(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    compliance = facts.compliance
    if compliance.protocol != "https":
        return CriterionGrade("F", compliance.protocol or "unknown", "Page is not served over HTTPS")
    mixed = len(compliance.mixed_content_urls)
    if mixed:
        return CriterionGrade("C", f"HTTPS, {mixed} mixed-content resources", "Insecure http:// subresources on an HTTPS page")
    return CriterionGrade("A", "HTTPS", "Served over HTTPS with no mixed content")


def grade_accessibility(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    compliance = facts.compliance
    checks = {
        "lang attribute": bool(compliance.lang),
        "main landmark": "main" in compliance.aria_landmarks,
        "form labels": compliance.form_field_count == 0
        or compliance.form_label_coverage >= t.form_label_coverage_good,
        "image alt text": facts.images_without_alt == 0,
        "skip link": compliance.has_skip_link,
    }
    passed = sum(checks.values())
    failing = [name for name, ok in checks.items() if not ok]
    letter = {5: "A", 4: "B", 3: "C", 2: "D"}.get(passed, "F")
    notes = f"Missing: {', '.join(failing)}" if failing else "Core accessibility signals present"
    return CriterionGrade(letter, f"{passed}/{len(checks)} checks passed", notes)


def grade_privacy_compliance(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    compliance = facts.compliance
    if compliance.payment_form_detected and compliance.protocol != "https":
        return CriterionGrade("F", "Payment form over HTTP", "Payment data collected without HTTPS")
    checks = {
        "privacy policy link": bool(compliance.privacy_policy_link),
        "cookie consent": compliance.cookie_consent_detected,
        "terms link": bool(compliance.terms_link),
    }
    passed = sum(checks.values())
    failing = [name for name, ok in checks.items() if not ok]
    letter = {3: "A", 2: "B", 1: "D"}.get(passed, "F")
    notes = f"Missing: {', '.join(failing)}" if failing else "Privacy essentials present"
    return CriterionGrade(letter, f"{passed}/{len(checks)} privacy signals", notes)


# ---------------------------------------------------------------------------
# Performance criteria (audit-type scoped)
# ---------------------------------------------------------------------------

def grade_render_blocking(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    perf = facts.performance
    blocking = perf.render_blocking_count
    value = f"{len(perf.blocking_scripts)} scripts, {len(perf.blocking_stylesheets)} stylesheets"
    if blocking == 0:
        return CriterionGrade("A", value, "No render-blocking resources")
    if blocking <= t.render_blocking_b:
        letter = "B"
    elif blocking <= t.render_blocking_c:
        letter = "C"
    elif blocking <= t.render_blocking_d:
        letter = "D"
    else:
        letter = "F"
    return CriterionGrade(letter, value, f"{blocking} render-blocking resources; defer or async non-critical ones")


def grade_image_loading(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    perf = facts.performance
    if perf.image_count == 0:
        return CriterionGrade("A", "No images", "Nothing to optimize")
    dimension_ratio = perf.images_with_dimensions / perf.image_count
    # images above the fold should load eagerly
    below_fold = facts.images[t.lazy_load_threshold:]
    lazy_ratio = sum(1 for img in below_fold if img.lazy) / len(below_fold) if below_fold else 1.0
    value = f"{dimension_ratio:.0%} sized, {lazy_ratio:.0%} of below-fold lazy"
    if dimension_ratio >= t.image_loading_good_ratio and lazy_ratio >= t.image_loading_good_ratio:
        return CriterionGrade("A", value, "Images sized and lazy-loaded")
    if dimension_ratio >= t.image_loading_fair_ratio and lazy_ratio >= t.image_loading_fair_ratio:
        return CriterionGrade("B", value, "Most images sized and lazy-loaded")
    if dimension_ratio >= t.image_loading_poor_ratio or lazy_ratio >= t.image_loading_poor_ratio:
        return CriterionGrade("C", value, "Add width/height and loading=\"lazy\" to more images")
    if dimension_ratio < 0.25 and lazy_ratio < 0.25:
        return CriterionGrade("F", value, "Images are unsized and eagerly loaded")
    return CriterionGrade("D", value, "Few images are sized or lazy-loaded")


def grade_third_party_load(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    domains = len(facts.performance.third_party_domains)
    value = f"{domains} third-party domains"
    if domains <= t.third_party_a:
        return CriterionGrade("A", value, "Light third-party footprint")
    if domains <= t.third_party_b:
        return CriterionGrade("B", value, "Moderate third-party footprint")
    if domains <= t.third_party_c:
        return CriterionGrade("C", value, "Heavy third-party footprint; audit tags and widgets")
    if domains <= t.third_party_d:
        return CriterionGrade("D", value, "Very heavy third-party footprint")
    return CriterionGrade("F", value, "Excessive third-party requests")


def grade_font_strategy(facts: PageFacts, relevance: KeywordRelevance, t: RubricThresholds) -> CriterionGrade:
    perf = facts.performance
    if not perf.web_font_providers and perf.font_face_count == 0:
        return CriterionGrade("A", "System fonts", "No web fonts to load")
    hinted = perf.preloaded_fonts > 0 or perf.resource_hints.get("preconnect", 0) > 0
    value = ", ".join(perf.web_font_providers) or f"{perf.font_face_count} @font-face rules"
    if perf.font_display_swap and hinted:
        return CriterionGrade("A", value, "font-display swap with preconnect/preload")
    if perf.font_display_swap or hinted:
        missing = "preconnect/preload" if perf.font_display_swap else "font-display: swap"
        return CriterionGrade("B", value, f"Add {missing}")
    return CriterionGrade("C", value, "Web fonts without font-display swap or preconnect")


BASE_RUBRIC: dict[str, Criterion] = {
    "title_tag": grade_title_tag,
    "meta_description": grade_meta_description,
    "h1_tag": grade_h1_tag,
    "heading_structure": grade_heading_structure,
    "schema_markup": grade_schema_markup,
    "keyword_optimization": grade_keyword_optimization,
    "content_volume": grade_content_volume,
    "internal_linking": grade_internal_linking,
    "image_optimization": grade_image_optimization,
    "technical_seo": grade_technical_seo,
}

SCOPED_RUBRICS: dict[str, dict[str, Criterion]] = {
    "compliance": {
        "security_headers": grade_security_headers,
        "https_security": grade_https_security,
        "accessibility": grade_accessibility,
        "privacy_compliance": grade_privacy_compliance,
    },
    "performance": {
        "render_blocking": grade_render_blocking,
        "image_loading": grade_image_loading,
        "third_party_load": grade_third_party_load,
        "font_strategy": grade_font_strategy,
    },
}


def grade(
    facts: PageFacts,
    relevance: Optional[KeywordRelevance] = None,
    audit_type: Optional[str] = None,
    thresholds: Optional[RubricThresholds] = None,
) -> GradeSheet:
    """Grade one page.

    Args:
        facts: Extracted page facts
        relevance: Keyword relevance; an empty keyword is assumed when None
        audit_type: Rubric scope ("compliance", "performance") adding scoped criteria
        thresholds: Rubric thresholds (default_thresholds when None)

    Returns:
        GradeSheet with one entry per applicable criterion and the overall grade
    """
    relevance = relevance if relevance is not None else KeywordRelevance.empty("")
    t = thresholds or default_thresholds

    criteria = dict(BASE_RUBRIC)
    criteria.update(SCOPED_RUBRICS.get(audit_type or "", {}))

    sheet = GradeSheet(url=facts.url)
    for name, criterion in criteria.items():
        sheet.grades[name] = criterion(facts, relevance, t)
    sheet.overall_grade = letter_for_average(sheet.average())
    return sheet
