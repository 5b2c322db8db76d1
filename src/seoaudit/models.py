"""Data models for page facts, keyword relevance, grades and audit results."""

from dataclasses import dataclass, field
from typing import Optional

from seoaudit.constants import GRADE_POINTS, SECURITY_HEADER_NAMES


@dataclass(frozen=True)
class Heading:
    """A heading in document order."""

    level: str  # "H1".."H6"
    text: str


@dataclass(frozen=True)
class ImageInfo:
    """An <img> element found on the page."""

    src: str = ""
    alt: str = ""
    has_alt: bool = False  # attribute exists; alt="" counts as present
    lazy: bool = False
    has_dimensions: bool = False


@dataclass(frozen=True)
class SecuritySignals:
    """Security headers taken from the fetch response."""

    headers_available: bool = False
    strict_transport_security: str = ""
    content_security_policy: str = ""
    x_frame_options: str = ""
    referrer_policy: str = ""
    permissions_policy: str = ""
    x_content_type_options: str = ""

    def present_headers(self) -> list[str]:
        """Return the header names that carry a value."""
        return [
            header for attr, header in SECURITY_HEADER_NAMES.items()
            if getattr(self, attr)
        ]


@dataclass(frozen=True)
class ComplianceSignals:
    """Privacy, accessibility and transport signals read from markup."""

    protocol: str = ""  # "https", "http" or "" when the URL has no usable scheme
    mixed_content_urls: tuple[str, ...] = ()
    lang: str = ""
    aria_landmarks: tuple[str, ...] = ()
    has_skip_link: bool = False
    form_count: int = 0
    form_field_count: int = 0
    labelled_field_count: int = 0
    form_label_coverage: float = 1.0
    cookie_consent_detected: bool = False
    consent_platforms: tuple[str, ...] = ()
    privacy_policy_link: str = ""
    terms_link: str = ""
    do_not_sell_link: str = ""
    payment_form_detected: bool = False
    payment_iframes: tuple[str, ...] = ()
    iframe_count: int = 0


@dataclass(frozen=True)
class PerformanceSignals:
    """Loading-strategy signals read from markup."""

    script_count: int = 0
    inline_script_count: int = 0
    async_scripts: int = 0
    defer_scripts: int = 0
    module_scripts: int = 0
    blocking_scripts: tuple[str, ...] = ()
    stylesheet_count: int = 0
    blocking_stylesheets: tuple[str, ...] = ()
    resource_hints: dict[str, int] = field(default_factory=dict)
    third_party_domains: tuple[str, ...] = ()
    image_count: int = 0
    lazy_images: int = 0
    images_with_dimensions: int = 0
    web_font_providers: tuple[str, ...] = ()
    font_display_swap: bool = False
    preloaded_fonts: int = 0
    font_face_count: int = 0

    @property
    def render_blocking_count(self) -> int:
        return len(self.blocking_scripts) + len(self.blocking_stylesheets)


@dataclass(frozen=True)
class PageFacts:
    """SEO and technical facts extracted from one fetched page.

    Textual fields are never None: an absent value is the empty string, so
    grading only ever branches on emptiness.
    """

    url: str

    # Metadata
    title: str = ""
    meta_description: str = ""
    canonical: str = ""
    og_title: str = ""
    og_description: str = ""
    twitter_card: str = ""
    twitter_title: str = ""

    # Structure
    headings: tuple[Heading, ...] = ()
    body_text: str = ""  # capped excerpt for prompt context
    first_paragraph: str = ""
    word_count: int = 0  # over the full boilerplate-stripped text
    content_text: str = ""  # full boilerplate-stripped text

    # Media and links
    images: tuple[ImageInfo, ...] = ()
    internal_link_count: int = 0
    external_link_count: int = 0
    internal_links: tuple[str, ...] = ()
    external_domains: tuple[str, ...] = ()

    # Structured data
    schema_blocks: tuple[dict, ...] = ()
    schema_types: tuple[str, ...] = ()

    html_length: int = 0

    security: SecuritySignals = field(default_factory=SecuritySignals)
    compliance: ComplianceSignals = field(default_factory=ComplianceSignals)
    performance: PerformanceSignals = field(default_factory=PerformanceSignals)

    def headings_at(self, level: str) -> list[str]:
        return [h.text for h in self.headings if h.level == level]

    @property
    def h1s(self) -> list[str]:
        return self.headings_at("H1")

    @property
    def h2s(self) -> list[str]:
        return self.headings_at("H2")

    @property
    def h3s(self) -> list[str]:
        return self.headings_at("H3")

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def images_with_alt(self) -> int:
        return sum(1 for img in self.images if img.has_alt)

    @property
    def images_without_alt(self) -> int:
        return self.image_count - self.images_with_alt

    @property
    def has_schema(self) -> bool:
        return bool(self.schema_blocks)

    @property
    def has_canonical(self) -> bool:
        return bool(self.canonical)


@dataclass(frozen=True)
class KeywordRelevance:
    """Placement and frequency of one target keyword on one page."""

    keyword: str
    in_title: bool = False
    in_h1: bool = False
    in_meta_description: bool = False
    in_first_paragraph: bool = False
    mention_count: int = 0
    word_count: int = 0
    density: float = 0.0  # mention_count / word_count, 0 when there are no words

    @classmethod
    def empty(cls, keyword: str = "") -> "KeywordRelevance":
        return cls(keyword=keyword)

    def positions(self) -> list[str]:
        """Names of the key positions that contain the keyword."""
        flags = [
            (self.in_title, "title"),
            (self.in_h1, "H1"),
            (self.in_meta_description, "meta description"),
            (self.in_first_paragraph, "first paragraph"),
        ]
        return [name for present, name in flags if present]


@dataclass(frozen=True)
class CriterionGrade:
    """Letter grade for one rubric criterion."""

    grade: str  # A, B, C, D or F
    value: str  # human-readable evidence
    notes: str  # rationale

    @property
    def points(self) -> int:
        return GRADE_POINTS.get(self.grade, 0)

    def to_dict(self) -> dict:
        return {"grade": self.grade, "value": self.value, "notes": self.notes}


@dataclass
class GradeSheet:
    """Per-criterion grades for one page plus the aggregate grade."""

    url: str
    grades: dict[str, CriterionGrade] = field(default_factory=dict)
    overall_grade: str = "F"

    def average(self) -> float:
        if not self.grades:
            return 0.0
        return sum(g.points for g in self.grades.values()) / len(self.grades)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "overallGrade": self.overall_grade,
            "grades": {name: g.to_dict() for name, g in self.grades.items()},
        }


@dataclass(frozen=True)
class FetchedPage:
    """Raw response from the page fetch collaborator."""

    url: str
    status_code: int
    headers: dict[str, str]
    text: str
    elapsed: float = 0.0


@dataclass
class AuditResult:
    """Shared result envelope for every audit type.

    Failed results always carry score 0, a populated error and empty lists.
    """

    page_url: str
    audit_type: str
    score: int = 0
    summary: str = ""
    strengths: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)
    standards: list = field(default_factory=list)
    grades: Optional[GradeSheet] = None
    keyword: str = ""
    error: str = ""
    error_kind: str = ""
    raw_snippet: str = ""

    @classmethod
    def failed(
        cls,
        page_url: str,
        audit_type: str,
        error: str,
        error_kind: str,
        keyword: str = "",
        grades: Optional[GradeSheet] = None,
        raw_snippet: str = "",
    ) -> "AuditResult":
        return cls(
            page_url=page_url,
            audit_type=audit_type,
            score=0,
            summary="",
            strengths=[],
            recommendations=[],
            standards=[],
            grades=grades,
            keyword=keyword,
            error=error,
            error_kind=error_kind,
            raw_snippet=raw_snippet,
        )

    @property
    def succeeded(self) -> bool:
        return not self.error

    def to_dict(self) -> dict:
        payload = {
            "pageUrl": self.page_url,
            "auditType": self.audit_type,
            "score": self.score,
            "summary": self.summary,
            "strengths": list(self.strengths),
            "recommendations": list(self.recommendations),
            "standards": list(self.standards),
        }
        if self.keyword:
            payload["keyword"] = self.keyword
        if self.grades is not None:
            payload["grades"] = self.grades.to_dict()
        if self.error:
            payload["error"] = self.error
            payload["errorKind"] = self.error_kind
            if self.raw_snippet:
                payload["rawSnippet"] = self.raw_snippet
        return payload
