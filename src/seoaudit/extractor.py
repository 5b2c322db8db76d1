"""Pattern-based HTML fact extraction.

No DOM is built. Each field has its own pure extractor over the raw markup
string so it can be tested (or replaced by a parser-backed version) on its own.
`extract()` composes them into a PageFacts record and never raises.
"""

import html as html_lib
import json
import logging
import re
from typing import Callable, Iterable, Mapping, Optional, TypeVar
from urllib.parse import urljoin, urlsplit

from seoaudit.constants import (
    BODY_TEXT_CHAR_LIMIT,
    BOILERPLATE_TAGS,
    CONSENT_PLATFORM_SIGNATURES,
    INTERNAL_LINK_SAMPLE_LIMIT,
    MAX_HTML_CHARS,
    NON_NAVIGABLE_HREF_PREFIXES,
    PAYMENT_FIELD_MARKERS,
    PAYMENT_PROVIDER_SIGNATURES,
    RESOURCE_HINT_RELS,
    SECURITY_HEADER_NAMES,
    UNLABELLED_INPUT_TYPES,
    WEB_FONT_PROVIDERS,
)
from seoaudit.models import (
    ComplianceSignals,
    Heading,
    ImageInfo,
    PageFacts,
    PerformanceSignals,
    SecuritySignals,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Link policies for hrefs that fail to parse as a URL. Link *counts* treat
# them as internal; lists that need a real URL skip them.
UNPARSABLE_AS_INTERNAL = "unparsable_as_internal"
UNPARSABLE_SKIPPED = "unparsable_skipped"

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_ATTR_RE = re.compile(
    r"""([^\s=/>"']+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?"""
)
_TITLE_RE = re.compile(r"<title\b[^>]*>([\s\S]*?)</title\s*>", re.IGNORECASE)
_HEADING_RE = re.compile(r"<(h[1-6])\b[^>]*>([\s\S]*?)</\1\s*>", re.IGNORECASE)
_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>([\s\S]*?)</p\s*>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script\b([^>]*)>([\s\S]*?)</script\s*>", re.IGNORECASE)
_ANCHOR_RE = re.compile(r"<a\b([^>]*)>([\s\S]*?)</a\s*>", re.IGNORECASE)
_LABEL_RE = re.compile(r"<label\b[^>]*>([\s\S]*?)</label\s*>", re.IGNORECASE)
_CONTROL_RE = re.compile(r"<(input|select|textarea)\b([^>]*)>", re.IGNORECASE)
_ROLE_RE = re.compile(
    r"""\brole\s*=\s*["']?(main|navigation|banner|contentinfo|complementary|search)\b""",
    re.IGNORECASE,
)
_FONT_DISPLAY_RE = re.compile(r"font-display\s*:\s*(swap|optional|fallback)", re.IGNORECASE)
_BOILERPLATE_RES = [
    re.compile(rf"<{tag}\b[^>]*>[\s\S]*?</{tag}\s*>", re.IGNORECASE)
    for tag in BOILERPLATE_TAGS
]

# Landmark elements and the ARIA role each implies
_LANDMARK_ELEMENTS = {
    "main": "main",
    "nav": "navigation",
    "header": "banner",
    "footer": "contentinfo",
    "aside": "complementary",
}
_LANDMARK_ORDER = ("main", "navigation", "banner", "contentinfo", "complementary", "search")

# Elements whose src is fetched as a subresource
_SUBRESOURCE_TAGS = ("img", "script", "iframe", "source", "audio", "video", "embed")


# ---------------------------------------------------------------------------
# Text primitives
# ---------------------------------------------------------------------------

def strip_tags(fragment: str) -> str:
    """Replace every tag with a space."""
    return _TAG_RE.sub(" ", fragment)


def clean_text(fragment: str) -> str:
    """Strip tags, unescape entities and collapse whitespace."""
    text = html_lib.unescape(strip_tags(fragment))
    return _WS_RE.sub(" ", text).strip()


def parse_attributes(attr_text: str) -> dict[str, str]:
    """Parse the attribute section of a start tag into a lowercase-keyed dict.

    Boolean attributes (``async``, ``defer``) map to the empty string.
    """
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(attr_text):
        name = match.group(1).lower()
        value = next((g for g in match.group(2, 3, 4) if g is not None), "")
        attrs.setdefault(name, html_lib.unescape(value))
    return attrs


def iter_tags(html: str, tag: str) -> list[dict[str, str]]:
    """Return the attributes of every ``<tag ...>`` start tag, in order."""
    pattern = re.compile(rf"<{tag}\b([^>]*)>", re.IGNORECASE)
    return [parse_attributes(m.group(1)) for m in pattern.finditer(html)]


def _rel_tokens(attrs: Mapping[str, str]) -> set[str]:
    return set(attrs.get("rel", "").lower().split())


def _iter_anchors(html: str) -> list[tuple[dict[str, str], str]]:
    return [(parse_attributes(m.group(1)), clean_text(m.group(2))) for m in _ANCHOR_RE.finditer(html)]


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

def extract_title(html: str) -> str:
    match = _TITLE_RE.search(html)
    return clean_text(match.group(1)) if match else ""


def extract_meta(html: str, name: str, attr: str = "name") -> str:
    """Content of the first ``<meta {attr}="{name}" content="...">``.

    Attribute order does not matter and the name match is case-insensitive.
    """
    wanted = name.lower()
    for attrs in iter_tags(html, "meta"):
        if attrs.get(attr, "").strip().lower() == wanted and "content" in attrs:
            return _WS_RE.sub(" ", attrs["content"]).strip()
    return ""


def extract_link_rel(html: str, rel: str) -> str:
    """href of the first ``<link>`` whose rel tokens include ``rel``."""
    for attrs in iter_tags(html, "link"):
        if rel in _rel_tokens(attrs) and attrs.get("href"):
            return attrs["href"].strip()
    return ""


def _social_meta(html: str, name: str) -> str:
    # og:* belongs in property=, but name= is common in the wild
    return extract_meta(html, name, "property") or extract_meta(html, name, "name")


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def extract_headings(html: str) -> list[Heading]:
    """All H1-H6 headings in document order. Headings with no text are dropped."""
    headings = []
    for match in _HEADING_RE.finditer(html):
        text = clean_text(match.group(2))
        if text:
            headings.append(Heading(level=match.group(1).upper(), text=text))
    return headings


def strip_boilerplate(html: str) -> str:
    """Remove comments and script/style/nav/header/footer blocks."""
    stripped = _COMMENT_RE.sub(" ", html)
    for pattern in _BOILERPLATE_RES:
        stripped = pattern.sub(" ", stripped)
    return stripped


def extract_body_text(html: str) -> str:
    """Full tag-stripped, whitespace-collapsed text without boilerplate."""
    return clean_text(strip_boilerplate(html))


def extract_first_paragraph(html: str) -> str:
    """Text of the first non-empty ``<p>`` outside boilerplate blocks."""
    for match in _PARAGRAPH_RE.finditer(strip_boilerplate(html)):
        text = clean_text(match.group(1))
        if text:
            return text
    return ""


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

def extract_images(html: str) -> list[ImageInfo]:
    """Inventory of <img> tags.

    Alt presence is attribute existence: ``alt=""`` marks a decorative image
    and counts as having alt text.
    """
    images = []
    for attrs in iter_tags(html, "img"):
        classes = attrs.get("class", "").lower().split()
        images.append(ImageInfo(
            src=attrs.get("src") or attrs.get("data-src", ""),
            alt=attrs.get("alt", ""),
            has_alt="alt" in attrs,
            lazy=attrs.get("loading", "").lower() == "lazy" or "lazyload" in classes,
            has_dimensions=bool(attrs.get("width")) and bool(attrs.get("height")),
        ))
    return images


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def _resolve_host(href: str, page_url: str) -> str:
    """Hostname of ``href`` resolved against the page. Raises ValueError."""
    parts = urlsplit(urljoin(page_url, href))
    parts.port  # raises ValueError on a malformed port
    return (parts.hostname or "").lower()


def classify_link(href: str, page_url: str, policy: str) -> Optional[str]:
    """Classify an href as "internal", "external" or None (not counted).

    Internal means the resolved hostname equals the page's hostname. Hrefs
    that fail to parse follow ``policy``: UNPARSABLE_AS_INTERNAL counts them
    as internal, UNPARSABLE_SKIPPED drops them.
    """
    href = (href or "").strip()
    if not href or href.lower().startswith(NON_NAVIGABLE_HREF_PREFIXES):
        return None
    try:
        host = _resolve_host(href, page_url)
    except ValueError:
        return "internal" if policy == UNPARSABLE_AS_INTERNAL else None
    if not host:
        # no host even after resolving: the page URL itself is not absolute
        return "internal" if policy == UNPARSABLE_AS_INTERNAL else None
    return "internal" if host == _hostname(page_url) else "external"


def count_links(html: str, page_url: str) -> tuple[int, int]:
    """(internal, external) anchor counts.

    Uses UNPARSABLE_AS_INTERNAL: a malformed href still counts as a link.
    """
    internal = external = 0
    for attrs in iter_tags(html, "a"):
        kind = classify_link(attrs.get("href", ""), page_url, UNPARSABLE_AS_INTERNAL)
        if kind == "internal":
            internal += 1
        elif kind == "external":
            external += 1
    return internal, external


def collect_link_urls(
    html: str, page_url: str, limit: int = INTERNAL_LINK_SAMPLE_LIMIT
) -> tuple[list[str], list[str]]:
    """(internal URL sample, external domains).

    Uses UNPARSABLE_SKIPPED: both outputs must hold real URLs/hostnames.
    """
    internal: list[str] = []
    domains: list[str] = []
    for attrs in iter_tags(html, "a"):
        href = attrs.get("href", "")
        kind = classify_link(href, page_url, UNPARSABLE_SKIPPED)
        if kind == "internal":
            absolute = urljoin(page_url, href.strip()).split("#", 1)[0]
            if absolute not in internal and len(internal) < limit:
                internal.append(absolute)
        elif kind == "external":
            host = _resolve_host(href.strip(), page_url)
            if host not in domains:
                domains.append(host)
    return internal, sorted(domains)


# ---------------------------------------------------------------------------
# Structured data
# ---------------------------------------------------------------------------

def _collect_schema_types(node: dict, out: list[str]) -> None:
    node_type = node.get("@type")
    if isinstance(node_type, str):
        out.append(node_type)
    elif isinstance(node_type, list):
        out.extend(t for t in node_type if isinstance(t, str))
    graph = node.get("@graph")
    if isinstance(graph, list):
        for item in graph:
            if isinstance(item, dict):
                _collect_schema_types(item, out)


def extract_schema(html: str) -> tuple[list[dict], list[str]]:
    """Parsed JSON-LD blocks and the @type values they declare.

    Malformed blocks are skipped; later blocks are still read.
    """
    blocks: list[dict] = []
    types: list[str] = []
    for match in _SCRIPT_RE.finditer(html):
        attrs = parse_attributes(match.group(1))
        if attrs.get("type", "").strip().lower() != "application/ld+json":
            continue
        raw = match.group(2).strip()
        raw = raw.removeprefix("<!--").removesuffix("-->").strip()
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            logger.debug("Skipping malformed JSON-LD block")
            continue
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict):
                blocks.append(item)
                _collect_schema_types(item, types)
    return blocks, types


# ---------------------------------------------------------------------------
# Technical signals
# ---------------------------------------------------------------------------

def extract_security_headers(headers: Optional[Mapping[str, str]]) -> SecuritySignals:
    """Security headers from the fetch response; absent without headers."""
    if headers is None:
        return SecuritySignals()
    lowered = {str(k).lower(): str(v) for k, v in headers.items()}
    return SecuritySignals(
        headers_available=True,
        **{attr: lowered.get(name, "").strip() for attr, name in SECURITY_HEADER_NAMES.items()},
    )


def _find_mixed_content(html: str) -> list[str]:
    urls: list[str] = []
    candidates = [
        attrs.get("src", "") for tag in _SUBRESOURCE_TAGS for attrs in iter_tags(html, tag)
    ]
    candidates += [
        attrs.get("href", "") for attrs in iter_tags(html, "link")
        if _rel_tokens(attrs) & {"stylesheet", "preload", "icon"}
    ]
    for url in candidates:
        url = url.strip()
        if url.lower().startswith("http://") and url not in urls:
            urls.append(url)
    return urls


def _find_landmarks(html: str) -> tuple[str, ...]:
    found = set()
    for element, role in _LANDMARK_ELEMENTS.items():
        if re.search(rf"<{element}\b", html, re.IGNORECASE):
            found.add(role)
    for match in _ROLE_RE.finditer(html):
        found.add(match.group(1).lower())
    return tuple(role for role in _LANDMARK_ORDER if role in found)


def _form_label_stats(html: str) -> tuple[int, int]:
    """(fields needing a label, fields that have one)."""

    def needs_label(tag: str, attrs: dict) -> bool:
        return tag != "input" or attrs.get("type", "text").lower() not in UNLABELLED_INPUT_TYPES

    total = labelled = 0
    # controls wrapped in a <label> are labelled implicitly
    for label in _LABEL_RE.finditer(html):
        for control in _CONTROL_RE.finditer(label.group(1)):
            if needs_label(control.group(1).lower(), parse_attributes(control.group(2))):
                total += 1
                labelled += 1
    unwrapped = _LABEL_RE.sub(" ", html)
    label_targets = {attrs["for"] for attrs in iter_tags(html, "label") if attrs.get("for")}
    for control in _CONTROL_RE.finditer(unwrapped):
        attrs = parse_attributes(control.group(2))
        if not needs_label(control.group(1).lower(), attrs):
            continue
        total += 1
        if (
            attrs.get("id") in label_targets
            or attrs.get("aria-label")
            or attrs.get("aria-labelledby")
            or attrs.get("title")
        ):
            labelled += 1
    return total, labelled


def _find_policy_link(anchors: list[tuple[dict, str]], markers: Iterable[str]) -> str:
    for attrs, text in anchors:
        href = attrs.get("href", "")
        haystack = f"{href} {text}".lower()
        if href and any(marker in haystack for marker in markers):
            return href.strip()
    return ""


def extract_compliance_signals(html: str, page_url: str) -> ComplianceSignals:
    """Transport, accessibility, consent and payment signals from markup."""
    try:
        scheme = urlsplit(page_url).scheme.lower()
    except ValueError:
        scheme = ""
    protocol = scheme if scheme in ("http", "https") else ""
    lowered = html.lower()

    html_tags = iter_tags(html, "html")
    lang = html_tags[0].get("lang", "").strip() if html_tags else ""

    anchors = _iter_anchors(html)
    has_skip_link = any(
        attrs.get("href", "").startswith("#") and "skip" in f"{text} {attrs.get('class', '')}".lower()
        for attrs, text in anchors
    )

    field_count, labelled_count = _form_label_stats(html)

    platforms = tuple(
        platform for platform, signatures in CONSENT_PLATFORM_SIGNATURES.items()
        if any(sig in lowered for sig in signatures)
    )

    iframes = iter_tags(html, "iframe")
    payment_iframes = tuple(
        attrs.get("src", "") for attrs in iframes
        if any(sig in attrs.get("src", "").lower() for sig in PAYMENT_PROVIDER_SIGNATURES)
    )
    payment_fields = any(
        any(marker in " ".join((attrs.get("autocomplete", ""), attrs.get("name", ""), attrs.get("id", ""))).lower()
            for marker in PAYMENT_FIELD_MARKERS)
        for attrs in iter_tags(html, "input")
    )
    payment_scripts = any(
        any(sig in attrs.get("src", "").lower() for sig in PAYMENT_PROVIDER_SIGNATURES)
        for attrs in iter_tags(html, "script")
    )

    return ComplianceSignals(
        protocol=protocol,
        mixed_content_urls=tuple(_find_mixed_content(html)) if protocol == "https" else (),
        lang=lang,
        aria_landmarks=_find_landmarks(html),
        has_skip_link=has_skip_link,
        form_count=len(iter_tags(html, "form")),
        form_field_count=field_count,
        labelled_field_count=labelled_count,
        form_label_coverage=(labelled_count / field_count) if field_count else 1.0,
        cookie_consent_detected=bool(platforms),
        consent_platforms=platforms,
        privacy_policy_link=_find_policy_link(anchors, ("privacy",)),
        terms_link=_find_policy_link(anchors, ("terms", "conditions")),
        do_not_sell_link=_find_policy_link(anchors, ("do not sell", "do-not-sell", "donotsell", "your privacy choices")),
        payment_form_detected=bool(payment_iframes) or payment_fields or payment_scripts,
        payment_iframes=payment_iframes,
        iframe_count=len(iframes),
    )


def _third_party_domains(html: str, page_url: str) -> list[str]:
    # Subresource URLs that do not parse are skipped (UNPARSABLE_SKIPPED)
    page_host = _hostname(page_url)
    urls = [attrs.get("src", "") for tag in _SUBRESOURCE_TAGS for attrs in iter_tags(html, tag)]
    urls += [attrs.get("href", "") for attrs in iter_tags(html, "link")]
    domains = set()
    for url in urls:
        url = url.strip()
        if not url or url.lower().startswith(NON_NAVIGABLE_HREF_PREFIXES):
            continue
        try:
            host = _resolve_host(url, page_url)
        except ValueError:
            continue
        if host and host != page_host:
            domains.add(host)
    return sorted(domains)


def extract_performance_signals(html: str, page_url: str) -> PerformanceSignals:
    """Script, stylesheet, hint, image-loading and font signals."""
    script_count = inline = async_count = defer_count = module_count = 0
    blocking_scripts: list[str] = []
    for match in _SCRIPT_RE.finditer(html):
        attrs = parse_attributes(match.group(1))
        script_type = attrs.get("type", "").strip().lower()
        is_module = script_type == "module"
        if script_type and not is_module and "javascript" not in script_type:
            continue  # JSON-LD, templates and other data blocks
        src = attrs.get("src", "").strip()
        if not src:
            if match.group(2).strip():
                inline += 1
            continue
        script_count += 1
        if "async" in attrs:
            async_count += 1
        elif "defer" in attrs:
            defer_count += 1
        elif is_module:
            module_count += 1  # modules are deferred by default
        else:
            blocking_scripts.append(src)

    stylesheet_count = 0
    blocking_stylesheets: list[str] = []
    hints: dict[str, int] = {}
    preloaded_fonts = 0
    for attrs in iter_tags(html, "link"):
        rels = _rel_tokens(attrs)
        if "stylesheet" in rels:
            stylesheet_count += 1
            media = attrs.get("media", "all").strip().lower()
            if media in ("", "all", "screen") and "disabled" not in attrs:
                blocking_stylesheets.append(attrs.get("href", "").strip())
        for rel in RESOURCE_HINT_RELS:
            if rel in rels:
                hints[rel] = hints.get(rel, 0) + 1
        if "preload" in rels and attrs.get("as", "").lower() == "font":
            preloaded_fonts += 1

    images = extract_images(html)
    lowered = html.lower()
    providers = tuple(
        provider for provider, hosts in WEB_FONT_PROVIDERS.items()
        if any(host in lowered for host in hosts)
    )
    font_display_swap = bool(_FONT_DISPLAY_RE.search(html)) or "display=swap" in lowered

    return PerformanceSignals(
        script_count=script_count,
        inline_script_count=inline,
        async_scripts=async_count,
        defer_scripts=defer_count,
        module_scripts=module_count,
        blocking_scripts=tuple(blocking_scripts),
        stylesheet_count=stylesheet_count,
        blocking_stylesheets=tuple(blocking_stylesheets),
        resource_hints=hints,
        third_party_domains=tuple(_third_party_domains(html, page_url)),
        image_count=len(images),
        lazy_images=sum(1 for img in images if img.lazy),
        images_with_dimensions=sum(1 for img in images if img.has_dimensions),
        web_font_providers=providers,
        font_display_swap=font_display_swap,
        preloaded_fonts=preloaded_fonts,
        font_face_count=lowered.count("@font-face"),
    )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def _safe(name: str, func: Callable[..., T], default: T, *args) -> T:
    try:
        return func(*args)
    except Exception as e:
        logger.debug(f"Extractor '{name}' failed, using absent value: {e}")
        return default


def extract(
    html: str, page_url: str, headers: Optional[Mapping[str, str]] = None
) -> PageFacts:
    """Extract a complete PageFacts record from raw HTML.

    Never raises: a field whose extractor fails takes its absent value.
    Only the first MAX_HTML_CHARS characters of markup are scanned;
    html_length still reports the full size.

    Args:
        html: Raw markup (may be empty or malformed)
        page_url: Absolute URL the markup was fetched from
        headers: Response headers, or None when only text is available

    Returns:
        PageFacts for the page
    """
    html = html if isinstance(html, str) else ""
    page_url = page_url if isinstance(page_url, str) else ""
    html_length = len(html)
    if html_length > MAX_HTML_CHARS:
        logger.warning(f"Markup for {page_url} is {html_length} characters, scanning the first {MAX_HTML_CHARS}")
        html = html[:MAX_HTML_CHARS]

    content_text = _safe("body_text", extract_body_text, "", html)
    internal_count, external_count = _safe("link_counts", count_links, (0, 0), html, page_url)
    internal_sample, external_domains = _safe("link_urls", collect_link_urls, ([], []), html, page_url)
    schema_blocks, schema_types = _safe("schema", extract_schema, ([], []), html)

    return PageFacts(
        url=page_url,
        title=_safe("title", extract_title, "", html),
        meta_description=_safe("meta_description", extract_meta, "", html, "description"),
        canonical=_safe("canonical", extract_link_rel, "", html, "canonical"),
        og_title=_safe("og_title", _social_meta, "", html, "og:title"),
        og_description=_safe("og_description", _social_meta, "", html, "og:description"),
        twitter_card=_safe("twitter_card", _social_meta, "", html, "twitter:card"),
        twitter_title=_safe("twitter_title", _social_meta, "", html, "twitter:title"),
        headings=tuple(_safe("headings", extract_headings, [], html)),
        body_text=content_text[:BODY_TEXT_CHAR_LIMIT],
        first_paragraph=_safe("first_paragraph", extract_first_paragraph, "", html),
        word_count=len(content_text.split()),
        content_text=content_text,
        images=tuple(_safe("images", extract_images, [], html)),
        internal_link_count=internal_count,
        external_link_count=external_count,
        internal_links=tuple(internal_sample),
        external_domains=tuple(external_domains),
        schema_blocks=tuple(schema_blocks),
        schema_types=tuple(schema_types),
        html_length=html_length,
        security=_safe("security", extract_security_headers, SecuritySignals(), headers),
        compliance=_safe("compliance", extract_compliance_signals, ComplianceSignals(), html, page_url),
        performance=_safe("performance", extract_performance_signals, PerformanceSignals(), html, page_url),
    )
