"""Tests for pattern-based fact extraction."""

import pytest

from seoaudit.constants import BODY_TEXT_CHAR_LIMIT
from seoaudit.extractor import (
    UNPARSABLE_AS_INTERNAL,
    UNPARSABLE_SKIPPED,
    classify_link,
    clean_text,
    collect_link_urls,
    count_links,
    extract,
    extract_body_text,
    extract_compliance_signals,
    extract_first_paragraph,
    extract_headings,
    extract_images,
    extract_meta,
    extract_performance_signals,
    extract_schema,
    extract_security_headers,
    extract_title,
    parse_attributes,
)
from tests.conftest import PAGE_URL


class TestTextPrimitives:
    """Tag stripping and attribute parsing."""

    def test_clean_text_unescapes_and_collapses(self):
        assert clean_text("<b>Fish &amp; Chips</b>\n   <i>now</i>") == "Fish & Chips now"

    def test_parse_attributes_handles_quoting_styles(self):
        attrs = parse_attributes(' NAME="description" content=\'x y\' async data-id=42')
        assert attrs == {"name": "description", "content": "x y", "async": "", "data-id": "42"}

    def test_parse_attributes_keeps_first_duplicate(self):
        assert parse_attributes('alt="one" alt="two"')["alt"] == "one"


class TestMetadata:
    """Title, meta and social tags."""

    def test_title(self):
        assert extract_title("<head><title>  Hello &amp; welcome </title></head>") == "Hello & welcome"

    def test_missing_title_is_empty(self):
        assert extract_title("<head></head>") == ""

    def test_meta_attribute_order_and_case(self):
        html = '<meta content="Great page" NAME="Description">'
        assert extract_meta(html, "description") == "Great page"

    def test_meta_without_content_is_absent(self):
        assert extract_meta('<meta name="description">', "description") == ""

    def test_social_meta_falls_back_to_name_attribute(self, page_url):
        html = '<meta name="og:title" content="Named OG"><meta property="twitter:card" content="summary">'
        facts = extract(html, page_url)
        assert facts.og_title == "Named OG"
        assert facts.twitter_card == "summary"

    def test_canonical(self, page_url):
        facts = extract('<link href="https://example.com/c" rel="canonical">', page_url)
        assert facts.canonical == "https://example.com/c"
        assert facts.has_canonical


class TestStructure:
    """Headings, body text and first paragraph."""

    def test_headings_in_document_order(self):
        html = "<h2>Second</h2><h1>First</h1><h3><span>Nested</span> text</h3><h2>  </h2>"
        headings = extract_headings(html)
        assert [(h.level, h.text) for h in headings] == [
            ("H2", "Second"),
            ("H1", "First"),
            ("H3", "Nested text"),
        ]

    def test_body_text_drops_boilerplate(self):
        html = (
            "<header>Site header</header><nav>Menu</nav>"
            "<script>var tracking = 1;</script><style>.a{color:red}</style>"
            "<!-- hidden comment --><main><p>Real content here</p></main>"
            "<footer>Footer links</footer>"
        )
        assert extract_body_text(html) == "Real content here"

    def test_first_paragraph_skips_nav_and_empty(self):
        html = "<nav><p>Menu text</p></nav><p>   </p><p>The <b>real</b> intro.</p><p>Second.</p>"
        assert extract_first_paragraph(html) == "The real intro."

    def test_body_excerpt_is_capped_but_word_count_is_not(self, page_url, a_grade_html):
        facts = extract(a_grade_html, page_url)
        assert len(facts.body_text) == BODY_TEXT_CHAR_LIMIT
        assert len(facts.content_text) > BODY_TEXT_CHAR_LIMIT
        assert facts.word_count > 2500
        assert facts.word_count == len(facts.content_text.split())


class TestImages:
    """Image inventory."""

    def test_empty_alt_counts_as_present(self):
        images = extract_images('<img src="/a.png" alt=""><img src="/b.png"><img src="/c.png" alt="Chart">')
        assert [img.has_alt for img in images] == [True, False, True]

    def test_lazy_and_dimensions(self):
        images = extract_images(
            '<img src="/a.png" loading="lazy" width="10" height="10">'
            '<img data-src="/b.png" class="hero lazyload" width="10">'
        )
        assert images[0].lazy and images[0].has_dimensions
        assert images[1].lazy and not images[1].has_dimensions
        assert images[1].src == "/b.png"

    def test_image_counts_on_facts(self, page_url):
        facts = extract('<img src="/a.png" alt="A"><img src="/b.png">', page_url)
        assert facts.image_count == 2
        assert facts.images_with_alt == 1
        assert facts.images_without_alt == 1


LINK_HTML = (
    '<a href="/a">A</a>'
    '<a href="https://www.example.com/b#section">B</a>'
    '<a href="https://WWW.EXAMPLE.COM/a">A again</a>'
    '<a href="https://other.org/x">Other</a>'
    '<a href="//cdn.partner.net/y">CDN</a>'
    '<a href="mailto:hi@example.com">Mail</a>'
    '<a href="#top">Top</a>'
    '<a href="javascript:void(0)">JS</a>'
    '<a>No href</a>'
    '<a href="http://[::1">Broken</a>'
)


class TestLinks:
    """Internal/external classification under both unparsable-href policies."""

    def test_unparsable_href_follows_policy(self):
        assert classify_link("http://[::1", PAGE_URL, UNPARSABLE_AS_INTERNAL) == "internal"
        assert classify_link("http://[::1", PAGE_URL, UNPARSABLE_SKIPPED) is None

    def test_non_navigable_hrefs_are_ignored(self):
        for href in ("#top", "mailto:a@b.c", "tel:123", "javascript:void(0)", "", "   "):
            assert classify_link(href, PAGE_URL, UNPARSABLE_AS_INTERNAL) is None

    def test_hostname_comparison(self):
        assert classify_link("/relative", PAGE_URL, UNPARSABLE_SKIPPED) == "internal"
        assert classify_link("https://WWW.Example.com/x", PAGE_URL, UNPARSABLE_SKIPPED) == "internal"
        assert classify_link("https://example.com/x", PAGE_URL, UNPARSABLE_SKIPPED) == "external"

    def test_relative_href_without_base_host(self):
        assert classify_link("/a", "", UNPARSABLE_AS_INTERNAL) == "internal"
        assert classify_link("/a", "", UNPARSABLE_SKIPPED) is None

    def test_counts_include_unparsable(self):
        assert count_links(LINK_HTML, PAGE_URL) == (4, 2)

    def test_samples_skip_unparsable(self):
        internal, domains = collect_link_urls(LINK_HTML, PAGE_URL)
        assert internal == [
            "https://www.example.com/a",
            "https://www.example.com/b",
            "https://WWW.EXAMPLE.COM/a",
        ]
        assert domains == ["cdn.partner.net", "other.org"]

    def test_internal_sample_is_capped_and_deduplicated(self):
        html = "".join(f'<a href="/p{i}">x</a><a href="/p{i}">dup</a>' for i in range(30))
        internal, _ = collect_link_urls(html, PAGE_URL, limit=20)
        assert len(internal) == 20
        assert len(set(internal)) == 20

    def test_facts_carry_counts_and_samples(self):
        facts = extract(LINK_HTML, PAGE_URL)
        assert facts.internal_link_count == 4
        assert facts.external_link_count == 2
        assert "other.org" in facts.external_domains
        assert all(url.startswith("https://") for url in facts.internal_links)


class TestSchema:
    """JSON-LD structured data."""

    def test_malformed_block_is_skipped(self):
        html = (
            '<script type="application/ld+json">{"@type": "Broken",</script>'
            '<script type="application/ld+json">{"@type": ["Product", "Thing"]}</script>'
        )
        blocks, types = extract_schema(html)
        assert len(blocks) == 1
        assert types == ["Product", "Thing"]

    def test_graph_and_top_level_lists(self):
        html = (
            '<script type="application/ld+json">'
            '{"@context": "https://schema.org", "@graph": [{"@type": "WebPage"}, {"@type": "BreadcrumbList"}]}'
            "</script>"
            '<script type="application/ld+json">[{"@type": "Organization"}, "stray", {"@type": "WebSite"}]</script>'
        )
        blocks, types = extract_schema(html)
        assert len(blocks) == 3
        assert types == ["WebPage", "BreadcrumbList", "Organization", "WebSite"]

    def test_other_script_types_ignored(self):
        blocks, types = extract_schema('<script type="text/javascript">{"@type": "Nope"}</script>')
        assert blocks == [] and types == []


class TestSecurityHeaders:
    """Security signals from response headers."""

    def test_no_headers_means_unavailable(self):
        signals = extract_security_headers(None)
        assert signals.headers_available is False
        assert signals.present_headers() == []

    def test_header_names_are_case_insensitive(self):
        signals = extract_security_headers({
            "Strict-Transport-Security": "max-age=31536000",
            "X-Frame-Options": "DENY",
            "Server": "nginx",
        })
        assert signals.headers_available is True
        assert signals.present_headers() == ["strict-transport-security", "x-frame-options"]
        assert signals.x_frame_options == "DENY"


COMPLIANCE_HTML = (
    '<html lang="en-GB"><head>'
    '<script src="https://consent.cookiebot.com/uc.js"></script>'
    "</head><body>"
    '<a href="#content" class="skip-link">Skip to content</a>'
    "<nav><a href=\"/privacy-policy\">Privacy</a><a href=\"/terms\">Terms of Service</a></nav>"
    '<div role="search"></div>'
    "<main id=\"content\">"
    '<img src="http://insecure.example.com/a.png" alt="x">'
    "<form>"
    '<label>Email <input type="email" name="email"></label>'
    '<label for="name">Name</label><input id="name" type="text">'
    '<input type="text" name="phone">'
    '<input type="hidden" name="token">'
    '<input type="submit" value="Send">'
    "</form>"
    '<iframe src="https://js.stripe.com/v3/elements"></iframe>'
    "</main></body></html>"
)


class TestComplianceSignals:
    """Markup-level compliance signals."""

    def test_landmarks_lang_and_skip_link(self):
        signals = extract_compliance_signals(COMPLIANCE_HTML, PAGE_URL)
        assert signals.lang == "en-GB"
        assert signals.aria_landmarks == ("main", "navigation", "search")
        assert signals.has_skip_link is True

    def test_form_label_coverage(self):
        signals = extract_compliance_signals(COMPLIANCE_HTML, PAGE_URL)
        assert signals.form_count == 1
        assert signals.form_field_count == 3
        assert signals.labelled_field_count == 2
        assert signals.form_label_coverage == pytest.approx(2 / 3)

    def test_no_forms_means_full_coverage(self):
        assert extract_compliance_signals("<p>hi</p>", PAGE_URL).form_label_coverage == 1.0

    def test_consent_policy_and_payment(self):
        signals = extract_compliance_signals(COMPLIANCE_HTML, PAGE_URL)
        assert signals.consent_platforms == ("Cookiebot",)
        assert signals.cookie_consent_detected is True
        assert signals.privacy_policy_link == "/privacy-policy"
        assert signals.terms_link == "/terms"
        assert signals.do_not_sell_link == ""
        assert signals.payment_form_detected is True
        assert signals.payment_iframes == ("https://js.stripe.com/v3/elements",)
        assert signals.iframe_count == 1

    def test_mixed_content_only_on_https(self):
        https = extract_compliance_signals(COMPLIANCE_HTML, PAGE_URL)
        http = extract_compliance_signals(COMPLIANCE_HTML, "http://www.example.com/")
        assert https.protocol == "https"
        assert https.mixed_content_urls == ("http://insecure.example.com/a.png",)
        assert http.protocol == "http"
        assert http.mixed_content_urls == ()


PERFORMANCE_HTML = (
    "<head>"
    '<link rel="preconnect" href="https://fonts.gstatic.com">'
    '<link rel="preload" as="font" href="/fonts/inter.woff2" crossorigin>'
    '<link rel="stylesheet" href="/main.css">'
    '<link rel="stylesheet" href="/print.css" media="print">'
    '<link rel="stylesheet" href="https://fonts.googleapis.com/css2?family=Inter&display=swap">'
    '<script src="/app.js"></script>'
    '<script async src="https://www.googletagmanager.com/gtm.js"></script>'
    '<script defer src="/defer.js"></script>'
    '<script type="module" src="/module.js"></script>'
    '<script type="application/ld+json">{"@type": "WebPage"}</script>'
    "<script>window.dataLayer = [];</script>"
    "</head><body>"
    '<img src="/hero.png" width="800" height="400">'
    '<img src="/below.png" loading="lazy">'
    "</body>"
)


class TestPerformanceSignals:
    """Loading-strategy signals."""

    def test_script_classification(self):
        perf = extract_performance_signals(PERFORMANCE_HTML, PAGE_URL)
        assert perf.script_count == 4
        assert perf.async_scripts == 1
        assert perf.defer_scripts == 1
        assert perf.module_scripts == 1
        assert perf.blocking_scripts == ("/app.js",)
        assert perf.inline_script_count == 1

    def test_stylesheets_and_hints(self):
        perf = extract_performance_signals(PERFORMANCE_HTML, PAGE_URL)
        assert perf.stylesheet_count == 3
        assert len(perf.blocking_stylesheets) == 2
        assert perf.blocking_stylesheets[0] == "/main.css"
        assert perf.render_blocking_count == 3
        assert perf.resource_hints == {"preconnect": 1, "preload": 1}
        assert perf.preloaded_fonts == 1

    def test_third_parties_and_fonts(self):
        perf = extract_performance_signals(PERFORMANCE_HTML, PAGE_URL)
        assert perf.third_party_domains == (
            "fonts.googleapis.com",
            "fonts.gstatic.com",
            "www.googletagmanager.com",
        )
        assert perf.web_font_providers == ("Google Fonts",)
        assert perf.font_display_swap is True

    def test_image_loading(self):
        perf = extract_performance_signals(PERFORMANCE_HTML, PAGE_URL)
        assert perf.image_count == 2
        assert perf.lazy_images == 1
        assert perf.images_with_dimensions == 1


class TestExtract:
    """The composed extractor."""

    @pytest.mark.parametrize("html", [
        "",
        "<<<>>>",
        "<html><head><title>Unclosed",
        '<a href="http://[::1">x</a><script type="application/ld+json">{</script>',
        "\x00\xff<h1>�</h1>",
        None,
        12345,
    ])
    def test_never_raises(self, html):
        facts = extract(html, PAGE_URL)
        assert facts.url == PAGE_URL

    def test_empty_page_has_absent_values(self):
        facts = extract("", PAGE_URL)
        assert facts.title == ""
        assert facts.meta_description == ""
        assert facts.headings == ()
        assert facts.word_count == 0
        assert facts.images == ()
        assert facts.schema_blocks == ()
        assert facts.html_length == 0
        assert facts.security.headers_available is False

    def test_oversized_markup_is_capped(self, monkeypatch):
        """Markup past the cap is not scanned but still counts toward html_length."""
        monkeypatch.setattr("seoaudit.extractor.MAX_HTML_CHARS", 40)
        html = "<title>Kept</title><h1>Also kept</h1>" + "<nav>" * 50 + "<h2>Dropped</h2>"

        facts = extract(html, PAGE_URL)

        assert facts.title == "Kept"
        assert facts.h1s == ["Also kept"]
        assert facts.h2s == []
        assert facts.html_length == len(html)

    def test_headers_feed_security_signals(self):
        facts = extract("<p>x</p>", PAGE_URL, {"content-security-policy": "default-src 'self'"})
        assert facts.security.headers_available is True
        assert facts.security.present_headers() == ["content-security-policy"]

    def test_full_page(self, a_grade_html):
        facts = extract(a_grade_html, PAGE_URL)
        assert facts.title == "Best Rental Calculator for Vacation Property Owners"
        assert len(facts.meta_description) == 150
        assert facts.canonical == PAGE_URL
        assert facts.h1s == ["Best Rental Calculator"]
        assert len(facts.h2s) == 3
        assert facts.schema_types == ("WebPage", "SoftwareApplication")
        assert facts.internal_link_count == 13  # 12 guides plus the nav home link
        assert facts.first_paragraph.startswith("Our rental calculator")
        assert "Menu" not in facts.content_text
        assert "Copyright" not in facts.content_text
