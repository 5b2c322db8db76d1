"""Shared fixtures for seoaudit tests."""

import json

import pytest

from seoaudit.models import FetchedPage

PAGE_URL = "https://www.example.com/tools/rental-calculator"
KEYWORD = "rental calculator"

A_GRADE_TITLE = "Best Rental Calculator for Vacation Property Owners"  # 51 chars
A_GRADE_META = (
    "Use our free rental calculator to estimate cash flow, cap rate and return on "
    "investment for any vacation rental property in minutes, no signup needed."
)  # 150 chars


def build_page(
    title=A_GRADE_TITLE,
    meta=A_GRADE_META,
    h1="Best Rental Calculator",
    h2_count=3,
    h3_count=1,
    filler_words=2500,
    internal_links=12,
    images=3,
    images_with_alt=None,
    schema_types=("WebPage", "SoftwareApplication"),
    canonical=PAGE_URL,
    first_paragraph="Our rental calculator shows what a vacation rental will really earn.",
    extra_head="",
    extra_body="",
):
    """Assemble a page from parts; defaults describe a page that grades A."""
    images_with_alt = images if images_with_alt is None else images_with_alt
    head = [f"<title>{title}</title>"] if title else []
    if meta:
        head.append(f'<meta name="description" content="{meta}">')
    if canonical:
        head.append(f'<link rel="canonical" href="{canonical}">')
    if schema_types:
        graph = [{"@type": t, "name": f"{t} entry"} for t in schema_types]
        head.append(
            '<script type="application/ld+json">'
            + json.dumps({"@context": "https://schema.org", "@graph": graph})
            + "</script>"
        )
    head.append(extra_head)

    body = ['<header><nav><a href="/">Home</a><p>Menu rental calculator rental calculator</p></nav></header>']
    if h1:
        body.append(f"<h1>{h1}</h1>")
    if first_paragraph:
        body.append(f"<p>{first_paragraph}</p>")
    for i in range(h2_count):
        body.append(f"<h2>Section {i + 1}</h2>")
    for i in range(h3_count):
        body.append(f"<h3>Detail {i + 1}</h3>")
    body.append("<p>" + " ".join(["income"] * filler_words) + "</p>")
    body.append("<p>Try the rental calculator again with different numbers.</p>")
    for i in range(internal_links):
        body.append(f'<a href="/guides/page-{i}">Guide {i}</a>')
    for i in range(images):
        alt = f' alt="Chart {i}"' if i < images_with_alt else ""
        body.append(f'<img src="/img/chart-{i}.png"{alt}>')
    body.append(extra_body)
    body.append("<footer><p>Copyright rental calculator footer</p></footer>")

    return (
        "<!DOCTYPE html><html lang=\"en\"><head>"
        + "".join(head)
        + "</head><body>"
        + "".join(body)
        + "</body></html>"
    )


class FakeFetcher:
    """In-memory stand-in for PageFetcher."""

    def __init__(self, pages=None, errors=None, default_html=None, headers=None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.default_html = default_html if default_html is not None else build_page()
        self.headers = headers or {}
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        return FetchedPage(
            url=url,
            status_code=200,
            headers=dict(self.headers),
            text=self.pages.get(url, self.default_html),
        )

    async def aclose(self):
        pass


@pytest.fixture
def page_url():
    return PAGE_URL


@pytest.fixture
def a_grade_html():
    return build_page()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def llm_json():
    """A well-formed audit response."""
    return json.dumps({
        "score": 72,
        "summary": "Solid page with gaps in metadata.",
        "strengths": ["Clear H1", "Fast markup"],
        "recommendations": [
            {
                "priority": "high",
                "category": "Metadata",
                "issue": "Meta description is 90 chars",
                "recommendation": "Extend it",
                "how_to_fix": "Edit the meta tag in the page head",
                "impact": "Higher CTR",
            }
        ],
    })
