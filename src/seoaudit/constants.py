# src/seoaudit/constants.py
"""Centralized constants for the audit pipeline.

This module contains character budgets, caps and signature lists used across
multiple modules. For user-configurable grading thresholds, see config.py
and RubricThresholds.
"""

# =============================================================================
# Extraction Constants
# =============================================================================

# Character budget for the body-text excerpt kept on PageFacts
BODY_TEXT_CHAR_LIMIT = 4000

# Markup beyond this many characters is not scanned by the extractors
MAX_HTML_CHARS = 5_000_000

# Maximum internal link URLs kept as a sample on PageFacts
INTERNAL_LINK_SAMPLE_LIMIT = 20

# Hrefs with these prefixes are not links to documents
NON_NAVIGABLE_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:", "sms:")

# Elements removed before flattening body text
BOILERPLATE_TAGS = ("script", "style", "nav", "header", "footer")

# Form controls that do not need a visible label
UNLABELLED_INPUT_TYPES = {"hidden", "submit", "button", "image", "reset"}

# Cookie-consent platforms, matched case-insensitively against raw markup
CONSENT_PLATFORM_SIGNATURES = {
    "Cookiebot": ("cookiebot",),
    "OneTrust": ("onetrust", "optanon"),
    "CookieYes": ("cookieyes", "cookie-law-info"),
    "Termly": ("termly",),
    "iubenda": ("iubenda",),
    "Osano": ("osano",),
    "Usercentrics": ("usercentrics",),
    "Quantcast Choice": ("quantcast",),
    "Complianz": ("complianz", "cmplz"),
    "Generic consent banner": ("cookie-consent", "cookieconsent", "cookie-banner", "cookie_notice"),
}

# Payment providers whose iframes or scripts indicate a payment flow
PAYMENT_PROVIDER_SIGNATURES = (
    "js.stripe.com",
    "checkout.stripe.com",
    "paypal.com",
    "braintreegateway.com",
    "squareup.com",
    "squarecdn.com",
    "adyen.com",
    "authorize.net",
)

# Autocomplete tokens and field names that mark a card-number input
PAYMENT_FIELD_MARKERS = ("cc-number", "cc-csc", "cardnumber", "card-number", "card_number")

# Link relations counted as resource hints
RESOURCE_HINT_RELS = ("preconnect", "dns-prefetch", "preload", "prefetch", "modulepreload", "prerender")

# Hosted web-font providers
WEB_FONT_PROVIDERS = {
    "Google Fonts": ("fonts.googleapis.com", "fonts.gstatic.com"),
    "Adobe Fonts": ("use.typekit.net", "p.typekit.net"),
    "Bunny Fonts": ("fonts.bunny.net",),
    "Font Awesome": ("use.fontawesome.com", "kit.fontawesome.com"),
}

# Security headers read from the fetch response
SECURITY_HEADER_NAMES = {
    "strict_transport_security": "strict-transport-security",
    "content_security_policy": "content-security-policy",
    "x_frame_options": "x-frame-options",
    "referrer_policy": "referrer-policy",
    "permissions_policy": "permissions-policy",
    "x_content_type_options": "x-content-type-options",
}


# =============================================================================
# Grading Constants
# =============================================================================

GRADE_POINTS = {"A": 4, "B": 3, "C": 2, "D": 1, "F": 0}

BASE_CRITERIA = (
    "title_tag",
    "meta_description",
    "h1_tag",
    "heading_structure",
    "schema_markup",
    "keyword_optimization",
    "content_volume",
    "internal_linking",
    "image_optimization",
    "technical_seo",
)

COMPLIANCE_CRITERIA = (
    "security_headers",
    "https_security",
    "accessibility",
    "privacy_compliance",
)

PERFORMANCE_CRITERIA = (
    "render_blocking",
    "image_loading",
    "third_party_load",
    "font_strategy",
)


# =============================================================================
# Context Budget Constants
# =============================================================================

SCHEMA_CONTEXT_CHAR_LIMIT = 2000
HEADINGS_CONTEXT_LIMIT = 30
BUSINESS_CONTEXT_CHAR_LIMIT = 1500
LINK_SAMPLE_CONTEXT_LIMIT = 10
MIXED_CONTENT_CONTEXT_LIMIT = 10

# Characters of raw LLM output kept on a parse-failure diagnostic
PARSE_SNIPPET_CHARS = 300


# =============================================================================
# Network Constants
# =============================================================================

DEFAULT_USER_AGENT = "SEOAudit-Bot/1.0 (+https://github.com/seoaudit/seoaudit)"

DEFAULT_FETCH_TIMEOUT_SECONDS = 15.0

DEFAULT_LLM_TIMEOUT_SECONDS = 90.0

DEFAULT_PERSIST_TIMEOUT_SECONDS = 10.0

DEFAULT_MAX_CONCURRENCY = 5

DEFAULT_MAX_BATCH_PAGES = 5
