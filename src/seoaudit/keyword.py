"""Keyword placement and frequency analysis for a single page."""

from seoaudit.models import KeywordRelevance, PageFacts


def count_mentions(text: str, keyword: str) -> int:
    """Count case-insensitive, non-overlapping occurrences of keyword in text.

    Scans left to right and resumes after each match, so "aaa" holds one
    "aa", not two.
    """
    if not keyword or not text:
        return 0
    haystack = text.lower()
    needle = keyword.lower()
    count = 0
    position = haystack.find(needle)
    while position != -1:
        count += 1
        position = haystack.find(needle, position + len(needle))
    return count


def _contains(text: str, keyword: str) -> bool:
    return bool(keyword) and keyword.lower() in text.lower()


def analyze(facts: PageFacts, keyword: str) -> KeywordRelevance:
    """Compute where and how often a keyword appears on a page.

    Args:
        facts: Extracted page facts
        keyword: Target keyword phrase

    Returns:
        KeywordRelevance for the keyword on this page
    """
    keyword = (keyword or "").strip()
    mentions = count_mentions(facts.content_text, keyword)
    word_count = facts.word_count
    density = mentions / word_count if word_count > 0 else 0.0

    return KeywordRelevance(
        keyword=keyword,
        in_title=_contains(facts.title, keyword),
        in_h1=any(_contains(h1, keyword) for h1 in facts.h1s),
        in_meta_description=_contains(facts.meta_description, keyword),
        in_first_paragraph=_contains(facts.first_paragraph, keyword),
        mention_count=mentions,
        word_count=word_count,
        density=density,
    )
