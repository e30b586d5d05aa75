"""Turn scraped HTML into compact plain text for the language model."""

import re

from bs4 import BeautifulSoup

DEFAULT_MAX_CHARS = 8000

_WHITESPACE_RE = re.compile(r"\s+")

# Tags whose contents are never visible text
_DROP_TAGS = ("script", "style", "noscript")


def clean_html(html: str) -> str:
    """
    Strip non-visible elements and all markup, collapsing whitespace.

    Args:
        html: Raw page HTML.

    Returns:
        Single-line visible text.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()

    text = soup.get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def truncate(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Cut text to a character budget."""
    if max_chars <= 0:
        return ""
    return text[:max_chars]


def prepare_content(html: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Clean HTML and truncate it to the extraction budget."""
    return truncate(clean_html(html), max_chars)
