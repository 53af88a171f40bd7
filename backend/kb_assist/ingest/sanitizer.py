"""HTML to plain-text sanitization."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from kb_assist.utils.text import normalize

DEFAULT_MAX_CHARS = 4000

_STRIP_TAGS = ("script", "style", "noscript", "template")
_BLOCK_TAGS = (
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4",
    "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section",
    "table", "td", "th", "tr", "ul",
)
_PARAGRAPH_BREAK = "\n\n"
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


def sanitize_html(html: str, max_chars: int = DEFAULT_MAX_CHARS, keep_paragraphs: bool = False) -> str:
    """Strip markup from ``html`` and return at most ``max_chars`` characters.

    Script, style, noscript and template blocks are dropped together with
    their contents; every other tag is removed and its text kept. Whitespace
    runs collapse to a single space. With ``keep_paragraphs`` block-level
    elements are separated by blank lines instead, which is what the chunker
    splits on.

    Malformed markup is handled best-effort by ``html.parser``; an empty
    string is a valid result.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(list(_STRIP_TAGS)):
        tag.decompose()

    if keep_paragraphs:
        for tag in soup.find_all(list(_BLOCK_TAGS)):
            tag.insert_before(_PARAGRAPH_BREAK)
            tag.insert_after(_PARAGRAPH_BREAK)
        paragraphs = (normalize(part) for part in _PARAGRAPH_SPLIT_RE.split(soup.get_text()))
        text = _PARAGRAPH_BREAK.join(part for part in paragraphs if part)
    else:
        text = normalize(soup.get_text(" "))
    return clip(text, max_chars)


def extract_title(html: str) -> str | None:
    """Return the document ``<title>`` text, if any."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None:
        return None
    title = normalize(soup.title.get_text())
    return title or None


def clip(text: str, max_chars: int) -> str:
    """Truncate ``text`` to ``max_chars`` characters, trimming a dangling space."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip()


__all__ = ["DEFAULT_MAX_CHARS", "sanitize_html", "extract_title", "clip"]
