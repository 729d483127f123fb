"""Content normalization helpers.

Library items arrive with HTML bodies. Prompts work better on a markdown-ish
plain text form, so the candidate gatherer converts every body once with
``html_to_markdown`` before any LLM stage sees it.

Conversion rules:
    - script/style/head/meta/link/noscript content is dropped
    - h1-h6 become '#' headings
    - list items become '- ' bullets
    - block elements are separated by blank lines
    - runs of whitespace are collapsed
"""

import re

from bs4 import BeautifulSoup

SKIP_TAGS = ("script", "style", "head", "meta", "link", "noscript")
BLOCK_TAGS = ("p", "div", "section", "article", "blockquote", "pre", "table", "tr", "figure")

_SPACES = re.compile(r"[ \t ]+")
_BLANK_LINES = re.compile(r"\n{3,}")


def html_to_markdown(html: str) -> str:
    """Convert an HTML body into markdown-flavored plain text.

    Args:
        html: HTML (or already plain) content

    Returns:
        Normalized text, empty string for empty input
    """
    if not html or not html.strip():
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(SKIP_TAGS):
        tag.decompose()

    for level in range(1, 7):
        for heading in soup.find_all(f"h{level}"):
            text = heading.get_text(" ", strip=True)
            heading.replace_with(f"\n\n{'#' * level} {text}\n\n" if text else "")

    for item in soup.find_all("li"):
        text = item.get_text(" ", strip=True)
        item.replace_with(f"\n- {text}\n" if text else "")

    for br in soup.find_all("br"):
        br.replace_with("\n")

    for block in soup.find_all(BLOCK_TAGS):
        if block.parent is not None:
            block.insert_before("\n\n")
            block.insert_after("\n\n")

    lines = [_SPACES.sub(" ", line).strip() for line in soup.get_text().splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def words_count(text: str) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())
