"""
Content sanitizer for field values pushed to the search engine.

Strips markup, scripts and styles so only readable text gets indexed.
"""

import re
from typing import Any

from bs4 import BeautifulSoup

UNWANTED_TAGS = ["script", "style", "noscript", "template"]

_WHITESPACE_RE = re.compile(r"\s+")


def clean_html(content: Any) -> str:
    """
    Remove markup from a field value.

    Args:
        content: Raw field value, usually a string containing HTML

    Returns:
        Plain text with entities decoded and whitespace collapsed
    """
    if content is None:
        return ""

    text = str(content)
    if not text:
        return ""

    # Keep adjacent block contents apart once the tags are gone
    text = text.replace("<", " <").replace(">", "> ")

    soup = BeautifulSoup(text, "html.parser")
    for tag_name in UNWANTED_TAGS:
        for element in soup.find_all(tag_name):
            element.decompose()

    text = soup.get_text(separator=" ")

    # &nbsp; decodes to U+00A0
    text = text.replace("\xa0", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()
