"""
Link validation and extraction utilities.
"""

import re
from typing import List, Optional
from urllib.parse import urlparse


# URL extraction pattern
URL_PATTERN = re.compile(
    r'https?://[^\s<>"{}|\\^`\[\]]+'
)

# Characters a well-formed link must not contain
_INVALID_LINK_CHARS = re.compile(r'[\s<>"{}|\\^`]')


def is_web_url(url: str) -> bool:
    """
    Validate if the string is a valid web URL.

    Args:
        url: The URL to validate

    Returns:
        True if valid web URL, False otherwise
    """
    if not url or _INVALID_LINK_CHARS.search(url):
        return False
    try:
        parsed = urlparse(url)
        return all([
            parsed.scheme in ('http', 'https'),
            parsed.netloc,
            parsed.hostname,
        ])
    except ValueError:
        return False


def extract_links(text: Optional[str]) -> List[str]:
    """
    Extract the valid links from a message, one candidate per line.

    Lines are trimmed, blanks and duplicates dropped (first occurrence
    wins), and anything that is not a well-formed http(s) URL discarded.

    Args:
        text: Raw message text

    Returns:
        Unique valid links in the order they appeared
    """
    if not text:
        return []

    links: List[str] = []
    seen = set()
    for line in text.splitlines():
        candidate = line.strip()
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if is_web_url(candidate):
            links.append(candidate)
    return links


def extract_url_from_text(text: str) -> Optional[str]:
    """
    Extract the first URL from a text message.

    Args:
        text: The text to search for URLs

    Returns:
        The first URL found, or None
    """
    match = URL_PATTERN.search(text)
    if match:
        return match.group(0)
    return None
