# utils/urls.py - URL extraction from free-text chat messages
import re
from typing import List

# Scheme plus a run of non-whitespace. Trailing punctuation is kept on purpose.
URL_PATTERN = re.compile(r"https?://[^\s]+")


def extract_urls(text: str) -> List[str]:
    """Return every URL in text, in order of first occurrence."""
    if not text:
        return []
    return URL_PATTERN.findall(text)


def remove_urls(text: str, urls: List[str]) -> str:
    """
    Remove every occurrence of the given URLs from text.

    Only the outer whitespace is stripped, so "Summarize https://x.io please"
    becomes "Summarize  please".
    """
    # Longest first so a URL that prefixes another one doesn't leave a tail behind
    for url in sorted(set(urls), key=len, reverse=True):
        text = text.replace(url, "")
    return text.strip()
