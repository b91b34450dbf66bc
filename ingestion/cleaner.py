# ingestion/cleaner.py
"""
Cleaner module: extracts visible text and outbound links from raw HTML.
"""

import re
from typing import List, Tuple

from bs4 import BeautifulSoup

# Never rendered by a browser
INVISIBLE_TAGS = ["script", "style", "noscript", "template"]

LINK_SCHEMES = ("http://", "https://")


def _parse(html_content: str) -> BeautifulSoup:
    return BeautifulSoup(html_content or "", "html.parser")


def _visible_text(soup: BeautifulSoup) -> str:
    root = soup.body or soup

    for tag in root(INVISIBLE_TAGS):
        tag.decompose()

    text = root.get_text(separator=" ", strip=True)
    return re.sub(r"\s{2,}", " ", text).strip()


def _absolute_links(soup: BeautifulSoup, limit: int = None) -> List[str]:
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href.lower().startswith(LINK_SCHEMES):
            links.append(href)
            if limit is not None and len(links) >= limit:
                break
    return links


def clean_html(html_content: str) -> str:
    """Extract the visible body text from HTML."""
    return _visible_text(_parse(html_content))


def extract_links(html_content: str, limit: int = None) -> List[str]:
    """
    Return anchor targets that are absolute http(s) URLs, in document order.

    Relative links are ignored, not resolved.
    """
    return _absolute_links(_parse(html_content), limit)


def parse_page(html_content: str, max_links: int = None) -> Tuple[str, List[str]]:
    """Parse once, return (visible text, first max_links absolute links)."""
    soup = _parse(html_content)
    # Links first: text extraction decomposes tags in place
    links = _absolute_links(soup, max_links)
    return _visible_text(soup), links
