# ingestion/crawler.py
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set
from urllib.parse import urldefrag

from config import CRAWL_DEPTH, CRAWL_ERROR_PREFIX, DEDUPE_CRAWL_LINKS, MAX_LINKS_PER_PAGE
from ingestion.cleaner import parse_page
from utils.logger import get_crawler_logger

logger = get_crawler_logger()

# url -> html
Renderer = Callable[[str], str]


class CrawlError(Exception):
    """Custom exception for crawl errors."""
    pass


class NetworkError(CrawlError):
    """Network-related crawl error."""
    pass


class ContentError(CrawlError):
    """Content-related crawl error."""
    pass


@dataclass
class PageResult:
    """One visited page. A failed page carries error instead of text and children."""
    url: str
    depth: int
    text: str = ""
    links: List[str] = field(default_factory=list)
    error: Optional[str] = None
    children: List["PageResult"] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def render_text(self) -> str:
        """Own text (or diagnostic) followed by every child's text, in link order."""
        own = self.text if self.ok else f"{CRAWL_ERROR_PREFIX}{self.error}"
        return own + "".join(child.render_text() for child in self.children)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


def normalize_url(url: str) -> str:
    """Drop the fragment and any trailing slash."""
    url, _ = urldefrag(url)
    return url.rstrip("/")


class Crawler:
    """
    Depth-limited recursive crawler.

    Each page is rendered, its visible text kept and its first
    max_links_per_page absolute links crawled one level shallower, one link
    fully resolved before the next. A failure on a page is recorded on that
    page's result and never raised.
    """

    def __init__(
        self,
        render: Renderer,
        depth: int = CRAWL_DEPTH,
        max_links_per_page: int = MAX_LINKS_PER_PAGE,
        dedupe_links: bool = DEDUPE_CRAWL_LINKS,
    ):
        self.render = render
        self.depth = depth
        self.max_links_per_page = max_links_per_page
        self.dedupe_links = dedupe_links

    def crawl(self, url: str, depth: int = None, max_links_per_page: int = None) -> Optional[PageResult]:
        """
        Crawl url and its links.

        Returns:
            Result tree rooted at url, or None when depth <= 0
        """
        depth = self.depth if depth is None else depth
        max_links = self.max_links_per_page if max_links_per_page is None else max_links_per_page

        if depth <= 0:
            return None

        logger.info(f"Starting crawl of {url} (depth={depth}, max_links={max_links})")
        visited = set() if self.dedupe_links else None
        result = self._crawl_page(url, depth, max_links, visited)

        pages = list(result.walk())
        failed = [page for page in pages if not page.ok]
        logger.info(f"Crawl complete: {len(pages)} pages visited, {len(failed)} failed")
        return result

    def crawl_text(self, url: str, depth: int = None, max_links_per_page: int = None) -> str:
        result = self.crawl(url, depth, max_links_per_page)
        return result.render_text() if result else ""

    def _crawl_page(self, url: str, depth: int, max_links: int, visited: Optional[Set[str]]) -> PageResult:
        if visited is not None:
            visited.add(normalize_url(url))

        result = PageResult(url=url, depth=depth)
        try:
            html = self.render(url)
            result.text, result.links = parse_page(html, max_links)
        except Exception as e:
            logger.warning(f"Error crawling {url}: {str(e)}")
            result.error = str(e) or e.__class__.__name__
            return result

        logger.debug(f"Crawled: {url} ({len(result.text)} chars, {len(result.links)} links)")

        if depth - 1 <= 0:
            return result

        for link in result.links:
            if visited is not None and normalize_url(link) in visited:
                logger.debug(f"Skipping already visited: {link}")
                continue
            result.children.append(self._crawl_page(link, depth - 1, max_links, visited))

        return result
