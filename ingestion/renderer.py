# ingestion/renderer.py
"""
Renderers turn a URL into HTML.

BrowserRenderer drives headless Chromium through Playwright so client-side
rendered pages come back with their content. StaticRenderer is a plain HTTP GET
for environments without a browser.
"""

import requests
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from config import RENDER_TIMEOUT_SECONDS, RENDER_WAIT_UNTIL
from ingestion.crawler import ContentError, NetworkError
from utils.logger import get_crawler_logger

logger = get_crawler_logger()

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9"
}

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


class BrowserRenderer:
    """Render a page in headless Chromium and return the resulting DOM as HTML."""

    def __init__(self, timeout_seconds: int = RENDER_TIMEOUT_SECONDS, wait_until: str = RENDER_WAIT_UNTIL):
        self.timeout_seconds = timeout_seconds
        self.wait_until = wait_until

    def __call__(self, url: str) -> str:
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=True, args=BROWSER_ARGS)
                try:
                    context = browser.new_context(user_agent=USER_AGENT)
                    page = context.new_page()
                    page.goto(url, wait_until=self.wait_until, timeout=self.timeout_seconds * 1000)
                    return page.content()
                finally:
                    browser.close()
        except PlaywrightTimeoutError:
            logger.warning(f"Render timeout after {self.timeout_seconds}s: {url}")
            raise NetworkError(f"Timed out after {self.timeout_seconds}s rendering {url}")
        except PlaywrightError as e:
            logger.warning(f"Render failed for {url}: {str(e)}")
            raise NetworkError(f"Failed to render {url}: {str(e)}")


class StaticRenderer:
    """Fetch raw HTML over HTTP without executing scripts."""

    def __init__(self, timeout_seconds: int = RENDER_TIMEOUT_SECONDS, session: requests.Session = None):
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def __call__(self, url: str) -> str:
        try:
            response = self.session.get(url, headers=HEADERS, timeout=self.timeout_seconds, allow_redirects=True)
        except requests.exceptions.Timeout:
            logger.warning(f"Request timeout: {url}")
            raise NetworkError(f"Timed out after {self.timeout_seconds}s fetching {url}")
        except requests.exceptions.TooManyRedirects:
            logger.warning(f"Too many redirects: {url}")
            raise NetworkError(f"Too many redirects fetching {url}")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Request failed for {url}: {str(e)}")
            raise NetworkError(f"Request failed for {url}: {str(e)}")

        if response.status_code != 200:
            logger.debug(f"Non-200 status ({response.status_code}): {url}")
            raise NetworkError(f"HTTP {response.status_code} fetching {url}")

        content_type = response.headers.get("Content-Type", "")
        if "html" not in content_type:
            logger.debug(f"Non-HTML content type ({content_type}): {url}")
            raise ContentError(f"Non-HTML content type ({content_type}) at {url}")

        return response.text


def get_renderer(kind: str):
    """Build the renderer named in config ("browser" or "static")."""
    if kind == "browser":
        return BrowserRenderer()
    if kind == "static":
        return StaticRenderer()
    raise ValueError(f"Unknown renderer: {kind}. Supported: browser, static")
