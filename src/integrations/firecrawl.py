"""Web page fetching for RFPs published as HTML - Firecrawl with a plain HTTP fallback."""

import asyncio
import logging
from typing import Optional, List, Dict, Any

import httpx
from bs4 import BeautifulSoup

from src.core.config import get_settings

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; RFPProposalEngine/1.0)"
STRIP_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "svg", "form"]


class PageFetchError(Exception):
    """Raised when a page cannot be retrieved or has no readable text."""


def _field(result: Any, name: str) -> Any:
    """Read a field from either a dict or an SDK response object."""
    if isinstance(result, dict):
        return result.get(name)
    return getattr(result, name, None)


def html_to_text(html: str) -> str:
    """Visible text of an HTML document, one block per line."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


class FirecrawlService:
    """
    Service for fetching RFP pages.

    Firecrawl renders the page to markdown when an API key is configured;
    otherwise the raw HTML is fetched with httpx and reduced to text.
    """

    def __init__(self):
        """Initialize service."""
        self._client = None
        self._settings = None

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def client(self):
        """Lazy initialize Firecrawl client."""
        if self._client is None:
            from firecrawl import FirecrawlApp
            self._client = FirecrawlApp(api_key=self.settings.FIRECRAWL_API_KEY)
            logger.info("Firecrawl client initialized")
        return self._client

    def is_available(self) -> bool:
        """Check if Firecrawl service is configured."""
        return bool(self.settings.FIRECRAWL_API_KEY)

    async def scrape_page(
        self,
        url: str,
        formats: List[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Scrape a page through Firecrawl.

        Args:
            url: URL to scrape
            formats: Output formats (default: ["markdown"])

        Returns:
            Dict with markdown and metadata, or None on failure
        """
        if not url or not self.is_available():
            return None

        formats = formats or ["markdown"]

        try:
            # Sync client runs in a worker thread
            result = await asyncio.to_thread(self.client.scrape_url, url, formats=formats)
            markdown = _field(result, "markdown") or ""
            logger.info(f"Scraped {url}: {len(markdown)} chars")
            return {
                "url": url,
                "markdown": markdown,
                "metadata": _field(result, "metadata") or {},
            }

        except Exception as e:
            logger.error(f"Failed to scrape {url}: {e}")
            return None

    async def fetch_html_text(self, url: str) -> str:
        """Fetch a page over HTTP and return its visible text."""
        try:
            async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise PageFetchError(f"Failed to fetch {url}: {e}") from e

        return html_to_text(response.text)

    async def fetch_page_text(self, url: str) -> str:
        """
        Readable text of an RFP web page.

        Raises:
            PageFetchError: the page could not be fetched or is empty
        """
        scraped = await self.scrape_page(url)
        text = (scraped or {}).get("markdown") or ""

        if not text.strip():
            text = await self.fetch_html_text(url)

        if not text.strip():
            raise PageFetchError(f"No readable content found at {url}")
        return text


# Singleton instance
firecrawl_service = FirecrawlService()
