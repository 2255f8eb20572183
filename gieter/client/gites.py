"""
Gîtes de France HTTP client with retry logic.
"""
import logging
import re
from typing import Optional
from urllib.parse import urlparse

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import SearchConfig, get_config


logger = logging.getLogger(__name__)

LISTING_LINK_RE = re.compile(r'href="(/en/[^"]+\?from=[^"]+)"')


class GitesClient:
    """
    Fetches search result pages and listing pages.
    Transport errors are retried; non-2xx responses raise ``requests.HTTPError``.
    """

    def __init__(self, config: Optional[SearchConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_config().search
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        })

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        before_sleep=lambda retry_state: logger.warning(
            f"Retry attempt {retry_state.attempt_number}"
        ),
        reraise=True,
    )
    def _get(self, url: str) -> str:
        response = self.session.get(url, timeout=30)
        response.raise_for_status()
        return response.text

    def search_url(self, page: int) -> str:
        page_param = "" if page == 0 else f"&page={page}"
        return f"{self.config.site_url}/en/search?{self.config.search_params}{page_param}"

    def extract_listing_urls(self, html: str) -> list[str]:
        """Absolute listing URLs linked from a search page, in page order."""
        return [
            self.config.site_url + match.replace("&amp;", "&")
            for match in LISTING_LINK_RE.findall(html)
        ]

    def fetch_listing_urls(self) -> list[str]:
        """
        Walk the search result pages and collect unique listing URLs.
        Uniqueness is by path, so tracking query strings don't duplicate listings.
        """
        seen: set[str] = set()
        urls: list[str] = []

        last_page = self.config.last_page
        if self.config.max_pages is not None:
            last_page = min(last_page, self.config.max_pages - 1)

        for page in range(last_page + 1):
            logger.info(f"Fetching page {page}/{last_page}...")
            page_urls = self.extract_listing_urls(self._get(self.search_url(page)))
            logger.info(f"Found {len(set(page_urls))} listings on page {page}")

            for url in page_urls:
                path = urlparse(url).path
                if path not in seen:
                    seen.add(path)
                    urls.append(url)

        logger.info(f"Found {len(urls)} unique listings")
        return urls

    def fetch_listing_html(self, url: str) -> str:
        """Fetch a single listing page."""
        return self._get(url)


def url_slug(url: str) -> str:
    """Last path segment, a short readable per-listing key."""
    path = urlparse(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1] or "listing"
