"""
Page Retrieval Module

This module downloads pages for the crawler with a bounded per-request
timeout, optional retries and an optional shared rate limiter.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests


DEFAULT_USER_AGENT = 'scrapedf/1.0 (Website to PDF Archiver)'


class FetchError(Exception):
    """
    Raised when a page cannot be retrieved.

    ``unreachable`` is set when the request could not be issued or no
    connection could be made, as opposed to a timeout or an HTTP error status.
    """

    def __init__(self, url: str, message: str, status_code: Optional[int] = None,
                 unreachable: bool = False):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code
        self.unreachable = unreachable


@dataclass
class FetchedPage:
    url: str
    requested_url: str
    body: bytes
    content_type: str = ''
    status_code: int = 200
    encoding: Optional[str] = None
    depth: int = 0

    @property
    def is_html(self) -> bool:
        content_type = self.content_type.lower()
        return not content_type or 'html' in content_type


class PageFetcher:
    """
    Downloads pages over a shared HTTP session.

    Implements the crawl politeness and robustness rules:
    - bounded timeout per request
    - optional retries with exponential backoff for transient failures
    - optional global rate limiter shared by all workers
    """

    def __init__(self,
                 timeout: float = 5.0,
                 max_retries: int = 0,
                 retry_delay: float = 1.0,
                 rate_limiter=None,
                 user_agent: str = DEFAULT_USER_AGENT):
        """
        Initialize the page fetcher.

        Args:
            timeout: Seconds before a single request is abandoned
            max_retries: Extra attempts for timeouts, connection errors, 429 and 5xx
            retry_delay: Base delay for exponential backoff between attempts
            rate_limiter: Optional TokenBucket acquired before every request
            user_agent: User-Agent header sent with every request
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.rate_limiter = rate_limiter
        self.logger = logging.getLogger(__name__)

        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        })

    def fetch(self, url: str, depth: int = 0) -> FetchedPage:
        """
        Retrieve a single page.

        Args:
            url: Absolute URL to download
            depth: Link hops from the crawl start, carried into the result

        Returns:
            FetchedPage with the final URL after redirects

        Raises:
            FetchError: If the page could not be retrieved after all attempts
        """
        self.logger.debug(f"Fetching (depth {depth}): {url}")

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self.retry_delay * (2 ** (attempt - 1))
                self.logger.info(f"Retry {attempt} for {url} after {delay:.1f}s delay")
                time.sleep(delay)

            if self.rate_limiter:
                self.rate_limiter.acquire()

            last_attempt = attempt >= self.max_retries

            try:
                response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
                response.raise_for_status()

            except requests.exceptions.ConnectTimeout as e:
                self.logger.warning(f"Connect timeout for {url} (attempt {attempt + 1})")
                if last_attempt:
                    raise FetchError(url, f"could not connect within {self.timeout}s",
                                     unreachable=True) from e

            except requests.exceptions.Timeout:
                self.logger.warning(f"Timeout retrieving {url} (attempt {attempt + 1})")
                if last_attempt:
                    raise FetchError(url, f"timed out after {self.timeout}s")

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else None
                self.logger.warning(f"HTTP error {status_code} for {url} (attempt {attempt + 1})")
                transient = status_code is not None and (status_code == 429 or status_code >= 500)
                if last_attempt or not transient:
                    raise FetchError(url, f"HTTP {status_code}", status_code=status_code)

            except (requests.exceptions.InvalidURL,
                    requests.exceptions.MissingSchema,
                    requests.exceptions.InvalidSchema) as e:
                raise FetchError(url, f"invalid URL: {e}", unreachable=True) from e

            except requests.exceptions.ConnectionError as e:
                self.logger.warning(f"Connection error for {url} (attempt {attempt + 1}): {e}")
                if last_attempt:
                    raise FetchError(url, f"connection failed: {e}", unreachable=True) from e

            except requests.exceptions.RequestException as e:
                self.logger.warning(f"Request error for {url} (attempt {attempt + 1}): {e}")
                if last_attempt:
                    raise FetchError(url, str(e)) from e

            else:
                page = self._to_page(url, response, depth)
                self.logger.info(f"Fetched {len(page.body)} bytes from {page.url}")
                return page

        raise FetchError(url, "no attempts made")

    def _to_page(self, requested_url: str, response: requests.Response, depth: int) -> FetchedPage:
        content_type = response.headers.get('content-type', '')
        # requests falls back to ISO-8859-1 for text/* without a charset
        encoding = response.encoding if 'charset=' in content_type.lower() else None
        return FetchedPage(
            url=response.url or requested_url,
            requested_url=requested_url,
            body=response.content,
            content_type=content_type,
            status_code=response.status_code,
            encoding=encoding,
            depth=depth,
        )

    def close(self):
        """Close the HTTP session."""
        if self.rate_limiter:
            self.logger.info(f"Request pacing waited {self.rate_limiter.waited_secs:.1f}s in total")
        self.session.close()
        self.logger.debug("Page fetcher session closed")
