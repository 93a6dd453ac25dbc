"""
Same-host crawler.

Visits the start URL, follows ``<a href>`` links that stay on the start host
up to a fixed number of hops and hands every fetched page to a callback.
Pages of one depth level are fetched concurrently on a worker pool.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from bs4 import BeautifulSoup

from .page_fetcher import FetchedPage, FetchError, PageFetcher
from ..utils.validators import get_validator
from ..utils.visited import VisitedSet


PageCallback = Callable[[FetchedPage], None]
ErrorCallback = Callable[[str, Exception], None]


class CrawlError(Exception):
    """Raised when the crawl cannot be started at all."""


@dataclass
class CrawlStats:
    fetched: int = 0
    failed: int = 0
    skipped_offsite: int = 0
    max_depth_reached: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class Crawler:
    def __init__(self, fetcher: Optional[PageFetcher] = None, max_depth: int = 5,
                 concurrency: int = 4, logger: Optional[logging.Logger] = None):
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        self.fetcher = fetcher or PageFetcher()
        self.max_depth = max_depth
        self.concurrency = max(1, concurrency)
        self.logger = logger or logging.getLogger(__name__)
        self.validator = get_validator()

    def crawl(self, start_url: str, on_page: PageCallback,
              on_error: Optional[ErrorCallback] = None) -> CrawlStats:
        """
        Crawl ``start_url`` and every same-host page reachable within ``max_depth`` hops.

        Args:
            start_url: Absolute http(s) URL to start from
            on_page: Called once per successfully fetched response, possibly
                from several worker threads at once
            on_error: Called with (url, error) for every failed fetch

        Returns:
            CrawlStats for the run

        Raises:
            CrawlError: If the start URL is invalid or cannot be requested
        """
        ok, start, err = self.validator.validate_start_url(start_url)
        if not ok:
            raise CrawlError(f"invalid start URL {start_url!r}: {err}")

        host = self.validator.host_key(start)
        stats = CrawlStats()
        seen = VisitedSet()
        seen.add_if_absent(start)

        self.logger.info(f"Crawling {start} (host {host}, max depth {self.max_depth})")

        try:
            page = self.fetcher.fetch(start, depth=0)
        except FetchError as e:
            if e.unreachable:
                raise CrawlError(f"failed to start crawling: {e}") from e
            self._report_error(start, e, stats, on_error)
            return stats

        frontier = self._handle_page(page, host, seen, stats, on_page)

        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            depth = 1
            while frontier and depth <= self.max_depth:
                self.logger.info(f"Depth {depth}: {len(frontier)} page(s) queued")
                stats.max_depth_reached = depth
                futures = [
                    pool.submit(self._visit, url, depth, host, seen, stats, on_page, on_error)
                    for url in frontier
                ]
                next_frontier: List[str] = []
                for future in futures:
                    next_frontier.extend(future.result())
                frontier = next_frontier
                depth += 1

        self.logger.info(
            f"Crawl finished: {stats.fetched} fetched, {stats.failed} failed, "
            f"{stats.skipped_offsite} redirected off host"
        )
        return stats

    def _visit(self, url: str, depth: int, host: str, seen: VisitedSet, stats: CrawlStats,
               on_page: PageCallback, on_error: Optional[ErrorCallback]) -> List[str]:
        try:
            page = self.fetcher.fetch(url, depth=depth)
        except FetchError as e:
            self._report_error(url, e, stats, on_error)
            return []
        return self._handle_page(page, host, seen, stats, on_page)

    def _handle_page(self, page: FetchedPage, host: str, seen: VisitedSet,
                     stats: CrawlStats, on_page: PageCallback) -> List[str]:
        if not self.validator.is_same_host(page.url, host):
            self.logger.warning(f"Skipping {page.requested_url}: redirected off host to {page.url}")
            with stats.lock:
                stats.skipped_offsite += 1
            return []

        with stats.lock:
            stats.fetched += 1

        try:
            on_page(page)
        except Exception as e:
            self.logger.error(f"Page callback failed for {page.url}: {e}")

        if page.depth >= self.max_depth or not page.is_html:
            return []

        return [link for link in self.discover_links(page, host) if seen.add_if_absent(link)]

    def discover_links(self, page: FetchedPage, host: str) -> List[str]:
        """
        Collect same-host links from a page, in document order and without duplicates.

        Off-host, malformed and non-http(s) links are silently dropped.
        """
        try:
            soup = BeautifulSoup(page.body, 'lxml')
        except Exception as e:
            self.logger.debug(f"Could not parse {page.url} for links: {e}")
            return []

        links: List[str] = []
        found = set()
        for anchor in soup.find_all('a', href=True):
            link = self.validator.normalize_link(page.url, anchor.get('href'))
            if link is None or link in found:
                continue
            if not self.validator.is_same_host(link, host):
                continue
            found.add(link)
            links.append(link)
        return links

    def _report_error(self, url: str, error: Exception, stats: CrawlStats,
                      on_error: Optional[ErrorCallback]) -> None:
        self.logger.warning(f"Failed to fetch {url}: {error}")
        with stats.lock:
            stats.failed += 1
        if on_error:
            try:
                on_error(url, error)
            except Exception as e:
                self.logger.error(f"Error callback failed for {url}: {e}")
