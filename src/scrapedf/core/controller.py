"""
scrapedf Orchestrator: crawls a site, renders every page and packages the PDFs.

All mutable state of a run (visited URLs, rendered artifacts, counters,
errors) lives in a ``_RunState`` created per ``Scraper.run`` call, so several
scrapes can run in one process.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .archiver import Archiver, ArchiveError, PageArtifact
from .crawler import Crawler, CrawlError
from .logger import ErrorTracker
from .page_fetcher import DEFAULT_USER_AGENT, FetchedPage, PageFetcher
from .page_renderer import PageRenderer, RenderError
from ..utils.file_manager import FileManager, archive_name_for_url
from ..utils.rate_limiter import limiter_for_delay
from ..utils.validators import validate_url
from ..utils.visited import VisitedSet


Progress = Callable[[Dict[str, Any]], None]


class ScrapeError(Exception):
    """A failure that aborts the whole scrape."""


class InvalidURLError(ScrapeError):
    """The start URL is not an absolute http(s) URL."""


@dataclass
class ScrapeConfig:
    start_url: str
    output_dir: str = "."
    strip_html: bool = False
    clean: bool = False
    max_depth: int = 5
    request_timeout: float = 5.0
    concurrency: int = 4
    delay_secs: float = 0.0  # 0 = no pacing
    max_retries: int = 0
    user_agent: str = DEFAULT_USER_AGENT
    error_report: Optional[str] = None  # written only when pages failed

    @property
    def output_path(self) -> str:
        """Archive location: ``{output_dir}/{host}.zip``."""
        return os.path.join(self.output_dir, archive_name_for_url(self.start_url))


@dataclass
class ScrapeResult:
    output_path: str
    artifacts: List[PageArtifact]
    entries: int
    stats: Dict[str, int]
    errors: Dict[str, Any]


@dataclass
class _RunState:
    tracker: ErrorTracker
    visited: VisitedSet = field(default_factory=VisitedSet)
    artifacts: Dict[str, PageArtifact] = field(default_factory=dict)
    stats: Dict[str, int] = field(default_factory=lambda: {
        "fetched": 0, "rendered": 0, "failed": 0, "duplicates": 0,
    })
    lock: threading.Lock = field(default_factory=threading.Lock)

    def count(self, key: str) -> None:
        with self.lock:
            self.stats[key] += 1


class Scraper:
    def __init__(self,
                 config: ScrapeConfig,
                 logger: Optional[logging.Logger] = None,
                 fetcher: Optional[PageFetcher] = None,
                 renderer: Optional[PageRenderer] = None,
                 archiver: Optional[Archiver] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or PageFetcher(
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            rate_limiter=limiter_for_delay(config.delay_secs),
            user_agent=config.user_agent,
        )
        self.renderer = renderer or PageRenderer(strip_html=config.strip_html, clean=config.clean)
        self.archiver = archiver or Archiver()

    def run(self, progress: Optional[Progress] = None) -> ScrapeResult:
        """
        Crawl, render and archive.

        Args:
            progress: Optional callable receiving event dicts
                (``{"type": "page", "stage": "completed"|"failed", "url": ...}``)

        Returns:
            ScrapeResult describing the written archive

        Raises:
            InvalidURLError: If the start URL is invalid
            ScrapeError: If directories cannot be created, the crawl cannot
                start, no page was rendered or the archive cannot be written
        """
        ok, start_url, err = validate_url(self.config.start_url)
        if not ok:
            raise InvalidURLError(f"invalid URL {self.config.start_url!r}: {err}")

        output_path = self.config.output_path
        files = FileManager(self.config.output_dir)
        try:
            files.create_directories()
        except OSError as e:
            raise ScrapeError(f"failed to create working directories: {e}") from e

        state = _RunState(tracker=ErrorTracker(self.logger))

        def on_page(page: FetchedPage) -> None:
            self._process_page(page, files, state, progress)

        def on_error(url: str, error: Exception) -> None:
            state.count("failed")
            state.tracker.log_error(error, context="fetch", url=url)
            if progress:
                progress({"type": "page", "stage": "failed", "url": url, "reason": "fetch"})

        try:
            crawler = Crawler(
                self.fetcher,
                max_depth=self.config.max_depth,
                concurrency=self.config.concurrency,
            )
            try:
                crawler.crawl(start_url, on_page, on_error)
            except CrawlError as e:
                raise ScrapeError(str(e)) from e

            with state.lock:
                artifacts = list(state.artifacts.values())

            if not artifacts:
                raise ScrapeError("no pages were successfully scraped")

            try:
                entries = self.archiver.create(output_path, artifacts)
            except ArchiveError as e:
                raise ScrapeError(f"failed to create ZIP file: {e}") from e
        finally:
            files.cleanup()
            if self._owns_fetcher:
                self.fetcher.close()
            self._write_error_report(state.tracker)

        summary = state.tracker.get_error_summary()
        if summary['total_errors']:
            self.logger.warning(
                f"{summary['total_errors']} page error(s) during scrape: {summary['error_types']}"
            )
        self.logger.info(
            f"Archived {entries} page(s) to {output_path} "
            f"({state.stats['failed']} failed, {state.stats['duplicates']} duplicate responses)"
        )
        if progress:
            progress({"type": "counters", "stats": dict(state.stats)})

        return ScrapeResult(
            output_path=output_path,
            artifacts=sorted(artifacts, key=lambda a: a.url),
            entries=entries,
            stats=dict(state.stats),
            errors=summary,
        )

    def _write_error_report(self, tracker: ErrorTracker) -> None:
        if not self.config.error_report or not tracker.errors:
            return
        try:
            tracker.save_error_report(self.config.error_report)
        except OSError as e:
            self.logger.warning(f"Could not write error report to {self.config.error_report}: {e}")

    def _process_page(self, page: FetchedPage, files: FileManager, state: _RunState,
                      progress: Optional[Progress]) -> None:
        url = page.url
        if not state.visited.add_if_absent(url):
            state.count("duplicates")
            self.logger.debug(f"Skipping already processed: {url}")
            return

        state.count("fetched")
        pdf_path = files.artifact_path(url)

        try:
            self.renderer.render(page.body, pdf_path, encoding=page.encoding)
        except RenderError as e:
            state.count("failed")
            state.tracker.log_error(e, context="render", url=url)
            if progress:
                progress({"type": "page", "stage": "failed", "url": url, "reason": "render"})
            return

        with state.lock:
            state.artifacts[url] = PageArtifact(url=url, path=pdf_path)
            state.stats["rendered"] += 1

        self.logger.info(f"Created PDF for {url}")
        if progress:
            progress({"type": "page", "stage": "completed", "url": url})
