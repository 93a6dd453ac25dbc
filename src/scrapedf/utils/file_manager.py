"""
File Management Utilities

This module provides the output and temporary working directories of a
scrape run, and the URL-derived names used for per-page PDFs.
"""

import itertools
import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse


def sanitize_url_path(path: str) -> str:
    """
    Turn a URL path into a single filename component.

    An empty or root path becomes ``index``; surrounding slashes are removed
    and inner slashes are replaced with underscores.
    """
    if path == "" or path == "/":
        path = "index"
    path = path.strip("/")
    return path.replace("/", "_")


def entry_name_for_url(url: str) -> str:
    """
    Build the archive entry name for a page URL: ``{host}_{sanitized-path}.pdf``.

    Args:
        url: Absolute page URL

    Returns:
        Entry name; the host keeps its port when the URL has one

    Raises:
        ValueError: If the URL has no host
    """
    parsed = urlparse(url)
    host = parsed.netloc.rsplit("@", 1)[-1]
    if not host:
        raise ValueError(f"URL has no host: {url!r}")
    return f"{host}_{sanitize_url_path(parsed.path)}.pdf"


def archive_name_for_url(url: str) -> str:
    """Name of the final archive for a crawl of ``url``: ``{host}.zip``."""
    host = urlparse(url).netloc.rsplit("@", 1)[-1]
    if not host:
        raise ValueError(f"URL has no host: {url!r}")
    return f"{host}.zip"


class FileManager:
    """
    Owns the directories of one scrape run.

    The output directory receives the final archive; a private temporary
    directory holds the per-page PDFs until they are packaged and is removed
    by ``cleanup``.
    """

    def __init__(self, output_dir: str = "."):
        """
        Initialize the file manager.

        Args:
            output_dir: Directory the final archive is written to
        """
        self.output_dir = Path(output_dir)
        self.temp_dir: Optional[Path] = None
        self.logger = logging.getLogger(__name__)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def create_directories(self) -> Path:
        """
        Create the output directory and a fresh temporary working directory.

        Returns:
            Path of the temporary directory

        Raises:
            OSError: If either directory cannot be created
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir = Path(tempfile.mkdtemp(prefix="scrapedf"))
        self.logger.debug(f"Working directory created at: {self.temp_dir}")
        return self.temp_dir

    def artifact_path(self, url: str) -> str:
        """
        Get a unique temporary PDF path for a page.

        The name starts with the page's entry name for readability and carries
        a sequence number so that URLs differing only in their query string
        never share a file.
        """
        if self.temp_dir is None:
            raise RuntimeError("create_directories() must be called first")
        stem = os.path.splitext(entry_name_for_url(url))[0]
        stem = stem.replace(os.sep, "_").replace(":", "_")
        # Ensure filename isn't too long (max 200 chars for safety)
        stem = stem[:200]
        with self._lock:
            sequence = next(self._counter)
        return str(self.temp_dir / f"{sequence:05d}_{stem}.pdf")

    def cleanup(self):
        """Remove the temporary working directory and everything in it."""
        if self.temp_dir is None:
            return
        try:
            shutil.rmtree(self.temp_dir)
            self.logger.debug(f"Removed working directory: {self.temp_dir}")
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Failed to clean up temporary directory: {e}")
        self.temp_dir = None
