"""
Archive Packaging Module

Bundles the per-page PDFs of a crawl into a single ZIP file. Entry names
are derived from each page URL as ``{host}_{sanitized-path}.pdf``.
"""

import logging
import os
import zipfile
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from ..utils.file_manager import entry_name_for_url


class ArchiveError(Exception):
    """Raised when the archive cannot be produced."""


@dataclass(frozen=True)
class PageArtifact:
    """A rendered page: its source URL and the PDF written for it."""

    url: str
    path: str


def plan_entries(artifacts: Iterable[PageArtifact]) -> List[Tuple[str, PageArtifact]]:
    """
    Assign an entry name to every artifact.

    Artifacts are ordered by URL. URLs that map to an already used name
    (for example pages that differ only in their query string) get a
    ``-2``, ``-3``... suffix before the extension.
    """
    used: Dict[str, int] = {}
    planned = []
    for artifact in sorted(artifacts, key=lambda a: a.url):
        name = entry_name_for_url(artifact.url)
        if name in used:
            used[name] += 1
            stem, ext = os.path.splitext(name)
            candidate = f"{stem}-{used[name]}{ext}"
            while candidate in used:
                used[name] += 1
                candidate = f"{stem}-{used[name]}{ext}"
            name = candidate
        used[name] = 1
        planned.append((name, artifact))
    return planned


class Archiver:
    """Writes crawl artifacts into a compressed ZIP archive."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression
        self.logger = logging.getLogger(__name__)

    def create(self, target_path: str, artifacts: Iterable[PageArtifact]) -> int:
        """
        Package ``artifacts`` into a ZIP at ``target_path``.

        Args:
            target_path: Archive file to create (replaced if it exists)
            artifacts: Rendered pages to include

        Returns:
            Number of entries written

        Raises:
            ArchiveError: If there is nothing to archive or any read/write fails;
                a partially written archive is removed
        """
        planned = plan_entries(artifacts)
        if not planned:
            raise ArchiveError("no pages to archive")

        self.logger.info(f"Writing {len(planned)} PDF(s) to {target_path}")

        try:
            with zipfile.ZipFile(target_path, "w", compression=self.compression) as archive:
                for name, artifact in planned:
                    archive.write(artifact.path, arcname=name)
                    self.logger.debug(f"Added {name} ({artifact.url})")
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            self._discard(target_path)
            raise ArchiveError(f"failed to create ZIP file: {e}") from e

        return len(planned)

    def _discard(self, target_path: str) -> None:
        try:
            if os.path.exists(target_path):
                os.remove(target_path)
        except OSError as e:
            self.logger.warning(f"Failed to remove partial archive {target_path}: {e}")
