"""
Page Rendering Module

Turns the body of a fetched page into a PDF document. The body is used as
is, or reduced to readable text first (strip mode), optionally dropping
short lines (clean mode). The resulting text is split on newlines and every
non-empty line is laid out by the PDF engine.
"""

import logging
import os
from typing import List, Optional, Union

from .pdf_engines.weasyprint_engine import WeasyPrintEngine
from . import text_extractor


MIN_WORDS_PER_LINE = 3


class RenderError(Exception):
    """Raised when a page could not be converted to PDF."""


def filter_short_lines(content: str, min_words: int = MIN_WORDS_PER_LINE) -> str:
    """
    Drop lines with fewer than ``min_words`` words.

    Lines that are empty after trimming are kept unchanged so that they keep
    separating paragraphs.

    Args:
        content: Extracted text
        min_words: Smallest word count a non-empty line needs to survive

    Returns:
        Filtered text, lines joined with newlines
    """
    kept = []
    for line in content.split("\n"):
        if not line.strip():
            kept.append(line)
            continue
        if len(line.split()) >= min_words:
            kept.append(line)
    return "\n".join(kept)


def decode_body(body: bytes, encoding: Optional[str] = None) -> str:
    """Decode with the declared charset; unknown or missing labels fall back to UTF-8."""
    try:
        return body.decode(encoding or 'utf-8', errors='replace')
    except LookupError:
        logging.getLogger(__name__).debug(f"Unknown charset {encoding!r}, decoding as UTF-8")
        return body.decode('utf-8', errors='replace')


def prepare_lines(content: str) -> List[str]:
    """Split ``content`` on newlines and return the trimmed, non-empty lines."""
    lines = []
    for line in content.split("\n"):
        line = line.strip()
        if line:
            lines.append(line)
    return lines


class PageRenderer:
    """Renders page content to PDF files through a pluggable engine."""

    def __init__(self, strip_html: bool = False, clean: bool = False, engine=None):
        """
        Args:
            strip_html: Extract readable text instead of rendering raw markup
            clean: Drop short lines from extracted text (needs strip_html)
            engine: Object with ``generate(lines, output_path)``; WeasyPrint by default
        """
        self.logger = logging.getLogger(__name__)
        if clean and not strip_html:
            self.logger.warning("Clean mode requires HTML stripping; ignoring clean mode")
            clean = False
        self.strip_html = strip_html
        self.clean = clean
        self.engine = engine or WeasyPrintEngine()

    def prepare_content(self, body: Union[str, bytes], encoding: Optional[str] = None) -> str:
        """
        Apply strip and clean modes to a page body.

        Raises:
            ExtractionError: If strip mode is on and the body cannot be parsed
        """
        if not self.strip_html:
            if isinstance(body, bytes):
                return decode_body(body, encoding)
            return body

        if isinstance(body, bytes) and encoding:
            body = decode_body(body, encoding)
        content = text_extractor.strip_html(body)
        if self.clean:
            content = filter_short_lines(content)
        return content

    def render(self, body: Union[str, bytes], output_path: str,
               encoding: Optional[str] = None) -> str:
        """
        Render one page to ``output_path``.

        Args:
            body: Raw page content
            output_path: Target PDF path
            encoding: Declared charset of ``body`` when it is bytes

        Returns:
            The path of the written PDF

        Raises:
            RenderError: If extraction or PDF generation fails; a partially
                written file is removed first
        """
        try:
            content = self.prepare_content(body, encoding)
            lines = prepare_lines(content)
            self.engine.generate(lines, output_path)
        except Exception as e:
            self._discard(output_path)
            raise RenderError(f"failed to render {os.path.basename(output_path)}: {e}") from e

        self.logger.debug(f"Rendered {len(lines)} line(s) to {output_path}")
        return output_path

    def _discard(self, output_path: str) -> None:
        try:
            if os.path.exists(output_path):
                os.remove(output_path)
        except OSError as e:
            self.logger.warning(f"Failed to clean up partial PDF {output_path}: {e}")
