"""
WeasyPrint PDF Engine

Lays out plain text lines as a paginated PDF using WeasyPrint. The page
size, margins and font are fixed by a stylesheet; every line becomes one
left-aligned block that wraps inside the text width.

The generated document references no external files, and a url_fetcher
that denies every fetch keeps rendering offline.
"""

import html
import logging
import os
from typing import Iterable

try:
    from weasyprint import HTML
except Exception:  # pragma: no cover - handled at runtime
    HTML = None


PAGE_STYLESHEET = """
@page { size: A4 portrait; margin: 10mm; }
body { margin: 0; font-family: Arial, Helvetica, sans-serif; font-size: 12pt; }
p {
    margin: 0;
    width: 190mm;
    line-height: 10mm;
    text-align: left;
    white-space: pre-wrap;
    overflow-wrap: anywhere;
}
"""


class WeasyPrintEngine:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _deny_all_fetcher(url, *args, **kwargs):
        raise RuntimeError(f"Resource fetch blocked: {url}")

    def available(self) -> bool:
        """Return True if WeasyPrint is importable."""
        return HTML is not None

    def build_document(self, lines: Iterable[str]) -> str:
        """Wrap text lines in the fixed-layout HTML document that gets printed."""
        body = "\n".join(f"<p>{html.escape(line)}</p>" for line in lines)
        return (
            "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\">"
            f"<style>{PAGE_STYLESHEET}</style></head>\n"
            f"<body>\n{body}\n</body></html>"
        )

    def generate(self, lines: Iterable[str], output_path: str) -> None:
        """
        Write ``lines`` to a PDF at ``output_path``.

        Args:
            lines: Non-empty, already trimmed text lines
            output_path: Target PDF path

        Raises:
            RuntimeError: If WeasyPrint is missing or produced no output
        """
        if HTML is None:
            raise RuntimeError("WeasyPrint is not installed. Please install 'weasyprint'.")

        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

        document = HTML(string=self.build_document(lines), url_fetcher=self._deny_all_fetcher)
        document.write_pdf(output_path)

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise RuntimeError(f"WeasyPrint produced no output at {output_path}")
