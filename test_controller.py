#!/usr/bin/env python3
"""
End-to-end scrape tests: crawl an in-memory site, render with a recording
engine and check the resulting archive.
"""

import os
import sys
import threading
import zipfile
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from scrapedf.core.controller import InvalidURLError, ScrapeConfig, ScrapeError, Scraper
from scrapedf.core.page_fetcher import FetchedPage, FetchError
from scrapedf.core.page_renderer import PageRenderer


class FakeFetcher:
    def __init__(self, pages, redirects=None):
        self.pages = pages
        self.redirects = redirects or {}
        self.closed = False

    def fetch(self, url, depth=0):
        final = self.redirects.get(url, url)
        if final not in self.pages:
            raise FetchError(url, "HTTP 404", status_code=404)
        return FetchedPage(
            url=final,
            requested_url=url,
            body=self.pages[final].encode("utf-8"),
            content_type="text/html; charset=utf-8",
            encoding="utf-8",
            depth=depth,
        )

    def close(self):
        self.closed = True


class RecordingEngine:
    def __init__(self):
        self.documents = []
        self._lock = threading.Lock()

    def generate(self, lines, output_path):
        lines = list(lines)
        with self._lock:
            self.documents.append(lines)
        with open(output_path, "wb") as f:
            f.write(b"%PDF-1.4\n" + "\n".join(lines).encode("utf-8"))


class BrokenEngine:
    def generate(self, lines, output_path):
        raise OSError("no fonts available")


SITE = {
    "https://example.com/": (
        "<html><body><h1>Welcome</h1><p>Start reading the docs here.</p>"
        '<a href="/docs/">Docs</a> <a href="/about">About</a>'
        '<a href="https://other.org/">Elsewhere</a></body></html>'
    ),
    "https://example.com/docs/": (
        '<html><body><p>The docs page body text.</p><a href="/">Home</a>'
        '<a href="/docs/missing">Gone</a></body></html>'
    ),
    "https://example.com/about": "<html><body><p>About this small site.</p></body></html>",
}


def _scrape(tmp_path, pages=SITE, redirects=None, engine=None, **config):
    engine = engine or RecordingEngine()
    config = ScrapeConfig(start_url="https://example.com/", output_dir=str(tmp_path / "out"), **config)
    scraper = Scraper(
        config,
        fetcher=FakeFetcher(pages, redirects),
        renderer=PageRenderer(strip_html=config.strip_html, clean=config.clean, engine=engine),
    )
    events = []
    result = scraper.run(progress=events.append)
    return result, events, engine


def test_scrape_writes_archive(tmp_path):
    result, events, _ = _scrape(tmp_path, strip_html=True)

    assert result.output_path == str(tmp_path / "out" / "example.com.zip")
    assert result.entries == 3
    with zipfile.ZipFile(result.output_path) as archive:
        assert sorted(archive.namelist()) == [
            "example.com_about.pdf",
            "example.com_docs.pdf",
            "example.com_index.pdf",
        ]
        assert b"Start reading the docs here." in archive.read("example.com_index.pdf")

    assert result.stats["rendered"] == 3
    assert result.stats["failed"] == 1
    failed = [e["url"] for e in events if e.get("stage") == "failed"]
    assert failed == ["https://example.com/docs/missing"]
    assert events[-1]["type"] == "counters"


def test_strip_and_clean_shape_the_pdf_text(tmp_path):
    _, _, engine = _scrape(tmp_path, strip_html=True, clean=True)

    rendered = [line for doc in engine.documents for line in doc]
    assert "Start reading the docs here." in rendered
    assert "Welcome" not in rendered
    assert "Docs" not in rendered


def test_raw_mode_keeps_markup(tmp_path):
    _, _, engine = _scrape(tmp_path)

    assert any("<p>About this small site.</p>" in line for doc in engine.documents for line in doc)


def test_redirects_to_same_page_produce_one_artifact(tmp_path):
    pages = {
        "https://example.com/": '<a href="/r1">one</a><a href="/r2">two</a>',
        "https://example.com/target": "<p>Landing page text.</p>",
    }
    redirects = {
        "https://example.com/r1": "https://example.com/target",
        "https://example.com/r2": "https://example.com/target",
    }

    result, _, _ = _scrape(tmp_path, pages=pages, redirects=redirects)

    assert [a.url for a in result.artifacts] == [
        "https://example.com/",
        "https://example.com/target",
    ]
    assert result.stats["duplicates"] == 1


def test_temporary_files_are_removed(tmp_path):
    result, _, _ = _scrape(tmp_path)

    for artifact in result.artifacts:
        assert not os.path.exists(artifact.path)


def test_no_pages_is_an_error(tmp_path):
    with pytest.raises(ScrapeError, match="no pages were successfully scraped"):
        _scrape(tmp_path, pages={})

    assert not (tmp_path / "out" / "example.com.zip").exists()


def test_all_renders_failing_is_an_error(tmp_path):
    with pytest.raises(ScrapeError):
        _scrape(tmp_path, engine=BrokenEngine())

    assert not (tmp_path / "out" / "example.com.zip").exists()


def test_invalid_url(tmp_path):
    config = ScrapeConfig(start_url="not a url", output_dir=str(tmp_path))
    scraper = Scraper(config, fetcher=FakeFetcher({}), renderer=PageRenderer(engine=RecordingEngine()))

    with pytest.raises(InvalidURLError):
        scraper.run()


def test_injected_fetcher_is_left_open(tmp_path):
    fetcher = FakeFetcher(SITE)
    config = ScrapeConfig(start_url="https://example.com/", output_dir=str(tmp_path))
    Scraper(config, fetcher=fetcher, renderer=PageRenderer(engine=RecordingEngine())).run()

    assert fetcher.closed is False


def test_error_report_lists_failed_pages(tmp_path):
    report = tmp_path / "report.txt"
    result, _, _ = _scrape(tmp_path, error_report=str(report))

    assert result.errors["by_stage"] == {"fetch": 1}
    text = report.read_text(encoding="utf-8")
    assert "FETCH FAILURES (1):" in text
    assert "https://example.com/docs/missing" in text


def test_no_error_report_without_failures(tmp_path):
    report = tmp_path / "report.txt"
    pages = {"https://example.com/": "<p>Only page here.</p>"}
    _scrape(tmp_path, pages=pages, error_report=str(report))

    assert not report.exists()


def test_output_path_uses_host():
    config = ScrapeConfig(start_url="http://localhost:8080/docs", output_dir="archives")
    assert config.output_path == os.path.join("archives", "localhost:8080.zip")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-q"]))
