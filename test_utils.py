#!/usr/bin/env python3
"""
Tests for the utility layer: URL validation, the visited set, pacing,
temporary file handling and error tracking.
"""

import logging
import os
import sys
import threading
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from scrapedf.core.logger import ErrorTracker, ScrapedfLogger
from scrapedf.utils.file_manager import FileManager
from scrapedf.utils.rate_limiter import TokenBucket, limiter_for_delay
from scrapedf.utils.validators import URLValidator, validate_url
from scrapedf.utils.visited import VisitedSet


def test_validate_url():
    ok, normalized, err = validate_url("HTTPS://Example.COM/Docs/#intro")
    assert ok and err == ""
    assert normalized == "https://example.com/Docs/"

    for bad in ["", "example.com", "ftp://example.com/", "https://", "http://exa mple.com/",
                "http://example.com:99999/"]:
        ok, _, err = validate_url(bad)
        assert not ok, bad
        assert err


def test_host_key():
    validator = URLValidator()
    assert validator.host_key("https://Example.com/a") == "example.com"
    assert validator.host_key("http://localhost:8080/") == "localhost:8080"
    assert validator.host_key("http://user:pw@example.com/") == "example.com"
    assert validator.host_key("http://[::1]:8000/") == "[::1]:8000"
    assert validator.host_key("/no/host") is None


def test_is_same_host():
    validator = URLValidator()
    assert validator.is_same_host("https://EXAMPLE.com/x", "example.com")
    assert not validator.is_same_host("https://sub.example.com/", "example.com")
    assert not validator.is_same_host("https://example.com:8443/", "example.com")


def test_normalize_link():
    validator = URLValidator()
    base = "https://example.com/docs/intro"
    assert validator.normalize_link(base, "setup") == "https://example.com/docs/setup"
    assert validator.normalize_link(base, "../about#team") == "https://example.com/about"
    assert validator.normalize_link(base, "?page=2") == "https://example.com/docs/intro?page=2"
    assert validator.normalize_link(base, "//cdn.example.com/x") == "https://cdn.example.com/x"
    assert validator.normalize_link(base, "#top") == "https://example.com/docs/intro"
    for dropped in [None, "", "   ", "mailto:a@example.com", "javascript:void(0)",
                    "tel:123", "http://[broken"]:
        assert validator.normalize_link(base, dropped) is None


def test_visited_set_claims_once():
    visited = VisitedSet()
    assert visited.add_if_absent("a") is True
    assert visited.add_if_absent("a") is False
    assert visited.add_if_absent("b") is True
    assert "a" in visited and "c" not in visited
    assert len(visited) == 2
    assert list(visited) == ["a", "b"]


def test_visited_set_has_one_winner_under_contention():
    visited = VisitedSet()
    workers = 16
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def claim():
        barrier.wait()
        won = visited.add_if_absent("https://example.com/")
        with lock:
            results.append(won)

    threads = [threading.Thread(target=claim) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert len(results) == workers


def test_limiter_for_delay():
    assert limiter_for_delay(0) is None
    assert limiter_for_delay(-1) is None
    bucket = limiter_for_delay(0.5)
    assert bucket.rate == pytest.approx(2.0)
    bucket.acquire()


def test_token_bucket_accumulates_wait_time():
    bucket = TokenBucket(rate_per_sec=10.0, burst=1)
    bucket.acquire()
    assert bucket.waited_secs == 0.0
    bucket.acquire()
    assert 0.0 < bucket.waited_secs <= 0.1


def test_token_bucket_rejects_bad_rate():
    with pytest.raises(ValueError):
        TokenBucket(rate_per_sec=0)


def test_artifact_paths_are_unique_and_cleaned(tmp_path):
    files = FileManager(str(tmp_path / "out"))
    temp_dir = files.create_directories()

    assert (tmp_path / "out").is_dir()
    first = files.artifact_path("https://example.com/list?page=1")
    second = files.artifact_path("https://example.com/list?page=2")
    assert first != second
    assert os.path.dirname(first) == str(temp_dir)
    assert os.path.basename(first).endswith("_example.com_list.pdf")

    Path(first).write_bytes(b"x")
    files.cleanup()
    assert not temp_dir.exists()
    files.cleanup()


def test_artifact_path_needs_directories():
    with pytest.raises(RuntimeError):
        FileManager().artifact_path("https://example.com/")


def test_port_colon_not_in_temp_name(tmp_path):
    files = FileManager(str(tmp_path))
    files.create_directories()
    try:
        name = os.path.basename(files.artifact_path("http://localhost:8080/a"))
        assert ":" not in name
    finally:
        files.cleanup()


def test_error_tracker(tmp_path):
    tracker = ErrorTracker(logging.getLogger("scrapedf.test"))

    error_id = tracker.log_error(ValueError("bad page"), context="render", url="https://example.com/")
    tracker.log_error(TimeoutError("slow"), context="fetch")

    assert error_id.startswith("ERR_")
    summary = tracker.get_error_summary()
    assert summary["total_errors"] == 2
    assert summary["error_types"] == {"ValueError": 1, "TimeoutError": 1}
    assert summary["by_stage"] == {"render": 1, "fetch": 1}
    assert summary["failed_urls"] == ["https://example.com/"]

    report = tmp_path / "errors.txt"
    tracker.save_error_report(str(report))
    text = report.read_text(encoding="utf-8")
    assert "Total Errors: 2" in text
    assert "RENDER FAILURES (1):" in text
    assert "URL: https://example.com/" in text


def test_logger_writes_rotating_files(tmp_path):
    setup = ScrapedfLogger(log_dir=str(tmp_path / "logs"), app_name="scrapedf_test")
    logger = setup.setup_logger(logging.WARNING)
    try:
        setup.get_logger("crawler").error("fetch failed")
        for handler in logger.handlers:
            handler.flush()
        assert "fetch failed" in (tmp_path / "logs" / "scrapedf_test.log").read_text(encoding="utf-8")
        assert "fetch failed" in (tmp_path / "logs" / "scrapedf_test_errors.log").read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-q"]))
