"""Command line interface for scrapedf."""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from typing import List, Optional, TextIO

from . import __version__
from .core.controller import ScrapeConfig, ScrapeError, Scraper
from .core.logger import get_logger, initialize_logging
from .utils.file_manager import archive_name_for_url
from .utils.validators import validate_url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrapedf",
        description="A web scraping tool that converts pages to PDF",
        epilog=(
            "scrapedf recursively follows links within the same host and creates a "
            "ZIP file containing all scraped pages as PDFs."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    scrape = subparsers.add_parser("scrape", help="Scrape a website and convert pages to PDF")
    scrape.add_argument("url", help="Start URL (absolute, e.g. https://example.com/docs/)")
    scrape.add_argument("-o", "--output", default=".", help="Output directory for the ZIP file (default: .)")
    scrape.add_argument("--strip", action="store_true",
                        help="Strip HTML tags from content before creating PDF")
    scrape.add_argument("--clean", action="store_true",
                        help="Remove lines with two words or less (requires --strip)")
    scrape.add_argument("-f", "--force", action="store_true",
                        help="Force overwrite if output file exists")
    scrape.add_argument("--no-open", action="store_true",
                        help="Do not open the output directory when done")
    scrape.add_argument("--max-depth", type=int, default=5,
                        help="Maximum link hops from the start page (default: 5)")
    scrape.add_argument("--timeout", type=float, default=5.0,
                        help="Per-request timeout in seconds (default: 5)")
    scrape.add_argument("--concurrency", type=int, default=4,
                        help="Number of pages fetched in parallel (default: 4)")
    scrape.add_argument("--delay", type=float, default=0.0,
                        help="Minimum seconds between requests (default: 0, no pacing)")
    scrape.add_argument("--log-dir", default=None,
                        help="Also write rotating log files to this directory")
    scrape.add_argument("-v", "--verbose", action="count", default=0,
                        help="Show progress logs (-v) or debug logs (-vv)")

    subparsers.add_parser("version", help="Print the scrapedf version")
    return parser


def open_directory(path: str) -> None:
    """
    Open ``path`` in the platform's file manager.

    Raises:
        OSError: If the file manager cannot be started
        subprocess.CalledProcessError: If it exits with an error
    """
    if sys.platform.startswith("win"):
        command = ["explorer", path]
    elif sys.platform == "darwin":
        command = ["open", path]
    else:
        command = ["xdg-open", path]
    get_logger("cli").debug(f"Opening output directory with {command[0]}")
    subprocess.run(command, check=True)


def confirm_overwrite(output_path: str, stdin: TextIO, stdout: TextIO) -> bool:
    stdout.write(f"Warning: The file {output_path} already exists.\n")
    stdout.write("Do you want to replace it? [y/N]: ")
    stdout.flush()
    response = stdin.readline()
    return response.strip().lower() in ("y", "yes")


def run_scrape(args: argparse.Namespace, stdin: TextIO = None, stdout: TextIO = None) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logger = initialize_logging(args.log_dir, level)

    ok, _, err = validate_url(args.url)
    if not ok:
        print(f"Error: invalid URL: {err}", file=sys.stderr)
        return 1

    output_path = os.path.join(args.output, archive_name_for_url(args.url))

    if os.path.exists(output_path) and not args.force:
        if not confirm_overwrite(output_path, stdin, stdout):
            print("Operation cancelled", file=stdout)
            return 0

    config = ScrapeConfig(
        start_url=args.url,
        output_dir=args.output,
        strip_html=args.strip,
        clean=args.clean,
        max_depth=args.max_depth,
        request_timeout=args.timeout,
        concurrency=args.concurrency,
        delay_secs=args.delay,
        error_report=os.path.join(args.log_dir, "error_report.txt") if args.log_dir else None,
    )

    def progress(event):
        if event.get("type") != "page":
            return
        if event.get("stage") == "completed":
            print(f"Created PDF for {event['url']}", file=stdout)
        elif event.get("stage") == "failed":
            print(f"Failed to {event.get('reason', 'process')} {event['url']}", file=stdout)

    print(f"Starting to scrape {args.url}", file=stdout)
    try:
        result = Scraper(config, logger=logger).run(progress=progress)
    except ScrapeError as e:
        print(f"Error: failed to scrape website: {e}", file=sys.stderr)
        return 1

    directory, filename = os.path.split(os.path.abspath(result.output_path))
    print("Successfully created ZIP file:", file=stdout)
    print(f"  Directory: {directory}", file=stdout)
    print(f"  File:      {filename}", file=stdout)

    if not args.no_open:
        try:
            open_directory(directory)
        except (OSError, subprocess.CalledProcessError) as e:
            print(f"Note: Could not open the output directory automatically: {e}", file=stdout)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print(f"scrapedf {__version__}")
        return 0

    if args.clean and not args.strip:
        parser.error("--clean requires --strip")
    if args.max_depth < 0:
        parser.error("--max-depth must be >= 0")
    if args.concurrency < 1:
        parser.error("--concurrency must be >= 1")
    if args.timeout <= 0:
        parser.error("--timeout must be > 0")

    return run_scrape(args)


if __name__ == "__main__":
    sys.exit(main())
