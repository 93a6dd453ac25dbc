"""
Logging and Error Handling System

This module configures the ``scrapedf`` logger hierarchy and provides the
tracker that collects per-page failures of a crawl.
"""

import logging
import logging.handlers
import os
import sys
import threading
import traceback
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List


CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(name)s | %(threadName)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s'


class ScrapedfLogger:
    """
    Centralized logging system for scrapedf.

    Always logs to stderr. With a log directory, the full debug log and an
    errors-only log are also written to rotating files.
    """

    def __init__(self, log_dir: Optional[str] = None, app_name: str = "scrapedf"):
        """
        Args:
            log_dir: Directory for log files; console only when None
            app_name: Name of the top-level logger
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.app_name = app_name
        self.loggers: Dict[str, logging.Logger] = {}

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def _rotating_handler(self, filename: str, level: int, max_mb: int, backups: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=max_mb * 1024 * 1024,
            backupCount=backups,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        return handler

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        """
        Configure the top-level logger.

        Handlers from an earlier call are closed and replaced, so the CLI can
        be invoked repeatedly in one process.

        Args:
            level: Console logging level

        Returns:
            The configured logger
        """
        logger = logging.getLogger(self.app_name)
        logger.setLevel(logging.DEBUG)

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
        logger.addHandler(console_handler)

        if self.log_dir is not None:
            logger.addHandler(self._rotating_handler(f"{self.app_name}.log", logging.DEBUG, 10, 5))
            logger.addHandler(self._rotating_handler(f"{self.app_name}_errors.log", logging.ERROR, 5, 3))

        self.loggers['main'] = logger
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """Return a child of the top-level logger, e.g. ``scrapedf.crawler``."""
        full_name = name if name.startswith(f"{self.app_name}.") else f"{self.app_name}.{name}"

        if full_name not in self.loggers:
            self.loggers[full_name] = logging.getLogger(full_name)

        return self.loggers[full_name]

    def log_system_info(self):
        """Log system information for debugging."""
        logger = self.get_logger('system')

        logger.debug("=== scrapedf started ===")
        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Platform: {sys.platform}")
        logger.debug(f"Working directory: {os.getcwd()}")
        if self.log_dir is not None:
            logger.debug(f"Log directory: {self.log_dir.absolute()}")


class ErrorTracker:
    """
    Collects the per-page failures of one crawl.

    Each failure is recorded with the stage it happened in (``fetch``,
    ``render``) and the page URL. Safe to call from several crawl workers.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.errors: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def log_error(self,
                  error: Exception,
                  context: str = None,
                  url: str = None,
                  additional_info: Dict[str, Any] = None) -> str:
        """
        Record and log a page failure.

        Args:
            error: The exception raised for the page
            context: Stage of the failure (fetch, render, ...)
            url: Page URL
            additional_info: Extra fields stored with the record

        Returns:
            Error id of the form ``ERR_YYYYmmdd_HHMMSS_NNN``
        """
        now = datetime.now()
        with self._lock:
            error_id = f"ERR_{now.strftime('%Y%m%d_%H%M%S')}_{len(self.errors):03d}"
            record = {
                'id': error_id,
                'timestamp': now,
                'type': type(error).__name__,
                'message': str(error),
                'context': context,
                'url': url,
                'traceback': ''.join(traceback.format_exception(type(error), error, error.__traceback__)),
                'additional_info': additional_info or {}
            }
            self.errors.append(record)

        stage = f"[{context}] " if context else ""
        self.logger.error(f"{error_id} {stage}{record['type']}: {record['message']}")
        self.logger.debug(f"{error_id} traceback:\n{record['traceback']}")
        return error_id

    def get_error_summary(self) -> Dict[str, Any]:
        """
        Summarize the recorded failures.

        Returns:
            Totals, counts by exception type and by stage, the failed URLs
            in order of failure and the five most recent records
        """
        with self._lock:
            return {
                'total_errors': len(self.errors),
                'error_types': dict(Counter(e['type'] for e in self.errors)),
                'by_stage': dict(Counter(e['context'] or 'unknown' for e in self.errors)),
                'failed_urls': [e['url'] for e in self.errors if e['url']],
                'recent_errors': self.errors[-5:]
            }

    def save_error_report(self, output_path: str):
        """
        Write a plain-text report of all failures, grouped by stage.

        Raises:
            OSError: If the report cannot be written
        """
        with self._lock:
            errors = list(self.errors)

        by_stage: Dict[str, List[Dict[str, Any]]] = {}
        for error in errors:
            by_stage.setdefault(error['context'] or 'unknown', []).append(error)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write("SCRAPEDF ERROR REPORT\n")
            f.write("=" * 50 + "\n\n")
            f.write(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write(f"Total Errors: {len(errors)}\n")

            for stage in sorted(by_stage):
                f.write(f"\n{stage.upper()} FAILURES ({len(by_stage[stage])}):\n")
                f.write("-" * 30 + "\n")
                for error in by_stage[stage]:
                    f.write(f"[{error['id']}] {error['type']}: {error['message']}\n")
                    if error['url']:
                        f.write(f"  URL: {error['url']}\n")

        self.logger.info(f"Error report saved to: {output_path}")


# Global logger instance
_logger_instance: Optional[ScrapedfLogger] = None


def get_logger(name: str = None) -> logging.Logger:
    """
    Get the top-level logger, or a named child of it.

    Falls back to an unconfigured console-only setup when
    ``initialize_logging`` was never called.
    """
    global _logger_instance

    if _logger_instance is None:
        _logger_instance = ScrapedfLogger()

    if name:
        return _logger_instance.get_logger(name)
    return logging.getLogger(_logger_instance.app_name)


def initialize_logging(log_dir: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """
    Initialize the global logging system.

    Args:
        log_dir: Directory for log files; console only when None
        level: Console logging level

    Returns:
        The configured top-level logger
    """
    global _logger_instance
    _logger_instance = ScrapedfLogger(log_dir)
    logger = _logger_instance.setup_logger(level)
    _logger_instance.log_system_info()
    return logger
