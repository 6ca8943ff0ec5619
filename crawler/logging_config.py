"""Logging configuration for the site image crawler.

Provides structured logging with JSON formatting support for production
and human-readable formatting for development.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

from env_config import get_app_env

_RESERVED_RECORD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)


class StructuredLogFormatter(logging.Formatter):
    """Structured JSON formatter for production logging.

    Each record becomes one JSON object with ``timestamp``, ``level``,
    ``logger``, ``message`` and ``env`` (APP_ENV) keys, plus any ``extra=``
    fields passed to the logging call.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": get_app_env(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class CrawlStatistics:
    """Collects and reports statistics for one crawl job.

    Attributes:
        job_id: Job the counters belong to.
        start_time: When statistics collection started.
        pages_processed: Pages fetched and extracted successfully.
        pages_failed: Pages abandoned after exhausting retries.
        retries: Extra fetch attempts beyond the first, across all pages.
        images_found: Image records persisted.
        links_discovered: URLs newly added to the frontier.
        errors: Error messages encountered.
    """

    def __init__(self, job_id: str = "") -> None:
        self.job_id = job_id
        self.start_time: datetime = datetime.now(UTC)
        self.pages_processed: int = 0
        self.pages_failed: int = 0
        self.retries: int = 0
        self.images_found: int = 0
        self.links_discovered: int = 0
        self.errors: list[str] = []

    def record_page_processed(self, url: str, images_found: int, links_discovered: int) -> None:
        """Record a successfully processed page.

        Args:
            url: Page URL that was processed.
            images_found: Image records created for the page.
            links_discovered: New frontier entries contributed by the page.
        """
        self.pages_processed += 1
        self.images_found += images_found
        self.links_discovered += links_discovered

    def record_page_failed(self, url: str, error: str) -> None:
        self.pages_failed += 1
        self.errors.append(f"Page failed {url}: {error}")

    def record_attempts(self, attempts: int) -> None:
        """Count retries from the number of attempts one fetch used."""
        self.retries += max(attempts - 1, 0)

    def get_summary(self) -> dict[str, Any]:
        duration = (datetime.now(UTC) - self.start_time).total_seconds()

        return {
            "job_id": self.job_id,
            "duration_seconds": round(duration, 2),
            "pages_processed": self.pages_processed,
            "pages_failed": self.pages_failed,
            "retries": self.retries,
            "images_found": self.images_found,
            "links_discovered": self.links_discovered,
            "error_count": len(self.errors),
        }

    def log_summary(self, logger: logging.Logger) -> None:
        """Log statistics summary.

        Args:
            logger: Logger instance to use.
        """
        summary = self.get_summary()

        logger.info("=" * 60)
        logger.info(f"CRAWL STATISTICS SUMMARY ({summary['job_id']})")
        logger.info("=" * 60)
        logger.info(f"Duration: {summary['duration_seconds']:.2f} seconds")
        logger.info(f"Pages processed: {summary['pages_processed']}")
        logger.info(f"Pages failed: {summary['pages_failed']}")
        logger.info(f"Retries: {summary['retries']}")
        logger.info(f"Images found: {summary['images_found']}")
        logger.info(f"Links discovered: {summary['links_discovered']}")
        logger.info(f"Errors: {summary['error_count']}")
        logger.info("=" * 60)


def setup_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    log_file: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Set up logging configuration.

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``.
        json_format: Use JSON formatting for structured logs.
        log_file: Optional file path to write logs to.
        stream: Console stream (default: stdout).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        if json_format:
            handler.setFormatter(StructuredLogFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # Third-party HTTP chatter
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
