"""
Structured logging using structlog.
Provides JSON or console output plus domain event helpers for scrapes and scheduler runs.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site information to every event
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Set up file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class ScrapeLogger:
    """
    Event helpers for the scrape fallback chain.
    """

    def __init__(self, name: str = "scraper"):
        self.logger = structlog.get_logger(name)

    def log_scrape_start(self, url: str, known_strategy: Optional[str]) -> None:
        self.logger.info(
            "Scrape started",
            url=url,
            known_strategy=known_strategy or "UNKNOWN"
        )

    def log_fallback(self, url: str, from_strategy: str, to_strategy: str, reason: str) -> None:
        self.logger.info(
            "Falling back to next strategy",
            url=url,
            from_strategy=from_strategy,
            to_strategy=to_strategy,
            reason=reason
        )

    def log_scrape_success(self, url: str, strategy: str, chapters: int, duration_ms: int) -> None:
        self.logger.info(
            "Scrape completed",
            url=url,
            strategy=strategy,
            chapters=chapters,
            duration_ms=duration_ms
        )

    def log_scrape_failure(self, url: str, strategy: str, error: str, duration_ms: int) -> None:
        self.logger.error(
            "Scrape failed",
            url=url,
            strategy=strategy,
            error=error,
            duration_ms=duration_ms
        )


class SchedulerLogger:
    """
    Event helpers for update-check runs.
    """

    def __init__(self, name: str = "scheduler"):
        self.logger = structlog.get_logger(name)

    def log_run_start(self, job: str, total_items: int) -> None:
        self.logger.info("Update check started", job=job, total_items=total_items)

    def log_skip(self, title: str, reason: str) -> None:
        self.logger.info("Item skipped", title=title, reason=reason)

    def log_new_chapters(self, title: str, count: int) -> None:
        self.logger.info("New chapters found", title=title, new_chapters=count)

    def log_item_failed(self, title: str, error: str) -> None:
        self.logger.error("Failed to update item", title=title, error=error)

    def log_run_complete(self, job: str, summary: dict) -> None:
        self.logger.info("Update check complete", job=job, **summary)
