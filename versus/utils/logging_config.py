"""Logging Configuration for the versus pipeline

This module provides centralized logging configuration using structlog with JSON output.
Pipeline stages log one event per unit of work (reference, thread, reply) and a summary
event per run; errors carry the exception type so per-run failure counts can be traced
back to individual units.

Events by stage (logger name = module):
    versus.discovery       discovery_started, subreddit_discovery_started, thread_discovered,
                           subreddit_listing_exhausted, subreddit_discovery_aborted,
                           discovery_complete
    versus.scraping        scrape_started, thread_scraped, thread_scrape_failed,
                           scrape_progress, scrape_complete
    versus.classification  classification_started, reply_classified, classification_failed,
                           classification_progress, classification_complete
    versus.api.*           dashboard_started, dashboard_results_reloaded,
                           comment_ignore_toggled, thread_ignore_toggled, admin_endpoint_rejected

The CLI scripts write to logs/pipeline.log and the dashboard server to
logs/dashboard.log. Both echo INFO and above to stdout.

Usage:
    >>> from versus.utils.logging_config import get_logger, setup_logging
    >>> setup_logging(log_dir="logs", log_filename="pipeline.log")
    >>> logger = get_logger("versus.scraping")
    >>> logger.info("thread_scraped", post_id="1abc2d", comments=48)
    >>> logger.error("thread_scrape_failed", exc_info=True, post_id="1abc2d")
"""

import logging
import sys
from pathlib import Path

import structlog

# HTTP-level chatter from the Reddit and OpenAI clients; only warnings are kept
QUIET_LOGGERS = ("asyncprawcore", "httpx", "httpcore", "openai")


def setup_logging(
    log_dir: str = "logs",
    log_filename: str = "pipeline.log",
    console_level: int = logging.INFO,
) -> None:
    """Configure structlog with JSON renderer and file output.

    Sets up both Python stdlib logging and structlog to write JSON-formatted
    log entries to <log_dir>/<log_filename>. Creates the log directory if it doesn't exist.

    Args:
        log_dir: Directory for log files, relative to current working directory (default: "logs")
        log_filename: Name of the log file (default: "pipeline.log")
        console_level: Minimum level echoed to stdout (default: INFO)

    Log entry format (JSON):
        {
            "event": "thread_scraped",
            "post_id": "1abc2d",
            "comments": 48,
            "level": "info",
            "timestamp": "2026-10-19T12:34:56.789Z",
            "logger": "versus.scraping"
        }
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    log_file = log_path / log_filename

    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # The formatter applies the final JSON rendering for both structlog and
    # foreign (stdlib, asyncpraw, openai) log records
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = None):
    """Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Configured structlog logger ready for use (BoundLoggerLazyProxy)
    """
    return structlog.get_logger(name)
