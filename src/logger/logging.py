# src/logger/logging.py
# Centralized logging configuration for the exporter
# Every module logs through get_logger(__name__), and this file decides where
# those lines go and what they look like
# Note: the folder is named 'logger' so it does not shadow Python's built-in logging module

import logging
import sys
from typing import Optional

# What each level means for the exporter:
# DEBUG: per-scrape state transitions and the scrape summary (topics, channels, series)
# INFO: startup configuration and the listen address
# WARNING: slow HTTP requests (usually a slow nsqd behind them)
# ERROR: a failed nsqd fetch; the scrape still answers 200 with empty gauges
# CRITICAL: the exporter cannot start (bad configuration, port already in use)

# Every line carries the scrape's request ID so one /metrics call can be
# followed from the HTTP request to the nsqd fetch it triggered:
# %(asctime)s: when the line was written
# %(request_id)s: scrape/request ID, or "-" outside a request (added by RequestIDFilter)
# %(name)s: logger name, i.e. the module that logged
# %(levelname)s: DEBUG, INFO, WARNING, ERROR or CRITICAL
# %(message)s: the message itself
LOG_FORMAT = '%(asctime)s - [%(request_id)s] - %(name)s - %(levelname)s - %(message)s'


class RequestIDFilter(logging.Filter):
    """
    Logging filter that stamps every record with the current request ID.

    Log lines written while serving a scrape carry that scrape's ID, so a
    failed nsqd fetch can be matched to the HTTP request that triggered it.
    The filter never drops a record.
    """

    def filter(self, record):
        # Imported lazily: tracking imports this package for its own logger
        try:
            from tracking.request_id import get_request_id
            record.request_id = get_request_id() or "-"
        except ImportError:
            record.request_id = "-"

        return True


def _configured_level(level: Optional[str]) -> str:
    """Pick the level name: explicit argument first, then LOG_LEVEL from config."""
    if level:
        return level
    try:
        from config import settings
        return settings.app.log_level
    except (ImportError, RuntimeError):
        # Config missing or invalid; main() reports the configuration error itself
        return "INFO"


def setup_logging(level: Optional[str] = None):
    """
    Configure logging for the entire application.

    Safe to call more than once: the root logger's handlers are replaced
    each time, which lets main() apply a --log.level flag after import.

    Args:
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, uses level from centralized config
    """
    # Unknown names fall back to INFO rather than failing startup
    numeric_level = getattr(logging, _configured_level(level).upper(), logging.INFO)

    # stdout, so container runtimes collect the exporter's logs with its output
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    # The filter sits on the handler so records from every logger get an ID,
    # including werkzeug's and urllib3's
    handler.addFilter(RequestIDFilter())

    # force=True replaces whatever an earlier call (or an import) installed
    logging.basicConfig(
        level=numeric_level,
        handlers=[handler],
        force=True,
    )


def get_logger(name: Optional[str] = None):
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (usually __name__ from the calling module)
              If None, returns the root logger

    Returns:
        A logger object that can be used to write log messages
    """
    return logging.getLogger(name)


# Logging is configured as soon as any module imports from this package,
# with the level from the environment; main() re-applies it after flags
setup_logging()
