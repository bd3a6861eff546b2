# src/tracking/request_id.py
# Request ID management for tracing a scrape through the logs
# One scrape = one HTTP request = one nsqd fetch, so the ID ties all three together:
# the access log line, the "Error fetching stats" line and the X-Request-ID
# header Prometheus (or curl) gets back all carry the same value

import re
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional
from contextvars import ContextVar

# ContextVar keeps the value local to the thread serving the request.
# werkzeug's threaded server handles each scrape on its own thread, so two
# concurrent scrapes never see each other's ID
_request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

# Generated IDs look like "scrape-3f9a0c1d2b4e5f60"
REQUEST_ID_PREFIX = "scrape-"

# Caller-supplied IDs end up verbatim in every log line of the request.
# Only short tokens are accepted; anything else (newlines, spaces, very long
# values) is replaced with a generated ID so a client cannot forge log lines
MAX_REQUEST_ID_LENGTH = 64
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")


def generate_request_id() -> str:
    """
    Generate a new request ID.

    Format: "scrape-{16 hex chars}"
    """
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex[:16]}"


def accept_request_id(candidate: Optional[str]) -> str:
    """
    Return the caller's request ID if it is safe to log, otherwise a new one.

    Args:
        candidate: Value of the incoming X-Request-ID header (may be None)

    Returns:
        The candidate unchanged, or a freshly generated ID
    """
    if (
        candidate
        and len(candidate) <= MAX_REQUEST_ID_LENGTH
        and _REQUEST_ID_PATTERN.match(candidate)
    ):
        return candidate
    return generate_request_id()


def get_request_id() -> Optional[str]:
    """Return the request ID of the current context, or None outside a request."""
    return _request_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def clear_request_id() -> None:
    _request_id.set(None)


@contextmanager
def request_id_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """
    Run a block under a request ID, restoring the previous one afterwards.

    Scrapes that do not arrive over HTTP (a registry collected directly,
    e.g. from tests or another exporter embedding the collector) still get
    an ID so their log lines can be grouped.

    Example:
        with request_id_scope() as request_id:
            collector.collect()   # log lines carry request_id
    """
    request_id = request_id or generate_request_id()
    # The token remembers whatever was set before, including None
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)
