# src/tracking/__init__.py
# Request tracking: every scrape gets an ID that appears in all of its log lines

from tracking.request_id import (
    get_request_id,
    set_request_id,
    clear_request_id,
    generate_request_id,
    accept_request_id,
    request_id_scope,
)

__all__ = [
    "get_request_id",
    "set_request_id",
    "clear_request_id",
    "generate_request_id",
    "accept_request_id",
    "request_id_scope",
]
