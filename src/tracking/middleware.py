# src/tracking/middleware.py
# Flask middleware that assigns every request an ID
# The ID comes from the X-Request-ID header when the caller sends a usable one,
# otherwise we generate it. Either way it is echoed back on the response

from flask import request, g
from tracking.request_id import (
    set_request_id,
    clear_request_id,
    accept_request_id,
)
from logger import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def setup_request_tracking(app):
    """
    Set up request ID tracking middleware for Flask.

    Args:
        app: Flask application instance
    """

    @app.before_request
    def assign_request_id():
        supplied = request.headers.get(REQUEST_ID_HEADER)
        request_id = accept_request_id(supplied)

        if request_id != supplied:
            # Missing, or unsafe to put in a log line
            logger.debug(f"Generated new request ID: {request_id}")

        g.request_id = request_id
        set_request_id(request_id)

    @app.after_request
    def echo_request_id(response):
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.teardown_request
    def forget_request_id(exc):
        # Worker threads are reused; do not let one scrape's ID leak into the next
        clear_request_id()

    logger.info("Request ID tracking middleware enabled")
