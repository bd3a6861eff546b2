# src/monitoring/middleware.py
# Flask middleware that records metrics about the exporter's own HTTP traffic
# Mostly this is Prometheus hitting /metrics, so the latency histogram shows
# how long nsqd takes to answer during a scrape

import time
from flask import request, g
from prometheus_client import Counter, Histogram
from logger import get_logger

logger = get_logger(__name__)

# Requests slower than this are logged as warnings
SLOW_REQUEST_SECONDS = 1.0

# Endpoint label for requests that matched no route
UNMATCHED_ENDPOINT = "unmatched"


def setup_request_monitoring(app, registry, prefix="nsq_exporter"):
    """
    Set up request monitoring middleware for Flask.

    Tracks request count by method, endpoint and status code, and request
    latency by method and endpoint.

    Args:
        app: Flask application instance
        registry: CollectorRegistry the request metrics are registered in
        prefix: Metric name prefix
    """
    # Registered on the app's registry, so /metrics reports its own traffic too
    requests_total = Counter(
        f"{prefix}_http_requests_total",
        "Total number of HTTP requests served by the exporter",
        ["method", "endpoint", "status_code"],
        registry=registry,
    )

    request_duration_seconds = Histogram(
        f"{prefix}_http_request_duration_seconds",
        "Duration of HTTP requests in seconds",
        ["method", "endpoint"],
        registry=registry,
    )

    @app.before_request
    def start_timer():
        # g is per request, so concurrent scrapes each keep their own start time
        g.start_time = time.time()

    @app.after_request
    def record_request(response):
        start_time = getattr(g, 'start_time', None)
        # An earlier before_request handler may have answered before start_timer ran
        if start_time is None:
            return response
        duration = time.time() - start_time

        # request.endpoint is None when no route matched (404s, 405s on unknown
        # paths). Those share one label value so scanners cannot grow the series count
        endpoint = request.endpoint or UNMATCHED_ENDPOINT

        requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()

        request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        # On /metrics a slow request almost always means a slow nsqd
        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request: {request.method} {request.path} took {duration:.2f}s"
            )

        return response

    logger.info("Request monitoring middleware enabled")
