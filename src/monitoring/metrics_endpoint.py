# src/monitoring/metrics_endpoint.py
# This file sets up the endpoint Prometheus scrapes
# Each GET renders the registry, which makes the NSQ collector fetch
# fresh stats from nsqd for that request

from flask import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from logger import get_logger

logger = get_logger(__name__)


def setup_metrics_endpoint(app, registry, path="/metrics"):
    """
    Register the metrics endpoint on a Flask app.

    The response is always 200 while nsqd is down: the collector swallows
    fetch errors and emits empty gauge families, so Prometheus sees
    "no data" instead of a failed scrape target.

    Args:
        app: Flask application instance
        registry: CollectorRegistry to render
        path: URL path to serve the metrics on

    Example output:
        # HELP nsq_depth Depth of the channel's queue
        # TYPE nsq_depth gauge
        nsq_depth{channel="c1",paused="false",topic="t1"} 5.0
    """

    def metrics():
        try:
            # generate_latest() calls collect() on every registered collector
            # and formats the result in the text exposition format
            metrics_data = generate_latest(registry)

            return Response(
                metrics_data,
                mimetype=CONTENT_TYPE_LATEST
            )

        except Exception as e:
            # Only a bug in a collector can get here; nsqd errors never do
            logger.error(f"Error generating metrics: {e}", exc_info=True)
            return Response(
                f"Error generating metrics: {str(e)}",
                status=500,
                mimetype='text/plain'
            )

    app.add_url_rule(path, endpoint="metrics", view_func=metrics, methods=["GET"])

    logger.info(f"Prometheus metrics endpoint registered at {path}")
