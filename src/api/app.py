# src/api/app.py
# This file creates the Flask application that Prometheus scrapes
#
# Routes:
#   <metrics path>   exposition of the nsqd channel gauges (default /metrics)
#   /                landing page linking to the metrics path
#   /health          liveness check
#   /health/ready    readiness check (is nsqd answering?)

from flask import Flask, jsonify
from markupsafe import escape
from prometheus_client import CollectorRegistry, GCCollector, PlatformCollector, ProcessCollector

from logger import get_logger
from config import settings as default_settings
from metrics import ScrapeMetrics
from nsq_client import StatsClient
from monitoring import (
    NSQCollector,
    setup_metrics_endpoint,
    setup_request_monitoring,
)
from tracking.middleware import setup_request_tracking

logger = get_logger(__name__)

LANDING_PAGE = """<html>
<head><title>NSQ Exporter</title></head>
<body>
<h1>NSQ Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def create_app(settings=None, client=None, registry=None):
    """
    Create and configure the Flask application.

    Args:
        settings: Settings to use; defaults to the environment-derived global
        client: Stats client; defaults to a StatsClient for settings.nsq.stats_url.
                Anything with fetch_snapshot() works, which is how tests
                inject canned snapshots.
        registry: CollectorRegistry to expose. When omitted a fresh registry
                  is created and the process/platform/GC collectors are added.

    Returns:
        Configured Flask application instance

    Raises:
        ValueError: If settings fail validation (e.g. the metrics path
                    would shadow /health)
    """
    settings = settings or default_settings
    settings.validate()

    # One client for both scrapes and readiness pings
    if client is None:
        client = StatsClient(settings.nsq.stats_url, timeout=settings.nsq.timeout)

    # A private registry per app keeps tests (and several apps in one process)
    # from registering the same metric names twice
    if registry is None:
        registry = CollectorRegistry()
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
        GCCollector(registry=registry)

    collector = NSQCollector(
        client,
        namespace=settings.nsq.namespace,
        scrape_metrics=ScrapeMetrics(registry),
    )
    registry.register(collector)

    app = Flask(__name__)

    # Handles other extensions and tests can reach
    app.extensions["nsq_exporter"] = {
        "settings": settings,
        "client": client,
        "registry": registry,
        "collector": collector,
    }

    # Routes first, then middleware. validate() has already made sure the
    # metrics path cannot collide with /health or /health/ready
    register_routes(app, settings.web.metrics_path)
    setup_metrics_endpoint(app, registry, settings.web.metrics_path)
    setup_request_tracking(app)
    setup_request_monitoring(app, registry)

    logger.info(
        f"Flask application created: nsqd={settings.nsq.stats_url}, "
        f"metrics_path={settings.web.metrics_path}, namespace={settings.nsq.namespace!r}"
    )

    return app


def register_routes(app: Flask, metrics_path: str):
    """
    Register the landing page and health checks.

    Args:
        app: Flask application instance
        metrics_path: Path the metrics endpoint is served on
    """

    # The metrics endpoint owns "/" when it is served from the root
    if metrics_path not in ("", "/"):
        @app.route('/', methods=['GET'])
        def index():
            return LANDING_PAGE.format(path=escape(metrics_path))

    @app.route('/health', methods=['GET'])
    def health():
        """Liveness: the process is up and serving HTTP."""
        return jsonify({
            "status": "healthy",
            "service": "nsq-exporter"
        }), 200

    @app.route('/health/ready', methods=['GET'])
    def readiness():
        """
        Readiness: nsqd answers its /ping endpoint.

        Scrapes still succeed (with empty gauges) while nsqd is down; this
        endpoint is what tells an orchestrator the exporter has nothing to say.
        """
        exporter = app.extensions["nsq_exporter"]
        client = exporter["client"]
        last_result = exporter["collector"].last_result

        # Injected clients (tests, embedding code) may only know how to fetch;
        # without a ping they are assumed ready
        ping = getattr(client, "ping", None)
        nsqd_ready = bool(ping()) if ping is not None else True

        checks = {
            "nsqd": {
                "status": "healthy" if nsqd_ready else "unhealthy",
                "url": getattr(client, "stats_url", None),
            },
            "last_scrape": {
                "status": last_result.state.value if last_result else "none",
                "error": last_result.error if last_result else None,
            },
        }

        # The last scrape is reported for context only; a failed scrape followed
        # by a successful ping still counts as ready
        status_code = 200 if nsqd_ready else 503

        return jsonify({
            "status": "ready" if nsqd_ready else "not_ready",
            "checks": checks
        }), status_code
