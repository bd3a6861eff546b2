# src/monitoring/__init__.py
# This file makes the monitoring folder a Python package
# It exports the NSQ collector and the Flask monitoring helpers

from .collector import NSQCollector, ScrapeResult, ScrapeState
from .metrics_endpoint import setup_metrics_endpoint
from .middleware import setup_request_monitoring

__all__ = [
    "NSQCollector",
    "ScrapeResult",
    "ScrapeState",
    "setup_metrics_endpoint",
    "setup_request_monitoring",
]
