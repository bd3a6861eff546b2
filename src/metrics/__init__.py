# src/metrics/__init__.py
# This file makes the metrics folder a Python package
# It exports the channel gauge model and the exporter's own scrape metrics

from .metrics import (
    LABEL_NAMES,
    CHANNEL_GAUGES,
    GaugeDefinition,
    ChannelMetrics,
    ScrapeMetrics,
    format_bool,
)

__all__ = [
    "LABEL_NAMES",
    "CHANNEL_GAUGES",
    "GaugeDefinition",
    "ChannelMetrics",
    "ScrapeMetrics",
    "format_bool",
]
