# src/metrics/metrics.py
# This file defines the metrics the exporter exposes
#
# Two kinds live here:
# 1. Channel gauges - the four per-channel series derived from nsqd stats.
#    They are described once (name, help, labels) and filled with fresh
#    values on every scrape by the collector.
# 2. Scrape metrics - counters and timers about the exporter itself,
#    so a failing nsqd fetch is visible in Prometheus, not only in logs.

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from prometheus_client import Counter, Gauge, Histogram
from prometheus_client.core import GaugeMetricFamily

# Every channel gauge is keyed by the same label tuple
LABEL_NAMES = ("topic", "channel", "paused")

# (topic, channel, paused) - paused is "true" or "false"
LabelValues = Tuple[str, str, str]


def format_bool(value: bool) -> str:
    """Render a boolean the way label values expect it: "true" or "false"."""
    return "true" if value else "false"


@dataclass(frozen=True)
class GaugeDefinition:
    """
    Static description of one channel gauge.

    Attributes:
        series: Metric name without namespace, e.g. "depth"
        documentation: HELP text
        attribute: Channel field the value is read from
    """
    series: str
    documentation: str
    attribute: str

    def metric_name(self, namespace: str = "") -> str:
        # Same joining rule as prometheus_client: namespace_name
        return f"{namespace}_{self.series}" if namespace else self.series


# The fixed set of gauges exported for every channel
CHANNEL_GAUGES = (
    GaugeDefinition(
        "client_count",
        "Number of clients connected to the channel",
        "client_count",
    ),
    GaugeDefinition(
        "message_count",
        "Number of messages in the channel",
        "message_count",
    ),
    GaugeDefinition(
        "depth",
        "Depth of the channel's queue",
        "depth",
    ),
    GaugeDefinition(
        "in_flight_count",
        "Number of messages currently in-flight in the channel",
        "in_flight_count",
    ),
)


class ChannelMetrics:
    """
    Value store for the channel gauges of one scrape.

    Setting the same (series, labels) twice overwrites; series are kept in
    definition order and label sets in first-set order, so emission is
    reproducible for the same snapshot.

    Args:
        namespace: Prefix for metric names ("nsq" -> nsq_depth)
    """

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._definitions = {d.series: d for d in CHANNEL_GAUGES}
        self._values: Dict[str, Dict[LabelValues, float]] = {
            d.series: {} for d in CHANNEL_GAUGES
        }

    def __len__(self) -> int:
        return sum(len(values) for values in self._values.values())

    def set(self, series: str, labels: LabelValues, value: float) -> None:
        """
        Set one gauge value.

        Args:
            series: Gauge name without namespace ("depth", ...)
            labels: (topic, channel, paused) label values
            value: New value; integers are widened to float

        Raises:
            KeyError: If series is not a channel gauge
            ValueError: If labels does not have one value per label name
        """
        if series not in self._values:
            raise KeyError(f"unknown channel gauge: {series}")
        labels = tuple(str(v) for v in labels)
        if len(labels) != len(LABEL_NAMES):
            raise ValueError(f"expected {len(LABEL_NAMES)} label values {LABEL_NAMES}, got {labels}")
        self._values[series][labels] = float(value)

    def get(self, series: str, labels: LabelValues) -> Optional[float]:
        return self._values.get(series, {}).get(tuple(labels))

    def series(self) -> Iterator[Tuple[str, LabelValues, float]]:
        """Yield (series, labels, value) for every value currently set."""
        for definition in CHANNEL_GAUGES:
            for labels, value in self._values[definition.series].items():
                yield definition.series, labels, value

    def _family(self, definition: GaugeDefinition) -> GaugeMetricFamily:
        return GaugeMetricFamily(
            definition.metric_name(self.namespace),
            definition.documentation,
            labels=list(LABEL_NAMES),
        )

    def describe(self) -> List[GaugeMetricFamily]:
        """Metric families without samples, independent of any snapshot."""
        return [self._family(d) for d in CHANNEL_GAUGES]

    def collect(self) -> List[GaugeMetricFamily]:
        """Metric families holding every value set so far."""
        families = []
        for definition in CHANNEL_GAUGES:
            family = self._family(definition)
            for labels, value in self._values[definition.series].items():
                family.add_metric(list(labels), value)
            families.append(family)
        return families


class ScrapeMetrics:
    """
    Metrics about the exporter's own scrapes.

    Created per registry so each Flask app (and each test) gets its own
    instances instead of clashing in the global default registry.

    Args:
        registry: CollectorRegistry to register into
        prefix: Metric name prefix
    """

    def __init__(self, registry, prefix: str = "nsq_exporter"):
        # Total scrapes of nsqd, successful or not
        self.scrapes_total = Counter(
            f"{prefix}_scrapes_total",
            "Total number of nsqd stats scrapes",
            registry=registry,
        )

        # Scrapes where nsqd was unreachable or returned a bad body
        self.scrape_errors_total = Counter(
            f"{prefix}_scrape_errors_total",
            "Total number of failed nsqd stats scrapes",
            registry=registry,
        )

        # Time spent fetching and converting stats, per scrape
        self.scrape_duration_seconds = Histogram(
            f"{prefix}_scrape_duration_seconds",
            "Duration of nsqd stats scrapes in seconds",
            registry=registry,
        )

        # 1 if the latest scrape succeeded, 0 if it failed
        self.last_scrape_success = Gauge(
            f"{prefix}_last_scrape_success",
            "Whether the last nsqd stats scrape succeeded (1) or not (0)",
            registry=registry,
        )

    def observe(self, success: bool, duration: float) -> None:
        self.scrapes_total.inc()
        if not success:
            self.scrape_errors_total.inc()
        self.scrape_duration_seconds.observe(duration)
        self.last_scrape_success.set(1 if success else 0)
