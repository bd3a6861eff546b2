# src/monitoring/collector.py
# The custom Prometheus collector that turns nsqd stats into gauges
#
# Every scrape of /metrics runs the same sequence:
#   FETCHING -> POPULATING -> EMITTING -> DONE
#   FETCHING -> FAILED        (nsqd unreachable or bad body)
#
# Values are built into a fresh ChannelMetrics per scrape and only then
# published, so a concurrent scrape never sees a half-written value set and
# topics/channels deleted on nsqd disappear on the next scrape.

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from logger import get_logger
from metrics import CHANNEL_GAUGES, ChannelMetrics, ScrapeMetrics, format_bool
from nsq_client import FetchError, Snapshot
from tracking.request_id import get_request_id, request_id_scope

logger = get_logger(__name__)


class ScrapeState(Enum):
    FETCHING = "fetching"
    POPULATING = "populating"
    EMITTING = "emitting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ScrapeResult:
    """Summary of the most recent scrape."""
    state: ScrapeState
    topics: int = 0
    channels: int = 0
    series: int = 0
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is ScrapeState.DONE


class NSQCollector:
    """
    Prometheus collector exporting per-channel nsqd gauges.

    Register it with a CollectorRegistry; prometheus_client calls collect()
    once per scrape.

    Args:
        client: Object with a fetch_snapshot() method (usually a StatsClient)
        namespace: Metric name prefix, "nsq" by default
        scrape_metrics: Optional ScrapeMetrics to record scrape outcomes in
    """

    def __init__(self, client, namespace: str = "nsq", scrape_metrics: Optional[ScrapeMetrics] = None):
        self.client = client
        self.namespace = namespace
        self.scrape_metrics = scrape_metrics

        # Guards the published value set and the last result
        self._lock = threading.Lock()
        self._current = ChannelMetrics(namespace)
        self._last_result: Optional[ScrapeResult] = None

    @property
    def last_result(self) -> Optional[ScrapeResult]:
        with self._lock:
            return self._last_result

    def current(self) -> ChannelMetrics:
        """The value set published by the most recent scrape."""
        with self._lock:
            return self._current

    def describe(self):
        # Registering must not hit nsqd, so describe from definitions only
        return ChannelMetrics(self.namespace).describe()

    def populate(self, snapshot: Snapshot) -> ChannelMetrics:
        """
        Map a snapshot onto a fresh set of channel gauge values.

        Topics and channels are walked in snapshot order; each channel sets
        all four gauges under (topic, channel, paused).
        """
        values = ChannelMetrics(self.namespace)
        for topic in snapshot.topics:
            for channel in topic.channels:
                # paused is a label, so pausing a channel starts a new series
                labels = (topic.topic_name, channel.channel_name, format_bool(channel.paused))
                # A label tuple seen twice (duplicate topic entries) keeps the later value
                for definition in CHANNEL_GAUGES:
                    values.set(definition.series, labels, getattr(channel, definition.attribute))
        return values

    def scrape(self) -> ChannelMetrics:
        """
        Fetch stats once and publish the resulting value set.

        Fetch failures are logged and publish an empty value set; they never
        propagate to the caller.

        Returns:
            The value set published by this scrape
        """
        with request_id_scope(get_request_id()):
            values, result = self._scrape()
            self._finish(result)
        return values

    def collect(self):
        # Inside /metrics this keeps the HTTP request ID; a registry collected
        # directly gets a fresh one so the fetch and summary lines still pair up
        with request_id_scope(get_request_id()):
            values, result = self._scrape()

            # On failure the families are still emitted, with HELP/TYPE but zero samples
            if result.state is not ScrapeState.FAILED:
                logger.debug(f"Scrape state: {ScrapeState.EMITTING.value}")
            families = values.collect()

            self._finish(result)
        return families

    def _scrape(self):
        start_time = time.time()
        logger.debug(f"Scrape state: {ScrapeState.FETCHING.value}")

        try:
            snapshot = self.client.fetch_snapshot()
        except FetchError as e:
            logger.error(f"Error fetching stats: {e}")
            # Publishing an empty set drops the previous values: stale queue
            # depths would look like a healthy broker on a dashboard
            values = ChannelMetrics(self.namespace)
            result = ScrapeResult(state=ScrapeState.FAILED, error=str(e))
        else:
            logger.debug(f"Scrape state: {ScrapeState.POPULATING.value}")
            values = self.populate(snapshot)
            result = ScrapeResult(
                state=ScrapeState.EMITTING,
                topics=len(snapshot.topics),
                channels=snapshot.channel_count,
                series=len(values),
            )

        result.duration = time.time() - start_time

        # Publish the whole value set in one step
        with self._lock:
            self._current = values
            self._last_result = result

        # Self-metrics live in the same registry, next to the channel gauges
        if self.scrape_metrics is not None:
            self.scrape_metrics.observe(result.state is not ScrapeState.FAILED, result.duration)

        return values, result

    def _finish(self, result: ScrapeResult) -> None:
        if result.state is ScrapeState.FAILED:
            return

        with self._lock:
            result.state = ScrapeState.DONE

        logger.debug(
            f"Scrape done: topics={result.topics}, channels={result.channels}, "
            f"series={result.series}, duration={result.duration:.3f}s"
        )
