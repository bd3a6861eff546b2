"""Tests for src/monitoring/collector.py"""
import logging
import threading

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.parser import text_string_to_metric_families

from metrics import ScrapeMetrics
from monitoring import NSQCollector, ScrapeState
from nsq_client import FetchError, Snapshot
from tracking import clear_request_id, get_request_id, set_request_id

from conftest import FakeStatsClient


class RecordingClient(FakeStatsClient):
    """Stats client that remembers the request ID active during each fetch."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.request_ids = []

    def fetch_snapshot(self):
        self.request_ids.append(get_request_id())
        return super().fetch_snapshot()


def samples_by_name(families):
    """Flatten families into {metric name: {(topic, channel, paused): value}}."""
    result = {}
    for family in families:
        series = result.setdefault(family.name, {})
        for sample in family.samples:
            key = (sample.labels["topic"], sample.labels["channel"], sample.labels["paused"])
            series[key] = sample.value
    return result


class TestPopulate:
    """Test mapping snapshots onto gauge values."""

    def test_channel_counters_map_one_to_one(self, collector, sample_stats):
        """Test each channel sets its four counters under its label tuple."""
        values = collector.populate(Snapshot.from_dict(sample_stats))
        key = ("orders", "billing", "false")

        assert values.get("client_count", key) == 2.0
        assert values.get("message_count", key) == 100.0
        assert values.get("depth", key) == 5.0
        assert values.get("in_flight_count", key) == 3.0

    def test_paused_channel_label(self, collector, sample_stats):
        """Test paused channels are labelled paused="true"."""
        values = collector.populate(Snapshot.from_dict(sample_stats))

        assert values.get("depth", ("orders", "archive", "true")) == 42.0

    def test_same_channel_name_in_two_topics(self, collector, sample_stats):
        """Test the topic label keeps same-named channels apart."""
        values = collector.populate(Snapshot.from_dict(sample_stats))

        assert values.get("depth", ("orders", "billing", "false")) == 5.0
        assert values.get("depth", ("emails", "billing", "false")) == 7.0

    def test_duplicate_topic_overwrites(self, collector):
        """Test a repeated label tuple keeps the last value."""
        snapshot = Snapshot.from_dict({"topics": [
            {"topic_name": "t1", "channels": [{"channel_name": "c1", "depth": 1}]},
            {"topic_name": "t1", "channels": [{"channel_name": "c1", "depth": 9}]},
        ]})

        values = collector.populate(snapshot)

        assert len(values) == 4
        assert values.get("depth", ("t1", "c1", "false")) == 9.0

    def test_client_counters_are_not_exported(self, collector, sample_stats):
        """Test only channel-level series are produced."""
        values = collector.populate(Snapshot.from_dict(sample_stats))

        # three channels x four gauges
        assert len(values) == 12


class TestCollect:
    """Test full scrapes through collect()."""

    def test_scenario_single_channel(self):
        """Test the t1/c1 example produces the expected series."""
        client = FakeStatsClient(payload={"topics": [{"topic_name": "t1", "channels": [
            {"channel_name": "c1", "depth": 5, "client_count": 2, "paused": False},
        ]}]})
        collector = NSQCollector(client, namespace="")

        samples = samples_by_name(collector.collect())

        assert samples["depth"] == {("t1", "c1", "false"): 5.0}
        assert samples["client_count"] == {("t1", "c1", "false"): 2.0}

    def test_empty_topic_list(self):
        """Test a broker without topics scrapes successfully with no series."""
        collector = NSQCollector(FakeStatsClient(payload={"version": "1.0", "topics": []}))

        families = collector.collect()

        assert len(families) == 4
        assert all(f.samples == [] for f in families)
        assert collector.last_result.state is ScrapeState.DONE
        assert collector.last_result.series == 0

    def test_null_stats_body(self):
        """Test a null stats document counts as a successful, empty scrape."""
        collector = NSQCollector(FakeStatsClient(payload=None))

        families = collector.collect()

        assert all(f.samples == [] for f in families)
        assert collector.last_result.succeeded

    def test_idempotent_for_unchanged_snapshot(self, collector):
        """Test two scrapes of the same snapshot expose identical values."""
        first = samples_by_name(collector.collect())
        second = samples_by_name(collector.collect())

        assert first == second

    def test_each_collect_fetches(self, collector, fake_client):
        """Test every scrape triggers exactly one fetch."""
        collector.collect()
        collector.collect()

        assert fake_client.calls == 2

    def test_vanished_channels_are_dropped(self, fake_client, collector):
        """Test series of deleted channels disappear on the next scrape."""
        collector.collect()
        fake_client.payload = {"topics": [{"topic_name": "orders", "channels": [
            {"channel_name": "billing", "depth": 1},
        ]}]}

        samples = samples_by_name(collector.collect())

        assert samples["nsq_depth"] == {("orders", "billing", "false"): 1.0}

    def test_last_result_on_success(self, collector):
        """Test the last result summarises the scrape."""
        collector.collect()
        result = collector.last_result

        assert result.succeeded
        assert result.topics == 2
        assert result.channels == 3
        assert result.series == 12
        assert result.error is None
        assert result.duration >= 0

    def test_scrape_publishes_current_values(self, collector):
        """Test scrape() makes its value set the current one."""
        values = collector.scrape()

        assert collector.current() is values
        assert collector.last_result.state is ScrapeState.DONE

    def test_describe_does_not_fetch(self, collector, fake_client):
        """Test describe() never calls nsqd."""
        families = collector.describe()

        assert len(families) == 4
        assert fake_client.calls == 0

    def test_direct_collect_runs_under_request_id(self, sample_stats):
        """Test a scrape outside any HTTP request still gets its own ID."""
        clear_request_id()
        client = RecordingClient(payload=sample_stats)
        collector = NSQCollector(client)

        collector.collect()
        collector.scrape()

        assert all(request_id.startswith("scrape-") for request_id in client.request_ids)
        assert client.request_ids[0] != client.request_ids[1]
        assert get_request_id() is None

    def test_collect_keeps_outer_request_id(self, sample_stats):
        """Test a scrape inside an HTTP request logs under that request's ID."""
        client = RecordingClient(payload=sample_stats)
        set_request_id("prom-42")
        try:
            NSQCollector(client).collect()

            assert client.request_ids == ["prom-42"]
            assert get_request_id() == "prom-42"
        finally:
            clear_request_id()


class TestFetchFailure:
    """Test scrapes while nsqd is unavailable."""

    def test_failure_emits_empty_families(self, failing_client):
        """Test a failed fetch yields the four families with no samples."""
        collector = NSQCollector(failing_client)

        families = collector.collect()

        assert [f.name for f in families] == [
            "nsq_client_count",
            "nsq_message_count",
            "nsq_depth",
            "nsq_in_flight_count",
        ]
        assert all(f.samples == [] for f in families)

    def test_failure_is_logged(self, failing_client, caplog):
        """Test the failure is logged at ERROR, not CRITICAL."""
        collector = NSQCollector(failing_client)

        with caplog.at_level(logging.ERROR):
            collector.collect()

        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert errors[0].levelno == logging.ERROR
        assert "Connection refused" in errors[0].getMessage()

    def test_failure_discards_previous_values(self, fake_client):
        """Test an outage does not keep serving the last good values."""
        collector = NSQCollector(fake_client)
        collector.collect()

        fake_client.error = FetchError(fake_client.stats_url, OSError("down"))
        families = collector.collect()

        assert all(f.samples == [] for f in families)
        assert len(collector.current()) == 0

    def test_last_result_on_failure(self, failing_client):
        """Test the failure is recorded in the last result."""
        collector = NSQCollector(failing_client)
        collector.collect()

        assert collector.last_result.state is ScrapeState.FAILED
        assert not collector.last_result.succeeded
        assert "Connection refused" in collector.last_result.error

    def test_recovers_after_outage(self, fake_client):
        """Test the next successful scrape exposes data again."""
        collector = NSQCollector(fake_client)
        fake_client.error = FetchError(fake_client.stats_url, OSError("down"))
        collector.collect()

        fake_client.error = None
        samples = samples_by_name(collector.collect())

        assert samples["nsq_depth"][("orders", "billing", "false")] == 5.0

    def test_scrape_metrics_record_failure(self, failing_client):
        """Test failures are counted in the self-metrics."""
        registry = CollectorRegistry()
        collector = NSQCollector(failing_client, scrape_metrics=ScrapeMetrics(registry))

        collector.collect()

        assert registry.get_sample_value("nsq_exporter_scrape_errors_total") == 1.0
        assert registry.get_sample_value("nsq_exporter_last_scrape_success") == 0.0


class TestRegistryIntegration:
    """Test the collector inside a prometheus_client registry."""

    def test_exposition_output(self, collector):
        """Test the text format contains labelled gauge samples."""
        registry = CollectorRegistry()
        registry.register(collector)

        text = generate_latest(registry).decode("utf-8")
        families = {f.name: f for f in text_string_to_metric_families(text)}

        assert families["nsq_depth"].type == "gauge"
        assert families["nsq_depth"].documentation == "Depth of the channel's queue"
        assert registry.get_sample_value(
            "nsq_in_flight_count", {"topic": "orders", "channel": "billing", "paused": "false"}
        ) == 3.0

    def test_concurrent_scrapes_are_not_torn(self):
        """Test concurrent scrapes each see one snapshot's complete value set."""
        snapshot_a = {"topics": [{"topic_name": "a", "channels": [
            {"channel_name": f"c{i}", "depth": 1, "client_count": 1,
             "message_count": 1, "in_flight_count": 1}
            for i in range(20)
        ]}]}
        snapshot_b = {"topics": [{"topic_name": "b", "channels": [
            {"channel_name": f"c{i}", "depth": 2, "client_count": 2,
             "message_count": 2, "in_flight_count": 2}
            for i in range(20)
        ]}]}

        class AlternatingClient:
            def __init__(self):
                self._lock = threading.Lock()
                self._count = 0

            def fetch_snapshot(self):
                with self._lock:
                    self._count += 1
                    payload = snapshot_a if self._count % 2 else snapshot_b
                return Snapshot.from_dict(payload)

        collector = NSQCollector(AlternatingClient())
        problems = []

        def scrape_many():
            for _ in range(25):
                samples = [s for f in collector.collect() for s in f.samples]
                topics = {s.labels["topic"] for s in samples}
                values = {s.value for s in samples}
                if len(samples) != 80 or len(topics) != 1 or len(values) != 1:
                    problems.append((len(samples), topics, values))

        threads = [threading.Thread(target=scrape_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert problems == []
