"""
Pytest configuration and fixtures for the NSQ exporter tests.

Provides:
- Sample nsqd stats payloads
- A fake stats client that serves canned snapshots
- Settings, collector and Flask app fixtures
"""

import copy
from typing import Any, Dict

import pytest
from prometheus_client import CollectorRegistry

from config import Settings, NSQConfig, WebConfig, AppConfig
from nsq_client import FetchError, Snapshot
from monitoring import NSQCollector
from api import create_app


SAMPLE_STATS: Dict[str, Any] = {
    "version": "1.2.1",
    "health": "OK",
    "start_time": 1700000000,
    "topics": [
        {
            "topic_name": "orders",
            "depth": 0,
            "message_count": 120,
            "paused": False,
            "channels": [
                {
                    "channel_name": "billing",
                    "depth": 5,
                    "backend_depth": 1,
                    "in_flight_count": 3,
                    "deferred_count": 0,
                    "message_count": 100,
                    "requeue_count": 2,
                    "timeout_count": 1,
                    "client_count": 2,
                    "paused": False,
                    "clients": [
                        {
                            "client_id": "worker-1",
                            "hostname": "worker-1.internal",
                            "version": "V2",
                            "remote_address": "10.0.0.5:53122",
                            "ready_count": 10,
                            "in_flight_count": 2,
                            "message_count": 60,
                            "finish_count": 58,
                            "requeue_count": 1,
                            "tls": False,
                        },
                        {
                            "client_id": "worker-2",
                            "hostname": "worker-2.internal",
                            "version": "V2",
                            "remote_address": "10.0.0.6:53123",
                            "ready_count": 10,
                            "in_flight_count": 1,
                            "message_count": 40,
                            "finish_count": 39,
                            "requeue_count": 1,
                        },
                    ],
                },
                {
                    "channel_name": "archive",
                    "depth": 42,
                    "in_flight_count": 0,
                    "message_count": 20,
                    "client_count": 0,
                    "paused": True,
                    "clients": [],
                },
            ],
        },
        {
            "topic_name": "emails",
            "channels": [
                {
                    "channel_name": "billing",
                    "depth": 7,
                    "in_flight_count": 1,
                    "message_count": 9,
                    "client_count": 1,
                    "paused": False,
                },
            ],
        },
    ],
}


class FakeStatsClient:
    """Stats client double serving a fixed payload or failing on demand."""

    stats_url = "http://nsqd.test:4151/stats"

    def __init__(self, payload=None, error=None, reachable=True):
        self.payload = payload
        self.error = error
        self.reachable = reachable
        self.calls = 0

    def fetch_snapshot(self) -> Snapshot:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Snapshot.from_dict(self.payload)

    def ping(self) -> bool:
        return self.reachable


@pytest.fixture
def sample_stats() -> Dict[str, Any]:
    """A fresh copy of the sample stats payload for each test."""
    return copy.deepcopy(SAMPLE_STATS)


@pytest.fixture
def fake_client(sample_stats) -> FakeStatsClient:
    return FakeStatsClient(payload=sample_stats)


@pytest.fixture
def failing_client() -> FakeStatsClient:
    """Client behaving like nsqd refusing connections."""
    error = FetchError(
        "http://nsqd.test:4151/stats",
        ConnectionRefusedError("[Errno 111] Connection refused"),
    )
    return FakeStatsClient(error=error, reachable=False)


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the test process environment."""
    return Settings(
        nsq=NSQConfig(stats_url="http://nsqd.test:4151/stats", timeout=None, namespace="nsq"),
        web=WebConfig(listen_address=":9117", metrics_path="/metrics"),
        app=AppConfig(environment="development", log_level="INFO"),
    )


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def collector(fake_client) -> NSQCollector:
    return NSQCollector(fake_client, namespace="nsq")


@pytest.fixture
def app(test_settings, fake_client, registry):
    return create_app(test_settings, client=fake_client, registry=registry)


@pytest.fixture
def http(app):
    """Flask test client."""
    return app.test_client()
