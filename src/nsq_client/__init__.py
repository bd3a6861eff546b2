# src/nsq_client/__init__.py
# This file makes the nsq_client folder a Python package

from .client import StatsClient, FetchError, fetch_snapshot
from .models import Snapshot, Topic, Channel, Client, SnapshotFormatError

__all__ = [
    "StatsClient",
    "FetchError",
    "fetch_snapshot",
    "Snapshot",
    "Topic",
    "Channel",
    "Client",
    "SnapshotFormatError",
]
