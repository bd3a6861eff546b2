# src/nsq_client/models.py
# In-memory shape of one nsqd /stats?format=json response
#
# The decoder is deliberately permissive about *presence*:
# - unknown keys are ignored
# - missing numbers default to 0, missing booleans to False,
#   missing strings to "" and missing lists to []
# but strict about *type*: a counter that is not an integer, or a list
# that is not a list, means the body is not an nsqd stats document.

from dataclasses import dataclass, field
from typing import Any, Dict, List


class SnapshotFormatError(ValueError):
    """The decoded JSON does not have the shape of an nsqd stats document."""
    pass


def _object(payload: Any, what: str) -> Dict[str, Any]:
    # null entries inside arrays decode like an object with no fields
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise SnapshotFormatError(f"{what} must be a JSON object, got {type(payload).__name__}")
    return payload


def _int(payload: Dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None:
        return 0
    # bool is a subclass of int in Python but never a valid counter
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotFormatError(f"{key} must be an integer, got {value!r}")
    return value


def _bool(payload: Dict[str, Any], key: str) -> bool:
    value = payload.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise SnapshotFormatError(f"{key} must be a boolean, got {value!r}")
    return value


def _str(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise SnapshotFormatError(f"{key} must be a string, got {value!r}")
    return value


def _list(payload: Dict[str, Any], key: str) -> List[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotFormatError(f"{key} must be a JSON array, got {type(value).__name__}")
    return value


@dataclass
class Client:
    """
    A consumer connected to a channel.

    Decoded for completeness; no metric is derived from clients today.
    """
    client_id: str = ""
    hostname: str = ""
    version: str = ""
    remote_address: str = ""
    ready_count: int = 0
    in_flight_count: int = 0
    message_count: int = 0
    finish_count: int = 0
    requeue_count: int = 0

    @classmethod
    def from_dict(cls, payload: Any) -> "Client":
        payload = _object(payload, "client")
        return cls(
            client_id=_str(payload, "client_id"),
            hostname=_str(payload, "hostname"),
            version=_str(payload, "version"),
            remote_address=_str(payload, "remote_address"),
            ready_count=_int(payload, "ready_count"),
            in_flight_count=_int(payload, "in_flight_count"),
            message_count=_int(payload, "message_count"),
            finish_count=_int(payload, "finish_count"),
            requeue_count=_int(payload, "requeue_count"),
        )


@dataclass
class Channel:
    """A consumer group within a topic, with its queue counters."""
    channel_name: str = ""
    # Messages waiting to be delivered (in memory plus on disk)
    depth: int = 0
    # The on-disk part of depth, once the memory queue overflowed
    backend_depth: int = 0
    # Delivered to a consumer but not yet finished or requeued
    in_flight_count: int = 0
    deferred_count: int = 0
    # Cumulative since nsqd started; resets when nsqd restarts
    message_count: int = 0
    requeue_count: int = 0
    timeout_count: int = 0
    client_count: int = 0
    # A paused channel keeps queueing but delivers nothing
    paused: bool = False
    clients: List[Client] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Any) -> "Channel":
        payload = _object(payload, "channel")
        return cls(
            channel_name=_str(payload, "channel_name"),
            depth=_int(payload, "depth"),
            backend_depth=_int(payload, "backend_depth"),
            in_flight_count=_int(payload, "in_flight_count"),
            deferred_count=_int(payload, "deferred_count"),
            message_count=_int(payload, "message_count"),
            requeue_count=_int(payload, "requeue_count"),
            timeout_count=_int(payload, "timeout_count"),
            client_count=_int(payload, "client_count"),
            paused=_bool(payload, "paused"),
            clients=[Client.from_dict(c) for c in _list(payload, "clients")],
        )


@dataclass
class Topic:
    topic_name: str = ""
    channels: List[Channel] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Any) -> "Topic":
        payload = _object(payload, "topic")
        return cls(
            topic_name=_str(payload, "topic_name"),
            channels=[Channel.from_dict(c) for c in _list(payload, "channels")],
        )


@dataclass
class Snapshot:
    """
    Root of one stats fetch: nsqd version plus every topic in broker order.

    Snapshots are built per scrape and thrown away once the collector has
    read them.
    """
    version: str = ""
    topics: List[Topic] = field(default_factory=list)

    @property
    def channel_count(self) -> int:
        return sum(len(topic.channels) for topic in self.topics)

    @classmethod
    def from_dict(cls, payload: Any) -> "Snapshot":
        """
        Build a snapshot from decoded JSON.

        Older nsqd releases wrap the document in a response envelope
        ({"status_code": 200, "status_txt": "OK", "data": {...}}); the
        envelope is unwrapped when present.

        A JSON null body decodes to an empty snapshot, the same as a
        missing field does everywhere else in the document.

        Raises:
            SnapshotFormatError: If the payload has the wrong shape
        """
        if payload is None:
            return cls()
        payload = _object(payload, "stats document")

        # Only unwrap when the outer object is clearly an envelope, not a
        # stats document that happens to carry a "data" key
        data = payload.get("data")
        if isinstance(data, dict) and "topics" not in payload:
            payload = data

        return cls(
            version=_str(payload, "version"),
            topics=[Topic.from_dict(t) for t in _list(payload, "topics")],
        )
