# src/nsq_client/client.py
# Talks to nsqd's HTTP stats endpoint
# One call = one blocking GET; there is no retry and no caching between calls.
# If a scrape should be retried, Prometheus will simply scrape again.

from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import requests

from logger import get_logger
from nsq_client.models import Snapshot, SnapshotFormatError

logger = get_logger(__name__)


class FetchError(Exception):
    """
    Fetching or decoding nsqd stats failed.

    Connection problems, HTTP error statuses and malformed bodies all end
    up here; callers only need to know the scrape has no data.

    Attributes:
        url: The stats URL that was requested
        cause: The underlying exception
    """

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to fetch stats from {url}: {cause}")


class StatsClient:
    """
    Client for one nsqd node's /stats endpoint.

    Args:
        stats_url: Base URL of the stats endpoint, e.g. http://localhost:4151/stats
        timeout: Seconds to wait for nsqd; None waits indefinitely
    """

    def __init__(self, stats_url: str, timeout: Optional[float] = None):
        # nsqd serves both text and JSON from the same path; format=json is
        # added per request so the configured URL can be the plain /stats one
        self.stats_url = stats_url
        # None is passed straight to requests, which then blocks until nsqd answers
        self.timeout = timeout

    def __repr__(self):
        return f"StatsClient(stats_url={self.stats_url!r}, timeout={self.timeout!r})"

    @property
    def ping_url(self) -> str:
        """nsqd's /ping endpoint on the same host as the stats endpoint."""
        parts = urlsplit(self.stats_url)
        return urlunsplit((parts.scheme, parts.netloc, "/ping", "", ""))

    def fetch_snapshot(self) -> Snapshot:
        """
        Fetch and decode the current stats snapshot.

        Returns:
            The decoded Snapshot

        Raises:
            FetchError: If nsqd is unreachable, answers with an error status,
                        or returns a body that is not an nsqd stats document
        """
        try:
            # The with-block closes the response on every exit path,
            # including a decode failure halfway through
            with requests.get(
                self.stats_url,
                params={"format": "json"},
                timeout=self.timeout,
            ) as response:
                # 4xx/5xx from nsqd (or a proxy in front of it) count as a failed fetch
                response.raise_for_status()
                payload = response.json()
        except requests.RequestException as e:
            # Connection refused, DNS failure, timeout, HTTP error status
            raise FetchError(self.stats_url, e) from e
        except ValueError as e:
            # Invalid JSON body (requests raises a ValueError subclass)
            raise FetchError(self.stats_url, e) from e

        # Valid JSON of the wrong shape (a list root, a string counter) fails here
        try:
            snapshot = Snapshot.from_dict(payload)
        except SnapshotFormatError as e:
            raise FetchError(self.stats_url, e) from e

        logger.debug(
            f"Fetched stats: version={snapshot.version or 'unknown'}, "
            f"topics={len(snapshot.topics)}, channels={snapshot.channel_count}"
        )
        return snapshot

    def ping(self) -> bool:
        """
        Check whether nsqd is answering HTTP requests.

        Returns:
            True if GET /ping returned a 2xx status, False otherwise
        """
        try:
            with requests.get(self.ping_url, timeout=self.timeout) as response:
                return response.ok
        except requests.RequestException as e:
            # Readiness only needs a yes/no; the collector logs the real fetch errors
            logger.warning(f"nsqd ping failed: {e}")
            return False


def fetch_snapshot(stats_url: str, timeout: Optional[float] = None) -> Snapshot:
    """
    Fetch one snapshot without keeping a client around.

    Raises:
        FetchError: See StatsClient.fetch_snapshot
    """
    return StatsClient(stats_url, timeout=timeout).fetch_snapshot()
