# src/config/settings.py
# Centralized configuration for the exporter
# Every value has a sensible default and can be overridden from the environment
# Command-line flags (see main.py) are applied on top of these values

import os
import re
from typing import Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import urlparse


# Metric name prefixes must be valid Prometheus metric name characters
_NAMESPACE_PATTERN = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")

VALID_ENVIRONMENTS = ["development", "staging", "production"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Routes served by the exporter itself; the metrics path must not collide with them
RESERVED_PATHS = ("/health", "/health/ready")


def _optional_float(value: Optional[str]) -> Optional[float]:
    """
    Convert an environment string to a timeout in seconds.

    Empty, missing or zero values mean "no timeout" (None), which is how
    requests interprets a blocking call. Negative values are returned as-is
    so validate() can reject them.
    """
    if value is None or value.strip() == "":
        return None
    seconds = float(value)
    return None if seconds == 0 else seconds


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a listen address into host and port.

    Accepted forms:
        ":9117"          -> ("0.0.0.0", 9117)   all interfaces
        "127.0.0.1:9117" -> ("127.0.0.1", 9117)
        "[::1]:9117"     -> ("::1", 9117)

    Args:
        address: Address string in HOST:PORT form (host may be empty)

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If the address has no port or the port is out of range
    """
    if not address or ":" not in address:
        raise ValueError(f"listen address must be HOST:PORT or :PORT, got {address!r}")

    host, _, port_text = address.rpartition(":")

    # IPv6 literals are written in brackets so the port separator is unambiguous
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 listen address must be bracketed, got {address!r}")

    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"listen port must be a number, got {port_text!r}") from None

    if not (1 <= port <= 65535):
        raise ValueError(f"listen port must be between 1 and 65535, got {port}")

    return host or "0.0.0.0", port


@dataclass
class NSQConfig:
    """
    Settings for talking to the nsqd node we export metrics for.
    """
    # Full URL of the nsqd stats endpoint, without the format query parameter
    stats_url: str = field(
        default_factory=lambda: os.getenv("NSQD_STATS_URL", "http://localhost:4151/stats")
    )

    # Seconds to wait for nsqd before giving up on a scrape
    # Unset or 0 gives None, which blocks until nsqd answers; negative values fail validate()
    timeout: Optional[float] = field(
        default_factory=lambda: _optional_float(os.getenv("NSQD_TIMEOUT"))
    )

    # Prefix for every exported channel metric: nsq_depth, nsq_client_count, ...
    namespace: str = field(
        default_factory=lambda: os.getenv("NSQ_EXPORTER_NAMESPACE", "nsq")
    )


@dataclass
class WebConfig:
    """
    Settings for the HTTP server Prometheus scrapes.
    """
    # ":9117" listens on every interface
    listen_address: str = field(
        default_factory=lambda: os.getenv("WEB_LISTEN_ADDRESS", ":9117")
    )

    # Path the exposition is served on
    metrics_path: str = field(
        default_factory=lambda: os.getenv("WEB_METRICS_PATH", "/metrics")
    )


@dataclass
class AppConfig:
    """
    Application-level configuration.
    """
    # development, staging or production; only shown in the startup banner
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Upper-cased so LOG_LEVEL=debug works; --log.level overrides it
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Settings:
    """
    Main settings object holding every configuration group.

    Modules read values like:
    - settings.nsq.stats_url
    - settings.web.metrics_path
    - settings.app.log_level
    """
    nsq: NSQConfig = field(default_factory=NSQConfig)
    web: WebConfig = field(default_factory=WebConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def listen_host_port(self) -> Tuple[str, int]:
        """Host and port the HTTP server should bind to."""
        return parse_listen_address(self.web.listen_address)

    def validate(self):
        """
        Validate configuration values.

        Raises:
            ValueError: Describing the first invalid setting found
        """
        # Validate nsqd settings
        parsed = urlparse(self.nsq.stats_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"NSQD_STATS_URL must be an http(s) URL, got {self.nsq.stats_url!r}")
        if self.nsq.timeout is not None and self.nsq.timeout < 0:
            raise ValueError(f"NSQD_TIMEOUT must not be negative, got {self.nsq.timeout}")
        if self.nsq.namespace and not _NAMESPACE_PATTERN.match(self.nsq.namespace):
            raise ValueError(f"NSQ_EXPORTER_NAMESPACE is not a valid metric prefix: {self.nsq.namespace!r}")

        # Validate web settings
        if not self.web.metrics_path.startswith("/"):
            raise ValueError(f"WEB_METRICS_PATH must start with '/', got {self.web.metrics_path!r}")
        if self.web.metrics_path.rstrip("/") in RESERVED_PATHS:
            raise ValueError(
                f"WEB_METRICS_PATH must not shadow a health endpoint, got {self.web.metrics_path!r}"
            )
        parse_listen_address(self.web.listen_address)

        # Validate app settings
        if self.app.environment not in VALID_ENVIRONMENTS:
            raise ValueError(
                f"ENVIRONMENT must be development, staging, or production, got {self.app.environment}"
            )
        if self.app.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR, or CRITICAL, got {self.app.log_level}"
            )


def load_settings() -> Settings:
    """
    Build settings from the environment and validate them.

    Raises:
        RuntimeError: If a variable cannot be parsed or fails validation
    """
    # Parsing happens in the field factories, so a malformed number
    # (NSQD_TIMEOUT=abc) fails here rather than in validate()
    try:
        loaded = Settings()
        loaded.validate()
    except ValueError as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
    return loaded


# Global settings instance shared by every module.
# Configuration errors surface at import time, before the server starts.
settings = load_settings()
