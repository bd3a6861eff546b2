# src/main.py
# Entry point of the exporter
# 1. Parses command-line flags (they override environment configuration)
# 2. Creates the Flask application
# 3. Binds the listen address and serves until interrupted
#
# Failing to bind the listen address is the only fatal error: once the
# server runs, nsqd outages only produce empty scrapes.

import argparse
import sys
from dataclasses import replace

from werkzeug.serving import make_server

from logger import get_logger, setup_logging
from config import Settings, settings as env_settings
from api import create_app

logger = get_logger(__name__)


def parse_args(argv=None):
    """
    Parse command-line flags.

    Flags left unset keep the value from the environment (see config/settings.py).

    Args:
        argv: Argument list; defaults to sys.argv[1:]

    Returns:
        argparse.Namespace with web_listen, web_path, nsqd_addr, nsqd_timeout,
        namespace and log_level attributes (None when not given)
    """
    parser = argparse.ArgumentParser(
        prog="nsq-exporter",
        description="Expose nsqd topic/channel stats as Prometheus metrics",
    )
    parser.add_argument(
        "--web.listen",
        dest="web_listen",
        help=f"Address on which to expose metrics and web interface (default: {env_settings.web.listen_address})",
    )
    parser.add_argument(
        "--web.path",
        dest="web_path",
        help=f"Path under which to expose metrics (default: {env_settings.web.metrics_path})",
    )
    parser.add_argument(
        "--nsqd.addr",
        dest="nsqd_addr",
        help=f"Address of the nsqd stats endpoint (default: {env_settings.nsq.stats_url})",
    )
    parser.add_argument(
        "--nsqd.timeout",
        dest="nsqd_timeout",
        type=float,
        help="Seconds to wait for nsqd per scrape; 0 waits indefinitely",
    )
    parser.add_argument(
        "--namespace",
        dest="namespace",
        help=f"Prefix for exported metric names (default: {env_settings.nsq.namespace})",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help=f"Logging level (default: {env_settings.app.log_level})",
    )
    return parser.parse_args(argv)


def build_settings(args, base: Settings = None) -> Settings:
    """
    Apply command-line flags on top of environment settings.

    Args:
        args: Namespace returned by parse_args()
        base: Settings to start from; defaults to the environment-derived global

    Returns:
        A new validated Settings object

    Raises:
        ValueError: If the combined configuration is invalid
    """
    base = base or env_settings

    # replace() copies each group, so the environment-derived global is never modified
    nsq = base.nsq
    if args.nsqd_addr is not None:
        nsq = replace(nsq, stats_url=args.nsqd_addr)
    if args.nsqd_timeout is not None:
        # 0 disables the timeout; a negative value is left for validate() to reject
        nsq = replace(nsq, timeout=args.nsqd_timeout or None)
    if args.namespace is not None:
        nsq = replace(nsq, namespace=args.namespace)

    web = base.web
    if args.web_listen is not None:
        web = replace(web, listen_address=args.web_listen)
    if args.web_path is not None:
        web = replace(web, metrics_path=args.web_path)

    app = base.app
    if args.log_level is not None:
        app = replace(app, log_level=args.log_level)

    settings = Settings(nsq=nsq, web=web, app=app)
    settings.validate()
    return settings


def main(argv=None):
    """
    Run the exporter until interrupted.

    Returns:
        Process exit code (0 after a clean shutdown)
    """
    args = parse_args(argv)

    # Step 1: Merge flags over the environment and validate the result
    # Nothing has been bound yet, so a bad flag costs nothing but an exit code
    try:
        settings = build_settings(args)
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        return 2

    # Re-apply logging now that --log.level may have changed the level
    setup_logging(settings.app.log_level)

    logger.info("=" * 60)
    logger.info("Starting NSQ Exporter")
    logger.info(f"nsqd stats: {settings.nsq.stats_url}")
    logger.info(f"Environment: {settings.app.environment}")
    logger.info("=" * 60)

    # Step 2: Create the Flask application (collector, registry, routes)
    app = create_app(settings)
    host, port = settings.listen_host_port()

    # Step 3: Bind the listen address
    try:
        # make_server binds immediately, so a bad address fails here.
        # On EADDRINUSE werkzeug prints its own hint and calls sys.exit(1)
        server = make_server(host, port, app, threaded=True)
    except (OSError, SystemExit) as e:
        logger.critical(f"Failed to listen on {settings.web.listen_address}: {e!r}")
        return 1

    logger.info(f"Listening on {settings.web.listen_address}")
    logger.info(f"Metrics: http://{host}:{port}{settings.web.metrics_path}")

    # Step 4: Serve scrapes until interrupted
    # threaded=True gives every request its own thread, so a slow nsqd
    # stalls only the scrape waiting on it and /health keeps answering
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal (Ctrl+C)")
    finally:
        # Release the listening socket even if serving failed
        server.server_close()
        logger.info("Exporter shutdown complete")

    return 0


# Exit with main()'s status code when run as a script (python src/main.py)
if __name__ == "__main__":
    sys.exit(main())
