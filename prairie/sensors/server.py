"""Prometheus scrape endpoint for the operator.

The exporter runs in a daemon thread next to kopf's event loop, listening on
METRICS_PORT (default 8000).
"""

import os
import logging
from threading import Thread
from prometheus_client import CollectorRegistry, REGISTRY, start_http_server

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 8000


def metrics_port() -> int:
    return int(os.environ.get("METRICS_PORT", DEFAULT_METRICS_PORT))


def start_metrics_server(
    port: int = DEFAULT_METRICS_PORT, registry: CollectorRegistry = REGISTRY
) -> bool:
    """Bind the exporter. A bind failure is logged and reported as False."""
    try:
        start_http_server(port, registry=registry)
    except OSError as e:
        logger.error(
            f"Metrics endpoint could not bind port {port}, "
            f"continuing without metrics: {e}"
        )
        return False
    logger.info(f"Serving HomeAgent metrics on :{port}/metrics")
    return True


def init_metrics_server(registry: CollectorRegistry = REGISTRY) -> Thread:
    """Start the exporter thread and return it."""
    port = metrics_port()
    thread = Thread(
        target=start_metrics_server,
        args=(port, registry),
        name="prairie-metrics",
        daemon=True,
    )
    thread.start()
    return thread
