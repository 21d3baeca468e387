"""Prometheus collector for request-dispatch counters.

Exposes the counters a :class:`RequestDispatcher` keeps (requests,
re-authentications, dropped-connection retries, failures) without touching
the global registry; use :func:`create_registry` or register the collector
on a registry of your own.
"""

from collections.abc import Iterator

import structlog
from prometheus_client.core import CollectorRegistry, CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .connection import Connection

logger = structlog.get_logger(__name__)


class ConnectionCollector(Collector):
    """Yields dispatch counters and session state for one connection."""

    def __init__(self, connection: Connection, prefix: str = "clouddb"):
        """Initialize the collector.

        Args:
            connection: Connection whose dispatcher counters are exported.
            prefix: Metric name prefix.
        """
        self._connection = connection
        self._prefix = prefix

    def collect(self) -> Iterator[Metric]:
        """Collect metrics for a Prometheus scrape."""
        stats = self._connection.dispatcher.stats
        labels = ["region"]
        region = [self._connection.session.region.value]

        counters = (
            ("requests", "API requests dispatched", stats.requests),
            ("reauthentications", "re-authentications after token expiry", stats.reauthentications),
            ("transport_retries", "resends after dropped connections", stats.transport_retries),
            ("failures", "requests that failed in the dispatcher", stats.failures),
        )
        for name, description, value in counters:
            counter = CounterMetricFamily(
                f"{self._prefix}_{name}",
                f"clouddb {description}",
                labels=labels,
            )
            counter.add_metric(region, value)
            yield counter

        authenticated = GaugeMetricFamily(
            f"{self._prefix}_authenticated",
            "1 if the session holds a valid token",
            labels=labels,
        )
        authenticated.add_metric(region, 1 if self._connection.authenticated else 0)
        yield authenticated


def create_registry(connection: Connection, prefix: str = "clouddb") -> CollectorRegistry:
    """Create a registry (not the global one) holding a ConnectionCollector."""
    registry = CollectorRegistry()
    registry.register(ConnectionCollector(connection, prefix=prefix))
    logger.info("Registered collector", collector="connection", metric_prefix=prefix)
    return registry
