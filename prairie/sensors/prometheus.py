"""Prometheus monitoring backend for the Prairie operator.

PrometheusMonitor turns sensor events into metrics:

1. Reconciliation loop health - duration, outcome counts, errors
2. Kubernetes resource operations - counts, latency, errors
3. Status publishing - node address updates

All metrics carry name/namespace labels for per-HomeAgent analysis.
"""

from typing import Dict, Optional, Any
import time
import logging

from prometheus_client import CollectorRegistry, Counter, Histogram, Gauge, REGISTRY

from prairie.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the Prairie operator.

    Metrics are exposed via prometheus_client and scraped from the
    metrics server started in ``prairie.sensors.server``.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        super().__init__()

        self.reconcile_duration = Histogram(
            'prairie_reconcile_duration_seconds',
            'Time spent in a reconcile invocation',
            labelnames=['name', 'namespace', 'trigger_source', 'outcome'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'prairie_reconcile_total',
            'Total number of reconcile invocations',
            labelnames=['name', 'namespace', 'trigger_source', 'outcome'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'prairie_reconcile_errors_total',
            'Total number of reconcile invocations that raised',
            labelnames=['name', 'namespace', 'error_type'],
            registry=registry,
        )

        self.resource_sync_duration = Histogram(
            'prairie_resource_sync_duration_seconds',
            'Time spent mutating child resources',
            labelnames=['name', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'prairie_resource_sync_total',
            'Total number of child resource mutations',
            labelnames=['name', 'namespace', 'resource_type', 'operation', 'result'],
            registry=registry,
        )

        self.resource_sync_errors = Counter(
            'prairie_resource_sync_errors_total',
            'Total number of failed child resource mutations',
            labelnames=['name', 'namespace', 'resource_type', 'error_type'],
            registry=registry,
        )

        self.status_updates = Counter(
            'prairie_status_updates_total',
            'Total number of node address status updates',
            labelnames=['name', 'namespace'],
            registry=registry,
        )

        self.published_nodes = Gauge(
            'prairie_published_nodes',
            'Number of node addresses last published to status',
            labelnames=['name', 'namespace'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        outcome: str,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and outcome."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']

            self.reconcile_duration.labels(
                name=name,
                namespace=namespace,
                trigger_source=trigger_source,
                outcome=outcome,
            ).observe(duration)

            self.reconcile_total.labels(
                name=name,
                namespace=namespace,
                trigger_source=trigger_source,
                outcome=outcome,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                name=name,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {
            'start_time': time.time(),
            'resource_type': resource_type,
            'resource_name': resource_name,
        }

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource sync duration and result."""
        result = 'success' if success else 'failure'
        if state:
            duration = time.time() - state['start_time']
            self.resource_sync_duration.labels(
                name=name,
                namespace=namespace,
                resource_type=resource_type,
                operation=operation,
                result=result,
            ).observe(duration)

        self.resource_sync_total.labels(
            name=name,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
            result=result,
        ).inc()

        if error:
            self.resource_sync_errors.labels(
                name=name,
                namespace=namespace,
                resource_type=resource_type,
                error_type=error.__class__.__name__,
            ).inc()

    def on_status_update(self, name: str, namespace: str, node_count: int) -> None:
        self.status_updates.labels(name=name, namespace=namespace).inc()
        self.published_nodes.labels(name=name, namespace=namespace).set(node_count)
