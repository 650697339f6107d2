"""Prairie Operator Sensor Framework.

Hook-based instrumentation of operator lifecycle events.

- OperatorSensor: Base class defining lifecycle hooks
- SensorDelegate: Fan-out of events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter
"""

from prairie.sensors.base import (
    OperatorSensor,
    OUTCOME_DONE,
    OUTCOME_REQUEUE,
    OUTCOME_ERROR,
)
from prairie.sensors.delegate import SensorDelegate
from prairie.sensors.prometheus import PrometheusMonitor
from prairie.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
    'OUTCOME_DONE',
    'OUTCOME_REQUEUE',
    'OUTCOME_ERROR',
]
