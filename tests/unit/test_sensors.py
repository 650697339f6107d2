"""Unit tests for the sensor framework."""

import pytest
from unittest.mock import Mock
from prometheus_client import CollectorRegistry
from prairie.sensors import (
    OperatorSensor,
    OUTCOME_DONE,
    OUTCOME_ERROR,
    PrometheusMonitor,
    SensorDelegate,
)


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def monitor(registry):
    return PrometheusMonitor(registry=registry)


class TestPrometheusMonitor:
    def test_reconcile_counted(self, monitor, registry):
        state = monitor.on_reconcile_start("home", "default", "create")
        monitor.on_reconcile_complete("home", "default", state, OUTCOME_DONE)

        labels = {
            "name": "home",
            "namespace": "default",
            "trigger_source": "create",
            "outcome": OUTCOME_DONE,
        }
        assert registry.get_sample_value("prairie_reconcile_total", labels) == 1
        assert (
            registry.get_sample_value("prairie_reconcile_duration_seconds_count", labels)
            == 1
        )

    def test_reconcile_error_counted(self, monitor, registry):
        state = monitor.on_reconcile_start("home", "default", "timer")
        monitor.on_reconcile_complete(
            "home", "default", state, OUTCOME_ERROR, RuntimeError("boom")
        )

        assert (
            registry.get_sample_value(
                "prairie_reconcile_errors_total",
                {"name": "home", "namespace": "default", "error_type": "RuntimeError"},
            )
            == 1
        )

    def test_resource_sync_failure(self, monitor, registry):
        state = monitor.on_resource_sync_start("home", "home", "default", "deployment")
        monitor.on_resource_sync_complete(
            "home", "home", "default", "deployment", state, "create", False, OSError()
        )

        assert (
            registry.get_sample_value(
                "prairie_resource_sync_total",
                {
                    "name": "home",
                    "namespace": "default",
                    "resource_type": "deployment",
                    "operation": "create",
                    "result": "failure",
                },
            )
            == 1
        )

    def test_status_update(self, monitor, registry):
        monitor.on_status_update("home", "default", 2)
        monitor.on_status_update("home", "default", 3)

        labels = {"name": "home", "namespace": "default"}
        assert registry.get_sample_value("prairie_status_updates_total", labels) == 2
        assert registry.get_sample_value("prairie_published_nodes", labels) == 3


class TestSensorDelegate:
    def test_empty_delegate(self):
        delegate = SensorDelegate()

        assert len(delegate) == 0
        assert delegate.on_reconcile_start("home", "default", "create") is None

    def test_fan_out_with_state(self):
        delegate = SensorDelegate()
        first, second = Mock(spec=OperatorSensor), Mock(spec=OperatorSensor)
        first.on_reconcile_start.return_value = {"a": 1}
        second.on_reconcile_start.return_value = None
        delegate.add(first)
        delegate.add(second)

        state = delegate.on_reconcile_start("home", "default", "create")
        delegate.on_reconcile_complete("home", "default", state, OUTCOME_DONE)

        first.on_reconcile_complete.assert_called_once_with(
            "home", "default", {"a": 1}, OUTCOME_DONE, None
        )
        second.on_reconcile_complete.assert_called_once_with(
            "home", "default", None, OUTCOME_DONE, None
        )

    def test_failing_sensor_does_not_raise(self):
        delegate = SensorDelegate()
        broken, healthy = Mock(spec=OperatorSensor), Mock(spec=OperatorSensor)
        broken.on_status_update.side_effect = RuntimeError("boom")
        broken.on_reconcile_start.side_effect = RuntimeError("boom")
        delegate.add(broken)
        delegate.add(healthy)

        delegate.on_reconcile_start("home", "default", "create")
        delegate.on_status_update("home", "default", 1)

        healthy.on_status_update.assert_called_once_with("home", "default", 1)

    def test_remove(self):
        delegate = SensorDelegate()
        sensor = Mock(spec=OperatorSensor)
        delegate.add(sensor)
        delegate.remove(sensor)

        assert len(delegate) == 0


@pytest.mark.asyncio
async def test_reconcile_reports_status_update(cluster, make_agent, sensor):
    backend = Mock(spec=OperatorSensor)
    sensor.add(backend)
    cluster.add_home_agent("home", size=1)
    cluster.add_deployment("home", replicas=1, ready=1)
    cluster.add_pod("home-a", "home", "10.0.0.1")

    await make_agent().reconcile()

    backend.on_status_update.assert_called_once_with("home", "default", 1)


@pytest.mark.asyncio
async def test_reconcile_reports_deployment_create(cluster, make_agent, sensor):
    backend = Mock(spec=OperatorSensor)
    sensor.add(backend)
    cluster.add_home_agent("home", size=1)

    await make_agent().reconcile()

    args = backend.on_resource_sync_complete.call_args.args
    assert args[:3] == ("home", "home", "default")
    assert args[5:7] == ("create", True)


def test_metrics_port_from_environment(monkeypatch):
    from prairie.sensors.server import metrics_port

    monkeypatch.setenv("METRICS_PORT", "9102")
    assert metrics_port() == 9102

    monkeypatch.delenv("METRICS_PORT")
    assert metrics_port() == 8000


class TestMetricsServer:
    def test_bind_failure_is_logged(self, monkeypatch, registry, caplog):
        import prairie.sensors.server as server

        monkeypatch.setattr(
            server, "start_http_server", Mock(side_effect=OSError("in use"))
        )

        assert server.start_metrics_server(9102, registry) is False
        assert "could not bind port 9102" in caplog.text

    def test_bind_success(self, monkeypatch, registry):
        import prairie.sensors.server as server

        start = Mock()
        monkeypatch.setattr(server, "start_http_server", start)

        assert server.start_metrics_server(9102, registry) is True
        start.assert_called_once_with(9102, registry=registry)

    def test_exporter_thread_survives_bind_failure(self, monkeypatch, registry):
        import prairie.sensors.server as server

        monkeypatch.setenv("METRICS_PORT", "9103")
        start = Mock(side_effect=OSError("in use"))
        monkeypatch.setattr(server, "start_http_server", start)

        thread = server.init_metrics_server(registry)
        thread.join(timeout=5)

        assert not thread.is_alive()
        start.assert_called_once_with(9103, registry=registry)
