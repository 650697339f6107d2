import kopf
import logging
import prairie.handlers.homeagent as homeagent
import prairie.handlers.probes as probes
from prairie.types.settings import Settings
from prairie.resources import HomeAgent
from prairie.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    HomeAgent.conf = memo.conf

    # Create a shared ApiClient for all resources to prevent connection leaks
    HomeAgent.shared_api_client = ApiClient()
    logger.info("Shared Kubernetes API client initialized")

    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    HomeAgent.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    # Bind failures are logged from the exporter thread; the operator keeps running
    init_metrics_server()

    logger.info(
        f"Requeue delay {memo.conf.requeue_delay_seconds}s, "
        f"agent image {memo.conf.home_agent_image}"
    )

    # Limit the number of concurrent workers to prevent flooding the API
    settings.batching.worker_limit = memo.conf.worker_limit

    # Post events to the Kubernetes API for logging >= Warning
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING

    # Keep kopf's bookkeeping out of the HomeAgent status, which the operator replaces
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=HomeAgent.GROUP_NAME
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=HomeAgent.GROUP_NAME
    )


@kopf.on.cleanup()
async def cleanup(logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    if HomeAgent.shared_api_client:
        await HomeAgent.shared_api_client.close()
        HomeAgent.shared_api_client = None
        logger.info("Shared API client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "homeagent",
    "probes",
]
