import logging
from logging import Logger
from typing import Dict, List, Optional
from kubernetes_asyncio.client import (
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Capabilities,
    V1Container,
    V1Deployment,
    V1DeploymentSpec,
    V1LabelSelector,
    V1ObjectMeta,
    V1OwnerReference,
    V1Pod,
    V1PodSpec,
    V1PodTemplateSpec,
    V1SecurityContext,
)
from kubernetes_asyncio.client.api_client import ApiClient

from prairie.common.models.labels import Labels
from prairie.common.models.result import ReconcileResult
from prairie.resources.base import BaseResource
from prairie.sensors import SensorDelegate
from prairie.types.models import HomeAgentSpec, HomeAgentStatus, HomeAgentResources
from prairie.types.schemas import HomeAgentSpecSchema, HomeAgentStatusSchema
from prairie.types.settings import Settings

DEPLOYMENT_CREATED = "DeploymentCreated"
DEPLOYMENT_RESIZED = "DeploymentResized"
DEPLOYMENT_TERMINATING = "DeploymentTerminating"
DEPLOYMENT_NOT_MANAGED = "DeploymentNotManaged"
REPLICAS_NOT_READY = "ReplicasNotReady"
INSTANCES_PENDING = "InstancesPending"
ADDRESSES_PENDING = "AddressesPending"
STATUS_UPDATED = "StatusUpdated"
CONVERGED = "Converged"
CLEANED_UP = "CleanedUp"


class HomeAgent(BaseResource):
    """HomeAgent kubernetes resource.

    A HomeAgent declares the size of a pool of network-access agents. The
    operator runs the pool as a Deployment and publishes the address of every
    agent pod to ``status.nodeAddresses``.
    """

    logger: Logger
    conf: Settings = Settings()
    sensor: SensorDelegate = SensorDelegate()
    shared_api_client: ApiClient = None  # Shared across all HomeAgent instances

    KIND = "HomeAgent"
    GROUP_NAME = "prairie.kismi"
    GROUP_VERSION = "v1"
    PLURAL_NAME = "homeagents"
    NET_ADMIN_CAPABILITY = "NET_ADMIN"

    deployment_name: str
    container_name: str

    # CRD spec models
    spec: Optional[HomeAgentSpec] = None
    status: Optional[HomeAgentStatus] = None
    uid: Optional[str] = None

    # k8s resources
    _api_client: ApiClient = None
    _apps_v1_api: AppsV1Api = None
    _core_v1_api: CoreV1Api = None
    _custom_objects_api: CustomObjectsApi = None

    def __init__(
        self,
        name: str,
        namespace: str,
        labels: Optional[Dict[str, str]] = None,
        logger: Logger = None,
    ):
        component_name = HomeAgentResources.component_name(name)
        _labels = Labels.generate_default_labels(
            name,
            self.KIND,
            component_name,
            self.PRAIRIE_OPERATOR_NAME,
        )
        _labels.update(labels or {})
        super().__init__(
            cluster=name,
            namespace=namespace,
            component_name=component_name,
            labels=_labels,
        )
        self.logger = logger or logging.getLogger(__name__)
        self.deployment_name = HomeAgentResources.deployment_name(name)
        self.container_name = HomeAgentResources.container_name(name)

    @classmethod
    def from_identity(
        cls, name: str, namespace: str, logger: Logger = None
    ) -> "HomeAgent":
        """HomeAgent known only by name; its spec is read during reconcile."""
        return HomeAgent(name, namespace, logger=logger)

    @classmethod
    def from_spec(
        cls,
        name: str,
        namespace: str,
        spec: HomeAgentSpec,
        uid: str = None,
        logger: Logger = None,
    ) -> "HomeAgent":
        agent = HomeAgent(name, namespace, logger=logger)
        agent.spec = spec
        agent.uid = uid
        return agent

    @property
    def size(self) -> int:
        return self.spec.size

    @property
    def requeue_delay(self) -> float:
        return self.conf.requeue_delay_seconds

    # =============================================================================
    # Reconciliation
    # =============================================================================

    async def reconcile(self) -> ReconcileResult:
        """Move the pool one step closer to the declared size.

        Every call derives its decision from freshly read cluster state, so it
        is safe to call repeatedly. Kubernetes API failures are raised as-is.
        """
        self.logger.info("Reconcile sequence has started.")
        body = await self.fetch(self.cluster, self.namespace)
        if body is None:
            self.logger.info(f"HomeAgent `{self.cluster}` not found, cleaning up.")
            await self.cleanup()
            return ReconcileResult.finished(CLEANED_UP)

        self.load(body)

        deployment = await self.fetch_deployment(
            self.apps_v1_api, self.deployment_name, self.namespace
        )
        if deployment is None:
            await self.sync_create_deployment()
            self.logger.info("Deployment created, requeueing...")
            return ReconcileResult.requeue(self.requeue_delay, DEPLOYMENT_CREATED)

        if not self.owns(deployment):
            self.logger.warning(
                f"Deployment `{self.deployment_name}` is not managed by "
                f"{self.PRAIRIE_OPERATOR_NAME}, leaving it in place."
            )
            return ReconcileResult.requeue(
                self.conf.error_backoff_seconds, DEPLOYMENT_NOT_MANAGED
            )

        if deployment.metadata and deployment.metadata.deletion_timestamp:
            self.logger.info("Deployment is terminating, requeueing...")
            return ReconcileResult.requeue(self.requeue_delay, DEPLOYMENT_TERMINATING)

        if self.deployment_replicas(deployment) != self.size:
            await self.sync_replicas(deployment)
            return ReconcileResult.requeue(self.requeue_delay, DEPLOYMENT_RESIZED)

        if self.ready_replicas(deployment) < self.size:
            self.logger.info("Not every replica is ready, requeueing...")
            return ReconcileResult.requeue(self.requeue_delay, REPLICAS_NOT_READY)

        instances = await self.fetch_instances()
        if len(instances) != self.size:
            self.logger.info(
                f"Expected {self.size} instances, found {len(instances)}, requeueing..."
            )
            return ReconcileResult.requeue(self.requeue_delay, INSTANCES_PENDING)

        addresses = self.prepare_node_addresses(instances)
        if addresses is None:
            self.logger.info("Not every pod has ip, requeueing...")
            return ReconcileResult.requeue(self.requeue_delay, ADDRESSES_PENDING)

        if self.status.node_addresses == addresses:
            self.logger.debug("Node addresses are up to date.")
            return ReconcileResult.finished(CONVERGED)

        await self.update_status(body, addresses)
        self.logger.info("Reconcile sequence has successfully finished.")
        return ReconcileResult.finished(STATUS_UPDATED)

    def load(self, body: Dict):
        """Load spec and status models from a HomeAgent object."""
        self.spec = HomeAgentSpecSchema().load(body.get("spec") or {})
        self.status = HomeAgentStatusSchema().load(body.get("status") or {})
        self.uid = (body.get("metadata") or {}).get("uid")

    async def cleanup(self):
        """Delete the pool of a HomeAgent that no longer exists."""
        deployment = await self.fetch_deployment(
            self.apps_v1_api, self.deployment_name, self.namespace
        )
        if deployment is None:
            return

        if not self.owns(deployment):
            self.logger.warning(
                f"Deployment `{self.deployment_name}` is not managed by "
                f"{self.PRAIRIE_OPERATOR_NAME}, leaving it in place."
            )
            return

        deleted = await self._instrument(
            "delete",
            self.delete_deployment(
                self.apps_v1_api, self.deployment_name, self.namespace
            ),
        )
        if deleted:
            self.logger.info(f"Deployment `{self.deployment_name}` deleted.")

    async def sync_create_deployment(self):
        created = await self._instrument(
            "create",
            self.create_deployment(
                self.apps_v1_api, self.namespace, self.prepare_deployment()
            ),
        )
        if not created:
            # Another invocation won the race; the next pass sees its deployment.
            self.logger.info(f"Deployment `{self.deployment_name}` already exists.")

    async def sync_replicas(self, deployment: V1Deployment):
        self.logger.info(
            f"Resizing deployment `{self.deployment_name}` from "
            f"{self.deployment_replicas(deployment)} to {self.size} replicas."
        )
        await self._instrument(
            "patch",
            self.patch_deployment(
                self.apps_v1_api,
                self.deployment_name,
                self.namespace,
                deployment=self.prepare_replicas_patch(),
            ),
        )

    async def fetch(self, name: str, namespace: str) -> Optional[Dict]:
        """Fetch a HomeAgent object, None if it does not exist."""
        return await self.get_custom_object(
            self.custom_objects_api,
            namespace=namespace,
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=name,
        )

    async def fetch_instances(self) -> List[V1Pod]:
        """Live pods of the pool; terminating pods are left out."""
        pods = await self.list_pods(
            self.core_v1_api, self.namespace, self.labels.selector().as_dict()
        )
        instances = [
            pod
            for pod in (pods.items or [])
            if not (pod.metadata and pod.metadata.deletion_timestamp)
        ]
        if self.conf.sort_node_addresses:
            instances.sort(key=lambda pod: pod.metadata.name if pod.metadata else "")
        return instances

    async def update_status(self, body: Dict, addresses: List[str]):
        """Replace ``status.nodeAddresses`` through the status subresource."""
        status = dict(body.get("status") or {})
        status.update(
            HomeAgentStatusSchema().dump(HomeAgentStatus(node_addresses=addresses))
        )
        try:
            await self.replace_custom_object_status(
                self.custom_objects_api,
                namespace=self.namespace,
                group=self.GROUP_NAME,
                version=self.GROUP_VERSION,
                plural=self.PLURAL_NAME,
                name=self.cluster,
                body={**body, "status": status},
            )
        except Exception as ex:
            self.logger.error(f"HomeAgent status could not be updated: {ex}")
            raise
        self.status = HomeAgentStatus(node_addresses=addresses)
        self.sensor.on_status_update(self.cluster, self.namespace, len(addresses))

    async def _instrument(self, operation: str, coro):
        """Await a deployment mutation and report it to the sensors."""
        sensor_state = self.sensor.on_resource_sync_start(
            self.cluster, self.deployment_name, self.namespace, "deployment"
        )
        success, error = True, None
        try:
            return await coro
        except Exception as ex:
            success, error = False, ex
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.cluster,
                self.deployment_name,
                self.namespace,
                "deployment",
                sensor_state,
                operation,
                success,
                error,
            )

    # =============================================================================
    # Resource builders
    # =============================================================================

    def is_managed(self, labels: Labels) -> bool:
        return labels.contains(
            Labels().include_kubernetes_managed_by(self.PRAIRIE_OPERATOR_NAME)
        )

    def owns(self, deployment: V1Deployment) -> bool:
        """Whether the deployment belongs to this HomeAgent's pool."""
        labels = Labels((deployment.metadata and deployment.metadata.labels) or {})
        return labels.contains(self.labels.selector()) and self.is_managed(labels)

    def deployment_replicas(self, deployment: V1Deployment) -> int:
        # The API server defaults an unset replica count to 1.
        if deployment.spec is None or deployment.spec.replicas is None:
            return 1
        return deployment.spec.replicas

    def ready_replicas(self, deployment: V1Deployment) -> int:
        if deployment.status is None:
            return 0
        return deployment.status.ready_replicas or 0

    def prepare_node_addresses(self, instances: List[V1Pod]) -> Optional[List[str]]:
        """Addresses of all instances, None while any of them has none."""
        addresses = []
        for pod in instances:
            ip = pod.status.pod_ip if pod.status else None
            if not ip:
                return None
            addresses.append(ip)
        return addresses

    def prepare_owner_references(self) -> Optional[List[V1OwnerReference]]:
        if not self.uid:
            return None
        return [
            V1OwnerReference(
                api_version=f"{self.GROUP_NAME}/{self.GROUP_VERSION}",
                kind=self.KIND,
                name=self.cluster,
                uid=self.uid,
                controller=True,
                block_owner_deletion=True,
            )
        ]

    def prepare_container(self) -> V1Container:
        return V1Container(
            name=self.container_name,
            image=self.conf.home_agent_image,
            image_pull_policy=self.conf.home_agent_image_pull_policy,
            security_context=V1SecurityContext(
                capabilities=V1Capabilities(add=[self.NET_ADMIN_CAPABILITY])
            ),
        )

    def prepare_pod_template(self) -> V1PodTemplateSpec:
        """Build pod template resource."""
        return V1PodTemplateSpec(
            metadata=V1ObjectMeta(labels=self.labels.as_dict()),
            spec=V1PodSpec(containers=[self.prepare_container()]),
        )

    def prepare_deployment(self) -> V1Deployment:
        """Build deployment resource."""
        return V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=V1ObjectMeta(
                name=self.deployment_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                owner_references=self.prepare_owner_references(),
            ),
            spec=V1DeploymentSpec(
                replicas=self.size,
                selector=V1LabelSelector(
                    match_labels=self.labels.selector().as_dict()
                ),
                template=self.prepare_pod_template(),
            ),
        )

    def prepare_replicas_patch(self) -> Dict:
        return {"spec": {"replicas": self.size}}

    # =============================================================================
    # API clients
    # =============================================================================

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            # Use the shared API client if available, otherwise create a new one
            if self.shared_api_client is not None:
                self._api_client = self.shared_api_client
            else:
                self._api_client = ApiClient()
        return self._api_client

    @property
    def apps_v1_api(self) -> AppsV1Api:
        if self._apps_v1_api is None:
            self._apps_v1_api = AppsV1Api(self.api_client)
        return self._apps_v1_api

    @property
    def core_v1_api(self) -> CoreV1Api:
        if self._core_v1_api is None:
            self._core_v1_api = CoreV1Api(self.api_client)
        return self._core_v1_api

    @property
    def custom_objects_api(self) -> CustomObjectsApi:
        if self._custom_objects_api is None:
            self._custom_objects_api = CustomObjectsApi(self.api_client)
        return self._custom_objects_api
