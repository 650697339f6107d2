"""In-memory stand-ins for the kubernetes_asyncio APIs used by HomeAgent."""

import copy
import json
import datetime
import pytest
from typing import Dict, List, Optional, Tuple
from kubernetes_asyncio.client import (
    ApiException,
    V1Deployment,
    V1DeploymentStatus,
    V1ObjectMeta,
    V1Pod,
    V1PodList,
    V1PodStatus,
)
from prairie.common.models.labels import Labels
from prairie.resources import HomeAgent
from prairie.sensors import SensorDelegate
from prairie.types.models import HomeAgentSpec
from prairie.types.settings import Settings

NAMESPACE = "default"


def api_error(status: int, reason: str) -> ApiException:
    ex = ApiException(status=status, reason=reason)
    ex.body = json.dumps({"reason": reason, "message": f"{reason} ({status})"})
    return ex


class FakeCluster:
    """Objects keyed by (namespace, name) plus a log of mutating calls."""

    def __init__(self):
        self.home_agents: Dict[Tuple[str, str], Dict] = {}
        self.deployments: Dict[Tuple[str, str], V1Deployment] = {}
        self.pods: List[V1Pod] = []
        self.calls: List[Tuple[str, str]] = []
        self.errors: Dict[str, Exception] = {}
        self._resource_version = 0

    def fail(self, method: str, ex: Exception):
        self.errors[method] = ex

    def check(self, method: str):
        if method in self.errors:
            raise self.errors[method]

    def mutations(self, kind: str = None) -> List[Tuple[str, str]]:
        return [c for c in self.calls if kind is None or c[0] == kind]

    def next_resource_version(self) -> str:
        self._resource_version += 1
        return str(self._resource_version)

    def add_home_agent(
        self, name: str, size, namespace: str = NAMESPACE, status: Dict = None
    ) -> Dict:
        body = {
            "apiVersion": "prairie.kismi/v1",
            "kind": "HomeAgent",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": f"uid-{name}",
                "resourceVersion": self.next_resource_version(),
            },
            "spec": {"size": size},
        }
        if status is not None:
            body["status"] = status
        self.home_agents[(namespace, name)] = body
        return body

    def add_deployment(
        self,
        name: str,
        replicas: int,
        ready: Optional[int] = None,
        namespace: str = NAMESPACE,
        managed: bool = True,
    ) -> V1Deployment:
        agent = HomeAgent.from_spec(name, namespace, HomeAgentSpec(size=replicas))
        deployment = agent.prepare_deployment()
        if not managed:
            deployment.metadata.labels = {Labels.PARENT_LABEL: name}
        deployment.status = V1DeploymentStatus(ready_replicas=ready)
        self.deployments[(namespace, name)] = deployment
        return deployment

    def set_ready(self, name: str, ready: int, namespace: str = NAMESPACE):
        self.deployments[(namespace, name)].status = V1DeploymentStatus(
            ready_replicas=ready
        )

    def add_pod(
        self,
        name: str,
        parent: str,
        ip: Optional[str],
        namespace: str = NAMESPACE,
        terminating: bool = False,
    ) -> V1Pod:
        pod = V1Pod(
            metadata=V1ObjectMeta(
                name=name,
                namespace=namespace,
                labels={Labels.PARENT_LABEL: parent},
                deletion_timestamp=(
                    datetime.datetime.now(datetime.timezone.utc)
                    if terminating
                    else None
                ),
            ),
            status=V1PodStatus(pod_ip=ip),
        )
        self.pods.append(pod)
        return pod

    def node_addresses(self, name: str, namespace: str = NAMESPACE):
        body = self.home_agents[(namespace, name)]
        return (body.get("status") or {}).get("nodeAddresses")


class FakeAppsV1Api:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    async def read_namespaced_deployment(self, name, namespace):
        self.cluster.check("read_namespaced_deployment")
        try:
            return self.cluster.deployments[(namespace, name)]
        except KeyError:
            raise api_error(404, "NotFound")

    async def create_namespaced_deployment(self, namespace, body):
        self.cluster.check("create_namespaced_deployment")
        key = (namespace, body.metadata.name)
        if key in self.cluster.deployments:
            raise api_error(409, "AlreadyExists")
        self.cluster.calls.append(("create", body.metadata.name))
        self.cluster.deployments[key] = body
        return body

    async def patch_namespaced_deployment(self, name, namespace, body):
        self.cluster.check("patch_namespaced_deployment")
        deployment = self.cluster.deployments[(namespace, name)]
        self.cluster.calls.append(("patch", name))
        deployment.spec.replicas = body["spec"]["replicas"]
        return deployment

    async def delete_namespaced_deployment(self, name, namespace, body=None):
        self.cluster.check("delete_namespaced_deployment")
        if (namespace, name) not in self.cluster.deployments:
            raise api_error(404, "NotFound")
        self.cluster.calls.append(("delete", name))
        del self.cluster.deployments[(namespace, name)]


class FakeCoreV1Api:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    async def list_namespaced_pod(self, namespace, label_selector=None):
        self.cluster.check("list_namespaced_pod")
        selector = dict(
            item.split("=", 1) for item in (label_selector or "").split(",") if item
        )
        items = [
            pod
            for pod in self.cluster.pods
            if pod.metadata.namespace == namespace
            and Labels(pod.metadata.labels).contains(Labels(selector))
        ]
        return V1PodList(items=items)


class FakeCustomObjectsApi:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    async def get_namespaced_custom_object(
        self, group, version, namespace, plural, name
    ):
        self.cluster.check("get_namespaced_custom_object")
        try:
            return copy.deepcopy(self.cluster.home_agents[(namespace, name)])
        except KeyError:
            raise api_error(404, "NotFound")

    async def replace_namespaced_custom_object_status(
        self, group, version, namespace, plural, name, body
    ):
        self.cluster.check("replace_namespaced_custom_object_status")
        stored = self.cluster.home_agents[(namespace, name)]
        if body["metadata"]["resourceVersion"] != stored["metadata"]["resourceVersion"]:
            raise api_error(409, "Conflict")
        self.cluster.calls.append(("status", name))
        stored["status"] = copy.deepcopy(body["status"])
        stored["metadata"]["resourceVersion"] = self.cluster.next_resource_version()
        return copy.deepcopy(stored)


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def conf(monkeypatch):
    settings = Settings(requeue_delay_seconds=0.8, sort_node_addresses=True)
    monkeypatch.setattr(HomeAgent, "conf", settings)
    return settings


@pytest.fixture
def sensor(monkeypatch):
    delegate = SensorDelegate()
    monkeypatch.setattr(HomeAgent, "sensor", delegate)
    return delegate


@pytest.fixture
def make_agent(cluster, conf, sensor):
    """Build HomeAgent instances wired to the fake cluster."""

    def _make(name: str = "home", namespace: str = NAMESPACE) -> HomeAgent:
        agent = HomeAgent.from_identity(name, namespace)
        agent._apps_v1_api = FakeAppsV1Api(cluster)
        agent._core_v1_api = FakeCoreV1Api(cluster)
        agent._custom_objects_api = FakeCustomObjectsApi(cluster)
        return agent

    return _make


@pytest.fixture
def make_api_error():
    return api_error
