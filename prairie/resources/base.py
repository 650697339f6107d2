from typing import Dict, Optional
from prairie.common.models.labels import Labels
from prairie.utils.errors import already_exists_error, not_found_error
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1DeleteOptions,
    V1Deployment,
    V1PodList,
)


class BaseResource:
    """Base resource model.

    Wraps the Kubernetes API calls used by the operator. Reads return ``None``
    when the object does not exist; every other API failure propagates.
    """

    PRAIRIE_OPERATOR_NAME = "prairie-operator"

    _cluster: str
    _namespace: str
    _component_name: str
    _labels: Labels

    def __init__(
        self, cluster: str, namespace: str, component_name: str, labels: Labels
    ):
        self._cluster = cluster
        self._namespace = namespace
        self._component_name = component_name
        self._labels = labels

    @property
    def cluster(self) -> str:
        return self._cluster

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def component_name(self) -> str:
        return self._component_name

    @property
    def labels(self) -> Labels:
        return self._labels

    async def fetch_deployment(
        self, apps_v1_api: AppsV1Api, name: str, namespace: str
    ) -> Optional[V1Deployment]:
        """Retrieve the latest state of a deployment"""
        try:
            return await apps_v1_api.read_namespaced_deployment(
                name=name, namespace=namespace
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create_deployment(
        self, apps_v1_api: AppsV1Api, namespace: str, deployment: V1Deployment
    ) -> bool:
        """Create a deployment.

        Returns False when a deployment with the same name already exists.
        """
        try:
            await apps_v1_api.create_namespaced_deployment(
                namespace=namespace, body=deployment
            )
        except ApiException as ex:
            if already_exists_error(ex):
                return False
            raise
        return True

    async def patch_deployment(
        self, apps_v1_api: AppsV1Api, name: str, namespace: str, deployment: Dict
    ):
        await apps_v1_api.patch_namespaced_deployment(
            name=name, namespace=namespace, body=deployment
        )

    async def delete_deployment(
        self,
        apps_v1_api: AppsV1Api,
        name: str,
        namespace: str,
        delete_options: V1DeleteOptions = None,
    ) -> bool:
        """Delete a deployment.

        Returns False when the deployment was already gone.
        """
        try:
            await apps_v1_api.delete_namespaced_deployment(
                name=name, namespace=namespace, body=delete_options
            )
        except ApiException as ex:
            if not_found_error(ex):
                return False
            raise
        return True

    async def list_pods(
        self, core_v1_api: CoreV1Api, namespace: str, label_selector: Dict[str, str] = None
    ) -> V1PodList:
        """List pods in namespace, optionally filtered by label selector.

        Args:
            core_v1_api: CoreV1Api instance
            namespace: Namespace to list pods in
            label_selector: Dictionary of label key-value pairs to filter pods

        Returns:
            V1PodList object containing matching pods
        """
        label_selector_str = None
        if label_selector:
            label_selector_str = Labels(label_selector).as_str()

        return await core_v1_api.list_namespaced_pod(
            namespace=namespace, label_selector=label_selector_str
        )

    async def get_custom_object(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
    ) -> Optional[Dict]:
        try:
            return await custom_objects_api.get_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def replace_custom_object_status(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
        body: Dict,
    ):
        """Write through the status subresource only.

        ``body`` must carry the ``metadata.resourceVersion`` it was read at.
        """
        return await custom_objects_api.replace_namespaced_custom_object_status(
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
            body=body,
        )
