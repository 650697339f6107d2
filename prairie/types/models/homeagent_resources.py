class HomeAgentResources:
    """Encapsulates the naming scheme used for the resources which the Prairie Operator manages
    for HomeAgent resources."""

    @classmethod
    def component_name(self, cluster_name: str):
        return cluster_name

    @classmethod
    def deployment_name(self, cluster_name: str):
        return cluster_name

    @classmethod
    def container_name(self, cluster_name: str):
        return "ha"
