from typing import Dict


class ResourceLabels:
    PRAIRIE_DOMAIN: str = "prairie.kismi/"

    PRAIRIE_KIND_LABEL = PRAIRIE_DOMAIN + "kind"

    PRAIRIE_NAME_LABEL = PRAIRIE_DOMAIN + "name"

    #: Selects the instances of a single HomeAgent pool
    PARENT_LABEL = "parent"


class Labels(ResourceLabels):
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_INSTANCE_LABEL = KUBERNETES_DOMAIN + "instance"

    KUBERNETES_PART_OF_LABEL = KUBERNETES_DOMAIN + "part-of"

    APPLICATION_NAME = "prairie"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels are dictionary."""
        return self._labels.copy()

    def as_str(self):
        """Return labels as comma separated string."""
        return ",".join([f"{k}={v}" for k, v in self._labels.items()])

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_parent(self, name: str) -> "Labels":
        return self.include(self.PARENT_LABEL, name)

    def include_prairie_kind(self, kind: str) -> "Labels":
        return self.include(self.PRAIRIE_KIND_LABEL, kind)

    def include_prairie_name(self, name: str) -> "Labels":
        return self.include(self.PRAIRIE_NAME_LABEL, name)

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_instance(self, instance_name: str) -> "Labels":
        return self.include(self.KUBERNETES_INSTANCE_LABEL, instance_name)

    def include_kubernetes_part_of(self, instance_name: str) -> "Labels":
        return self.include(
            self.KUBERNETES_PART_OF_LABEL,
            self.get_or_valid_instance_label_value(
                f"{self.APPLICATION_NAME}-{instance_name}"
            ),
        )

    def include_kubernetes_managed_by(self, operator_name: str) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, operator_name)

    def get_or_valid_instance_label_value(self, instance: str):
        """Trim the instance name into a valid label value:
        * (([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?
        * 63 characters max
        """
        if not instance:
            return ""
        value = instance[:63]
        return value.rstrip(".-_")

    def contains(self, other: "Labels"):
        """Returns True if all labels in `other` are contained."""
        return all(
            key in self._labels and self._labels[key] == value
            for key, value in other.as_dict().items()
        )

    def selector(self) -> "Labels":
        """Labels used to select the instances of a pool."""
        return Labels(
            {self.PARENT_LABEL: self._labels[self.PARENT_LABEL]}
            if self.PARENT_LABEL in self._labels
            else {}
        )

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def empty(cls) -> "Labels":
        return Labels({})

    @classmethod
    def generate_default_labels(
        cls,
        resource_name: str,
        resource_kind: str,
        component_name: str,
        managed_by: str,
    ) -> "Labels":
        labels = Labels()
        return (
            labels.include_parent(resource_name)
            .include_prairie_kind(resource_kind)
            .include_prairie_name(component_name)
            .include_kubernetes_name("home-agent")
            .include_kubernetes_instance(resource_name)
            .include_kubernetes_part_of(resource_name)
            .include_kubernetes_managed_by(managed_by)
        )
