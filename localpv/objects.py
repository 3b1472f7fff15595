"""StorageClass objects and their Kubernetes JSON form."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

API_VERSION = "storage.k8s.io/v1"
KIND = "StorageClass"
LIST_KIND = "StorageClassList"


def _mapping(data: Any, what: str) -> Mapping:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"invalid {what}: expected a mapping")
    return data


def _str_map(data: Any, what: str) -> dict[str, str]:
    return {str(k): str(v) for k, v in _mapping(data, what).items()}


def _seq(data: Any, what: str) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"invalid {what}: expected a list")
    return data


@dataclass
class ObjectMeta:
    """Name, labels and annotations of an object."""

    name: str = ""
    generate_name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.generate_name:
            out["generateName"] = self.generate_name
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "ObjectMeta":
        data = _mapping(data, "metadata")
        return cls(
            name=str(data.get("name") or ""),
            generate_name=str(data.get("generateName") or ""),
            labels=_str_map(data.get("labels"), "labels"),
            annotations=_str_map(data.get("annotations"), "annotations"),
        )


@dataclass
class TopologySelectorLabelRequirement:
    """A label key and the values it may take."""

    key: str = ""
    values: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"key": self.key, "values": list(self.values)}

    @classmethod
    def from_dict(cls, data: Any) -> "TopologySelectorLabelRequirement":
        data = _mapping(data, "label requirement")
        return cls(
            key=str(data.get("key") or ""),
            values=[str(v) for v in _seq(data.get("values"), "values")],
        )


@dataclass
class TopologySelectorTerm:
    """A set of label requirements that must all hold."""

    match_label_expressions: list[TopologySelectorLabelRequirement] = field(default_factory=list)

    def to_dict(self) -> dict:
        if not self.match_label_expressions:
            return {}
        return {"matchLabelExpressions": [r.to_dict() for r in self.match_label_expressions]}

    @classmethod
    def from_dict(cls, data: Any) -> "TopologySelectorTerm":
        data = _mapping(data, "topology selector term")
        return cls(
            match_label_expressions=[
                TopologySelectorLabelRequirement.from_dict(r)
                for r in _seq(data.get("matchLabelExpressions"), "matchLabelExpressions")
            ]
        )


@dataclass
class StorageClass:
    """A Kubernetes StorageClass."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    provisioner: str = ""
    parameters: dict[str, str] = field(default_factory=dict)
    reclaim_policy: str | None = None
    volume_binding_mode: str | None = None
    allowed_topologies: list[TopologySelectorTerm] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Return the object in the form the Kubernetes API accepts."""
        out: dict[str, Any] = {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "metadata": self.metadata.to_dict(),
            "provisioner": self.provisioner,
        }
        if self.parameters:
            out["parameters"] = dict(self.parameters)
        if self.reclaim_policy is not None:
            out["reclaimPolicy"] = self.reclaim_policy
        if self.volume_binding_mode is not None:
            out["volumeBindingMode"] = self.volume_binding_mode
        if self.allowed_topologies:
            out["allowedTopologies"] = [t.to_dict() for t in self.allowed_topologies]
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "StorageClass":
        """Build an object from its Kubernetes API form."""
        if not isinstance(data, Mapping):
            raise ValueError("invalid StorageClass: expected a mapping")
        reclaim = data.get("reclaimPolicy")
        binding = data.get("volumeBindingMode")
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            provisioner=str(data.get("provisioner") or ""),
            parameters=_str_map(data.get("parameters"), "parameters"),
            reclaim_policy=None if reclaim is None else str(reclaim),
            volume_binding_mode=None if binding is None else str(binding),
            allowed_topologies=[
                TopologySelectorTerm.from_dict(t)
                for t in _seq(data.get("allowedTopologies"), "allowedTopologies")
            ],
        )


@dataclass
class StorageClassList:
    """A list of StorageClasses."""

    items: list[StorageClass] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "apiVersion": API_VERSION,
            "kind": LIST_KIND,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StorageClassList":
        if not isinstance(data, Mapping):
            raise ValueError("invalid StorageClassList: expected a mapping")
        return cls(items=[StorageClass.from_dict(i) for i in _seq(data.get("items"), "items")])