"""Typed views over decoded Kubernetes manifests."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from kubescore.domain import BothMeta, FileLocation, ObjectMeta, TypeMeta

_LEGACY_INGRESS_VERSIONS = frozenset({"extensions/v1beta1", "networking.k8s.io/v1beta1"})
_PDB_SPEC_FIELDS = ("minAvailable", "selector", "maxUnavailable", "unhealthyPodEvictionPolicy")


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dig(data: Any, *keys: str) -> dict[str, Any]:
    """Follow ``keys`` through nested mappings, treating missing levels as empty."""
    current = _mapping(data)
    for key in keys:
        current = _mapping(current.get(key))
    return current


@dataclass
class KubeObject:
    """A decoded manifest together with where it was found."""

    obj: dict[str, Any] = field(default_factory=dict)
    location: FileLocation = field(default_factory=FileLocation)

    def type_meta(self) -> TypeMeta:
        """The object's ``apiVersion`` and ``kind``."""
        return TypeMeta.from_dict(self.obj)

    def object_meta(self) -> ObjectMeta:
        """The object's ``metadata``."""
        return ObjectMeta.from_dict(_mapping(self.obj.get("metadata")))

    def both_meta(self) -> BothMeta:
        """Type and object metadata with the file location."""
        return BothMeta(
            type_meta=self.type_meta(),
            object_meta=self.object_meta(),
            file_location=self.location,
        )


@dataclass
class Workload(KubeObject):
    """An object that runs pods from ``spec.template``.

    Covers Deployments, StatefulSets, DaemonSets and Jobs of every API version.
    """

    def _template(self) -> dict[str, Any]:
        return _dig(self.obj, "spec", "template")

    def pod_template_spec(self) -> dict[str, Any]:
        """A copy of the pod template, placed in the object's namespace."""
        template = copy.deepcopy(self._template())
        metadata = _mapping(template.get("metadata"))
        metadata["namespace"] = self.object_meta().namespace
        template["metadata"] = metadata
        return template


@dataclass
class CronJob(Workload):
    """A CronJob, whose pod template sits inside its job template."""

    def _template(self) -> dict[str, Any]:
        return _dig(self.obj, "spec", "jobTemplate", "spec", "template")

    def starting_deadline_seconds(self) -> int | None:
        """``spec.startingDeadlineSeconds``, or None when unset."""
        return _dig(self.obj, "spec").get("startingDeadlineSeconds")


@dataclass
class Pod(KubeObject):
    """A bare Pod."""


@dataclass
class Service(KubeObject):
    """A Service."""


@dataclass
class NetworkPolicy(KubeObject):
    """A NetworkPolicy."""


def _convert_legacy_path(path: Any) -> dict[str, Any]:
    path = _mapping(path)
    backend = _mapping(path.get("backend"))
    raw_port = backend.get("servicePort")
    port: dict[str, Any] = {}
    if isinstance(raw_port, int) and not isinstance(raw_port, bool):
        port["number"] = raw_port
    elif isinstance(raw_port, str) and raw_port:
        port["name"] = raw_port
    converted: dict[str, Any] = {
        "backend": {
            "service": {"name": backend.get("serviceName") or "", "port": port},
        }
    }
    if path.get("path"):
        converted["path"] = path["path"]
    return converted


def _convert_legacy_rule(rule: Any) -> dict[str, Any]:
    rule = _mapping(rule)
    converted: dict[str, Any] = {"host": rule.get("host") or ""}
    http = rule.get("http")
    if http is not None:
        paths = _mapping(http).get("paths") or []
        converted["http"] = {"paths": [_convert_legacy_path(p) for p in paths]}
    return converted


@dataclass
class Ingress(KubeObject):
    """An Ingress of any supported API version."""

    def rules(self) -> list[dict[str, Any]]:
        """The ingress rules in ``networking.k8s.io/v1`` form."""
        raw_rules = _dig(self.obj, "spec").get("rules") or []
        if self.type_meta().api_version in _LEGACY_INGRESS_VERSIONS:
            return [_convert_legacy_rule(rule) for rule in raw_rules]
        return copy.deepcopy(list(raw_rules))


@dataclass(frozen=True)
class ObjectReference:
    """The object a HorizontalPodAutoscaler scales."""

    kind: str = ""
    name: str = ""
    api_version: str = ""


@dataclass
class HorizontalPodAutoscaler(KubeObject):
    """A HorizontalPodAutoscaler of any supported API version."""

    def target(self) -> ObjectReference:
        """``spec.scaleTargetRef``."""
        ref = _dig(self.obj, "spec", "scaleTargetRef")
        return ObjectReference(
            kind=ref.get("kind") or "",
            name=ref.get("name") or "",
            api_version=ref.get("apiVersion") or "",
        )


@dataclass
class PodDisruptionBudget(KubeObject):
    """A PodDisruptionBudget of any supported API version."""

    def selector(self) -> dict[str, Any] | None:
        """``spec.selector``, or None when unset."""
        value = _dig(self.obj, "spec").get("selector")
        return copy.deepcopy(value) if value is not None else None

    def spec(self) -> dict[str, Any]:
        """The budget's spec, reduced to the fields a policy/v1 spec knows."""
        raw = _dig(self.obj, "spec")
        return {key: copy.deepcopy(raw[key]) for key in _PDB_SPEC_FIELDS if raw.get(key) is not None}