"""Reading Kubernetes manifests into typed objects."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

import yaml

from kubescore.config import Configuration
from kubescore.domain import BothMeta, FileLocation
from kubescore.objects import (
    CronJob,
    HorizontalPodAutoscaler,
    Ingress,
    KubeObject,
    NetworkPolicy,
    Pod,
    PodDisruptionBudget,
    Service,
    Workload,
)

logger = logging.getLogger(__name__)

_HELM_SOURCE_PREFIX = "# Source: "
_DOCUMENT_SEPARATOR = "\n---\n"


class ParseError(Exception):
    """Raised when one or more manifests could not be read."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages = list(messages)
        super().__init__("\n".join(self.messages))


@dataclass
class NamedSource:
    """Manifest text together with the name it is reported under."""

    name: str
    content: str | bytes = ""


@dataclass
class ParsedObjects:
    """Every supported object found in the input, grouped by kind."""

    metas: list[BothMeta] = field(default_factory=list)
    pods: list[Pod] = field(default_factory=list)
    pod_specers: list[Workload] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)
    statefulsets: list[Workload] = field(default_factory=list)
    deployments: list[Workload] = field(default_factory=list)
    network_policies: list[NetworkPolicy] = field(default_factory=list)
    ingresses: list[Ingress] = field(default_factory=list)
    cronjobs: list[CronJob] = field(default_factory=list)
    pod_disruption_budgets: list[PodDisruptionBudget] = field(default_factory=list)
    horizontal_pod_autoscalers: list[HorizontalPodAutoscaler] = field(default_factory=list)

    def _add(self, obj: KubeObject, targets: Iterable[str]) -> None:
        for target in targets:
            getattr(self, target).append(obj)
        self.metas.append(obj.both_meta())


def empty() -> ParsedObjects:
    """An empty set of parsed objects."""
    return ParsedObjects()


def detect_file_location(file_name: str, file_offset: int, contents: str | bytes) -> FileLocation:
    """Locate a document, preferring a Helm ``# Source:`` header when present."""
    if isinstance(contents, bytes):
        contents = contents.decode("utf-8", errors="replace")
    first_row = contents.split("\n", 1)[0]
    if first_row.startswith(_HELM_SOURCE_PREFIX):
        # Helm output loses the original line numbers.
        return FileLocation(name=first_row[len(_HELM_SOURCE_PREFIX):], line=1)
    return FileLocation(name=file_name, line=file_offset)


# --- structural validation -------------------------------------------------


class _DecodeError(Exception):
    pass


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class _Scalar:
    label: str
    accepts: Callable[[Any], bool]


@dataclass(frozen=True)
class _List:
    item: Any


@dataclass(frozen=True)
class _Map:
    value: Any


@dataclass(frozen=True)
class _Struct:
    name: str
    fields: Mapping[str, Any]


_STRING = _Scalar("string", lambda v: isinstance(v, str))
_BOOL = _Scalar("bool", lambda v: isinstance(v, bool))
_INT32 = _Scalar("int32", lambda v: _is_int(v) and -(2**31) <= v < 2**31)
_INT64 = _Scalar("int64", lambda v: _is_int(v) and -(2**63) <= v < 2**63)
_INT_OR_STRING = _Scalar(
    "IntOrString", lambda v: isinstance(v, str) or (_is_int(v) and -(2**31) <= v < 2**31)
)
_STRING_MAP = _Map(_STRING)
_STRING_LIST = _List(_STRING)

_OBJECT_META = _Struct(
    "ObjectMeta",
    {
        "name": _STRING,
        "generateName": _STRING,
        "namespace": _STRING,
        "labels": _STRING_MAP,
        "annotations": _STRING_MAP,
    },
)
_LABEL_SELECTOR = _Struct(
    "LabelSelector",
    {
        "matchLabels": _STRING_MAP,
        "matchExpressions": _List(
            _Struct(
                "LabelSelectorRequirement",
                {"key": _STRING, "operator": _STRING, "values": _STRING_LIST},
            )
        ),
    },
)
_CONTAINER = _Struct(
    "Container",
    {
        "name": _STRING,
        "image": _STRING,
        "imagePullPolicy": _STRING,
        "command": _STRING_LIST,
        "args": _STRING_LIST,
        "ports": _List(
            _Struct(
                "ContainerPort",
                {
                    "name": _STRING,
                    "containerPort": _INT32,
                    "hostPort": _INT32,
                    "protocol": _STRING,
                },
            )
        ),
    },
)
_POD_SPEC = _Struct(
    "PodSpec",
    {
        "containers": _List(_CONTAINER),
        "initContainers": _List(_CONTAINER),
        "serviceAccountName": _STRING,
        "priorityClassName": _STRING,
        "hostNetwork": _BOOL,
        "hostPID": _BOOL,
        "hostIPC": _BOOL,
        "nodeSelector": _STRING_MAP,
        "terminationGracePeriodSeconds": _INT64,
    },
)
_POD_TEMPLATE = _Struct("PodTemplateSpec", {"metadata": _OBJECT_META, "spec": _POD_SPEC})
_JOB_SPEC = _Struct(
    "JobSpec",
    {
        "parallelism": _INT32,
        "completions": _INT32,
        "backoffLimit": _INT32,
        "activeDeadlineSeconds": _INT64,
        "selector": _LABEL_SELECTOR,
        "template": _POD_TEMPLATE,
    },
)
_DEPLOYMENT_SPEC = _Struct(
    "DeploymentSpec",
    {
        "replicas": _INT32,
        "selector": _LABEL_SELECTOR,
        "template": _POD_TEMPLATE,
        "minReadySeconds": _INT32,
        "revisionHistoryLimit": _INT32,
        "paused": _BOOL,
    },
)
_STATEFULSET_SPEC = _Struct(
    "StatefulSetSpec",
    {
        "replicas": _INT32,
        "selector": _LABEL_SELECTOR,
        "template": _POD_TEMPLATE,
        "serviceName": _STRING,
        "podManagementPolicy": _STRING,
    },
)
_DAEMONSET_SPEC = _Struct(
    "DaemonSetSpec",
    {"selector": _LABEL_SELECTOR, "template": _POD_TEMPLATE, "minReadySeconds": _INT32},
)
_CRONJOB_SPEC = _Struct(
    "CronJobSpec",
    {
        "schedule": _STRING,
        "startingDeadlineSeconds": _INT64,
        "concurrencyPolicy": _STRING,
        "suspend": _BOOL,
        "successfulJobsHistoryLimit": _INT32,
        "failedJobsHistoryLimit": _INT32,
        "jobTemplate": _Struct("JobTemplateSpec", {"metadata": _OBJECT_META, "spec": _JOB_SPEC}),
    },
)
_SERVICE_SPEC = _Struct(
    "ServiceSpec",
    {
        "type": _STRING,
        "clusterIP": _STRING,
        "selector": _STRING_MAP,
        "ports": _List(
            _Struct(
                "ServicePort",
                {
                    "name": _STRING,
                    "protocol": _STRING,
                    "port": _INT32,
                    "targetPort": _INT_OR_STRING,
                    "nodePort": _INT32,
                },
            )
        ),
    },
)
_NETWORK_POLICY_SPEC = _Struct(
    "NetworkPolicySpec", {"podSelector": _LABEL_SELECTOR, "policyTypes": _STRING_LIST}
)
_PDB_SPEC = _Struct(
    "PodDisruptionBudgetSpec",
    {
        "minAvailable": _INT_OR_STRING,
        "maxUnavailable": _INT_OR_STRING,
        "selector": _LABEL_SELECTOR,
        "unhealthyPodEvictionPolicy": _STRING,
    },
)
_INGRESS_SPEC = _Struct(
    "IngressSpec",
    {"ingressClassName": _STRING, "rules": _List(_Struct("IngressRule", {"host": _STRING}))},
)
_HPA_SPEC = _Struct(
    "HorizontalPodAutoscalerSpec",
    {
        "scaleTargetRef": _Struct(
            "CrossVersionObjectReference",
            {"kind": _STRING, "name": _STRING, "apiVersion": _STRING},
        ),
        "minReplicas": _INT32,
        "maxReplicas": _INT32,
    },
)
_LIST = _Struct(
    "List",
    {"apiVersion": _STRING, "kind": _STRING, "items": _List(_Struct("RawExtension", {}))},
)


def _top(kind: str, spec: _Struct) -> _Struct:
    return _Struct(
        kind,
        {"apiVersion": _STRING, "kind": _STRING, "metadata": _OBJECT_META, "spec": spec},
    )


def _json_kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def _type_label(schema: Any) -> str:
    if isinstance(schema, _Scalar):
        return schema.label
    if isinstance(schema, _Struct):
        return schema.name
    if isinstance(schema, _List):
        return "[]" + _type_label(schema.item)
    return "map[string]" + _type_label(schema.value)


def _validate(value: Any, schema: Any, owner: str, path: str) -> None:
    if value is None:
        return
    if isinstance(schema, _Scalar):
        valid = schema.accepts(value)
    elif isinstance(schema, _List):
        valid = isinstance(value, list)
    else:
        valid = isinstance(value, dict)
    if not valid:
        raise _DecodeError(
            f"cannot unmarshal {_json_kind(value)} into field {owner}.{path} "
            f"of type {_type_label(schema)}"
        )
    if isinstance(schema, _List):
        for item in value:
            _validate(item, schema.item, owner, path)
    elif isinstance(schema, _Map):
        for item in value.values():
            _validate(item, schema.value, owner, path)
    elif isinstance(schema, _Struct):
        _validate_fields(value, schema, path)


def _validate_fields(value: Mapping[str, Any], schema: _Struct, path: str) -> None:
    for key, sub in schema.fields.items():
        if key in value:
            _validate(value[key], sub, schema.name, f"{path}.{key}" if path else key)


# --- kind registry ------------------------------------------------------------


@dataclass(frozen=True)
class _Kind:
    schema: _Struct
    factory: type[KubeObject]
    targets: tuple[str, ...]


_POD_SPECERS = ("pod_specers",)
_KINDS: dict[tuple[str, str], _Kind] = {
    ("v1", "Pod"): _Kind(_top("Pod", _POD_SPEC), Pod, ("pods",)),
    ("batch/v1", "Job"): _Kind(_top("Job", _JOB_SPEC), Workload, _POD_SPECERS),
    ("batch/v1beta1", "CronJob"): _Kind(
        _top("CronJob", _CRONJOB_SPEC), CronJob, ("pod_specers", "cronjobs")
    ),
    ("batch/v1", "CronJob"): _Kind(
        _top("CronJob", _CRONJOB_SPEC), CronJob, ("pod_specers", "cronjobs")
    ),
    ("apps/v1", "Deployment"): _Kind(
        _top("Deployment", _DEPLOYMENT_SPEC), Workload, ("pod_specers", "deployments")
    ),
    ("apps/v1beta1", "Deployment"): _Kind(
        _top("Deployment", _DEPLOYMENT_SPEC), Workload, _POD_SPECERS
    ),
    ("apps/v1beta2", "Deployment"): _Kind(
        _top("Deployment", _DEPLOYMENT_SPEC), Workload, _POD_SPECERS
    ),
    ("extensions/v1beta1", "Deployment"): _Kind(
        _top("Deployment", _DEPLOYMENT_SPEC), Workload, _POD_SPECERS
    ),
    ("apps/v1", "StatefulSet"): _Kind(
        _top("StatefulSet", _STATEFULSET_SPEC), Workload, ("pod_specers", "statefulsets")
    ),
    ("apps/v1beta1", "StatefulSet"): _Kind(
        _top("StatefulSet", _STATEFULSET_SPEC), Workload, _POD_SPECERS
    ),
    ("apps/v1beta2", "StatefulSet"): _Kind(
        _top("StatefulSet", _STATEFULSET_SPEC), Workload, _POD_SPECERS
    ),
    ("apps/v1", "DaemonSet"): _Kind(_top("DaemonSet", _DAEMONSET_SPEC), Workload, _POD_SPECERS),
    ("apps/v1beta2", "DaemonSet"): _Kind(
        _top("DaemonSet", _DAEMONSET_SPEC), Workload, _POD_SPECERS
    ),
    ("extensions/v1beta1", "DaemonSet"): _Kind(
        _top("DaemonSet", _DAEMONSET_SPEC), Workload, _POD_SPECERS
    ),
    ("networking.k8s.io/v1", "NetworkPolicy"): _Kind(
        _top("NetworkPolicy", _NETWORK_POLICY_SPEC), NetworkPolicy, ("network_policies",)
    ),
    ("v1", "Service"): _Kind(_top("Service", _SERVICE_SPEC), Service, ("services",)),
    ("policy/v1beta1", "PodDisruptionBudget"): _Kind(
        _top("PodDisruptionBudget", _PDB_SPEC), PodDisruptionBudget, ("pod_disruption_budgets",)
    ),
    ("policy/v1", "PodDisruptionBudget"): _Kind(
        _top("PodDisruptionBudget", _PDB_SPEC), PodDisruptionBudget, ("pod_disruption_budgets",)
    ),
    ("extensions/v1beta1", "Ingress"): _Kind(
        _top("Ingress", _INGRESS_SPEC), Ingress, ("ingresses",)
    ),
    ("networking.k8s.io/v1beta1", "Ingress"): _Kind(
        _top("Ingress", _INGRESS_SPEC), Ingress, ("ingresses",)
    ),
    ("networking.k8s.io/v1", "Ingress"): _Kind(
        _top("Ingress", _INGRESS_SPEC), Ingress, ("ingresses",)
    ),
    ("autoscaling/v1", "HorizontalPodAutoscaler"): _Kind(
        _top("HorizontalPodAutoscaler", _HPA_SPEC),
        HorizontalPodAutoscaler,
        ("horizontal_pod_autoscalers",),
    ),
    ("autoscaling/v2beta1", "HorizontalPodAutoscaler"): _Kind(
        _top("HorizontalPodAutoscaler", _HPA_SPEC),
        HorizontalPodAutoscaler,
        ("horizontal_pod_autoscalers",),
    ),
    ("autoscaling/v2beta2", "HorizontalPodAutoscaler"): _Kind(
        _top("HorizontalPodAutoscaler", _HPA_SPEC),
        HorizontalPodAutoscaler,
        ("horizontal_pod_autoscalers",),
    ),
}


def _group_version_kind(api_version: str, kind: str) -> str:
    group, _, version = api_version.rpartition("/")
    return f"{group}/{version}, Kind={kind}"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _read_source(source: Any) -> tuple[str, str]:
    if isinstance(source, NamedSource):
        name, data = source.name, source.content
    else:
        name, data = _as_text(getattr(source, "name", "")), source.read()
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return name, data


class Parser:
    """Splits manifest files into documents and decodes the supported kinds."""

    def parse_files(self, config: Configuration) -> ParsedObjects:
        """Read every file in ``config.all_files`` and collect its objects."""
        objects = ParsedObjects()
        for source in config.all_files:
            name, text = _read_source(source)
            text = text.replace("\r\n", "\n")
            offset = 1  # line numbers are 1-indexed
            if text.startswith("---\n"):
                text = text[4:]
                offset = 2
            for document in text.split(_DOCUMENT_SEPARATOR):
                if document.strip():
                    self.parse_document(config, objects, name, offset, document)
                offset += 2 + document.count("\n")
        return objects

    def parse_document(
        self,
        config: Configuration,
        objects: ParsedObjects,
        file_name: str,
        offset: int,
        raw: str,
    ) -> None:
        """Decode one YAML document, starting at line ``offset``, into ``objects``."""
        try:
            doc = next(iter(yaml.safe_load_all(raw)), None)
        except yaml.YAMLError as exc:
            raise ParseError([f"yaml: {exc}"]) from exc
        self._decode(config, objects, file_name, offset, doc, raw)

    def _decode(
        self,
        config: Configuration,
        objects: ParsedObjects,
        file_name: str,
        offset: int,
        doc: Any,
        raw: str,
    ) -> None:
        if doc is None:
            api_version, kind = "", ""
        elif isinstance(doc, dict):
            api_version = _as_text(doc.get("apiVersion"))
            kind = _as_text(doc.get("kind"))
        else:
            raise ParseError([f"yaml: cannot unmarshal {_json_kind(doc)} into a manifest"])

        if (api_version, kind) == ("v1", "List"):
            self._check(doc, _LIST, api_version, kind)
            for item in doc.get("items") or []:
                self._decode(config, objects, file_name, offset, item, "")
            return

        registered = _KINDS.get((api_version, kind))
        if registered is None:
            if config.verbose_output > 1:
                logger.warning("Unknown datatype: %s", _group_version_kind(api_version, kind))
            return

        location = detect_file_location(file_name, offset, raw)
        self._check(doc, registered.schema, api_version, kind)
        obj = registered.factory(obj=doc, location=location)
        objects._add(obj, registered.targets)

    @staticmethod
    def _check(doc: Mapping[str, Any], schema: _Struct, api_version: str, kind: str) -> None:
        try:
            _validate_fields(doc, schema, "")
        except _DecodeError as exc:
            gvk = _group_version_kind(api_version, kind)
            raise ParseError([f"Failed to parse {gvk}: err={exc}"]) from None