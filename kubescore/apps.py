"""Checks for Deployments and StatefulSets."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from kubescore.checks import Checks
from kubescore.domain import Grade, TestScore
from kubescore.objects import HorizontalPodAutoscaler, KubeObject

APPROVED_TOPOLOGY_KEYS = frozenset(
    {
        "kubernetes.io/hostname",
        "topology.kubernetes.io/region",
        "topology.kubernetes.io/zone",
        # Deprecated in Kubernetes v1.17
        "failure-domain.beta.kubernetes.io/region",
        "failure-domain.beta.kubernetes.io/zone",
    }
)

_NAME = re.compile(r"([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]")
_DNS_SUBDOMAIN = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*")
_OPERATORS = {"In", "NotIn", "Exists", "DoesNotExist"}

_ANTI_AFFINITY_COMMENT = (
    "Makes sure that a podAntiAffinity has been set that prevents multiple pods from being "
    "scheduled on the same node. https://kubernetes.io/docs/concepts/configuration/assign-pod-node/"
)
_SELECTOR_COMMENT = "Ensure the StatefulSet selector labels match the template metadata labels."


def _manifest(value: Any) -> dict[str, Any]:
    if isinstance(value, KubeObject):
        return value.obj
    return value if isinstance(value, dict) else {}


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dig(data: Any, *keys: str) -> dict[str, Any]:
    current = _mapping(data)
    for key in keys:
        current = _mapping(current.get(key))
    return current


def _string_map(value: Any) -> dict[str, str]:
    return {str(k): str(v) for k, v in _mapping(value).items()}


def _template_labels(manifest: Mapping[str, Any]) -> dict[str, str]:
    return _string_map(_dig(manifest, "spec", "template", "metadata").get("labels"))


# --- label selectors -----------------------------------------------------------


def _validate_key(key: str) -> None:
    prefix, sep, name = key.rpartition("/")
    if sep and (not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN.fullmatch(prefix)):
        raise ValueError(f"key: Invalid value: {key!r}: prefix part must be a DNS-1123 subdomain")
    if not name or len(name) > 63 or not _NAME.fullmatch(name):
        raise ValueError(f"key: Invalid value: {key!r}: name part must be a valid qualified name")


def _validate_value(value: str) -> None:
    if value and (len(value) > 63 or not _NAME.fullmatch(value)):
        raise ValueError(f"values[0][{value}]: Invalid value: {value!r}: not a valid label value")


def _requirement(key: str, operator: str, values: list[str]) -> Callable[[Mapping[str, str]], bool]:
    _validate_key(key)
    if operator in ("In", "NotIn"):
        if not values:
            raise ValueError("for 'in', 'notin' operators, values set can't be empty")
    elif values:
        raise ValueError("values set must be empty for exists and does not exist")
    for value in values:
        _validate_value(value)

    allowed = frozenset(values)
    if operator == "In":
        return lambda labels: key in labels and labels[key] in allowed
    if operator == "NotIn":
        return lambda labels: key not in labels or labels[key] not in allowed
    if operator == "Exists":
        return lambda labels: key in labels
    return lambda labels: key not in labels


def label_selector_matches(selector: Mapping[str, Any] | None, labels: Mapping[str, str]) -> bool:
    """Evaluate a LabelSelector against ``labels``.

    A missing selector matches nothing and an empty one matches everything.
    Raises ValueError if the selector is invalid.
    """
    if selector is None:
        return False
    match_labels = _string_map(selector.get("matchLabels"))
    expressions = selector.get("matchExpressions") or []
    if not match_labels and not expressions:
        return True

    requirements = [_requirement(k, "In", [v]) for k, v in match_labels.items()]
    for expression in expressions:
        expression = _mapping(expression)
        operator = str(expression.get("operator") or "")
        if operator not in _OPERATORS:
            raise ValueError(f'"{operator}" is not a valid label selector operator')
        values = [str(v) for v in expression.get("values") or []]
        requirements.append(_requirement(str(expression.get("key") or ""), operator, values))

    return all(requirement(labels) for requirement in requirements)


def _map_selector_matches(selector: Mapping[str, str], labels: Mapping[str, str]) -> bool:
    if not selector:
        return False
    return all(k in labels and labels[k] == v for k, v in selector.items())


# --- checks ------------------------------------------------------------------


def register(
    checks: Checks,
    all_hpas: Iterable[HorizontalPodAutoscaler],
    all_services: Iterable[Any],
) -> None:
    """Add the Deployment and StatefulSet checks to ``checks``."""
    checks.register(
        "Deployment", "Deployment has host PodAntiAffinity", _ANTI_AFFINITY_COMMENT,
        deployment_has_anti_affinity,
    )
    checks.register(
        "StatefulSet", "StatefulSet has host PodAntiAffinity", _ANTI_AFFINITY_COMMENT,
        statefulset_has_anti_affinity,
    )
    checks.register(
        "Deployment",
        "Deployment targeted by HPA does not have replicas configured",
        "Makes sure that Deployments using a HorizontalPodAutoscaler doesn't have a statically "
        "configured replica count set",
        hpa_deployment_no_replicas(all_hpas),
    )
    checks.register(
        "StatefulSet",
        "StatefulSet has ServiceName",
        "Makes sure that StatefulSets have an existing headless serviceName.",
        statefulset_has_service_name(all_services),
    )
    checks.register(
        "Deployment",
        "Deployment Pod Selector labels match template metadata labels",
        _SELECTOR_COMMENT,
        deployment_selector_labels_matching,
    )
    checks.register(
        "StatefulSet",
        "StatefulSet Pod Selector labels match template metadata labels",
        _SELECTOR_COMMENT,
        statefulset_selector_labels_matching,
    )


def hpa_deployment_no_replicas(
    all_hpas: Iterable[HorizontalPodAutoscaler],
) -> Callable[[Any], TestScore]:
    """Build a check that flags static replicas on HPA-managed Deployments."""
    hpas = list(all_hpas)

    def check(deployment: Any) -> TestScore:
        manifest = _manifest(deployment)
        meta = _mapping(manifest.get("metadata"))
        namespace = meta.get("namespace") or ""
        name = meta.get("name") or ""
        kind = str(manifest.get("kind") or "")
        score = TestScore()

        for hpa in hpas:
            target = hpa.target()
            if (
                hpa.object_meta().namespace == namespace
                and target.kind.casefold() == kind.casefold()
                and target.name == name
            ):
                if _dig(manifest, "spec").get("replicas") is None:
                    score.grade = Grade.ALL_OK
                    return score
                score.grade = Grade.CRITICAL
                score.add_comment(
                    "",
                    "The deployment is targeted by a HPA, but a static replica count is "
                    "configured in the DeploymentSpec",
                    "When replicas are both statically set and managed by the HPA, the replicas "
                    "will be changed to the statically configured count when the spec is "
                    "applied, even if the HPA wants the replica count to be higher.",
                )
                return score

        score.grade = Grade.ALL_OK
        score.skipped = True
        score.add_comment(
            "", "Skipped because the deployment is not targeted by a HorizontalPodAutoscaler", ""
        )
        return score

    return check


def _anti_affinity_check(workload: Any, noun: str, title: str) -> TestScore:
    manifest = _manifest(workload)
    score = TestScore()

    # Without an explicit replica count an HPA may be in use, so still check.
    replicas = _dig(manifest, "spec").get("replicas")
    if replicas is not None and replicas < 2:
        score.skipped = True
        score.add_comment("", f"Skipped because the {noun} has less than 2 replicas", "")
        return score

    affinity = _dig(manifest, "spec", "template", "spec").get("affinity")
    if (
        isinstance(affinity, dict)
        and affinity.get("podAntiAffinity") is not None
        and has_pod_anti_affinity(_template_labels(manifest), affinity)
    ):
        score.grade = Grade.ALL_OK
        return score

    score.grade = Grade.WARNING
    score.add_comment(
        "",
        f"{title} does not have a host podAntiAffinity set",
        f"It's recommended to set a podAntiAffinity that stops multiple pods from a {noun} from "
        "being scheduled on the same node. This increases availability in case the node becomes "
        "unavailable.",
    )
    return score


def deployment_has_anti_affinity(deployment: Any) -> TestScore:
    """Warn when a replicated Deployment lacks a host podAntiAffinity."""
    return _anti_affinity_check(deployment, "deployment", "Deployment")


def statefulset_has_anti_affinity(statefulset: Any) -> TestScore:
    """Warn when a replicated StatefulSet lacks a host podAntiAffinity."""
    return _anti_affinity_check(statefulset, "statefulset", "StatefulSet")


def _term_matches(term: Any, labels: Mapping[str, str]) -> bool:
    term = _mapping(term)
    if term.get("topologyKey") not in APPROVED_TOPOLOGY_KEYS:
        return False
    try:
        return label_selector_matches(term.get("labelSelector"), labels)
    except ValueError:
        return False


def has_pod_anti_affinity(labels: Mapping[str, str], affinity: Mapping[str, Any]) -> bool:
    """True if an anti-affinity term on an approved topology key selects ``labels``."""
    anti = _mapping(affinity.get("podAntiAffinity"))
    preferred = anti.get("preferredDuringSchedulingIgnoredDuringExecution") or []
    required = anti.get("requiredDuringSchedulingIgnoredDuringExecution") or []
    return any(
        _term_matches(_mapping(p).get("podAffinityTerm"), labels) for p in preferred
    ) or any(_term_matches(r, labels) for r in required)


def statefulset_has_service_name(all_services: Iterable[Any]) -> Callable[[Any], TestScore]:
    """Build a check requiring a matching headless Service for each StatefulSet."""
    services = [_manifest(s) for s in all_services]

    def check(statefulset: Any) -> TestScore:
        manifest = _manifest(statefulset)
        namespace = _mapping(manifest.get("metadata")).get("namespace") or ""
        service_name = _dig(manifest, "spec").get("serviceName") or ""
        labels = _template_labels(manifest)
        score = TestScore()

        for service in services:
            meta = _mapping(service.get("metadata"))
            spec = _mapping(service.get("spec"))
            if (
                (meta.get("namespace") or "") != namespace
                or (meta.get("name") or "") != service_name
                or spec.get("clusterIP") != "None"
            ):
                continue
            if _map_selector_matches(_string_map(spec.get("selector")), labels):
                score.grade = Grade.ALL_OK
                return score

        score.grade = Grade.CRITICAL
        score.add_comment(
            "",
            "StatefulSet does not have a valid serviceName",
            "StatefulSets currently require a Headless Service to be responsible for the network "
            "identity of the Pods. You are responsible for creating this Service. "
            "https://kubernetes.io/docs/concepts/workloads/controllers/statefulset/#limitations",
        )
        return score

    return check


def _selector_check(workload: Any, title: str, plural: str, doc_url: str) -> TestScore:
    manifest = _manifest(workload)
    score = TestScore()
    selector = _dig(manifest, "spec").get("selector")
    try:
        matches = label_selector_matches(selector, _template_labels(manifest))
    except ValueError as exc:
        score.grade = Grade.CRITICAL
        score.add_comment(
            "",
            f"{title} selector labels are not matching template metadata labels",
            f"Invalid selector: {exc}",
        )
        return score

    if matches:
        score.grade = Grade.ALL_OK
        return score

    score.grade = Grade.CRITICAL
    score.add_comment(
        "",
        f"{title} selector labels not matching template metadata labels",
        f"{plural} require `.spec.selector` to match `.spec.template.metadata.labels`. {doc_url}",
    )
    return score


def statefulset_selector_labels_matching(statefulset: Any) -> TestScore:
    """Require the StatefulSet selector to select its own pod template."""
    return _selector_check(
        statefulset,
        "StatefulSet",
        "StatefulSets",
        "https://kubernetes.io/docs/concepts/workloads/controllers/statefulset/#pod-selector",
    )


def deployment_selector_labels_matching(deployment: Any) -> TestScore:
    """Require the Deployment selector to select its own pod template."""
    return _selector_check(
        deployment,
        "Deployment",
        "Deployment",
        "https://kubernetes.io/docs/concepts/workloads/controllers/deployment/",
    )