import pytest

from kubescore.domain import FileLocation
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


def _deployment(namespace=None):
    metadata = {"name": "foo", "labels": {"app": "foo"}}
    if namespace is not None:
        metadata["namespace"] = namespace
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata,
        "spec": {
            "replicas": 3,
            "template": {
                "metadata": {"labels": {"app": "foo"}},
                "spec": {"containers": [{"name": "foobar", "image": "foo:1"}]},
            },
        },
    }


def test_type_and_object_meta():
    obj = KubeObject(_deployment("ns1"), FileLocation("file.yaml", 3))
    assert obj.type_meta().api_version == "apps/v1"
    assert obj.type_meta().kind == "Deployment"
    meta = obj.object_meta()
    assert meta.name == "foo"
    assert meta.namespace == "ns1"
    assert meta.labels == {"app": "foo"}


def test_both_meta_carries_location():
    location = FileLocation("file.yaml", 7)
    both = Workload(_deployment(), location).both_meta()
    assert both.file_location == location
    assert both.type_meta.kind == "Deployment"
    assert both.object_meta.name == "foo"


@pytest.mark.parametrize("cls", [Pod, Service, NetworkPolicy])
def test_simple_objects_expose_metadata(cls):
    raw = {"apiVersion": "v1", "kind": "Thing", "metadata": {"name": "x", "namespace": "y"}}
    obj = cls(raw, FileLocation("f", 1))
    assert obj.obj is raw
    assert obj.object_meta().namespace == "y"
    assert obj.location.name == "f"


def test_pod_template_spec_gets_namespace():
    raw = _deployment("ns1")
    template = Workload(raw, FileLocation()).pod_template_spec()
    assert template["metadata"]["namespace"] == "ns1"
    assert template["metadata"]["labels"] == {"app": "foo"}
    assert template["spec"]["containers"][0]["name"] == "foobar"


def test_pod_template_spec_does_not_mutate_object():
    raw = _deployment("ns1")
    template = Workload(raw, FileLocation()).pod_template_spec()
    template["spec"]["containers"].append({"name": "other"})
    assert "namespace" not in raw["spec"]["template"]["metadata"]
    assert len(raw["spec"]["template"]["spec"]["containers"]) == 1


def test_pod_template_spec_without_namespace():
    template = Workload(_deployment(), FileLocation()).pod_template_spec()
    assert template["metadata"]["namespace"] == ""


def test_pod_template_spec_of_empty_object():
    template = Workload({}, FileLocation()).pod_template_spec()
    assert template == {"metadata": {"namespace": ""}}


def _cronjob(deadline=None):
    spec = {
        "schedule": "* * * * *",
        "jobTemplate": {
            "spec": {
                "template": {
                    "metadata": {"labels": {"job": "cron"}},
                    "spec": {"containers": [{"name": "worker"}]},
                }
            }
        },
    }
    if deadline is not None:
        spec["startingDeadlineSeconds"] = deadline
    return {
        "apiVersion": "batch/v1",
        "kind": "CronJob",
        "metadata": {"name": "cj", "namespace": "jobs"},
        "spec": spec,
    }


def test_cronjob_template_from_job_template():
    template = CronJob(_cronjob(), FileLocation()).pod_template_spec()
    assert template["metadata"]["labels"] == {"job": "cron"}
    assert template["metadata"]["namespace"] == "jobs"
    assert template["spec"]["containers"] == [{"name": "worker"}]


def test_cronjob_starting_deadline():
    assert CronJob(_cronjob(100), FileLocation()).starting_deadline_seconds() == 100
    assert CronJob(_cronjob(), FileLocation()).starting_deadline_seconds() is None


def test_ingress_v1_rules_unchanged():
    rules = [
        {
            "host": "example.com",
            "http": {
                "paths": [
                    {
                        "path": "/",
                        "pathType": "Prefix",
                        "backend": {"service": {"name": "svc", "port": {"number": 80}}},
                    }
                ]
            },
        }
    ]
    raw = {"apiVersion": "networking.k8s.io/v1", "kind": "Ingress", "spec": {"rules": rules}}
    result = Ingress(raw, FileLocation()).rules()
    assert result == rules
    result[0]["host"] = "changed"
    assert rules[0]["host"] == "example.com"


@pytest.mark.parametrize("api_version", ["extensions/v1beta1", "networking.k8s.io/v1beta1"])
def test_ingress_legacy_rules_converted(api_version):
    raw = {
        "apiVersion": api_version,
        "kind": "Ingress",
        "spec": {
            "rules": [
                {
                    "host": "example.com",
                    "http": {
                        "paths": [
                            {"path": "/a", "backend": {"serviceName": "svc-a", "servicePort": 80}},
                            {"path": "/b", "backend": {"serviceName": "svc-b", "servicePort": "http"}},
                        ]
                    },
                }
            ]
        },
    }
    rules = Ingress(raw, FileLocation()).rules()
    assert len(rules) == 1
    assert rules[0]["host"] == "example.com"
    paths = rules[0]["http"]["paths"]
    assert paths[0]["path"] == "/a"
    assert paths[0]["backend"]["service"] == {"name": "svc-a", "port": {"number": 80}}
    assert paths[1]["path"] == "/b"
    assert paths[1]["backend"]["service"] == {"name": "svc-b", "port": {"name": "http"}}


def test_ingress_legacy_rule_without_http():
    raw = {
        "apiVersion": "extensions/v1beta1",
        "kind": "Ingress",
        "spec": {"rules": [{"host": "example.com"}]},
    }
    rules = Ingress(raw, FileLocation()).rules()
    assert rules == [{"host": "example.com"}]


def test_ingress_without_rules():
    raw = {"apiVersion": "networking.k8s.io/v1", "kind": "Ingress", "spec": {}}
    assert Ingress(raw, FileLocation()).rules() == []


@pytest.mark.parametrize(
    "api_version", ["autoscaling/v1", "autoscaling/v2beta1", "autoscaling/v2beta2"]
)
def test_hpa_target(api_version):
    raw = {
        "apiVersion": api_version,
        "kind": "HorizontalPodAutoscaler",
        "metadata": {"name": "hpa"},
        "spec": {"scaleTargetRef": {"kind": "Deployment", "name": "foo", "apiVersion": "apps/v1"}},
    }
    target = HorizontalPodAutoscaler(raw, FileLocation()).target()
    assert target.kind == "Deployment"
    assert target.name == "foo"
    assert target.api_version == "apps/v1"


def test_hpa_target_missing_fields():
    target = HorizontalPodAutoscaler({}, FileLocation()).target()
    assert (target.kind, target.name, target.api_version) == ("", "", "")


def test_pdb_selector_and_spec():
    selector = {"matchLabels": {"app": "foo"}}
    raw = {
        "apiVersion": "policy/v1beta1",
        "kind": "PodDisruptionBudget",
        "metadata": {"name": "pdb", "namespace": "ns1"},
        "spec": {
            "minAvailable": 2,
            "selector": selector,
            "unhealthyPodEvictionPolicy": "AlwaysAllow",
            "unknownField": True,
        },
    }
    pdb = PodDisruptionBudget(raw, FileLocation())
    assert pdb.selector() == selector
    spec = pdb.spec()
    assert spec == {
        "minAvailable": 2,
        "selector": selector,
        "unhealthyPodEvictionPolicy": "AlwaysAllow",
    }
    assert "maxUnavailable" not in spec


def test_pdb_without_selector():
    raw = {"apiVersion": "policy/v1", "kind": "PodDisruptionBudget", "spec": {"maxUnavailable": "50%"}}
    pdb = PodDisruptionBudget(raw, FileLocation())
    assert pdb.selector() is None
    assert pdb.spec() == {"maxUnavailable": "50%"}