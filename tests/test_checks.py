import pytest

from kubescore.checks import Checks, RegisteredCheck, machine_friendly_name, new_check
from kubescore.config import Configuration
from kubescore.domain import Grade, TestScore


def _ok(_target):
    return TestScore(grade=Grade.ALL_OK)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Container Seccomp Profile", "container-seccomp-profile"),
        ("Container Security Context User Group ID", "container-security-context-user-group-id"),
        ("Container Security Context Privileged", "container-security-context-privileged"),
    ],
)
def test_machine_friendly_name(name, expected):
    assert machine_friendly_name(name) == expected


def test_new_check_fields():
    check = new_check("Container Seccomp Profile", "Pod", "comment", True)
    assert check.id == "container-seccomp-profile"
    assert check.target_type == "Pod"
    assert check.comment == "comment"
    assert check.optional is True


def test_register_makes_check_runnable():
    checks = Checks()
    check = checks.register("Pod", "Pod NetworkPolicy", "c", _ok)
    registered = checks.for_target("Pod")
    assert list(registered) == [check.id]
    assert registered[check.id].check == check
    assert registered[check.id](object()).grade == Grade.ALL_OK
    assert checks.all() == [check]


def test_ignored_check_is_listed_but_not_runnable():
    config = Configuration(ignored_tests={"container-seccomp-profile"})
    checks = Checks(config)
    check = checks.register("Pod", "Container Seccomp Profile", "c", _ok, optional=True)
    assert checks.all() == [check]
    assert checks.for_target("Pod") == {}


def test_targets_are_separate():
    checks = Checks()
    checks.register("Deployment", "Deployment Check", "", _ok)
    checks.register("StatefulSet", "StatefulSet Check", "", _ok)
    assert set(checks.for_target("Deployment")) == {"deployment-check"}
    assert set(checks.for_target("StatefulSet")) == {"statefulset-check"}
    assert checks.for_target("Service") == {}


def test_all_keeps_registration_order():
    checks = Checks()
    names = ["First Check", "Second Check", "Third Check"]
    for name in names:
        checks.register("all", name, "", _ok)
    assert [c.name for c in checks.all()] == names


def test_for_target_returns_copy():
    checks = Checks()
    checks.register("Pod", "Pod Check", "", _ok)
    checks.for_target("Pod").clear()
    assert len(checks.for_target("Pod")) == 1


def test_registered_check_calls_function():
    seen = []

    def fn(target):
        seen.append(target)
        return TestScore(grade=Grade.WARNING)

    registered = RegisteredCheck(new_check("X", "Pod", "", False), fn)
    assert registered("target").grade == Grade.WARNING
    assert seen == ["target"]