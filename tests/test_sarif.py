import json

from kubescore.sarif import SARIF_SCHEMA, Result, Rule, Run, SarifLog


def test_default_version():
    assert SarifLog().version == "2.1.0"


def test_log_key_order():
    log = SarifLog(runs=[Run(driver_name="kube-score")])
    assert list(log.to_dict()) == ["runs", "version", "$schema"]
    assert log.to_dict()["$schema"] == SARIF_SCHEMA


def test_empty_log_omits_runs():
    assert "runs" not in SarifLog().to_dict()


def test_rule_omits_empty_help_uri():
    assert Rule(id="x", name="X").to_dict() == {"id": "x", "name": "X"}


def test_result_with_location():
    result = Result(
        message="summary",
        level="warning",
        rule_id="x",
        artifact_uri="file:///tmp/a.yaml",
        start_line=3,
        issue_confidence="HIGH",
        issue_severity="HIGH",
    )
    data = result.to_dict()
    assert list(data) == ["message", "level", "locations", "properties", "ruleId"]
    location = data["locations"][0]["physicalLocation"]
    assert location["artifactLocation"] == {"uri": "file:///tmp/a.yaml"}
    assert location["contextRegion"] == {"snippet": {}, "startLine": 3}
    assert data["properties"] == {"issue_confidence": "HIGH", "issue_severity": "HIGH"}
    assert data["message"] == {"text": "summary"}


def test_result_without_location_or_index():
    data = Result(message="m").to_dict()
    assert "locations" not in data
    assert "ruleIndex" not in data
    assert data["properties"] == {}


def test_result_zero_start_line_is_omitted():
    data = Result(artifact_uri="file://a").to_dict()
    assert data["locations"][0]["physicalLocation"]["contextRegion"] == {"snippet": {}}


def test_run_layout():
    run = Run(driver_name="kube-score", rules=[Rule(id="a", name="A")])
    data = run.to_dict()
    assert data["tool"] == {"driver": {"name": "kube-score", "rules": [{"id": "a", "name": "A"}]}}
    assert data["properties"] == {}
    assert "results" not in data
    assert data["conversion"]["invocation"]["endTimeUtc"] == "0001-01-01T00:00:00Z"


def test_json_round_trip():
    log = SarifLog(runs=[Run(driver_name="kube-score", results=[Result(message="m", level="error")])])
    data = log.to_dict()
    assert json.loads(json.dumps(data)) == data
    assert data["runs"][0]["results"][0]["level"] == "error"