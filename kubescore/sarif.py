"""Data model for SARIF 2.1.0 logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SARIF_VERSION = "2.1.0"
SARIF_SCHEMA = (
    "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
)
ZERO_TIME = "0001-01-01T00:00:00Z"


def _compact(pairs: dict[str, Any]) -> dict[str, Any]:
    """Drop empty strings, zeros, False and empty lists."""
    return {k: v for k, v in pairs.items() if v}


@dataclass
class Rule:
    """A rule reported by the tool."""

    id: str = ""
    name: str = ""
    help_uri: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact({"id": self.id, "name": self.name, "helpUri": self.help_uri})


@dataclass
class Result:
    """A single finding, optionally tied to a file location."""

    message: str = ""
    level: str = ""
    rule_id: str = ""
    rule_index: int = 0
    artifact_uri: str | None = None
    start_line: int = 0
    issue_confidence: str = ""
    issue_severity: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"message": _compact({"text": self.message})}
        if self.level:
            out["level"] = self.level
        if self.artifact_uri is not None:
            out["locations"] = [
                {
                    "physicalLocation": {
                        "region": {"snippet": {}},
                        "artifactLocation": _compact({"uri": self.artifact_uri}),
                        "contextRegion": {
                            "snippet": {},
                            **_compact({"startLine": self.start_line}),
                        },
                    }
                }
            ]
        out["properties"] = _compact(
            {
                "issue_confidence": self.issue_confidence,
                "issue_severity": self.issue_severity,
            }
        )
        out.update(_compact({"ruleId": self.rule_id, "ruleIndex": self.rule_index}))
        return out


@dataclass
class Run:
    """One run of the tool with its rules and results."""

    driver_name: str = ""
    rules: list[Rule] = field(default_factory=list)
    results: list[Result] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        driver = _compact(
            {"name": self.driver_name, "rules": [r.to_dict() for r in self.rules]}
        )
        out: dict[str, Any] = {
            "tool": {"driver": driver},
            "conversion": {
                "tool": {"driver": {}},
                "invocation": {"endTimeUtc": ZERO_TIME, "workingDirectory": {}},
            },
            "properties": {},
        }
        if self.results:
            out["results"] = [r.to_dict() for r in self.results]
        return out


@dataclass
class SarifLog:
    """A complete SARIF document."""

    runs: list[Run] = field(default_factory=list)
    version: str = SARIF_VERSION
    schema: str = SARIF_SCHEMA

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "runs": [r.to_dict() for r in self.runs],
                "version": self.version,
                "$schema": self.schema,
            }
        )