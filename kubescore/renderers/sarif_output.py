"""SARIF output for integration with code scanning platforms."""

from __future__ import annotations

from collections.abc import Mapping

from kubescore.domain import Grade, ScoredObject
from kubescore.renderers.json_v2 import _marshal_indent
from kubescore.sarif import Result, Rule, Run, SarifLog

_LEVELS = {Grade.CRITICAL: "error", Grade.WARNING: "warning"}


def render_sarif(scorecard: Mapping[str, ScoredObject]) -> str:
    """Render critical and warning findings as a SARIF 2.1.0 log."""
    rules: dict[str, Rule] = {}
    results: list[Result] = []

    for scored in scorecard.values():
        for card in scored.checks:
            if card.skipped:
                continue
            level = _LEVELS.get(card.grade)
            if level is None:
                continue
            rules.setdefault(card.check.id, Rule(id=card.check.id, name=card.check.name))
            results.extend(
                Result(
                    message=comment.summary,
                    rule_id=card.check.id,
                    level=level,
                    issue_confidence="HIGH",
                    issue_severity="HIGH",
                    artifact_uri="file://" + scored.file_location.name,
                    start_line=scored.file_location.line,
                )
                for comment in card.comments
            )

    run = Run(driver_name="kube-score", rules=list(rules.values()), results=results)
    return _marshal_indent(SarifLog(runs=[run]).to_dict())