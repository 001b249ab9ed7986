"""Structured JSON output."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from kubescore.domain import Check, ScoredObject, TestScore

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _marshal_indent(value: Any) -> str:
    """Serialise with four-space indentation and HTML-safe escaping."""
    text = json.dumps(value, indent=4, ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def _check(check: Check) -> dict[str, Any]:
    return {
        "name": check.name,
        "id": check.id,
        "target_type": check.target_type,
        "comment": check.comment,
        "optional": check.optional,
    }


def _test_score(score: TestScore) -> dict[str, Any]:
    comments = [
        {"path": c.path, "summary": c.summary, "description": c.description}
        for c in score.comments
    ]
    return {
        "check": _check(score.check),
        "grade": int(score.grade),
        "skipped": score.skipped,
        "comments": comments or None,
    }


def render_json(scorecard: Mapping[str, ScoredObject]) -> str:
    """Render the scorecard as an indented JSON array of scored objects."""
    objects = [
        {
            "object_name": key,
            "type_meta": scored.type_meta.to_dict(),
            "object_meta": scored.object_meta.to_dict(),
            "checks": [_test_score(c) for c in scored.checks] or None,
            "file_name": scored.file_location.name,
            "file_row": scored.file_location.line,
        }
        for key, scored in scorecard.items()
    ]
    return _marshal_indent(objects or None)