"""Line-oriented output that is easy for other programs to parse."""

from __future__ import annotations

from collections.abc import Mapping

from kubescore.domain import Grade, ScoredObject


def _grade_label(grade: int) -> str:
    try:
        return Grade(grade).label
    except ValueError:
        return str(int(grade))


def render_ci(scorecard: Mapping[str, ScoredObject]) -> str:
    """Render one line per comment, or per check without comments, sorted by key."""
    lines: list[str] = []
    for key in sorted(scorecard):
        scored = scorecard[key]
        ref = scored.human_friendly_ref()
        for card in scored.checks:
            tag = "SKIPPED" if card.skipped else _grade_label(card.grade)
            if not card.comments:
                lines.append(f"[{tag}] {ref}\n")
            for comment in card.comments:
                message = comment.summary
                if comment.path:
                    message = f"({comment.path}) {comment.summary}"
                lines.append(f"[{tag}] {ref}: {message}\n")
    return "".join(lines)