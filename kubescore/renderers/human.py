"""Human readable, optionally colored, terminal output."""

from __future__ import annotations

from collections.abc import Mapping

from kubescore.domain import Grade, ScoredObject, TestScore

_MAGENTA = 35
_HI_BLACK = 90
_GREEN = 32
_YELLOW = 33
_RED = 31

_INDENT = " " * 12


def _paint(text: str, color: int, use_colors: bool) -> str:
    if not use_colors:
        return text
    return f"\x1b[{color}m{text}\x1b[0m"


def _grade_label(grade: int) -> str:
    try:
        return Grade(grade).label
    except ValueError:
        return str(int(grade))


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _wrap(text: str, limit: int) -> str:
    """Greedy word wrap that never breaks words."""
    lines: list[list[str]] = []
    remaining = limit
    for word in text.split():
        size = _byte_len(word)
        if size + 1 > remaining:
            lines.append([word])
            remaining = limit - size
        else:
            if not lines:
                lines.append([])
            lines[-1].append(word)
            remaining -= size + 1
    return "\n".join(" ".join(line) for line in lines)


def _indent(text: str) -> str:
    return "\n".join(_INDENT + line for line in text.split("\n"))


def _render_step(card: TestScore, verbose: int, term_width: int, use_colors: bool) -> str:
    if card.skipped and verbose < 2:
        return ""

    if card.skipped or card.grade >= Grade.ALL_OK:
        if verbose == 0:
            return ""
        color = _GREEN
    elif card.grade >= Grade.WARNING:
        color = _YELLOW
    else:
        color = _RED

    tag = "SKIPPED" if card.skipped else _grade_label(card.grade)
    parts = [_paint(f"    [{tag}] {card.check.name}\n", color, use_colors)]

    for comment in card.comments:
        parts.append("        · ")
        if comment.path:
            parts.append(f"{comment.path} -> ")
        parts.append(comment.summary)
        if comment.description:
            wrap_width = max(term_width - 12, 40)
            parts.append("\n")
            parts.append(_indent(_wrap(comment.description, wrap_width)))
        if comment.documentation_url:
            parts.append("\n")
            parts.append(f"{_INDENT}More information: {comment.documentation_url}")
        parts.append("\n")

    return "".join(parts)


def render_human(
    scorecard: Mapping[str, ScoredObject],
    verbose: int,
    term_width: int,
    use_colors: bool,
) -> str:
    """Render the scorecard for a terminal, sorted by key."""
    parts: list[str] = []
    for key in sorted(scorecard):
        scored = scorecard[key]

        header = _paint(
            f"{scored.type_meta.api_version}/{scored.type_meta.kind} {scored.object_meta.name}",
            _MAGENTA,
            use_colors,
        )
        if scored.object_meta.namespace:
            header += _paint(f" in {scored.object_meta.namespace}", _MAGENTA, use_colors)
        parts.append(header)
        parts.append(" " * max(0, min(80, term_width) - _byte_len(header) - 2))

        if scored.any_below_or_equal_to_grade(Grade.CRITICAL):
            parts.append("💥\n")
        elif scored.any_below_or_equal_to_grade(Grade.WARNING):
            parts.append("🤔\n")
        else:
            parts.append("✅\n")

        if scored.any_below_or_equal_to_grade(Grade.WARNING) and scored.file_location.name:
            parts.append(
                _paint(f"    path={scored.file_location.name}\n", _HI_BLACK, use_colors)
            )

        for card in scored.checks:
            parts.append(_render_step(card, verbose, term_width, use_colors))

    return "".join(parts)