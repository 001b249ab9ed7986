"""Run configuration and Kubernetes version handling."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_INTEGER = re.compile(r"[+-]?[0-9]+")


class InvalidSemverError(ValueError):
    """Raised when a version string is not of the form ``vMAJOR.MINOR``."""

    def __init__(self, value: str = "") -> None:
        super().__init__("invalid semver")
        self.value = value


@dataclass(frozen=True, order=True)
class Semver:
    """A Kubernetes version made of a major and a minor number."""

    major: int = 0
    minor: int = 0

    def less_than(self, other: Semver) -> bool:
        """Return True if this version is older than ``other``."""
        if self.major < other.major:
            return True
        return self.major == other.major and self.minor < other.minor

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}"


def _parse_int(text: str, original: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise InvalidSemverError(original)
    return int(text)


def parse_semver(s: str) -> Semver:
    """Parse ``"v1.18"`` or ``"1.18"`` into a :class:`Semver`."""
    if not s:
        raise InvalidSemverError(s)
    body = s[1:] if s[0] == "v" else s
    parts = body.split(".")
    if len(parts) != 2:
        raise InvalidSemverError(s)
    major, minor = (_parse_int(part, s) for part in parts)
    return Semver(major=major, minor=minor)


@dataclass
class Configuration:
    """Settings that control which files are read and which checks run."""

    all_files: list[Any] = field(default_factory=list)
    verbose_output: int = 0
    ignore_container_cpu_limit_requirement: bool = False
    ignore_container_memory_limit_requirement: bool = False
    ignored_tests: set[str] = field(default_factory=set)
    enabled_optional_tests: set[str] = field(default_factory=set)
    use_ignore_checks_annotation: bool = False
    use_optional_checks_annotation: bool = False
    kubernetes_version: Semver = field(default_factory=Semver)