"""Core types shared by the parser, the checks and the renderers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


@dataclass(frozen=True)
class Check:
    """Description of a single check."""

    name: str = ""
    id: str = ""
    target_type: str = ""
    comment: str = ""
    optional: bool = False


@dataclass(frozen=True)
class FileLocation:
    """Where an object was defined."""

    name: str = ""
    line: int = 0


def _string_map(value: Any) -> dict[str, str]:
    if not value:
        return {}
    return {str(k): v if isinstance(v, str) else str(v) for k, v in dict(value).items()}


@dataclass
class TypeMeta:
    """The ``apiVersion`` and ``kind`` of an object."""

    api_version: str = ""
    kind: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> TypeMeta:
        data = data or {}
        return cls(api_version=data.get("apiVersion") or "", kind=data.get("kind") or "")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.kind:
            out["kind"] = self.kind
        if self.api_version:
            out["apiVersion"] = self.api_version
        return out


@dataclass
class ObjectMeta:
    """Name, namespace, labels and annotations of an object."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ObjectMeta:
        data = data or {}
        return cls(
            name=data.get("name") or "",
            namespace=data.get("namespace") or "",
            labels=_string_map(data.get("labels")),
            annotations=_string_map(data.get("annotations")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.namespace:
            out["namespace"] = self.namespace
        out["creationTimestamp"] = None
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        return out


@dataclass
class BothMeta:
    """Type and object metadata together with the object's location."""

    type_meta: TypeMeta = field(default_factory=TypeMeta)
    object_meta: ObjectMeta = field(default_factory=ObjectMeta)
    file_location: FileLocation = field(default_factory=FileLocation)


class Grade(IntEnum):
    """How well an object did in a check; higher is better."""

    CRITICAL = 1
    WARNING = 5
    ALMOST_OK = 7
    ALL_OK = 10

    @property
    def label(self) -> str:
        return _GRADE_LABELS[self]

    def __str__(self) -> str:
        return self.label


_GRADE_LABELS = {
    Grade.CRITICAL: "CRITICAL",
    Grade.WARNING: "WARNING",
    Grade.ALMOST_OK: "ALMOST_OK",
    Grade.ALL_OK: "OK",
}


@dataclass
class TestScoreComment:
    """One remark attached to the result of a check."""

    __test__ = False

    path: str = ""
    summary: str = ""
    description: str = ""
    documentation_url: str = ""


@dataclass
class TestScore:
    """The result of running one check against one object."""

    __test__ = False

    check: Check = field(default_factory=Check)
    grade: int = 0
    skipped: bool = False
    comments: list[TestScoreComment] = field(default_factory=list)

    def add_comment(self, path: str, summary: str, description: str) -> None:
        """Attach a comment to this result."""
        self.comments.append(
            TestScoreComment(path=path, summary=summary, description=description)
        )


def _any_at_or_below(checks: Iterable[TestScore], grade: int) -> bool:
    return any(not c.skipped and c.grade <= grade for c in checks)


@dataclass
class ScoredObject:
    """An object together with the results of all checks run against it."""

    type_meta: TypeMeta = field(default_factory=TypeMeta)
    object_meta: ObjectMeta = field(default_factory=ObjectMeta)
    file_location: FileLocation = field(default_factory=FileLocation)
    checks: list[TestScore] = field(default_factory=list)

    def human_friendly_ref(self) -> str:
        """Return ``name[/namespace] apiVersion/kind``."""
        ref = self.object_meta.name
        if self.object_meta.namespace:
            ref += "/" + self.object_meta.namespace
        return f"{ref} {self.type_meta.api_version}/{self.type_meta.kind}"

    def any_below_or_equal_to_grade(self, grade: int) -> bool:
        """True if a non-skipped check scored ``grade`` or worse."""
        return _any_at_or_below(self.checks, grade)


Scorecard = dict[str, ScoredObject]


def any_below_or_equal_to_grade(scorecard: Mapping[str, ScoredObject], grade: int) -> bool:
    """True if any object in ``scorecard`` has a check at ``grade`` or worse."""
    return any(obj.any_below_or_equal_to_grade(grade) for obj in scorecard.values())