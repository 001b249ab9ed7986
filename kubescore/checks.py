"""Registry of the checks that can be run against objects."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kubescore.config import Configuration
from kubescore.domain import Check, TestScore

CheckFunction = Callable[[Any], TestScore]


def machine_friendly_name(name: str) -> str:
    """Turn a check name into its identifier."""
    return name.lower().replace(" ", "-")


def new_check(name: str, target_type: str, comment: str, optional: bool) -> Check:
    """Build a :class:`Check` whose id is derived from its name."""
    return Check(
        name=name,
        id=machine_friendly_name(name),
        target_type=target_type,
        comment=comment,
        optional=optional,
    )


@dataclass(frozen=True)
class RegisteredCheck:
    """A check together with the function that performs it."""

    check: Check
    fn: CheckFunction

    def __call__(self, target: Any) -> TestScore:
        return self.fn(target)


class Checks:
    """All known checks, grouped by the kind of object they apply to."""

    def __init__(self, config: Configuration | None = None) -> None:
        self._config = config if config is not None else Configuration()
        self._all: list[Check] = []
        self._by_target: dict[str, dict[str, RegisteredCheck]] = {}

    def _is_enabled(self, check: Check) -> bool:
        return check.id not in self._config.ignored_tests

    def register(
        self,
        target_type: str,
        name: str,
        comment: str,
        fn: CheckFunction,
        optional: bool = False,
    ) -> Check:
        """Record a check; ignored checks are listed but never run."""
        check = new_check(name, target_type, comment, optional)
        self._all.append(check)
        if self._is_enabled(check):
            self._by_target.setdefault(target_type, {})[check.id] = RegisteredCheck(check, fn)
        return check

    def all(self) -> list[Check]:
        """Every registered check, including ignored ones, in registration order."""
        return list(self._all)

    def for_target(self, target_type: str) -> dict[str, RegisteredCheck]:
        """The enabled checks for one target type, keyed by id."""
        return dict(self._by_target.get(target_type, {}))