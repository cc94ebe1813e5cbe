"""Error taxonomy shared by the store, the dependency graph and the CLI.

Every rejected mutation raises one of these with the rule that was violated
and, where it applies, the offending task ids. None of them is retried:
they describe logical violations, not transient failures. Storage errors
(``sqlite3.Error``) are never wrapped.
"""

from __future__ import annotations

from collections.abc import Iterable


class DevErpError(Exception):
    """Base class for rule violations reported to the user."""

    exit_code: int = 1
    rule: str = "error"

    def __init__(self, message: str, task_ids: Iterable[int] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.task_ids: list[int] = list(task_ids)


class InvalidArgument(DevErpError):
    """Malformed input or a self-dependency."""

    exit_code = 2
    rule = "invalid-argument"


# Input validation failures are reported under the same rule.
ValidationError = InvalidArgument


class NotFound(DevErpError):
    """Missing (or soft-deleted) task, project or dependency edge."""

    exit_code = 3
    rule = "not-found"


class Conflict(DevErpError):
    """Duplicate dependency edge or duplicate unique key."""

    exit_code = 4
    rule = "conflict"


class CycleDetected(DevErpError):
    """The requested edge would close a directed cycle."""

    exit_code = 5
    rule = "cycle-detected"

    def __init__(self, task_id: int, depends_on_task_id: int, path: list[int]) -> None:
        chain = " -> ".join(str(t) for t in [task_id, *path])
        super().__init__(
            f"Task {task_id} cannot depend on task {depends_on_task_id}: "
            f"would create a circular dependency ({chain})",
            task_ids=[task_id, *path[:-1]],
        )
        self.task_id = task_id
        self.depends_on_task_id = depends_on_task_id
        self.path = list(path)


class DependencyNotSatisfied(DevErpError):
    """A task cannot be marked done while a prerequisite is still open."""

    exit_code = 6
    rule = "dependency-not-satisfied"

    def __init__(self, task_id: int, unmet: Iterable[int]) -> None:
        unmet_ids = sorted(unmet)
        listed = ", ".join(str(t) for t in unmet_ids)
        super().__init__(
            f"Task {task_id} cannot be marked done: unfinished prerequisite task(s) {listed}",
            task_ids=unmet_ids,
        )
        self.task_id = task_id
        self.unmet = unmet_ids
