"""Task lifecycle: status transitions and the completion gate.

Any status may move to any other by direct update. The one enforced rule is
that a task cannot become ``done`` while an active prerequisite is still
open. The check and the status write share one write session.
"""

from __future__ import annotations

from typing import Any

from deverp import log
from deverp.errors import DependencyNotSatisfied
from deverp.store.ports import Store, StoreSession, utc_now
from deverp.tasks.graph import open_prerequisites, require_open_task, require_task
from deverp.tasks.model import Task, TaskStatus


def status_changes(task: Task, new_status: TaskStatus) -> dict[str, Any]:
    """Column changes for moving *task* to *new_status*, including timestamps."""
    changes: dict[str, Any] = {"status": new_status}
    if new_status == TaskStatus.IN_PROGRESS and task.started_at is None:
        changes["started_at"] = utc_now()
    if new_status == TaskStatus.DONE and task.status != TaskStatus.DONE:
        changes["completed_at"] = utc_now()
    return changes


def apply_status(session: StoreSession, task_id: int, new_status: TaskStatus) -> Task:
    """Validate and write a status change inside an already-open write session."""
    task = require_open_task(session, task_id)
    if task.status == new_status:
        return task

    if new_status == TaskStatus.DONE:
        unmet = open_prerequisites(session, task_id)
        if unmet:
            raise DependencyNotSatisfied(task_id, [t.id for t in unmet])

    updated = session.update_task(task_id, status_changes(task, new_status))
    assert updated is not None

    if task.status == TaskStatus.DONE:
        log.warn(
            f"Task {task_id} moved from done to {new_status.value}; "
            f"keeping completed_at={task.completed_at}"
        )
    log.debug(f"Task {task_id} status: {task.status.value} -> {new_status.value}")
    return updated


class TaskLifecycle:
    """Status transitions for tasks in one store."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def set_status(self, task_id: int, new_status: TaskStatus) -> Task:
        """Move a task to *new_status*.

        Raises NotFound for a missing or deleted task, or one whose project
        was deleted, and DependencyNotSatisfied when completing a task whose
        active prerequisites are not all done or cancelled.
        """
        with self._store.session(write=True) as s:
            return apply_status(s, task_id, new_status)

    def can_complete(self, task_id: int) -> bool:
        """True when no active prerequisite of *task_id* is still open."""
        with self._store.session() as s:
            require_task(s, task_id)
            return not open_prerequisites(s, task_id)
