"""Storage ports used by the graph engine, lifecycle validator and aggregator.

The domain code depends on these Protocols instead of on SQLite directly,
so every component can run against the in-memory fake used by the tests.

A session is the unit of consistency: ``store.session(write=True)`` is a
single transaction that serializes against other writers, and every check
performed through it sees the same state the subsequent write commits on.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Any, Protocol

from deverp.tasks.model import (
    NewTask,
    Priority,
    Project,
    ProjectStatus,
    Task,
    TaskComment,
    TaskDependency,
    TaskFilter,
    TaskStatus,
)


def utc_now() -> str:
    """ISO-8601 UTC timestamp with second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class StoreSession(Protocol):
    # ---- tasks ----
    def create_task(self, new: NewTask) -> Task: ...

    def get_task(self, task_id: int) -> Task | None: ...

    def get_task_by_uuid(self, uuid: str) -> Task | None: ...

    def list_tasks(self, flt: TaskFilter) -> list[Task]: ...

    def count_tasks(self, flt: TaskFilter) -> int: ...

    def update_task(self, task_id: int, changes: dict[str, Any]) -> Task | None: ...

    def soft_delete_task(self, task_id: int) -> bool: ...

    def status_counts(self, project_id: int) -> dict[TaskStatus, int]: ...

    # ---- projects ----
    def create_project(
        self,
        *,
        name: str,
        code: str | None = None,
        description: str | None = None,
        status: ProjectStatus = ProjectStatus.PLANNING,
        priority: Priority = Priority.MEDIUM,
    ) -> Project: ...

    def get_project(self, project_id: int) -> Project | None: ...

    def get_project_by_code(self, code: str) -> Project | None: ...

    def list_projects(
        self, *, status: ProjectStatus | None = None, include_deleted: bool = False
    ) -> list[Project]: ...

    def update_project(self, project_id: int, changes: dict[str, Any]) -> Project | None: ...

    def soft_delete_project(self, project_id: int) -> bool: ...

    # ---- dependency edges ----
    def get_dependency(self, task_id: int, depends_on_task_id: int) -> TaskDependency | None: ...

    def insert_dependency(self, dep: TaskDependency) -> TaskDependency: ...

    def delete_dependency(self, task_id: int, depends_on_task_id: int) -> bool: ...

    def dependencies_of(self, task_id: int) -> list[TaskDependency]: ...

    def dependents_of(self, task_id: int) -> list[TaskDependency]: ...

    def all_dependencies(self) -> list[TaskDependency]: ...

    # ---- comments ----
    def add_comment(self, task_id: int, content: str, author: str | None = None) -> TaskComment: ...

    def get_comment(self, comment_id: int) -> TaskComment | None: ...

    def list_comments(self, task_id: int) -> list[TaskComment]: ...

    def update_comment(self, comment_id: int, content: str) -> TaskComment | None: ...

    def soft_delete_comment(self, comment_id: int) -> bool: ...


class Store(Protocol):
    def session(self, *, write: bool = False) -> AbstractContextManager[StoreSession]: ...
