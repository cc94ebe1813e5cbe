# tests/fakes.py

from __future__ import annotations

import copy
import threading
import uuid as uuidlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any

from deverp.store.ports import utc_now
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


@dataclass
class _State:
    tasks: dict[int, Task] = field(default_factory=dict)
    projects: dict[int, Project] = field(default_factory=dict)
    edges: dict[tuple[int, int], TaskDependency] = field(default_factory=dict)
    comments: dict[int, TaskComment] = field(default_factory=dict)
    next_task_id: int = 1
    next_project_id: int = 1
    next_comment_id: int = 1


class MemorySession:
    """StoreSession over a private copy of the fake store's state."""

    def __init__(self, state: _State) -> None:
        self._s = state

    # ---- tasks ----

    def create_task(self, new: NewTask) -> Task:
        now = utc_now()
        task = Task(
            id=self._s.next_task_id,
            uuid=str(uuidlib.uuid4()),
            project_id=new.project_id,
            title=new.title.strip(),
            status=new.status,
            priority=new.priority,
            task_type=new.task_type,
            parent_task_id=new.parent_task_id,
            description=new.description,
            task_number=new.task_number,
            assigned_to=new.assigned_to,
            estimated_hours=new.estimated_hours,
            due_date=new.due_date,
            created_at=now,
            updated_at=now,
        )
        self._s.tasks[task.id] = task
        self._s.next_task_id += 1
        return replace(task)

    def get_task(self, task_id: int) -> Task | None:
        task = self._s.tasks.get(task_id)
        return replace(task) if task else None

    def get_task_by_uuid(self, uuid: str) -> Task | None:
        for task in self._s.tasks.values():
            if task.uuid == uuid:
                return replace(task)
        return None

    def _matching(self, flt: TaskFilter) -> list[Task]:
        out = []
        for task in sorted(self._s.tasks.values(), key=lambda t: t.id):
            if not flt.include_deleted and task.is_deleted:
                continue
            if flt.project_id is not None and task.project_id != flt.project_id:
                continue
            if flt.status is not None and task.status != flt.status:
                continue
            if flt.priority is not None and task.priority != flt.priority:
                continue
            if flt.task_type is not None and task.task_type != flt.task_type:
                continue
            if flt.assigned_to is not None and task.assigned_to != flt.assigned_to:
                continue
            if flt.parent_task_id is not None and task.parent_task_id != flt.parent_task_id:
                continue
            out.append(replace(task))
        return out

    def list_tasks(self, flt: TaskFilter) -> list[Task]:
        tasks = self._matching(flt)[max(0, flt.offset):]
        return tasks if flt.limit is None else tasks[: flt.limit]

    def count_tasks(self, flt: TaskFilter) -> int:
        return len(self._matching(flt))

    def update_task(self, task_id: int, changes: dict[str, Any]) -> Task | None:
        task = self._s.tasks.get(task_id)
        if task is None:
            return None
        if changes and not task.is_deleted:
            self._s.tasks[task_id] = replace(task, **changes, updated_at=utc_now())
        return self.get_task(task_id)

    def soft_delete_task(self, task_id: int) -> bool:
        task = self._s.tasks.get(task_id)
        if task is None or task.is_deleted:
            return False
        now = utc_now()
        self._s.tasks[task_id] = replace(task, deleted_at=now, updated_at=now)
        return True

    def status_counts(self, project_id: int) -> dict[TaskStatus, int]:
        counts: dict[TaskStatus, int] = {}
        for task in self._s.tasks.values():
            if task.project_id == project_id and not task.is_deleted:
                counts[task.status] = counts.get(task.status, 0) + 1
        return counts

    # ---- projects ----

    def create_project(
        self,
        *,
        name: str,
        code: str | None = None,
        description: str | None = None,
        status: ProjectStatus = ProjectStatus.PLANNING,
        priority: Priority = Priority.MEDIUM,
    ) -> Project:
        now = utc_now()
        project = Project(
            id=self._s.next_project_id,
            uuid=str(uuidlib.uuid4()),
            name=name.strip(),
            code=code,
            description=description,
            status=status,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        self._s.projects[project.id] = project
        self._s.next_project_id += 1
        return replace(project)

    def get_project(self, project_id: int) -> Project | None:
        project = self._s.projects.get(project_id)
        return replace(project) if project else None

    def get_project_by_code(self, code: str) -> Project | None:
        for project in self._s.projects.values():
            if project.code == code:
                return replace(project)
        return None

    def list_projects(
        self, *, status: ProjectStatus | None = None, include_deleted: bool = False
    ) -> list[Project]:
        return [
            replace(p)
            for p in sorted(self._s.projects.values(), key=lambda p: p.id)
            if (include_deleted or not p.is_deleted) and (status is None or p.status == status)
        ]

    def update_project(self, project_id: int, changes: dict[str, Any]) -> Project | None:
        project = self._s.projects.get(project_id)
        if project is None:
            return None
        if changes and not project.is_deleted:
            self._s.projects[project_id] = replace(project, **changes, updated_at=utc_now())
        return self.get_project(project_id)

    def soft_delete_project(self, project_id: int) -> bool:
        project = self._s.projects.get(project_id)
        if project is None or project.is_deleted:
            return False
        now = utc_now()
        self._s.projects[project_id] = replace(project, deleted_at=now, updated_at=now)
        return True

    # ---- dependency edges ----

    def get_dependency(self, task_id: int, depends_on_task_id: int) -> TaskDependency | None:
        edge = self._s.edges.get((task_id, depends_on_task_id))
        return replace(edge) if edge else None

    def insert_dependency(self, dep: TaskDependency) -> TaskDependency:
        key = (dep.task_id, dep.depends_on_task_id)
        # Mirrors the primary key and check constraint of the SQL schema.
        if key in self._s.edges or dep.task_id == dep.depends_on_task_id:
            raise ValueError(f"constraint violation for edge {key}")
        edge = TaskDependency(
            task_id=dep.task_id,
            depends_on_task_id=dep.depends_on_task_id,
            dependency_type=dep.dependency_type,
            created_at=dep.created_at or utc_now(),
        )
        self._s.edges[key] = edge
        return replace(edge)

    def delete_dependency(self, task_id: int, depends_on_task_id: int) -> bool:
        return self._s.edges.pop((task_id, depends_on_task_id), None) is not None

    def dependencies_of(self, task_id: int) -> list[TaskDependency]:
        return [
            replace(e)
            for (tid, _), e in sorted(self._s.edges.items())
            if tid == task_id
        ]

    def dependents_of(self, task_id: int) -> list[TaskDependency]:
        return sorted(
            (replace(e) for e in self._s.edges.values() if e.depends_on_task_id == task_id),
            key=lambda e: e.task_id,
        )

    def all_dependencies(self) -> list[TaskDependency]:
        return [replace(e) for _, e in sorted(self._s.edges.items())]

    # ---- comments ----

    def add_comment(self, task_id: int, content: str, author: str | None = None) -> TaskComment:
        if task_id not in self._s.tasks:
            raise ValueError(f"foreign key violation for task {task_id}")
        now = utc_now()
        comment = TaskComment(
            id=self._s.next_comment_id,
            task_id=task_id,
            content=content.strip(),
            author=author,
            created_at=now,
            updated_at=now,
        )
        self._s.comments[comment.id] = comment
        self._s.next_comment_id += 1
        return replace(comment)

    def get_comment(self, comment_id: int) -> TaskComment | None:
        comment = self._s.comments.get(comment_id)
        return replace(comment) if comment else None

    def list_comments(self, task_id: int) -> list[TaskComment]:
        return [
            replace(c)
            for _, c in sorted(self._s.comments.items())
            if c.task_id == task_id and not c.is_deleted
        ]

    def update_comment(self, comment_id: int, content: str) -> TaskComment | None:
        comment = self._s.comments.get(comment_id)
        if comment is None:
            return None
        if not comment.is_deleted:
            self._s.comments[comment_id] = replace(
                comment, content=content.strip(), updated_at=utc_now()
            )
        return self.get_comment(comment_id)

    def soft_delete_comment(self, comment_id: int) -> bool:
        comment = self._s.comments.get(comment_id)
        if comment is None or comment.is_deleted:
            return False
        now = utc_now()
        self._s.comments[comment_id] = replace(comment, deleted_at=now, updated_at=now)
        return True


class MemoryStore:
    """
    In-memory Store for unit tests.

    - Write sessions are serialized by a re-entrant lock
    - Each session works on a copy; a write session commits it on clean exit
      and discards it when the block raises
    """

    def __init__(self) -> None:
        self._state = _State()
        self._lock = threading.RLock()
        self.write_sessions = 0

    @contextmanager
    def session(self, *, write: bool = False) -> Iterator[MemorySession]:
        with self._lock:
            working = copy.deepcopy(self._state)
            yield MemorySession(working)
            if write:
                self._state = working
                self.write_sessions += 1