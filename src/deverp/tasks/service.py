"""Task and project CRUD plumbing.

Tasks and projects are addressed by integer id; tasks may also be
addressed by uuid. Soft-deleted rows are treated as missing by every
mutation. Status changes are routed through the lifecycle validator so the
completion gate is checked in the same transaction as the write.
"""

from __future__ import annotations

from deverp import log
from deverp.errors import Conflict, InvalidArgument, NotFound
from deverp.store.ports import Store, StoreSession
from deverp.tasks.graph import require_open_task, require_project, require_task
from deverp.tasks.lifecycle import apply_status
from deverp.tasks.model import (
    NewTask,
    Priority,
    Project,
    ProjectStatus,
    ProjectUpdate,
    Task,
    TaskComment,
    TaskFilter,
    TaskUpdate,
)
from deverp.tasks.validate import (
    require_valid,
    validate_comment,
    validate_new_task,
    validate_progress,
    validate_project_name,
    validate_project_update,
    validate_task_update,
)


def _resolve_task(session: StoreSession, ref: int | str, *, active: bool = True) -> Task:
    """Look a task up by id (int or digit string) or uuid."""
    if isinstance(ref, int) or str(ref).strip().isdigit():
        return require_task(session, int(ref), active=active)
    task = session.get_task_by_uuid(str(ref).strip())
    if task is None or (active and task.is_deleted):
        raise NotFound(f"Task {ref} not found")
    return task


def _is_active(session: StoreSession, task_id: int) -> bool:
    task = session.get_task(task_id)
    return task is not None and not task.is_deleted


class TaskService:
    def __init__(self, store: Store) -> None:
        self._store = store

    # ── tasks ────────────────────────────────────────────────────

    def create_task(self, new: NewTask) -> Task:
        require_valid(validate_new_task(new))
        with self._store.session(write=True) as s:
            require_project(s, new.project_id)
            if new.parent_task_id is not None:
                parent = require_task(s, new.parent_task_id)
                if parent.project_id != new.project_id:
                    raise InvalidArgument(
                        f"Parent task {parent.id} belongs to project {parent.project_id}, "
                        f"not {new.project_id}",
                        task_ids=[parent.id],
                    )
            task = s.create_task(new)
        log.debug(f"Task created: id={task.id} project={task.project_id} title={task.title!r}")
        return task

    def get_task(self, ref: int | str) -> Task:
        """Fetch a task by id or uuid; soft-deleted tasks are still returned."""
        with self._store.session() as s:
            return _resolve_task(s, ref, active=False)

    def list_tasks(self, flt: TaskFilter | None = None) -> list[Task]:
        with self._store.session() as s:
            return s.list_tasks(flt or TaskFilter())

    def count_tasks(self, flt: TaskFilter | None = None) -> int:
        with self._store.session() as s:
            return s.count_tasks(flt or TaskFilter())

    def update_task(self, ref: int | str, update: TaskUpdate) -> Task:
        """Apply a partial update. A status change goes through the completion gate."""
        require_valid(validate_task_update(update))
        changes = update.changes()
        with self._store.session(write=True) as s:
            task = require_open_task(s, _resolve_task(s, ref).id)
            status = changes.pop("status", None)
            if status is not None:
                task = apply_status(s, task.id, status)
            if changes:
                if "title" in changes:
                    changes["title"] = str(changes["title"]).strip()
                updated = s.update_task(task.id, changes)
                assert updated is not None
                task = updated
        log.debug(f"Task updated: id={task.id}")
        return task

    def delete_task(self, ref: int | str) -> int:
        """Soft-delete a task. Returns how many dependency edges became stale."""
        with self._store.session(write=True) as s:
            task = _resolve_task(s, ref)
            peers = [e.depends_on_task_id for e in s.dependencies_of(task.id)]
            peers += [e.task_id for e in s.dependents_of(task.id)]
            # Edges whose other end is already deleted were stale before this call.
            stale = sum(1 for peer in peers if _is_active(s, peer))
            s.soft_delete_task(task.id)
        log.debug(f"Task soft-deleted: id={task.id} stale_edges={stale}")
        return stale

    # ── projects ─────────────────────────────────────────────────

    def create_project(
        self,
        name: str,
        *,
        code: str | None = None,
        description: str | None = None,
        status: ProjectStatus = ProjectStatus.PLANNING,
        priority: Priority = Priority.MEDIUM,
    ) -> Project:
        require_valid(validate_project_name(name))
        code = code.strip() if code else None
        with self._store.session(write=True) as s:
            if code and s.get_project_by_code(code) is not None:
                raise Conflict(f"Project code {code!r} already exists")
            project = s.create_project(
                name=name,
                code=code,
                description=description,
                status=status,
                priority=priority,
            )
        log.debug(f"Project created: id={project.id} name={project.name!r}")
        return project

    def get_project(self, project_id: int) -> Project:
        with self._store.session() as s:
            return require_project(s, project_id)

    def list_projects(
        self, *, status: ProjectStatus | None = None, include_deleted: bool = False
    ) -> list[Project]:
        with self._store.session() as s:
            return s.list_projects(status=status, include_deleted=include_deleted)

    def set_project_progress(self, project_id: int, percentage: int) -> Project:
        """Set the manual progress value; the derived value is never touched."""
        require_valid(validate_progress(percentage))
        with self._store.session(write=True) as s:
            require_project(s, project_id)
            project = s.update_project(project_id, {"progress_percentage": percentage})
        assert project is not None
        log.debug(f"Project {project_id} manual progress set to {percentage}%")
        return project

    def delete_project(self, project_id: int) -> None:
        with self._store.session(write=True) as s:
            require_project(s, project_id)
            s.soft_delete_project(project_id)
        log.debug(f"Project soft-deleted: id={project_id}")

    def update_project(self, project_id: int, update: ProjectUpdate) -> Project:
        """Apply a partial update. A new code must not belong to another project."""
        require_valid(validate_project_update(update))
        changes = update.changes()
        for key in ("name", "code"):
            if key in changes:
                changes[key] = str(changes[key]).strip()
        with self._store.session(write=True) as s:
            require_project(s, project_id)
            code = changes.get("code")
            if code:
                owner = s.get_project_by_code(str(code))
                if owner is not None and owner.id != project_id:
                    raise Conflict(f"Project code {code!r} already exists")
            project = s.update_project(project_id, changes)
        assert project is not None
        log.debug(f"Project updated: id={project_id} fields={', '.join(sorted(changes))}")
        return project

    def archive_project(self, project_id: int) -> Project:
        """Mark a project archived. Unlike delete, it stays listed and readable."""
        with self._store.session(write=True) as s:
            project = require_project(s, project_id)
            if project.status != ProjectStatus.ARCHIVED:
                project = s.update_project(project_id, {"status": ProjectStatus.ARCHIVED})
        assert project is not None
        log.debug(f"Project archived: id={project_id}")
        return project

    # ── comments ─────────────────────────────────────────────────

    def add_comment(self, ref: int | str, content: str, *, author: str | None = None) -> TaskComment:
        require_valid(validate_comment(content, author))
        with self._store.session(write=True) as s:
            task = require_open_task(s, _resolve_task(s, ref).id)
            comment = s.add_comment(task.id, content, author)
        log.debug(f"Comment added: id={comment.id} task={comment.task_id}")
        return comment

    def list_comments(self, ref: int | str) -> list[TaskComment]:
        """Comments of a task, oldest first. Works for soft-deleted tasks too."""
        with self._store.session() as s:
            task = _resolve_task(s, ref, active=False)
            return s.list_comments(task.id)

    def update_comment(self, comment_id: int, content: str) -> TaskComment:
        require_valid(validate_comment(content))
        with self._store.session(write=True) as s:
            current = s.get_comment(comment_id)
            if current is None or current.is_deleted:
                raise NotFound(f"Comment {comment_id} not found")
            comment = s.update_comment(comment_id, content)
        assert comment is not None
        log.debug(f"Comment updated: id={comment_id}")
        return comment

    def delete_comment(self, comment_id: int) -> None:
        with self._store.session(write=True) as s:
            deleted = s.soft_delete_comment(comment_id)
        if not deleted:
            raise NotFound(f"Comment {comment_id} not found")
        log.debug(f"Comment soft-deleted: id={comment_id}")
