"""Dependency graph engine: acyclic "task X depends on task Y" edges.

Edges live in the store and are queried on demand; nothing is cached
between calls. Every mutation runs its checks and its write inside one
write session, so a concurrent writer can never slip a conflicting edge in
between the reachability check and the insert.

Soft-deleted tasks keep their edges (they become *stale*) but are skipped
by every traversal that decides whether a task can be acted upon.

Usage::

    graph = DependencyGraph(store)
    graph.add_dependency(task_id, depends_on_task_id)   # validated insert
    graph.is_blocked(task_id)                            # advisory signal
    graph.remove_dependency(task_id, depends_on_task_id)
"""

from __future__ import annotations

from collections import deque

from deverp import log
from deverp.errors import Conflict, CycleDetected, InvalidArgument, NotFound
from deverp.store.ports import Store, StoreSession
from deverp.tasks.model import (
    DependencyCounts,
    DependencyType,
    Project,
    Task,
    TaskDependency,
    TaskFilter,
)


# ── session-level helpers (shared with the lifecycle validator) ──────


def require_task(session: StoreSession, task_id: int, *, active: bool = True) -> Task:
    """Fetch a task or raise :class:`NotFound` (soft-deleted counts as missing when *active*)."""
    task = session.get_task(task_id)
    if task is None or (active and task.is_deleted):
        suffix = " (deleted)" if task is not None else ""
        raise NotFound(f"Task {task_id} not found{suffix}", task_ids=[task_id])
    return task


def require_project(session: StoreSession, project_id: int) -> Project:
    project = session.get_project(project_id)
    if project is None or project.is_deleted:
        raise NotFound(f"Project {project_id} not found")
    return project


def require_open_task(session: StoreSession, task_id: int) -> Task:
    """Like :func:`require_task`, but the task's project must not be soft-deleted either."""
    task = require_task(session, task_id)
    project = session.get_project(task.project_id)
    if project is None or project.is_deleted:
        raise NotFound(
            f"Task {task_id} belongs to deleted project {task.project_id}", task_ids=[task_id]
        )
    return task


def active_prerequisites(session: StoreSession, task_id: int) -> list[Task]:
    """Direct prerequisites of *task_id* that are not soft-deleted."""
    out: list[Task] = []
    for edge in session.dependencies_of(task_id):
        prereq = session.get_task(edge.depends_on_task_id)
        if prereq is not None and not prereq.is_deleted:
            out.append(prereq)
    return out


def open_prerequisites(session: StoreSession, task_id: int) -> list[Task]:
    """Active direct prerequisites that are neither done nor cancelled."""
    return [t for t in active_prerequisites(session, task_id) if not t.status.is_closed]


def find_path(session: StoreSession, start: int, target: int) -> list[int] | None:
    """Breadth-first search from *start* along "depends on" edges.

    Returns the node path ``[start, ..., target]`` if *target* is reachable
    through active tasks, otherwise ``None``.
    """
    if start == target:
        return [start]
    parents: dict[int, int] = {}
    visited = {start}
    queue: deque[int] = deque([start])
    while queue:
        current = queue.popleft()
        for edge in session.dependencies_of(current):
            nxt = edge.depends_on_task_id
            if nxt in visited:
                continue
            visited.add(nxt)
            node = session.get_task(nxt)
            if node is None or node.is_deleted:
                continue
            parents[nxt] = current
            if nxt == target:
                path = [nxt]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            queue.append(nxt)
    return None


class DependencyGraph:
    """Validated access to the task dependency edge set."""

    def __init__(self, store: Store, *, allow_cross_project: bool = False) -> None:
        self._store = store
        self._allow_cross_project = allow_cross_project

    # ── mutations ────────────────────────────────────────────────

    def add_dependency(
        self,
        task_id: int,
        depends_on_task_id: int,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
    ) -> TaskDependency:
        """Record that *task_id* depends on *depends_on_task_id*.

        Raises InvalidArgument (self-dependency, cross-project edge when not
        allowed), NotFound (missing or deleted task or project), Conflict (edge exists)
        or CycleDetected (the prerequisite already reaches the dependent).
        """
        if task_id == depends_on_task_id:
            raise InvalidArgument(
                f"Task {task_id} cannot depend on itself", task_ids=[task_id]
            )

        with self._store.session(write=True) as s:
            task = require_open_task(s, task_id)
            prereq = require_open_task(s, depends_on_task_id)

            if not self._allow_cross_project and task.project_id != prereq.project_id:
                raise InvalidArgument(
                    f"Task {task_id} (project {task.project_id}) cannot depend on task "
                    f"{depends_on_task_id} from another project ({prereq.project_id})",
                    task_ids=[task_id, depends_on_task_id],
                )

            if s.get_dependency(task_id, depends_on_task_id) is not None:
                raise Conflict(
                    f"Task {task_id} already depends on task {depends_on_task_id}",
                    task_ids=[task_id, depends_on_task_id],
                )

            path = find_path(s, depends_on_task_id, task_id)
            if path is not None:
                raise CycleDetected(task_id, depends_on_task_id, path)

            edge = s.insert_dependency(
                TaskDependency(
                    task_id=task_id,
                    depends_on_task_id=depends_on_task_id,
                    dependency_type=dependency_type,
                )
            )

        log.debug(
            f"Dependency added: {task_id} -> {depends_on_task_id} ({dependency_type.value})"
        )
        return edge

    def remove_dependency(self, task_id: int, depends_on_task_id: int) -> None:
        """Delete an edge. Removing an edge can never create a cycle."""
        with self._store.session(write=True) as s:
            removed = s.delete_dependency(task_id, depends_on_task_id)
        if not removed:
            raise NotFound(
                f"Dependency {task_id} -> {depends_on_task_id} not found",
                task_ids=[task_id, depends_on_task_id],
            )
        log.debug(f"Dependency removed: {task_id} -> {depends_on_task_id}")

    # ── queries ──────────────────────────────────────────────────

    def list_dependencies(self, task_id: int) -> list[TaskDependency]:
        """Edges from *task_id* to the tasks it depends on (stale edges included)."""
        with self._store.session() as s:
            require_task(s, task_id, active=False)
            return s.dependencies_of(task_id)

    def list_dependents(self, task_id: int) -> list[TaskDependency]:
        """Edges from tasks that depend on *task_id*."""
        with self._store.session() as s:
            require_task(s, task_id, active=False)
            return s.dependents_of(task_id)

    def dependency_counts(self, task_id: int) -> DependencyCounts:
        """Prerequisite edges split into active ones and stale ones (deleted endpoint)."""
        counts = DependencyCounts()
        with self._store.session() as s:
            require_task(s, task_id, active=False)
            for edge in s.dependencies_of(task_id):
                prereq = s.get_task(edge.depends_on_task_id)
                if prereq is None or prereq.is_deleted:
                    counts.stale += 1
                else:
                    counts.active += 1
        return counts

    def would_create_cycle(self, task_id: int, depends_on_task_id: int) -> bool:
        """Dry-run of the acyclicity check, without any write."""
        if task_id == depends_on_task_id:
            return True
        with self._store.session() as s:
            require_task(s, task_id)
            require_task(s, depends_on_task_id)
            return find_path(s, depends_on_task_id, task_id) is not None

    def dependency_chain(self, task_id: int) -> list[int]:
        """All active tasks reachable from *task_id*, in breadth-first order."""
        with self._store.session() as s:
            require_task(s, task_id, active=False)
            chain: list[int] = []
            visited = {task_id}
            queue: deque[int] = deque([task_id])
            while queue:
                current = queue.popleft()
                for prereq in active_prerequisites(s, current):
                    if prereq.id in visited:
                        continue
                    visited.add(prereq.id)
                    chain.append(prereq.id)
                    queue.append(prereq.id)
        return chain

    def blocking_tasks(self, task_id: int) -> list[Task]:
        """Active direct prerequisites that still hold *task_id* back."""
        with self._store.session() as s:
            require_task(s, task_id, active=False)
            return open_prerequisites(s, task_id)

    def is_blocked(self, task_id: int) -> bool:
        """Advisory: ``True`` if any active direct prerequisite is still open."""
        return bool(self.blocking_tasks(task_id))

    def blocked_tasks(self, project_id: int) -> list[tuple[Task, list[Task]]]:
        """Open tasks of a project paired with the prerequisites blocking them."""
        out: list[tuple[Task, list[Task]]] = []
        with self._store.session() as s:
            for task in s.list_tasks(TaskFilter(project_id=project_id)):
                if task.status.is_closed:
                    continue
                blockers = open_prerequisites(s, task.id)
                if blockers:
                    out.append((task, blockers))
        return out

    # ── diagnostics ──────────────────────────────────────────────

    def explain_block(self, task_id: int) -> str:
        """Human-readable explanation of why *task_id* is blocked."""
        blockers = self.blocking_tasks(task_id)
        if not blockers:
            return ""
        return "dependsOn: " + " ".join(f"{t.id} ({t.status.value})" for t in blockers)
