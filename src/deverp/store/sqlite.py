"""SQLite store.

Schema management is a short list of numbered migrations recorded in
``schema_version``; each one is applied in its own transaction.

Concurrency:
- every session opens its own connection and closes it on exit
- write sessions start with ``BEGIN IMMEDIATE``; SQLite then admits one
  writer at a time and others wait up to ``busy_timeout`` seconds
- read sessions use a deferred transaction so multi-query reads see one
  snapshot
"""

from __future__ import annotations

import contextlib
import sqlite3
import uuid as uuidlib
from collections.abc import Iterator
from enum import Enum
from pathlib import Path
from typing import Any

from deverp import log
from deverp.store.ports import utc_now
from deverp.tasks.model import (
    DependencyType,
    NewTask,
    Priority,
    Project,
    ProjectStatus,
    Task,
    TaskComment,
    TaskDependency,
    TaskFilter,
    TaskStatus,
    TaskType,
)


def _in_list(enum_cls: type[Enum]) -> str:
    return ", ".join(f"'{m.value}'" for m in enum_cls)


MIGRATIONS: list[tuple[int, tuple[str, ...]]] = [
    (
        1,
        (
            f"""
            CREATE TABLE projects (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                uuid TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL CHECK (length(trim(name)) > 0),
                code TEXT UNIQUE,
                description TEXT,
                status TEXT NOT NULL DEFAULT 'planning'
                    CHECK (status IN ({_in_list(ProjectStatus)})),
                priority TEXT NOT NULL DEFAULT 'medium'
                    CHECK (priority IN ({_in_list(Priority)})),
                progress_percentage INTEGER NOT NULL DEFAULT 0
                    CHECK (progress_percentage BETWEEN 0 AND 100),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT
            )
            """,
            f"""
            CREATE TABLE tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                uuid TEXT NOT NULL UNIQUE,
                project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
                parent_task_id INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
                title TEXT NOT NULL CHECK (length(trim(title)) BETWEEN 1 AND 500),
                description TEXT,
                task_number TEXT,
                status TEXT NOT NULL DEFAULT 'todo'
                    CHECK (status IN ({_in_list(TaskStatus)})),
                priority TEXT NOT NULL DEFAULT 'medium'
                    CHECK (priority IN ({_in_list(Priority)})),
                task_type TEXT NOT NULL DEFAULT 'feature'
                    CHECK (task_type IN ({_in_list(TaskType)})),
                assigned_to TEXT,
                estimated_hours REAL CHECK (estimated_hours IS NULL OR estimated_hours >= 0),
                actual_hours REAL CHECK (actual_hours IS NULL OR actual_hours >= 0),
                due_date TEXT,
                started_at TEXT,
                completed_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT
            )
            """,
            f"""
            CREATE TABLE task_dependencies (
                task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                depends_on_task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                dependency_type TEXT NOT NULL DEFAULT 'finish_to_start'
                    CHECK (dependency_type IN ({_in_list(DependencyType)})),
                created_at TEXT NOT NULL,
                PRIMARY KEY (task_id, depends_on_task_id),
                CONSTRAINT no_self_dependency CHECK (task_id != depends_on_task_id)
            )
            """,
        ),
    ),
    (
        2,
        (
            "CREATE INDEX IF NOT EXISTS idx_tasks_project_status ON tasks(project_id, status)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_task_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_deleted ON tasks(deleted_at)",
            "CREATE INDEX IF NOT EXISTS idx_task_deps_depends_on "
            "ON task_dependencies(depends_on_task_id)",
            "CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status)",
        ),
    ),
    (
        3,
        (
            """
            CREATE TABLE task_comments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                content TEXT NOT NULL CHECK (length(trim(content)) > 0),
                author TEXT CHECK (author IS NULL OR length(author) <= 100),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_task_comments_task ON task_comments(task_id)",
        ),
    ),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]

_TASK_COLUMNS = frozenset(
    {
        "title",
        "description",
        "task_number",
        "status",
        "priority",
        "task_type",
        "assigned_to",
        "estimated_hours",
        "actual_hours",
        "due_date",
        "started_at",
        "completed_at",
        "parent_task_id",
    }
)

_PROJECT_COLUMNS = frozenset(
    {"name", "code", "description", "status", "priority", "progress_percentage"}
)


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class SqliteSession:
    """All store operations bound to one connection / transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ---- row mapping ----

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            uuid=str(row["uuid"]),
            project_id=int(row["project_id"]),
            title=str(row["title"]),
            status=TaskStatus(row["status"]),
            priority=Priority(row["priority"]),
            task_type=TaskType(row["task_type"]),
            parent_task_id=row["parent_task_id"],
            description=row["description"],
            task_number=row["task_number"],
            assigned_to=row["assigned_to"],
            estimated_hours=row["estimated_hours"],
            actual_hours=row["actual_hours"],
            due_date=row["due_date"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=int(row["id"]),
            uuid=str(row["uuid"]),
            name=str(row["name"]),
            code=row["code"],
            description=row["description"],
            status=ProjectStatus(row["status"]),
            priority=Priority(row["priority"]),
            progress_percentage=int(row["progress_percentage"] or 0),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    @staticmethod
    def _row_to_comment(row: sqlite3.Row) -> TaskComment:
        return TaskComment(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            content=str(row["content"]),
            author=row["author"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    @staticmethod
    def _row_to_dependency(row: sqlite3.Row) -> TaskDependency:
        return TaskDependency(
            task_id=int(row["task_id"]),
            depends_on_task_id=int(row["depends_on_task_id"]),
            dependency_type=DependencyType(row["dependency_type"]),
            created_at=row["created_at"],
        )

    # ---- tasks ----

    def create_task(self, new: NewTask) -> Task:
        now = utc_now()
        cur = self._conn.execute(
            """
            INSERT INTO tasks(
                uuid, project_id, parent_task_id, title, description, task_number,
                status, priority, task_type, assigned_to, estimated_hours, due_date,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(uuidlib.uuid4()),
                new.project_id,
                new.parent_task_id,
                new.title.strip(),
                new.description,
                new.task_number,
                new.status.value,
                new.priority.value,
                new.task_type.value,
                new.assigned_to,
                new.estimated_hours,
                new.due_date,
                now,
                now,
            ),
        )
        if cur.lastrowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        task = self.get_task(int(cur.lastrowid))
        assert task is not None
        return task

    def get_task(self, task_id: int) -> Task | None:
        row = self._conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        return self._row_to_task(row) if row else None

    def get_task_by_uuid(self, uuid: str) -> Task | None:
        row = self._conn.execute("SELECT * FROM tasks WHERE uuid = ?", (uuid,)).fetchone()
        return self._row_to_task(row) if row else None

    @staticmethod
    def _task_where(flt: TaskFilter) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if not flt.include_deleted:
            clauses.append("deleted_at IS NULL")
        if flt.project_id is not None:
            clauses.append("project_id = ?")
            params.append(flt.project_id)
        if flt.status is not None:
            clauses.append("status = ?")
            params.append(flt.status.value)
        if flt.priority is not None:
            clauses.append("priority = ?")
            params.append(flt.priority.value)
        if flt.task_type is not None:
            clauses.append("task_type = ?")
            params.append(flt.task_type.value)
        if flt.assigned_to is not None:
            clauses.append("assigned_to = ?")
            params.append(flt.assigned_to)
        if flt.parent_task_id is not None:
            clauses.append("parent_task_id = ?")
            params.append(flt.parent_task_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def list_tasks(self, flt: TaskFilter) -> list[Task]:
        where, params = self._task_where(flt)
        sql = f"SELECT * FROM tasks {where} ORDER BY id ASC"
        if flt.limit is not None or flt.offset:
            sql += " LIMIT ? OFFSET ?"
            params += [flt.limit if flt.limit is not None else -1, max(0, flt.offset)]
        return [self._row_to_task(r) for r in self._conn.execute(sql, params).fetchall()]

    def count_tasks(self, flt: TaskFilter) -> int:
        where, params = self._task_where(flt)
        (n,) = self._conn.execute(f"SELECT COUNT(*) FROM tasks {where}", params).fetchone()
        return int(n)

    def update_task(self, task_id: int, changes: dict[str, Any]) -> Task | None:
        unknown = set(changes) - _TASK_COLUMNS
        if unknown:
            raise ValueError(f"Unknown task column(s): {', '.join(sorted(unknown))}")
        if changes:
            cols = [f"{name} = ?" for name in changes]
            params = [_db_value(v) for v in changes.values()]
            cols.append("updated_at = ?")
            params += [utc_now(), int(task_id)]
            self._conn.execute(
                f"UPDATE tasks SET {', '.join(cols)} WHERE id = ? AND deleted_at IS NULL",
                params,
            )
        return self.get_task(task_id)

    def soft_delete_task(self, task_id: int) -> bool:
        now = utc_now()
        cur = self._conn.execute(
            "UPDATE tasks SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
            (now, now, int(task_id)),
        )
        return cur.rowcount == 1

    def status_counts(self, project_id: int) -> dict[TaskStatus, int]:
        rows = self._conn.execute(
            """
            SELECT status, COUNT(*) AS n
            FROM tasks
            WHERE project_id = ? AND deleted_at IS NULL
            GROUP BY status
            """,
            (int(project_id),),
        ).fetchall()
        return {TaskStatus(r["status"]): int(r["n"]) for r in rows}

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
        cur = self._conn.execute(
            """
            INSERT INTO projects(uuid, name, code, description, status, priority,
                                 created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(uuidlib.uuid4()),
                name.strip(),
                code,
                description,
                status.value,
                priority.value,
                now,
                now,
            ),
        )
        if cur.lastrowid is None:
            raise RuntimeError("SQLite did not return lastrowid for projects insert")
        project = self.get_project(int(cur.lastrowid))
        assert project is not None
        return project

    def get_project(self, project_id: int) -> Project | None:
        row = self._conn.execute(
            "SELECT * FROM projects WHERE id = ?", (int(project_id),)
        ).fetchone()
        return self._row_to_project(row) if row else None

    def get_project_by_code(self, code: str) -> Project | None:
        row = self._conn.execute("SELECT * FROM projects WHERE code = ?", (code,)).fetchone()
        return self._row_to_project(row) if row else None

    def list_projects(
        self, *, status: ProjectStatus | None = None, include_deleted: bool = False
    ) -> list[Project]:
        clauses: list[str] = []
        params: list[Any] = []
        if not include_deleted:
            clauses.append("deleted_at IS NULL")
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(f"SELECT * FROM projects {where} ORDER BY id ASC", params)
        return [self._row_to_project(r) for r in rows.fetchall()]

    def update_project(self, project_id: int, changes: dict[str, Any]) -> Project | None:
        unknown = set(changes) - _PROJECT_COLUMNS
        if unknown:
            raise ValueError(f"Unknown project column(s): {', '.join(sorted(unknown))}")
        if changes:
            cols = [f"{name} = ?" for name in changes]
            params = [_db_value(v) for v in changes.values()]
            cols.append("updated_at = ?")
            params += [utc_now(), int(project_id)]
            self._conn.execute(
                f"UPDATE projects SET {', '.join(cols)} WHERE id = ? AND deleted_at IS NULL",
                params,
            )
        return self.get_project(project_id)

    def soft_delete_project(self, project_id: int) -> bool:
        now = utc_now()
        cur = self._conn.execute(
            "UPDATE projects SET deleted_at = ?, updated_at = ? "
            "WHERE id = ? AND deleted_at IS NULL",
            (now, now, int(project_id)),
        )
        return cur.rowcount == 1

    # ---- dependency edges ----

    def get_dependency(self, task_id: int, depends_on_task_id: int) -> TaskDependency | None:
        row = self._conn.execute(
            "SELECT * FROM task_dependencies WHERE task_id = ? AND depends_on_task_id = ?",
            (int(task_id), int(depends_on_task_id)),
        ).fetchone()
        return self._row_to_dependency(row) if row else None

    def insert_dependency(self, dep: TaskDependency) -> TaskDependency:
        created_at = dep.created_at or utc_now()
        self._conn.execute(
            """
            INSERT INTO task_dependencies(task_id, depends_on_task_id, dependency_type, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (dep.task_id, dep.depends_on_task_id, dep.dependency_type.value, created_at),
        )
        return TaskDependency(
            task_id=dep.task_id,
            depends_on_task_id=dep.depends_on_task_id,
            dependency_type=dep.dependency_type,
            created_at=created_at,
        )

    def delete_dependency(self, task_id: int, depends_on_task_id: int) -> bool:
        cur = self._conn.execute(
            "DELETE FROM task_dependencies WHERE task_id = ? AND depends_on_task_id = ?",
            (int(task_id), int(depends_on_task_id)),
        )
        return cur.rowcount == 1

    def dependencies_of(self, task_id: int) -> list[TaskDependency]:
        rows = self._conn.execute(
            "SELECT * FROM task_dependencies WHERE task_id = ? ORDER BY depends_on_task_id",
            (int(task_id),),
        ).fetchall()
        return [self._row_to_dependency(r) for r in rows]

    def dependents_of(self, task_id: int) -> list[TaskDependency]:
        rows = self._conn.execute(
            "SELECT * FROM task_dependencies WHERE depends_on_task_id = ? ORDER BY task_id",
            (int(task_id),),
        ).fetchall()
        return [self._row_to_dependency(r) for r in rows]

    def all_dependencies(self) -> list[TaskDependency]:
        rows = self._conn.execute(
            "SELECT * FROM task_dependencies ORDER BY task_id, depends_on_task_id"
        ).fetchall()
        return [self._row_to_dependency(r) for r in rows]

    # ---- comments ----

    def add_comment(self, task_id: int, content: str, author: str | None = None) -> TaskComment:
        now = utc_now()
        cur = self._conn.execute(
            """
            INSERT INTO task_comments(task_id, content, author, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (int(task_id), content.strip(), author, now, now),
        )
        if cur.lastrowid is None:
            raise RuntimeError("SQLite did not return lastrowid for task_comments insert")
        comment = self.get_comment(int(cur.lastrowid))
        assert comment is not None
        return comment

    def get_comment(self, comment_id: int) -> TaskComment | None:
        row = self._conn.execute(
            "SELECT * FROM task_comments WHERE id = ?", (int(comment_id),)
        ).fetchone()
        return self._row_to_comment(row) if row else None

    def list_comments(self, task_id: int) -> list[TaskComment]:
        rows = self._conn.execute(
            "SELECT * FROM task_comments WHERE task_id = ? AND deleted_at IS NULL "
            "ORDER BY created_at, id",
            (int(task_id),),
        ).fetchall()
        return [self._row_to_comment(r) for r in rows]

    def update_comment(self, comment_id: int, content: str) -> TaskComment | None:
        self._conn.execute(
            "UPDATE task_comments SET content = ?, updated_at = ? "
            "WHERE id = ? AND deleted_at IS NULL",
            (content.strip(), utc_now(), int(comment_id)),
        )
        return self.get_comment(comment_id)

    def soft_delete_comment(self, comment_id: int) -> bool:
        now = utc_now()
        cur = self._conn.execute(
            "UPDATE task_comments SET deleted_at = ?, updated_at = ? "
            "WHERE id = ? AND deleted_at IS NULL",
            (now, now, int(comment_id)),
        )
        return cur.rowcount == 1


class SqliteStore:
    """SQLite-backed :class:`deverp.store.ports.Store`."""

    def __init__(self, db_path: str | Path, *, busy_timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = float(busy_timeout)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._migrate()
        log.debug(f"Store ready db={self._db_path} schema=v{SCHEMA_VERSION}")

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are issued explicitly below.
        conn = sqlite3.connect(
            str(self._db_path), timeout=self._busy_timeout, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextlib.contextmanager
    def session(self, *, write: bool = False) -> Iterator[SqliteSession]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield SqliteSession(conn)
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def schema_version(self) -> int:
        conn = self._connect()
        try:
            return self._current_version(conn)
        finally:
            conn.close()

    @staticmethod
    def _current_version(conn: sqlite3.Connection) -> int:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        )
        (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
        return int(version)

    def _migrate(self) -> None:
        conn = self._connect()
        try:
            current = self._current_version(conn)
            for version, statements in MIGRATIONS:
                if version <= current:
                    continue
                conn.execute("BEGIN IMMEDIATE")
                try:
                    # Another process may have migrated while we waited for the lock.
                    if self._current_version(conn) >= version:
                        conn.execute("ROLLBACK")
                        continue
                    for stmt in statements:
                        conn.execute(stmt)
                    conn.execute(
                        "INSERT INTO schema_version(version, applied_at) VALUES (?, ?)",
                        (version, utc_now()),
                    )
                except BaseException:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
                log.debug(f"Store migration applied: v{version}")
        finally:
            conn.close()
