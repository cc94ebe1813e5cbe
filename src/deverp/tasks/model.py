"""Task, dependency and project data models used across store, graph and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from deverp.errors import InvalidArgument


class _Choice(str, Enum):
    """String enum that parses user input case-insensitively."""

    @classmethod
    def parse(cls, raw: str):
        value = (raw or "").strip().lower().replace("-", "_")
        for member in cls:
            if member.value == value:
                return member
        allowed = ", ".join(m.value for m in cls)
        raise InvalidArgument(f"Invalid {cls._label()}: {raw!r} (expected one of: {allowed})")

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]

    @classmethod
    def _label(cls) -> str:
        return "value"

    def __str__(self) -> str:
        return self.value


class TaskStatus(_Choice):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    TESTING = "testing"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def _label(cls) -> str:
        return "task status"

    @property
    def is_closed(self) -> bool:
        """Done and cancelled tasks no longer hold back their dependents."""
        return self in (TaskStatus.DONE, TaskStatus.CANCELLED)


class Priority(_Choice):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def _label(cls) -> str:
        return "priority"


class TaskType(_Choice):
    FEATURE = "feature"
    BUG = "bug"
    ENHANCEMENT = "enhancement"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"
    CHORE = "chore"

    @classmethod
    def _label(cls) -> str:
        return "task type"


class DependencyType(_Choice):
    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"

    @classmethod
    def _label(cls) -> str:
        return "dependency type"


class ProjectStatus(_Choice):
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"

    @classmethod
    def _label(cls) -> str:
        return "project status"


@dataclass
class Task:
    id: int
    uuid: str
    project_id: int
    title: str
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    task_type: TaskType = TaskType.FEATURE
    parent_task_id: int | None = None
    description: str | None = None
    task_number: str | None = None
    assigned_to: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    due_date: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass
class TaskDependency:
    """Directed edge: ``task_id`` depends on ``depends_on_task_id``."""

    task_id: int
    depends_on_task_id: int
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    created_at: str = ""


@dataclass
class Project:
    id: int
    uuid: str
    name: str
    code: str | None = None
    description: str | None = None
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: Priority = Priority.MEDIUM
    progress_percentage: int = 0
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass
class NewTask:
    """Input for task creation; validated by :func:`deverp.tasks.validate.validate_new_task`."""

    project_id: int
    title: str
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    task_type: TaskType = TaskType.FEATURE
    parent_task_id: int | None = None
    description: str | None = None
    task_number: str | None = None
    assigned_to: str | None = None
    estimated_hours: float | None = None
    due_date: str | None = None


@dataclass
class TaskFilter:
    project_id: int | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    task_type: TaskType | None = None
    assigned_to: str | None = None
    parent_task_id: int | None = None
    include_deleted: bool = False
    limit: int | None = None
    offset: int = 0


@dataclass
class DependencyCounts:
    active: int = 0
    stale: int = 0

    @property
    def total(self) -> int:
        return self.active + self.stale


@dataclass
class TaskUpdate:
    """Partial update; ``None`` fields are left untouched."""

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    task_type: TaskType | None = None
    assigned_to: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    due_date: str | None = None

    def changes(self) -> dict[str, object]:
        out: dict[str, object] = {}
        for name in (
            "title",
            "description",
            "status",
            "priority",
            "task_type",
            "assigned_to",
            "estimated_hours",
            "actual_hours",
            "due_date",
        ):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


@dataclass
class TaskComment:
    id: int
    task_id: int
    content: str
    author: str | None = None
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass
class ProjectUpdate:
    """Partial project update; ``None`` fields are left untouched."""

    name: str | None = None
    code: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    priority: Priority | None = None

    def changes(self) -> dict[str, object]:
        out: dict[str, object] = {}
        for name in ("name", "code", "description", "status", "priority"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out
