"""Derived project progress, reported beside the manual progress field."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from deverp.store.ports import Store, StoreSession
from deverp.tasks.graph import open_prerequisites, require_project
from deverp.tasks.model import Project, TaskFilter, TaskStatus


@dataclass
class ProjectProgress:
    total: int = 0
    done: int = 0

    @property
    def percentage(self) -> int:
        """``floor(done * 100 / total)``; 0 for a project without tasks."""
        if self.total <= 0:
            return 0
        return (self.done * 100) // self.total


@dataclass
class ProgressReport:
    project: Project
    derived: ProjectProgress
    by_status: dict[str, int] = field(default_factory=dict)
    blocked: int = 0

    @property
    def manual(self) -> int:
        return self.project.progress_percentage

    @property
    def diverged(self) -> bool:
        return self.manual != self.derived.percentage

    def as_dict(self) -> dict[str, object]:
        return {
            "project": asdict(self.project),
            "manual_progress": self.manual,
            "derived_progress": self.derived.percentage,
            "diverged": self.diverged,
            "total_tasks": self.derived.total,
            "done_tasks": self.derived.done,
            "blocked_tasks": self.blocked,
            "by_status": dict(self.by_status),
        }


def _progress(session: StoreSession, project_id: int) -> ProjectProgress:
    counts = session.status_counts(project_id)
    return ProjectProgress(
        total=sum(counts.values()),
        done=counts.get(TaskStatus.DONE, 0),
    )


class ProgressAggregator:
    """Read-only progress computations over one store."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def compute_project_progress(self, project_id: int) -> ProjectProgress:
        """Count active tasks and how many are done. Soft-deleted tasks are ignored."""
        with self._store.session() as s:
            require_project(s, project_id)
            return _progress(s, project_id)

    def progress_report(self, project_id: int) -> ProgressReport:
        with self._store.session() as s:
            project = require_project(s, project_id)
            counts = s.status_counts(project_id)
            blocked = 0
            for task in s.list_tasks(TaskFilter(project_id=project_id)):
                if not task.status.is_closed and open_prerequisites(s, task.id):
                    blocked += 1
            return ProgressReport(
                project=project,
                derived=_progress(s, project_id),
                by_status={st.value: counts.get(st, 0) for st in TaskStatus},
                blocked=blocked,
            )
