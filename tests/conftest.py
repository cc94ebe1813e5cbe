"""Shared fixtures for deverp tests.

File handling in tests:
- Use tmp_path for databases and report files so tests are isolated and cleaned up.
- Graph, lifecycle and progress tests run against both the SQLite store and
  the in-memory fake (``store`` fixture is parametrized).
"""

from __future__ import annotations

from pathlib import Path

import pytest

from deverp import log
from deverp.store.sqlite import SqliteStore
from deverp.tasks.graph import DependencyGraph
from deverp.tasks.model import NewTask, Project, Task, TaskStatus
from deverp.tasks.service import TaskService
from tests.fakes import MemoryStore


@pytest.fixture(autouse=True)
def _quiet_log():
    """Keep verbose logging from leaking between tests."""
    log.set_verbose(False)
    yield
    log.set_verbose(False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "deverp.sqlite3"


@pytest.fixture
def sqlite_store(db_path: Path) -> SqliteStore:
    return SqliteStore(db_path, busy_timeout=5.0)


@pytest.fixture(params=["sqlite", "memory"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    """A fresh store; every test using it runs once per backend."""
    if request.param == "sqlite":
        return SqliteStore(tmp_path / "deverp.sqlite3", busy_timeout=5.0)
    return MemoryStore()


@pytest.fixture
def service(store) -> TaskService:
    return TaskService(store)


@pytest.fixture
def graph(store) -> DependencyGraph:
    return DependencyGraph(store)


@pytest.fixture
def make_project(service: TaskService):
    """Factory fixture that creates projects through the service."""

    def _make(name: str = "Project", **kwargs) -> Project:
        return service.create_project(name, **kwargs)

    return _make


@pytest.fixture
def make_task(service: TaskService):
    """Factory fixture that creates tasks; ``status`` may be given as a string."""

    def _make(project_id: int, title: str = "", status: str | TaskStatus = "todo", **kwargs) -> Task:
        return service.create_task(
            NewTask(
                project_id=project_id,
                title=title or "Task",
                status=TaskStatus.parse(str(status)),
                **kwargs,
            )
        )

    return _make


@pytest.fixture
def project(make_project) -> Project:
    return make_project("Default")
