"""Contract tests for deverp.tasks.model enums and dataclasses."""

from __future__ import annotations

import pytest

from deverp.errors import InvalidArgument
from deverp.tasks.model import (
    DependencyCounts,
    DependencyType,
    Priority,
    ProjectStatus,
    Task,
    TaskStatus,
    TaskType,
    TaskUpdate,
)


class TestChoiceParsing:
    @pytest.mark.parametrize("raw", ["in_progress", "IN_PROGRESS", "in-progress", " In-Progress "])
    def test_status_aliases(self, raw):
        assert TaskStatus.parse(raw) is TaskStatus.IN_PROGRESS

    def test_invalid_value_lists_allowed(self):
        with pytest.raises(InvalidArgument) as exc:
            Priority.parse("urgent")
        assert "priority" in exc.value.message
        assert "critical" in exc.value.message

    def test_values(self):
        assert TaskStatus.values() == [
            "todo", "in_progress", "blocked", "review", "testing", "done", "cancelled",
        ]
        assert TaskType.values()[0] == "feature"
        assert DependencyType.values()[0] == "finish_to_start"
        assert "on_hold" in ProjectStatus.values()

    def test_str_is_value(self):
        assert str(TaskStatus.DONE) == "done"
        assert TaskStatus.DONE == "done"

    def test_closed_statuses(self):
        closed = {s for s in TaskStatus if s.is_closed}
        assert closed == {TaskStatus.DONE, TaskStatus.CANCELLED}


class TestDataclasses:
    def test_task_defaults(self):
        task = Task(id=1, uuid="u", project_id=1, title="t")
        assert task.status == TaskStatus.TODO
        assert task.priority == Priority.MEDIUM
        assert not task.is_deleted

    def test_update_changes_skip_none(self):
        update = TaskUpdate(title="x", priority=Priority.LOW)
        assert update.changes() == {"title": "x", "priority": Priority.LOW}
        assert TaskUpdate().changes() == {}

    def test_dependency_counts_total(self):
        assert DependencyCounts(active=2, stale=1).total == 3
