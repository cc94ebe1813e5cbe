"""Tests for deverp.progress: derived progress beside the manual value."""

from __future__ import annotations

import pytest

from deverp.errors import InvalidArgument, NotFound
from deverp.progress import ProgressAggregator, ProjectProgress
from deverp.tasks.lifecycle import TaskLifecycle
from deverp.tasks.model import TaskStatus


@pytest.fixture
def aggregator(store) -> ProgressAggregator:
    return ProgressAggregator(store)


class TestProjectProgress:
    """Derived completion ratio."""

    def test_three_of_four_done(self, aggregator, project, make_task):
        for status in ("done", "done", "done", "todo"):
            make_task(project.id, status=status)
        progress = aggregator.compute_project_progress(project.id)
        assert (progress.total, progress.done, progress.percentage) == (4, 3, 75)

    def test_no_tasks_is_zero(self, aggregator, project):
        progress = aggregator.compute_project_progress(project.id)
        assert (progress.total, progress.done, progress.percentage) == (0, 0, 0)

    def test_percentage_rounds_down(self):
        assert ProjectProgress(total=3, done=2).percentage == 66
        assert ProjectProgress(total=3, done=1).percentage == 33

    def test_cancelled_counts_in_total_only(self, aggregator, project, make_task):
        make_task(project.id, status="done")
        make_task(project.id, status="cancelled")
        assert aggregator.compute_project_progress(project.id).percentage == 50

    def test_soft_deleted_excluded(self, aggregator, service, project, make_task):
        """Deleting the only open task makes the project 100% done."""
        make_task(project.id, status="done")
        open_task = make_task(project.id)
        assert aggregator.compute_project_progress(project.id).percentage == 50

        service.delete_task(open_task.id)
        progress = aggregator.compute_project_progress(project.id)
        assert (progress.total, progress.done, progress.percentage) == (1, 1, 100)

    def test_other_projects_ignored(self, aggregator, make_project, make_task):
        p1, p2 = make_project("One"), make_project("Two")
        make_task(p1.id, status="done")
        make_task(p2.id)
        assert aggregator.compute_project_progress(p1.id).percentage == 100

    def test_missing_project(self, aggregator):
        with pytest.raises(NotFound):
            aggregator.compute_project_progress(77)


class TestManualProgress:
    """The manual field and the derived value never overwrite one another."""

    def test_manual_independent_of_derived(self, aggregator, service, project, make_task):
        make_task(project.id, status="done")
        make_task(project.id)
        service.set_project_progress(project.id, 90)

        assert aggregator.compute_project_progress(project.id).percentage == 50
        assert service.get_project(project.id).progress_percentage == 90

    def test_task_completion_does_not_touch_manual(self, aggregator, service, store, project, make_task):
        a = make_task(project.id)
        service.set_project_progress(project.id, 10)
        TaskLifecycle(store).set_status(a.id, TaskStatus.DONE)

        assert service.get_project(project.id).progress_percentage == 10
        assert aggregator.compute_project_progress(project.id).percentage == 100

    @pytest.mark.parametrize("value", [-1, 101])
    def test_out_of_range_rejected(self, service, project, value):
        with pytest.raises(InvalidArgument):
            service.set_project_progress(project.id, value)

    def test_report_flags_divergence(self, aggregator, service, graph, project, make_task):
        a = make_task(project.id).id
        make_task(project.id, status="done")
        c = make_task(project.id).id
        graph.add_dependency(a, c)
        service.set_project_progress(project.id, 33)

        report = aggregator.progress_report(project.id)
        assert report.manual == 33
        assert report.derived.percentage == 33
        assert not report.diverged
        assert report.blocked == 1
        assert report.by_status["done"] == 1
        assert report.by_status["todo"] == 2
        assert report.by_status["review"] == 0

        service.set_project_progress(project.id, 80)
        data = aggregator.progress_report(project.id).as_dict()
        assert data["diverged"] is True
        assert data["manual_progress"] == 80
        assert data["derived_progress"] == 33
        assert data["done_tasks"] == 1
