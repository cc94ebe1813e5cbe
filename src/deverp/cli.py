"""DevERP CLI: projects, tasks, dependencies and progress reports.

Installed as ``deverp`` console_script via pipx / pip.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

import click
from rich.markup import escape
from rich.table import Table

from deverp import __version__, log
from deverp.config import OUTPUT_FORMATS, Config
from deverp.errors import CycleDetected, DevErpError
from deverp.io_utils import dump_json, write_json
from deverp.progress import ProgressAggregator
from deverp.store.sqlite import SqliteStore
from deverp.tasks.graph import DependencyGraph
from deverp.tasks.lifecycle import TaskLifecycle
from deverp.tasks.model import (
    DependencyType,
    NewTask,
    Priority,
    ProjectStatus,
    ProjectUpdate,
    Task,
    TaskFilter,
    TaskStatus,
    TaskType,
    TaskUpdate,
)
from deverp.tasks.service import TaskService
from deverp.tasks.validate import detect_cycles

STORAGE_ERROR_EXIT = 10


# ── Custom Click group that maps domain errors to exit codes ─────────

class DevErpGroup(click.Group):
    """Report :class:`DevErpError` and storage errors, then exit with their code."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except DevErpError as exc:
            log.error(escape(exc.message), rule=exc.rule)
            if exc.task_ids:
                ids = ", ".join(str(t) for t in exc.task_ids)
                log.error(f"task ids: {ids}", rule=exc.rule)
            ctx.exit(exc.exit_code)
        except sqlite3.Error as exc:
            log.error(escape(str(exc)), rule="storage")
            ctx.exit(STORAGE_ERROR_EXIT)


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


@dataclass
class App:
    """Per-invocation state: config plus a lazily opened store."""

    cfg: Config
    _store: SqliteStore | None = None

    @property
    def store(self) -> SqliteStore:
        if self._store is None:
            self._store = SqliteStore(self.cfg.db_path, busy_timeout=self.cfg.busy_timeout)
        return self._store

    def tasks(self) -> TaskService:
        return TaskService(self.store)

    def graph(self) -> DependencyGraph:
        return DependencyGraph(
            self.store, allow_cross_project=bool(self.cfg.allow_cross_project_dependencies)
        )

    def lifecycle(self) -> TaskLifecycle:
        return TaskLifecycle(self.store)

    def progress(self) -> ProgressAggregator:
        return ProgressAggregator(self.store)


pass_app = click.make_pass_decorator(App)


# ── Output helpers ───────────────────────────────────────────────────


def _cell(app: App, value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, str) and len(value) >= 19 and value[4] == "-" and "T" in value:
        try:
            return datetime.fromisoformat(value).strftime(app.cfg.date_format)
        except ValueError:
            return value
    return str(value)


def _emit_rows(
    app: App,
    rows: list[dict[str, Any]],
    columns: list[tuple[str, str]],
    *,
    title: str = "",
) -> None:
    fmt = app.cfg.output_format
    if fmt == "json":
        click.echo(dump_json(rows))
        return
    if fmt == "plain":
        for row in rows:
            click.echo("\t".join(_cell(app, row.get(key)) for key, _ in columns))
        return
    if not rows:
        log.info("No results")
        return
    table = Table(title=title or None)
    for _, header in columns:
        table.add_column(header)
    for row in rows:
        table.add_row(*(escape(_cell(app, row.get(key))) for key, _ in columns))
    log.console.print(table)


def _emit_record(app: App, record: dict[str, Any], *, title: str = "") -> None:
    fmt = app.cfg.output_format
    if fmt == "json":
        click.echo(dump_json(record))
        return
    if fmt == "plain":
        for key, value in record.items():
            click.echo(f"{key}: {_cell(app, value)}")
        return
    if title:
        log.section(escape(title))
    for key, value in record.items():
        log.field(key, escape(_cell(app, value)))


def _task_dict(task: Task) -> dict[str, Any]:
    return asdict(task)


TASK_COLUMNS = [
    ("id", "ID"),
    ("title", "Title"),
    ("status", "Status"),
    ("priority", "Priority"),
    ("task_type", "Type"),
    ("assigned_to", "Assignee"),
    ("due_date", "Due"),
]

PROJECT_COLUMNS = [
    ("id", "ID"),
    ("code", "Code"),
    ("name", "Name"),
    ("status", "Status"),
    ("priority", "Priority"),
    ("progress_percentage", "Progress %"),
]

EDGE_COLUMNS = [
    ("task_id", "Task"),
    ("depends_on_task_id", "Depends on"),
    ("dependency_type", "Type"),
    ("other_status", "Status"),
    ("stale", "Stale"),
]

COMMENT_COLUMNS = [
    ("id", "ID"),
    ("author", "Author"),
    ("created_at", "Created"),
    ("content", "Comment"),
]


def _choice(enum_cls: Any) -> click.Choice:
    return click.Choice(enum_cls.values(), case_sensitive=False)


# ── Root group ───────────────────────────────────────────────────────


@click.group(cls=DevErpGroup, context_settings=CONTEXT_SETTINGS)
@click.option("--db", "db_path", default="", help="SQLite database path (env: DEVERP_DB_PATH)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
    default=None,
    help="Output format (env: DEVERP_FORMAT)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="deverp")
@click.pass_context
def main(ctx: click.Context, db_path: str, output_format: str | None, verbose: bool) -> None:
    """DevERP: personal project and task tracking.

    \b
    EXAMPLES:
      deverp project create "Website" --code WEB
      deverp task create --project-id 1 --title "Design schema"
      deverp task add-dependency --task-id 2 --depends-on-task-id 1
      deverp task status 1 done
      deverp report project 1 --output report.json
    """
    log.set_verbose(verbose)
    cfg = Config(
        db_path=db_path,
        output_format=(output_format or "").lower(),
        verbose=verbose,
    )
    ctx.obj = App(cfg=cfg)
    log.debug(f"Using database {cfg.db_path}")


# ── project ──────────────────────────────────────────────────────────


@main.group(context_settings=CONTEXT_SETTINGS)
def project() -> None:
    """Create, inspect and track projects."""


@project.command("create")
@click.argument("name")
@click.option("--code", default=None, help="Unique short code")
@click.option("--description", default=None)
@click.option("--priority", type=_choice(Priority), default="medium", show_default=True)
@click.option("--status", type=_choice(ProjectStatus), default="planning", show_default=True)
@pass_app
def project_create(
    app: App,
    name: str,
    code: str | None,
    description: str | None,
    priority: str,
    status: str,
) -> None:
    """Create a project."""
    created = app.tasks().create_project(
        name,
        code=code,
        description=description,
        status=ProjectStatus.parse(status),
        priority=Priority.parse(priority),
    )
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(created))
    else:
        log.success(f"Project created: {created.id} {escape(created.name)}")


@project.command("list")
@click.option("--status", type=_choice(ProjectStatus), default=None)
@click.option("--include-deleted", is_flag=True, help="Include soft-deleted projects")
@pass_app
def project_list(app: App, status: str | None, include_deleted: bool) -> None:
    """List projects."""
    projects = app.tasks().list_projects(
        status=ProjectStatus.parse(status) if status else None,
        include_deleted=include_deleted,
    )
    _emit_rows(app, [asdict(p) for p in projects], PROJECT_COLUMNS, title="Projects")


@project.command("show")
@click.argument("project_id", type=int)
@pass_app
def project_show(app: App, project_id: int) -> None:
    """Show one project."""
    found = app.tasks().get_project(project_id)
    _emit_record(app, asdict(found), title=f"Project {found.id}: {found.name}")


@project.command("update")
@click.argument("project_id", type=int)
@click.option("--name", default=None)
@click.option("--code", default=None)
@click.option("--description", default=None)
@click.option("--status", type=_choice(ProjectStatus), default=None)
@click.option("--priority", type=_choice(Priority), default=None)
@pass_app
def project_update(
    app: App,
    project_id: int,
    name: str | None,
    code: str | None,
    description: str | None,
    status: str | None,
    priority: str | None,
) -> None:
    """Update fields of a project."""
    update = ProjectUpdate(
        name=name,
        code=code,
        description=description,
        status=ProjectStatus.parse(status) if status else None,
        priority=Priority.parse(priority) if priority else None,
    )
    if not update.changes():
        log.warn("Nothing to update")
        return
    updated = app.tasks().update_project(project_id, update)
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(updated))
    else:
        log.success(f"Project {updated.id} updated")


@project.command("archive")
@click.argument("project_id", type=int)
@pass_app
def project_archive(app: App, project_id: int) -> None:
    """Archive a project. It stays listed, unlike a deleted one."""
    archived = app.tasks().archive_project(project_id)
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(archived))
    else:
        log.success(f"Project {archived.id} archived")


@project.command("set-progress")
@click.argument("project_id", type=int)
@click.argument("percent", type=int)
@pass_app
def project_set_progress(app: App, project_id: int, percent: int) -> None:
    """Set the manual progress percentage (0-100)."""
    updated = app.tasks().set_project_progress(project_id, percent)
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(updated))
    else:
        log.success(f"Project {updated.id} manual progress set to {updated.progress_percentage}%")


@project.command("progress")
@click.argument("project_id", type=int)
@pass_app
def project_progress(app: App, project_id: int) -> None:
    """Show manual and derived progress side by side."""
    report = app.progress().progress_report(project_id)
    _emit_record(
        app,
        {
            "project_id": report.project.id,
            "manual_progress": report.manual,
            "derived_progress": report.derived.percentage,
            "done_tasks": report.derived.done,
            "total_tasks": report.derived.total,
            "diverged": report.diverged,
        },
        title=f"Progress: {report.project.name}",
    )


@project.command("delete")
@click.argument("project_id", type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation")
@pass_app
def project_delete(app: App, project_id: int, yes: bool) -> None:
    """Soft-delete a project."""
    if not yes:
        click.confirm(f"Delete project {project_id}?", abort=True)
    app.tasks().delete_project(project_id)
    log.success(f"Project {project_id} deleted")


# ── task ─────────────────────────────────────────────────────────────


@main.group(context_settings=CONTEXT_SETTINGS)
def task() -> None:
    """Create and update tasks and their dependencies."""


@task.command("create")
@click.option("--project-id", type=int, required=True)
@click.option("--title", required=True)
@click.option("--description", default=None)
@click.option("--parent-task-id", type=int, default=None)
@click.option("--task-number", default=None)
@click.option("--status", type=_choice(TaskStatus), default="todo", show_default=True)
@click.option("--priority", type=_choice(Priority), default="medium", show_default=True)
@click.option("--task-type", type=_choice(TaskType), default="feature", show_default=True)
@click.option("--assigned-to", default=None)
@click.option("--estimated-hours", type=float, default=None)
@click.option("--due-date", default=None, help="YYYY-MM-DD")
@pass_app
def task_create(
    app: App,
    project_id: int,
    title: str,
    description: str | None,
    parent_task_id: int | None,
    task_number: str | None,
    status: str,
    priority: str,
    task_type: str,
    assigned_to: str | None,
    estimated_hours: float | None,
    due_date: str | None,
) -> None:
    """Create a task."""
    created = app.tasks().create_task(
        NewTask(
            project_id=project_id,
            title=title,
            description=description,
            parent_task_id=parent_task_id,
            task_number=task_number,
            status=TaskStatus.parse(status),
            priority=Priority.parse(priority),
            task_type=TaskType.parse(task_type),
            assigned_to=assigned_to,
            estimated_hours=estimated_hours,
            due_date=due_date,
        )
    )
    if app.cfg.output_format == "json":
        _emit_record(app, _task_dict(created))
    else:
        log.success(f"Task created: {created.id} {escape(created.title)}")


@task.command("list")
@click.option("--project-id", type=int, default=None)
@click.option("--status", type=_choice(TaskStatus), default=None)
@click.option("--priority", type=_choice(Priority), default=None)
@click.option("--task-type", type=_choice(TaskType), default=None)
@click.option("--assigned-to", default=None)
@click.option("--parent-task-id", type=int, default=None)
@click.option("--include-deleted", is_flag=True, help="Include soft-deleted tasks")
@click.option("--limit", type=int, default=None)
@click.option("--offset", type=int, default=0)
@pass_app
def task_list(
    app: App,
    project_id: int | None,
    status: str | None,
    priority: str | None,
    task_type: str | None,
    assigned_to: str | None,
    parent_task_id: int | None,
    include_deleted: bool,
    limit: int | None,
    offset: int,
) -> None:
    """List tasks matching the given filters."""
    flt = TaskFilter(
        project_id=project_id,
        status=TaskStatus.parse(status) if status else None,
        priority=Priority.parse(priority) if priority else None,
        task_type=TaskType.parse(task_type) if task_type else None,
        assigned_to=assigned_to,
        parent_task_id=parent_task_id,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )
    service = app.tasks()
    tasks = service.list_tasks(flt)
    _emit_rows(app, [_task_dict(t) for t in tasks], TASK_COLUMNS, title="Tasks")
    if app.cfg.output_format == "table" and tasks:
        log.info(f"Showing {len(tasks)} of {service.count_tasks(flt)} task(s)")


@task.command("show")
@click.argument("ref")
@pass_app
def task_show(app: App, ref: str) -> None:
    """Show a task by id or uuid, with its dependency counts and comments."""
    service = app.tasks()
    found = service.get_task(ref)
    graph = app.graph()
    counts = graph.dependency_counts(found.id)
    record = _task_dict(found)
    record["dependencies_active"] = counts.active
    record["dependencies_stale"] = counts.stale
    record["blocked_by"] = graph.explain_block(found.id) or None
    record["can_complete"] = None if found.is_deleted else app.lifecycle().can_complete(found.id)
    comments = [asdict(c) for c in service.list_comments(found.id)]
    if app.cfg.output_format == "json":
        record["comments"] = comments
        _emit_record(app, record)
        return
    _emit_record(app, record, title=f"Task {found.id}: {found.title}")
    if comments:
        _emit_rows(app, comments, COMMENT_COLUMNS, title="Comments")


@task.command("update")
@click.argument("ref")
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--status", type=_choice(TaskStatus), default=None)
@click.option("--priority", type=_choice(Priority), default=None)
@click.option("--task-type", type=_choice(TaskType), default=None)
@click.option("--assigned-to", default=None)
@click.option("--estimated-hours", type=float, default=None)
@click.option("--actual-hours", type=float, default=None)
@click.option("--due-date", default=None)
@pass_app
def task_update(
    app: App,
    ref: str,
    title: str | None,
    description: str | None,
    status: str | None,
    priority: str | None,
    task_type: str | None,
    assigned_to: str | None,
    estimated_hours: float | None,
    actual_hours: float | None,
    due_date: str | None,
) -> None:
    """Update fields of a task."""
    update = TaskUpdate(
        title=title,
        description=description,
        status=TaskStatus.parse(status) if status else None,
        priority=Priority.parse(priority) if priority else None,
        task_type=TaskType.parse(task_type) if task_type else None,
        assigned_to=assigned_to,
        estimated_hours=estimated_hours,
        actual_hours=actual_hours,
        due_date=due_date,
    )
    if not update.changes():
        log.warn("Nothing to update")
        return
    updated = app.tasks().update_task(ref, update)
    if app.cfg.output_format == "json":
        _emit_record(app, _task_dict(updated))
    else:
        log.success(f"Task {updated.id} updated")


@task.command("status")
@click.argument("task_id", type=int)
@click.argument("status", type=_choice(TaskStatus))
@pass_app
def task_status(app: App, task_id: int, status: str) -> None:
    """Change a task's status. Completing a task requires its prerequisites to be closed."""
    new_status = TaskStatus.parse(status)
    if new_status == TaskStatus.IN_PROGRESS:
        reason = app.graph().explain_block(task_id)
        if reason:
            log.warn(f"Task {task_id} still has open prerequisites ({reason})")

    updated = app.lifecycle().set_status(task_id, new_status)
    progress = app.progress().compute_project_progress(updated.project_id)

    if app.cfg.output_format == "json":
        record = _task_dict(updated)
        record["project_progress"] = progress.percentage
        _emit_record(app, record)
        return
    log.success(f"Task {updated.id} is now {updated.status.value}")
    log.info(
        f"Project {updated.project_id} progress: {progress.percentage}% "
        f"({progress.done}/{progress.total} done)"
    )


@task.command("delete")
@click.argument("ref")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@pass_app
def task_delete(app: App, ref: str, yes: bool) -> None:
    """Soft-delete a task. Its dependency edges are kept but become stale."""
    if not yes:
        click.confirm(f"Delete task {ref}?", abort=True)
    stale = app.tasks().delete_task(ref)
    log.success(f"Task {ref} deleted")
    if stale:
        log.warn(f"{stale} dependency edge(s) now point at a deleted task")


@task.command("add-dependency")
@click.option("--task-id", type=int, required=True, help="Dependent task")
@click.option("--depends-on-task-id", type=int, required=True, help="Prerequisite task")
@click.option(
    "--dependency-type",
    type=_choice(DependencyType),
    default="finish_to_start",
    show_default=True,
)
@click.option("--dry-run", is_flag=True, help="Only report whether the edge would close a cycle")
@pass_app
def task_add_dependency(
    app: App, task_id: int, depends_on_task_id: int, dependency_type: str, dry_run: bool
) -> None:
    """Record that TASK-ID depends on DEPENDS-ON-TASK-ID."""
    if dry_run:
        cycle = app.graph().would_create_cycle(task_id, depends_on_task_id)
        if app.cfg.output_format == "json":
            _emit_record(
                app,
                {"task_id": task_id, "depends_on_task_id": depends_on_task_id, "would_cycle": cycle},
            )
        elif cycle:
            log.warn(f"Task {task_id} -> {depends_on_task_id} would create a cycle")
        else:
            log.info(f"Task {task_id} -> {depends_on_task_id} would not create a cycle")
        return
    edge = app.graph().add_dependency(
        task_id, depends_on_task_id, DependencyType.parse(dependency_type)
    )
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(edge))
    else:
        log.success(
            f"Task {edge.task_id} now depends on task {edge.depends_on_task_id} "
            f"({edge.dependency_type.value})"
        )


@task.command("remove-dependency")
@click.option("--task-id", type=int, required=True)
@click.option("--depends-on-task-id", type=int, required=True)
@pass_app
def task_remove_dependency(app: App, task_id: int, depends_on_task_id: int) -> None:
    """Remove a dependency edge."""
    app.graph().remove_dependency(task_id, depends_on_task_id)
    log.success(f"Task {task_id} no longer depends on task {depends_on_task_id}")


def _edge_rows(app: App, edges: list, *, other: str) -> list[dict[str, Any]]:
    service = app.tasks()
    rows: list[dict[str, Any]] = []
    for edge in edges:
        row = asdict(edge)
        peer = service.get_task(getattr(edge, other))
        row["other_status"] = peer.status.value
        row["stale"] = peer.is_deleted
        rows.append(row)
    return rows


@task.command("dependencies")
@click.argument("task_id", type=int)
@pass_app
def task_dependencies(app: App, task_id: int) -> None:
    """List the tasks TASK_ID depends on."""
    edges = app.graph().list_dependencies(task_id)
    rows = _edge_rows(app, edges, other="depends_on_task_id")
    _emit_rows(app, rows, EDGE_COLUMNS, title=f"Task {task_id} depends on")


@task.command("dependents")
@click.argument("task_id", type=int)
@pass_app
def task_dependents(app: App, task_id: int) -> None:
    """List the tasks that depend on TASK_ID."""
    edges = app.graph().list_dependents(task_id)
    rows = _edge_rows(app, edges, other="task_id")
    _emit_rows(app, rows, EDGE_COLUMNS, title=f"Tasks depending on {task_id}")


@task.command("chain")
@click.argument("task_id", type=int)
@pass_app
def task_chain(app: App, task_id: int) -> None:
    """Show every task TASK_ID transitively depends on."""
    service = app.tasks()
    chain = [service.get_task(tid) for tid in app.graph().dependency_chain(task_id)]
    _emit_rows(app, [_task_dict(t) for t in chain], TASK_COLUMNS, title=f"Chain of {task_id}")


@task.command("blocked")
@click.option("--project-id", type=int, required=True)
@pass_app
def task_blocked(app: App, project_id: int) -> None:
    """List open tasks that still wait on a prerequisite."""
    app.tasks().get_project(project_id)
    rows: list[dict[str, Any]] = []
    for blocked, blockers in app.graph().blocked_tasks(project_id):
        row = _task_dict(blocked)
        row["blocked_by"] = [t.id for t in blockers]
        rows.append(row)
    columns = [("id", "ID"), ("title", "Title"), ("status", "Status"), ("blocked_by", "Blocked by")]
    _emit_rows(app, rows, columns, title=f"Blocked tasks in project {project_id}")


# ── task comments ────────────────────────────────────────────────────


@task.group("comment", context_settings=CONTEXT_SETTINGS)
def task_comment() -> None:
    """Add and manage notes on a task."""


@task_comment.command("add")
@click.argument("ref")
@click.argument("content")
@click.option("--author", default=None)
@pass_app
def task_comment_add(app: App, ref: str, content: str, author: str | None) -> None:
    """Add a comment to a task (id or uuid)."""
    comment = app.tasks().add_comment(ref, content, author=author)
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(comment))
    else:
        log.success(f"Comment {comment.id} added to task {comment.task_id}")


@task_comment.command("list")
@click.argument("ref")
@pass_app
def task_comment_list(app: App, ref: str) -> None:
    """List a task's comments, oldest first."""
    comments = app.tasks().list_comments(ref)
    _emit_rows(app, [asdict(c) for c in comments], COMMENT_COLUMNS, title=f"Comments on {ref}")


@task_comment.command("update")
@click.argument("comment_id", type=int)
@click.argument("content")
@pass_app
def task_comment_update(app: App, comment_id: int, content: str) -> None:
    """Replace the text of a comment."""
    comment = app.tasks().update_comment(comment_id, content)
    if app.cfg.output_format == "json":
        _emit_record(app, asdict(comment))
    else:
        log.success(f"Comment {comment.id} updated")


@task_comment.command("delete")
@click.argument("comment_id", type=int)
@pass_app
def task_comment_delete(app: App, comment_id: int) -> None:
    """Soft-delete a comment."""
    app.tasks().delete_comment(comment_id)
    log.success(f"Comment {comment_id} deleted")


# ── report ───────────────────────────────────────────────────────────


@main.group(context_settings=CONTEXT_SETTINGS)
def report() -> None:
    """Progress reports."""


@report.command("project")
@click.argument("project_id", type=int)
@click.option("--output", "-o", default="", help="Also write the report as JSON to this file")
@pass_app
def report_project(app: App, project_id: int, output: str) -> None:
    """Project progress report: manual vs derived progress and task breakdown."""
    rep = app.progress().progress_report(project_id)
    data = rep.as_dict()

    if app.cfg.output_format == "json":
        click.echo(dump_json(data))
    else:
        p = rep.project
        log.section(escape(f"Project {p.id}: {p.name}" + (f" ({p.code})" if p.code else "")))
        log.field("Status", p.status.value)
        log.field("Manual progress", f"{rep.manual}%")
        log.field(
            "Derived progress",
            f"{rep.derived.percentage}% ({rep.derived.done}/{rep.derived.total} done)",
        )
        if rep.diverged:
            log.console.print(
                "  [yellow]Manual and derived progress differ; "
                f"use 'deverp project set-progress {p.id} {rep.derived.percentage}' "
                "to align them.[/yellow]"
            )
        log.section("Tasks by status")
        for name, count in rep.by_status.items():
            log.field(name, count)
        log.field("Blocked", rep.blocked)

    if output:
        write_json(output, data)
        if app.cfg.output_format != "json":
            log.success(f"Report written to {escape(output)}")


# ── config ───────────────────────────────────────────────────────────


@main.group("config", context_settings=CONTEXT_SETTINGS)
def config_group() -> None:
    """Inspect configuration."""


@config_group.command("show")
@pass_app
def config_show(app: App) -> None:
    """Print the effective configuration."""
    _emit_record(app, app.cfg.as_dict(), title="Configuration")


# ── db ───────────────────────────────────────────────────────────────


@main.group(context_settings=CONTEXT_SETTINGS)
def db() -> None:
    """Database maintenance."""


@db.command("check")
@pass_app
@click.pass_context
def db_check(ctx: click.Context, app: App) -> None:
    """Scan the whole dependency graph for cycles and stale edges."""
    store = app.store
    with store.session() as s:
        deleted = {
            t.id for t in s.list_tasks(TaskFilter(include_deleted=True)) if t.is_deleted
        }
        edges = s.all_dependencies()

    stale = sum(1 for e in edges if e.task_id in deleted or e.depends_on_task_id in deleted)
    cycle = detect_cycles(edges, exclude=deleted)

    _emit_record(
        app,
        {
            "database": str(store.db_path),
            "schema_version": store.schema_version(),
            "edges": len(edges),
            "stale_edges": stale,
            "cycle": cycle or None,
        },
        title="Database check",
    )
    if cycle:
        log.error(cycle, rule=CycleDetected.rule)
        ctx.exit(CycleDetected.exit_code)
    if app.cfg.output_format != "json":
        log.success("Dependency graph is acyclic")


if __name__ == "__main__":
    main()
