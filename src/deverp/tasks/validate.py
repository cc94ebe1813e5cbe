"""Input validation for tasks/projects and full-graph cycle detection."""

from __future__ import annotations

from collections.abc import Iterable

from deverp.errors import ValidationError
from deverp.tasks.model import NewTask, ProjectUpdate, TaskDependency, TaskUpdate

MAX_TITLE_LENGTH = 500
MAX_AUTHOR_LENGTH = 100


def _check_title(title: str | None, errors: list[str]) -> None:
    if title is None or not title.strip():
        errors.append("Task title cannot be empty")
    elif len(title.strip()) > MAX_TITLE_LENGTH:
        errors.append(f"Task title cannot exceed {MAX_TITLE_LENGTH} characters")


def _check_hours(label: str, hours: float | None, errors: list[str]) -> None:
    if hours is not None and hours < 0:
        errors.append(f"{label} cannot be negative")


def validate_new_task(new: NewTask) -> list[str]:
    """Return a list of human-readable problems with a task creation request."""
    errors: list[str] = []
    _check_title(new.title, errors)
    _check_hours("Estimated hours", new.estimated_hours, errors)
    if new.project_id is None or new.project_id <= 0:
        errors.append("A valid project id is required")
    return errors


def validate_task_update(update: TaskUpdate) -> list[str]:
    errors: list[str] = []
    if update.title is not None:
        _check_title(update.title, errors)
    _check_hours("Estimated hours", update.estimated_hours, errors)
    _check_hours("Actual hours", update.actual_hours, errors)
    return errors


def validate_project_name(name: str | None) -> list[str]:
    if name is None or not name.strip():
        return ["Project name cannot be empty"]
    if len(name.strip()) > 255:
        return ["Project name cannot exceed 255 characters"]
    return []


def validate_project_update(update: ProjectUpdate) -> list[str]:
    errors: list[str] = []
    if update.name is not None:
        errors += validate_project_name(update.name)
    if update.code is not None and not update.code.strip():
        errors.append("Project code cannot be empty")
    if not update.changes():
        errors.append("Nothing to update")
    return errors


def validate_comment(content: str | None, author: str | None = None) -> list[str]:
    errors: list[str] = []
    if content is None or not content.strip():
        errors.append("Comment text cannot be empty")
    if author is not None and len(author) > MAX_AUTHOR_LENGTH:
        errors.append(f"Comment author cannot exceed {MAX_AUTHOR_LENGTH} characters")
    return errors


def validate_progress(value: int) -> list[str]:
    if not 0 <= value <= 100:
        return [f"Progress must be between 0 and 100 (got {value})"]
    return []


def require_valid(errors: list[str]) -> None:
    """Raise :class:`ValidationError` carrying every collected problem."""
    if errors:
        raise ValidationError("; ".join(errors))


# ── Cycle detection ─────────────────────────────────────────────────


def detect_cycles(
    edges: Iterable[TaskDependency], exclude: Iterable[int] = ()
) -> str:
    """Scan a whole edge set for a directed cycle.

    Returns an empty string when the graph is acyclic, otherwise a message
    naming one cycle (``"Cycle detected: 1 -> 2 -> 1"``). Edges touching a
    task in *exclude* (soft-deleted tasks) are ignored.
    """
    skip = set(exclude)
    adjacency: dict[int, list[int]] = {}
    for edge in edges:
        if edge.task_id in skip or edge.depends_on_task_id in skip:
            continue
        adjacency.setdefault(edge.task_id, []).append(edge.depends_on_task_id)
        adjacency.setdefault(edge.depends_on_task_id, [])

    white, grey, black = 0, 1, 2
    color = {node: white for node in adjacency}

    for root in sorted(adjacency):
        if color[root] != white:
            continue
        # Iterative DFS; stack holds (node, iterator over its prerequisites).
        path: list[int] = [root]
        color[root] = grey
        stack = [(root, iter(adjacency[root]))]
        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if color[child] == grey:
                    start = path.index(child)
                    cycle = path[start:] + [child]
                    return "Cycle detected: " + " -> ".join(str(t) for t in cycle)
                if color[child] == white:
                    color[child] = grey
                    path.append(child)
                    stack.append((child, iter(adjacency[child])))
                    advanced = True
                    break
            if not advanced:
                color[node] = black
                path.pop()
                stack.pop()
    return ""
