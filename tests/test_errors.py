"""Tests for deverp.errors: rule names, exit codes and carried context."""

from __future__ import annotations

import pytest

from deverp.errors import (
    Conflict,
    CycleDetected,
    DependencyNotSatisfied,
    DevErpError,
    InvalidArgument,
    NotFound,
    ValidationError,
)


@pytest.mark.parametrize(
    "cls,code,rule",
    [
        (InvalidArgument, 2, "invalid-argument"),
        (NotFound, 3, "not-found"),
        (Conflict, 4, "conflict"),
        (CycleDetected, 5, "cycle-detected"),
        (DependencyNotSatisfied, 6, "dependency-not-satisfied"),
    ],
)
def test_exit_codes_are_distinct(cls, code, rule):
    assert issubclass(cls, DevErpError)
    assert cls.exit_code == code
    assert cls.rule == rule


def test_validation_error_alias():
    assert ValidationError is InvalidArgument


def test_cycle_detected_message_and_path():
    err = CycleDetected(3, 1, [1, 2, 3])
    assert err.path == [1, 2, 3]
    assert "3 -> 1 -> 2 -> 3" in str(err)
    assert err.task_ids == [3, 1, 2]


def test_cycle_detected_lists_each_task_once():
    err = CycleDetected(2, 1, [1, 2])
    assert "2 -> 1 -> 2" in str(err)
    assert err.task_ids == [2, 1]


def test_dependency_not_satisfied_sorts_unmet():
    err = DependencyNotSatisfied(7, [9, 4])
    assert err.unmet == [4, 9]
    assert "4, 9" in err.message
    assert err.task_ids == [4, 9]


def test_base_error_keeps_ids():
    err = NotFound("Task 1 not found", task_ids=(1,))
    assert err.task_ids == [1]
    assert str(err) == "Task 1 not found"
