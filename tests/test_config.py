"""Tests for deverp.config.Config defaults and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from deverp.config import DEFAULT_DB_PATH, Config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "DEVERP_DB_PATH",
        "DEVERP_BUSY_TIMEOUT",
        "DEVERP_FORMAT",
        "DEVERP_DATE_FORMAT",
        "DEVERP_ALLOW_CROSS_PROJECT_DEPS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    """Config() falls back to built-in defaults when no env vars are set."""
    cfg = Config()
    assert cfg.db_path == str(DEFAULT_DB_PATH)
    assert cfg.busy_timeout == 30.0
    assert cfg.output_format == "table"
    assert cfg.date_format == "%Y-%m-%d"
    assert cfg.allow_cross_project_dependencies is False


def test_env_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("DEVERP_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("DEVERP_BUSY_TIMEOUT", "2.5")
    monkeypatch.setenv("DEVERP_FORMAT", "JSON")
    monkeypatch.setenv("DEVERP_ALLOW_CROSS_PROJECT_DEPS", "yes")
    cfg = Config()
    assert cfg.db_path == str(tmp_path / "x.db")
    assert cfg.busy_timeout == 2.5
    assert cfg.output_format == "json"
    assert cfg.allow_cross_project_dependencies is True


def test_explicit_values_win_over_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("DEVERP_FORMAT", "plain")
    monkeypatch.setenv("DEVERP_DB_PATH", "/ignored.db")
    cfg = Config(db_path=str(tmp_path / "mine.db"), output_format="json")
    assert cfg.output_format == "json"
    assert cfg.db_path.endswith("mine.db")


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("DEVERP_FORMAT", "xml")
    monkeypatch.setenv("DEVERP_BUSY_TIMEOUT", "soon")
    cfg = Config()
    assert cfg.output_format == "table"
    assert cfg.busy_timeout == 30.0


def test_home_is_expanded():
    cfg = Config(db_path="~/deverp.db")
    assert "~" not in cfg.db_path


def test_as_dict():
    data = Config(verbose=True).as_dict()
    assert data["verbose"] is True
    assert set(data) >= {"db_path", "busy_timeout", "output_format", "allow_cross_project_dependencies"}
