"""Configuration defaults, env vars, and runtime options for DevERP."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path


VERSION = "0.3.0"

OUTPUT_FORMATS: tuple[str, ...] = ("table", "json", "plain")

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "deverp" / "deverp.sqlite3"


def _env_bool(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        return None


@dataclass
class Config:
    """Runtime configuration. Env vars fill unset fields; CLI flags win."""

    # Storage
    db_path: str = ""
    busy_timeout: float = 0.0

    # Output
    output_format: str = ""
    date_format: str = ""
    verbose: bool = False

    # Dependency policy
    allow_cross_project_dependencies: bool | None = None

    def __post_init__(self) -> None:
        if not self.db_path:
            self.db_path = os.environ.get("DEVERP_DB_PATH") or str(DEFAULT_DB_PATH)
        self.db_path = str(Path(self.db_path).expanduser())

        if self.busy_timeout <= 0:
            self.busy_timeout = _env_float("DEVERP_BUSY_TIMEOUT") or 30.0

        if not self.output_format:
            self.output_format = os.environ.get("DEVERP_FORMAT", "").strip().lower() or "table"
        if self.output_format not in OUTPUT_FORMATS:
            self.output_format = "table"

        if not self.date_format:
            self.date_format = os.environ.get("DEVERP_DATE_FORMAT") or "%Y-%m-%d"

        if self.allow_cross_project_dependencies is None:
            self.allow_cross_project_dependencies = bool(
                _env_bool("DEVERP_ALLOW_CROSS_PROJECT_DEPS")
            )

    def as_dict(self) -> dict[str, object]:
        return asdict(self)
