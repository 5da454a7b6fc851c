"""Engine configuration, read from ``.formflow/config.yaml``.

Example::

    database: state.db
    templates_dir: templates
    persistence_timeout: 5
    log_level: INFO
    roles:
      applicant: [applications.update_own]
      recruiter: [applications.update_own, applications.update_all]
    assignments:
      alice@example.com: recruiter
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from formflow.errors import ConfigError

HOME_ENV = "FORMFLOW_HOME"
LOG_LEVEL_ENV = "FORMFLOW_LOG_LEVEL"
DEFAULT_HOME = ".formflow"


@dataclass
class EngineConfig:
    home: Path
    templates_dir: Path
    database: Path
    persistence_timeout: float = 5.0
    log_level: str = "WARNING"
    log_format: str = "text"  # text | json
    roles: dict[str, list[str]] = field(default_factory=dict)
    assignments: dict[str, Any] = field(default_factory=dict)


def resolve_home(cwd: str | Path | None = None) -> Path:
    env = os.environ.get(HOME_ENV)
    if env:
        return Path(env)
    return Path(cwd or os.getcwd()) / DEFAULT_HOME


def load_config(home: str | Path | None = None) -> EngineConfig:
    home_path = Path(home) if home else resolve_home()
    raw: dict[str, Any] = {}
    config_path = home_path / "config.yaml"
    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config {config_path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Invalid config {config_path}: expected a mapping")
        raw = loaded or {}

    return EngineConfig(
        home=home_path,
        templates_dir=_under(home_path, raw.get("templates_dir", "templates")),
        database=_under(home_path, raw.get("database", "state.db")),
        persistence_timeout=_timeout(raw.get("persistence_timeout", 5.0), config_path),
        log_level=str(os.environ.get(LOG_LEVEL_ENV) or raw.get("log_level", "WARNING")).upper(),
        log_format=str(raw.get("log_format", "text")),
        roles={k: list(v or []) for k, v in (raw.get("roles") or {}).items()},
        assignments=dict(raw.get("assignments") or {}),
    )


def _timeout(value: Any, config_path: Path) -> float:
    try:
        if isinstance(value, bool):
            raise TypeError(value)
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(
            f"Invalid config {config_path}: persistence_timeout must be a number", {"value": value}
        ) from None
    if timeout <= 0:
        raise ConfigError(f"Invalid config {config_path}: persistence_timeout must be positive", {"value": value})
    return timeout


def _under(home: Path, value: str | Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else home / path
