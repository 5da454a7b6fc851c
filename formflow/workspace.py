"""Wire configuration, templates, store and coordinator for one home directory."""
from __future__ import annotations

from typing import TYPE_CHECKING

from formflow.compiler.registry import TemplateRegistry
from formflow.config import load_config
from formflow.engine.coordinator import SubmissionCoordinator
from formflow.permissions import RolePermissions
from formflow.store.state import ProgressStore

if TYPE_CHECKING:
    from pathlib import Path

    from formflow.config import EngineConfig


class Workspace:
    def __init__(self, config: EngineConfig):
        self.config = config
        self.config.home.mkdir(parents=True, exist_ok=True)
        self.templates = TemplateRegistry(config.templates_dir)
        self.store = ProgressStore(config.database, timeout=config.persistence_timeout)
        # without roles only owners may act, and only on their own applications
        self.permissions = RolePermissions(config.roles, config.assignments) if config.roles else None
        self.coordinator = SubmissionCoordinator(self.store, self.templates, self.permissions)

    def close(self) -> None:
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def open_workspace(home: str | Path | None = None) -> Workspace:
    return Workspace(load_config(home))
