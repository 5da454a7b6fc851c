"""formflow start <template> — open a new application draft."""
from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from formflow.errors import FormEngineError
from formflow.workspace import Workspace

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def default_subject() -> str:
    return os.environ.get("FORMFLOW_SUBJECT") or os.environ.get("USER") or "anonymous"


def cmd_start(template_id: str, config: EngineConfig, subject: str | None = None):
    workspace = Workspace(config)
    try:
        progress = workspace.coordinator.start_application(template_id, subject or default_subject())
        print(f'Application {progress.id} started on "{template_id}"')
        if progress.current_step:
            print(f"Current step: {progress.current_step}")
        else:
            print("No steps apply; the application can be submitted right away.")
    except FormEngineError as e:
        print(f"Failed to start: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()
