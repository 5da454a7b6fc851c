"""formflow finalize <application> — submit a completed application."""
from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from formflow.errors import FormEngineError
from formflow.workspace import Workspace

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def cmd_finalize(progress_id: str, config: EngineConfig, subject: str | None = None):
    workspace = Workspace(config)
    try:
        progress = workspace.coordinator.finalize(progress_id, subject)
        print(f"Application {progress.id} is {progress.status} (at {progress.completed_at})")
    except FormEngineError as e:
        print(f"Finalize failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()
