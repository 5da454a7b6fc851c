"""formflow reset <application> — clear answers and start the form over."""
from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from formflow.errors import FormEngineError
from formflow.workspace import Workspace

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def cmd_reset(progress_id: str, config: EngineConfig, subject: str | None = None):
    workspace = Workspace(config)
    try:
        progress = workspace.coordinator.reset(progress_id, subject)
        print(f"Answers cleared. Current step: {progress.current_step or 'completed'}")
    except FormEngineError as e:
        print(f"Reset failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()
