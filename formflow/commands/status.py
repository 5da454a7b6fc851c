"""formflow status / history — inspect an application."""
from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from formflow.errors import FormEngineError
from formflow.workspace import Workspace

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def cmd_status(progress_id: str, config: EngineConfig):
    workspace = Workspace(config)
    try:
        st = workspace.coordinator.snapshot(progress_id)
        print(st["summary"])
        print(f'Visible steps: {" > ".join(st["visible_steps"]) or "(none)"}')
        for field_id, errors in st["errors"].items():
            for err in errors:
                print(f'  ✗ {field_id}: {err["message"]}')
        print(f'Allowed actions: {", ".join(st["allowed_actions"]) or "(none)"}')
    except FormEngineError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()


def cmd_history(progress_id: str, config: EngineConfig, limit: int = 50):
    workspace = Workspace(config)
    try:
        workspace.coordinator.get_progress(progress_id)
        for entry in reversed(workspace.coordinator.get_history(progress_id, limit)):
            step = f' {entry["step_id"]}' if entry["step_id"] else ""
            print(f'{entry["timestamp"]} {entry["action"]}{step}')
    except FormEngineError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()
