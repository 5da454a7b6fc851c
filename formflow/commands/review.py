"""formflow review / withdraw — status changes after submission."""
from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from formflow.commands.start import default_subject
from formflow.errors import FormEngineError
from formflow.workspace import Workspace

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def cmd_review(progress_id: str, status: str, config: EngineConfig, subject: str | None = None):
    workspace = Workspace(config)
    try:
        progress = workspace.coordinator.set_status(progress_id, status, subject or default_subject())
        print(f"Application {progress.id} is {progress.status}")
    except FormEngineError as e:
        print(f"Review failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()


def cmd_withdraw(progress_id: str, config: EngineConfig, subject: str | None = None):
    workspace = Workspace(config)
    try:
        progress = workspace.coordinator.withdraw(progress_id, subject or default_subject())
        print(f"Application {progress.id} withdrawn")
    except FormEngineError as e:
        print(f"Withdraw failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()
