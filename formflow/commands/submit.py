"""formflow submit / back — move through the steps of an application."""
from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING

from formflow.errors import FormEngineError
from formflow.workspace import Workspace

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def cmd_submit(progress_id: str, step_id: str, payload: str, config: EngineConfig):
    try:
        answers = json.loads(payload)
    except json.JSONDecodeError as e:
        print(f"Answers must be a JSON object: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(answers, dict):
        print("Answers must be a JSON object", file=sys.stderr)
        sys.exit(1)

    workspace = Workspace(config)
    try:
        result = workspace.coordinator.commit_step(progress_id, step_id, answers)
        if result:
            print(result.message)
            return
        print(f"✗ {result.message}")
        for field_id, violations in result.violations.items():
            for v in violations:
                print(f"    {field_id}: {v.message}")
        sys.exit(1)
    except FormEngineError as e:
        print(f"Submit failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()


def cmd_back(progress_id: str, step_id: str, config: EngineConfig):
    workspace = Workspace(config)
    try:
        progress = workspace.coordinator.go_back(progress_id, step_id)
        print(f"Moved back to: {progress.current_step}")
    except FormEngineError as e:
        print(f"Back failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        workspace.close()
