"""MCP Server — exposes form_* tools for driving applications."""
from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from formflow.config import load_config
from formflow.errors import FormEngineError
from formflow.logging_config import setup_logging
from formflow.workspace import Workspace

mcp = FastMCP("formflow")


def _get_workspace() -> Workspace:
    return Workspace(load_config())


def _dump(data) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2, default=str)


def _error(e: FormEngineError) -> str:
    return _dump({"error": type(e).__name__, "message": e.message, "details": e.details})


@mcp.tool()
def form_start(template_id: str, subject: str) -> str:
    """Start a new application on a form template for a subject."""
    workspace = _get_workspace()
    try:
        progress = workspace.coordinator.start_application(template_id, subject)
        return _dump(workspace.coordinator.snapshot(progress.id))
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_status(application_id: str) -> str:
    """Get the current step, visible steps and fields, errors and allowed actions."""
    workspace = _get_workspace()
    try:
        return _dump(workspace.coordinator.snapshot(application_id))
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_commit_step(application_id: str, step_id: str, answers: dict) -> str:
    """Submit the answers for the current step; returns violations or the next step."""
    workspace = _get_workspace()
    try:
        result = workspace.coordinator.commit_step(application_id, step_id, answers)
        data = result.to_dict()
        data["reminder"] = workspace.coordinator.snapshot(application_id)["summary"]
        return _dump(data)
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_back(application_id: str, step_id: str) -> str:
    """Return to an earlier step that was already visited."""
    workspace = _get_workspace()
    try:
        workspace.coordinator.go_back(application_id, step_id)
        return _dump(workspace.coordinator.snapshot(application_id))
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_finalize(application_id: str, subject: str | None = None) -> str:
    """Submit a completed application. Safe to call again after a lost response."""
    workspace = _get_workspace()
    try:
        return _dump(workspace.coordinator.finalize(application_id, subject).to_dict())
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_set_status(application_id: str, status: str, subject: str) -> str:
    """Reviewer status change: under_review, accepted or rejected."""
    workspace = _get_workspace()
    try:
        return _dump(workspace.coordinator.set_status(application_id, status, subject).to_dict())
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_withdraw(application_id: str, subject: str) -> str:
    workspace = _get_workspace()
    try:
        return _dump(workspace.coordinator.withdraw(application_id, subject).to_dict())
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


@mcp.tool()
def form_history(application_id: str, limit: int = 20) -> str:
    """Get the application's audit trail, newest first."""
    workspace = _get_workspace()
    try:
        return _dump(workspace.coordinator.get_history(application_id, limit))
    except FormEngineError as e:
        return _error(e)
    finally:
        workspace.close()


def run_server():
    config = load_config()
    setup_logging(config.log_level, config.log_format)
    mcp.run(transport="stdio")
