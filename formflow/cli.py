"""Thin CLI router — dispatches to commands."""
from __future__ import annotations

import os
import sys

USAGE = """\
formflow — multi-step application forms

Usage:
  formflow load <template>                      Validate a template, output Mermaid diagram
  formflow start <template> [--as SUBJECT]      Start an application, prints its id
  formflow status <application>                 Current step, visible steps, errors
  formflow submit <application> <step> <json>   Commit answers for the current step
  formflow back <application> <step>            Return to an earlier visited step
  formflow finalize <application> [--as SUBJECT]  Submit a completed application
  formflow history <application>                Audit trail
  formflow reset <application> [--as SUBJECT]   Clear all answers and start over
  formflow withdraw <application> [--as SUBJECT]  Withdraw an application
  formflow review <application> <status> --as SUBJECT
                                                Move a submitted application to
                                                under_review, accepted or rejected

Internal:
  formflow mcp-server                           Start MCP Server

The home directory is ./.formflow (override with FORMFLOW_HOME).
"""


def _pop_option(args: list[str], name: str) -> str | None:
    if name not in args:
        return None
    idx = args.index(name)
    if idx + 1 >= len(args):
        print(f"Missing value for {name}", file=sys.stderr)
        sys.exit(1)
    value = args[idx + 1]
    del args[idx:idx + 2]
    return value


def _require(args: list[str], count: int, usage: str) -> None:
    if len(args) < count + 1:
        print(f"Usage: formflow {usage}", file=sys.stderr)
        sys.exit(1)


def main(argv: list[str] | None = None):
    args = list(sys.argv[1:] if argv is None else argv)
    cwd = os.getcwd()
    subject = _pop_option(args, "--as")
    command = args[0] if args else None

    if command in ("help", "--help", "-h", None):
        print(USAGE)
        return

    from formflow.config import load_config, resolve_home
    from formflow.errors import ConfigError
    from formflow.logging_config import setup_logging

    try:
        config = load_config(resolve_home(cwd))
    except ConfigError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    setup_logging(config.log_level, config.log_format)

    if command == "load":
        _require(args, 1, "load <template>")
        from formflow.commands.load import cmd_load
        cmd_load(args[1], config)

    elif command == "start":
        _require(args, 1, "start <template> [--as SUBJECT]")
        from formflow.commands.start import cmd_start
        cmd_start(args[1], config, subject)

    elif command == "status":
        _require(args, 1, "status <application>")
        from formflow.commands.status import cmd_status
        cmd_status(args[1], config)

    elif command == "history":
        _require(args, 1, "history <application>")
        from formflow.commands.status import cmd_history
        cmd_history(args[1], config)

    elif command == "submit":
        _require(args, 3, "submit <application> <step> <json>")
        from formflow.commands.submit import cmd_submit
        cmd_submit(args[1], args[2], args[3], config)

    elif command == "back":
        _require(args, 2, "back <application> <step>")
        from formflow.commands.submit import cmd_back
        cmd_back(args[1], args[2], config)

    elif command == "finalize":
        _require(args, 1, "finalize <application> [--as SUBJECT]")
        from formflow.commands.finalize import cmd_finalize
        cmd_finalize(args[1], config, subject)

    elif command == "reset":
        _require(args, 1, "reset <application> [--as SUBJECT]")
        from formflow.commands.reset import cmd_reset
        cmd_reset(args[1], config, subject)

    elif command == "withdraw":
        _require(args, 1, "withdraw <application> [--as SUBJECT]")
        from formflow.commands.review import cmd_withdraw
        cmd_withdraw(args[1], config, subject)

    elif command == "review":
        _require(args, 2, "review <application> <status> --as SUBJECT")
        from formflow.commands.review import cmd_review
        cmd_review(args[1], args[2], config, subject)

    elif command == "mcp-server":
        from formflow.integrations.mcp_server import run_server
        run_server()

    else:
        print(f"Unknown command: {command}", file=sys.stderr)
        print(USAGE)
        sys.exit(1)
