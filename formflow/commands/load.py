"""formflow load <template> — validate a template, output Mermaid diagram."""
from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from formflow.compiler import format_issues, generate_mermaid, parse_template_yaml, validate_template
from formflow.errors import MalformedTemplate

if TYPE_CHECKING:
    from formflow.config import EngineConfig


def cmd_load(template_name: str, config: EngineConfig):
    template_path = config.templates_dir / f"{template_name}.yaml"

    if not template_path.exists():
        print(f"Template file not found: {template_path}", file=sys.stderr)
        sys.exit(1)

    try:
        template = parse_template_yaml(template_path.read_text(encoding="utf-8"))
    except MalformedTemplate as e:
        print(f"✗ Parse error: {e}", file=sys.stderr)
        sys.exit(1)

    # Static analysis
    issues = validate_template(template)
    has_errors = any(i.level == "error" for i in issues)

    if has_errors:
        print(f'✗ Template "{template.id}" failed validation:')
        print(format_issues(issues))
        sys.exit(1)

    field_count = sum(len(s.fields) for s in template.steps)
    print(f'✓ Template "{template.id}" compiled ({len(template.steps)} steps, {field_count} fields)')
    if issues:
        print(format_issues(issues))
    if not template.active:
        print("  (inactive: new applications are refused)")
    print()

    # Mermaid diagram
    print("```mermaid")
    print(generate_mermaid(template))
    print("```")
    print()
    print(f"Start an application with: formflow start {template.id}")
