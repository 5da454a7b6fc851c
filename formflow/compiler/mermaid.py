"""Generate a Mermaid flowchart from a FormTemplate."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from formflow.engine.conditions import as_text

if TYPE_CHECKING:
    from formflow.types import Condition, FormTemplate


def _make_id(position: int, name: str) -> str:
    clean = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    clean = re.sub(r"_+", "_", clean).strip("_")
    return f"s{position}_{clean}"


def _condition_label(conditions: list[Condition]) -> str:
    parts = []
    for c in conditions:
        if c.operator in ("is_empty", "is_not_empty"):
            parts.append(f"{c.field} {c.operator}")
        else:
            parts.append(f"{c.field} {c.operator} {as_text(c.value)}")
    return " and ".join(parts)[:40].replace('"', "'")


def generate_mermaid(template: FormTemplate) -> str:
    ids = [_make_id(i, s.id) for i, s in enumerate(template.steps)]
    done = "completed"
    nodes: list[str] = []
    edges: list[str] = []

    for sid, step in zip(ids, template.steps, strict=True):
        label = f"{step.title} ({len(step.fields)} fields)".replace('"', "'")
        if step.conditions:
            # Conditional step → hexagon
            nodes.append(f'    {sid}{{{{"{label}"}}}}')
        else:
            nodes.append(f'    {sid}["{label}"]')
    nodes.append(f'    {done}(("Completed"))')

    for i, sid in enumerate(ids):
        # Each conditional step in the run that follows gets a labelled entry edge
        j = i + 1
        while j < len(ids) and template.steps[j].conditions:
            edges.append(f'    {sid} -->|"{_condition_label(template.steps[j].conditions)}"| {ids[j]}')
            j += 1
        # First unconditional step (or the end); dashed when it skips hidden steps
        target = ids[j] if j < len(ids) else done
        if j > i + 1:
            edges.append(f"    {sid} -.->|skip| {target}")
        else:
            edges.append(f"    {sid} --> {target}")

    lines = ["graph TD"]
    lines.extend(nodes)
    lines.extend(edges)
    return "\n".join(lines)
