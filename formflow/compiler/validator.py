"""Static analysis for form templates — reject broken templates at load time."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from formflow.engine.conditions import normalize_operator
from formflow.errors import MalformedTemplate
from formflow.types import CHOICE_TYPES, FIELD_TYPES, OPERATORS, RULE_TYPES, Condition

if TYPE_CHECKING:
    from formflow.types import FormTemplate, StepDefinition


class TemplateIssue:
    def __init__(self, level: str, message: str, where: str | None = None):
        self.level = level  # "error" | "warning"
        self.message = message
        self.where = where

    def __str__(self):
        prefix = f"[{self.where}] " if self.where else ""
        return f"{self.level.upper()}: {prefix}{self.message}"

    def __repr__(self):
        return f"TemplateIssue({self.level!r}, {self.message!r}, {self.where!r})"


def validate_template(template: FormTemplate) -> list[TemplateIssue]:
    """Run all static checks on a template."""
    issues: list[TemplateIssue] = []

    if not template.steps:
        issues.append(TemplateIssue("error", "Template has no steps"))
        return issues

    issues.extend(_check_ids(template))
    issues.extend(_check_step_order(template))
    issues.extend(_check_fields(template))
    issues.extend(_check_conditions(template))

    return issues


def format_issues(issues: list[TemplateIssue]) -> str:
    if not issues:
        return ""
    lines = []
    errs = [i for i in issues if i.level == "error"]
    warns = [i for i in issues if i.level == "warning"]
    if errs:
        lines.append(f"  {len(errs)} error(s):")
        for i in errs:
            lines.append(f"    ✗ {i}")
    if warns:
        lines.append(f"  {len(warns)} warning(s):")
        for i in warns:
            lines.append(f"    ⚠ {i}")
    return "\n".join(lines)


def ensure_valid(template: FormTemplate) -> list[TemplateIssue]:
    """Raise MalformedTemplate on any error; return the remaining warnings."""
    issues = validate_template(template)
    errors = [i for i in issues if i.level == "error"]
    if errors:
        raise MalformedTemplate(
            f'Template "{template.id}" failed validation with {len(errors)} error(s): '
            + "; ".join(str(e) for e in errors),
            issues,
        )
    return issues


# ─── Checks ───

def _check_ids(template: FormTemplate) -> list[TemplateIssue]:
    """Step ids are unique; field ids are unique across the whole template."""
    issues: list[TemplateIssue] = []
    seen_steps: set[str] = set()
    seen_fields: dict[str, str] = {}
    for step in template.steps:
        if step.id in seen_steps:
            issues.append(TemplateIssue("error", f"Duplicate step id: '{step.id}'", step.id))
        seen_steps.add(step.id)
        for f in step.fields:
            if f.id in seen_fields:
                issues.append(TemplateIssue(
                    "error", f"Duplicate field id: '{f.id}' (also in step '{seen_fields[f.id]}')", step.id
                ))
            else:
                seen_fields[f.id] = step.id
    return issues


def _check_step_order(template: FormTemplate) -> list[TemplateIssue]:
    """Step order indices form a contiguous, strictly increasing run."""
    issues: list[TemplateIssue] = []
    for prev, step in zip(template.steps, template.steps[1:], strict=False):
        if step.order == prev.order:
            issues.append(TemplateIssue("error", f"Duplicate step order index {step.order}", step.id))
        elif step.order != prev.order + 1:
            issues.append(TemplateIssue(
                "error", f"Step order indices have a gap: {prev.order} is followed by {step.order}", step.id
            ))
    return issues


def _check_fields(template: FormTemplate) -> list[TemplateIssue]:
    issues: list[TemplateIssue] = []
    for step in template.steps:
        seen_orders: set[int] = set()
        for f in step.fields:
            where = f"{step.id}.{f.id}"
            if f.order in seen_orders:
                issues.append(TemplateIssue("error", f"Duplicate field order index {f.order}", where))
            seen_orders.add(f.order)

            if f.type not in FIELD_TYPES:
                issues.append(TemplateIssue("error", f"Unknown field type: '{f.type}'", where))
            if f.type in CHOICE_TYPES - {"checkbox"} and not f.options:
                issues.append(TemplateIssue("warning", "Choice field has no options", where))

            rule = f.validation
            if rule.type not in RULE_TYPES:
                issues.append(TemplateIssue("error", f"Unknown validation rule: '{rule.type}'", where))
            if rule.pattern:
                try:
                    re.compile(rule.pattern)
                except re.error as e:
                    issues.append(TemplateIssue("error", f"Invalid pattern {rule.pattern!r}: {e}", where))
            if rule.min is not None and rule.max is not None and rule.min > rule.max:
                issues.append(TemplateIssue("error", f"min ({rule.min:g}) is greater than max ({rule.max:g})", where))
    return issues


def _check_conditions(template: FormTemplate) -> list[TemplateIssue]:
    """Conditions may only look backwards: earlier steps, or earlier fields of the same step."""
    issues: list[TemplateIssue] = []
    for position, step in enumerate(template.steps):
        for c in step.conditions:
            issues.extend(_check_reference(template, c, position, step, None, step.id))
        for f in step.fields:
            for c in f.conditions:
                issues.extend(_check_reference(template, c, position, step, f.order, f"{step.id}.{f.id}"))
    return issues


def _check_reference(
    template: FormTemplate,
    condition: Condition,
    owner_position: int,
    owner_step: StepDefinition,
    owner_field_order: int | None,
    where: str,
) -> list[TemplateIssue]:
    issues: list[TemplateIssue] = []
    if normalize_operator(condition.operator) not in OPERATORS:
        issues.append(TemplateIssue(
            "warning", f"Unknown operator '{condition.operator}' (condition always passes)", where
        ))

    ref_step = template.step_of(condition.field)
    if ref_step is None:
        issues.append(TemplateIssue("error", f"Condition references unknown field '{condition.field}'", where))
        return issues

    ref_position = template.step_position(ref_step.id)
    if ref_position > owner_position:
        issues.append(TemplateIssue(
            "error", f"Condition references field '{condition.field}' from later step '{ref_step.id}'", where
        ))
    elif ref_step.id == owner_step.id:
        ref_field = template.get_field(condition.field)
        if owner_field_order is None:
            issues.append(TemplateIssue(
                "warning", f"Step condition references its own field '{condition.field}'", where
            ))
        elif ref_field is not None and ref_field.order >= owner_field_order:
            issues.append(TemplateIssue(
                "error", f"Condition references field '{condition.field}' that is not earlier in the step", where
            ))
    return issues
