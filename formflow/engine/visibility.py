"""Visibility resolver — which steps and fields currently apply.

Always recomputed from scratch over the full answer set. Answers of hidden
fields stay in the answer set and remain readable by later conditions.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from formflow.engine.conditions import evaluate_all

if TYPE_CHECKING:
    from collections.abc import Mapping

    from formflow.types import FieldDefinition, FormTemplate, StepDefinition


def visible_steps(template: FormTemplate, answers: Mapping[str, Any]) -> list[str]:
    return [s.id for s in template.steps if evaluate_all(s.conditions, answers)]


def reachable_fields(
    step: StepDefinition,
    answers: Mapping[str, Any],
    step_answers: Mapping[str, Any] | None = None,
) -> list[FieldDefinition]:
    """Visible fields of one step, in field order.

    A field's conditions see every answer outside this step plus the answers of
    same-step fields that come before it; ``step_answers`` (an in-flight
    payload) overrides stored answers for this step's fields.
    """
    own_ids = set(step.field_ids())
    context: dict[str, Any] = {k: v for k, v in answers.items() if k not in own_ids}
    pending = dict(step_answers or {})

    visible: list[FieldDefinition] = []
    for f in sorted(step.fields, key=lambda f: f.order):
        if evaluate_all(f.conditions, context):
            visible.append(f)
        if f.id in pending:
            context[f.id] = pending[f.id]
        elif f.id in answers:
            context[f.id] = answers[f.id]
    return visible


def visible_fields(
    step: StepDefinition,
    answers: Mapping[str, Any],
    step_answers: Mapping[str, Any] | None = None,
) -> list[str]:
    return [f.id for f in reachable_fields(step, answers, step_answers)]


def resolve(template: FormTemplate, answers: Mapping[str, Any]) -> dict[str, list[str]]:
    """Visible steps mapped to their visible field ids."""
    steps = set(visible_steps(template, answers))
    return {
        s.id: visible_fields(s, answers)
        for s in template.steps
        if s.id in steps
    }
