"""Step advancement state machine.

States are ``AtStep(n)`` for a step position n and ``Completed``. Transitions
never mutate the progress they are given; they return an updated copy so the
caller can persist it before adopting it.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from formflow.engine.rules import validate_fields
from formflow.engine.visibility import reachable_fields, visible_steps
from formflow.errors import IllegalTransition
from formflow.types import DRAFT, ApplicationProgress

if TYPE_CHECKING:
    from collections.abc import Mapping

    from formflow.types import FormTemplate, Violation

logger = logging.getLogger(__name__)

AT_STEP = "at_step"
COMPLETED = "completed"


@dataclass
class StepOutcome:
    progress: ApplicationProgress
    violations: dict[str, list[Violation]] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return not self.violations


class StepMachine:
    def __init__(self, template: FormTemplate):
        self.template = template

    def state(self, progress: ApplicationProgress) -> tuple[str, int | None]:
        if progress.current_step is None:
            return (COMPLETED, None)
        return (AT_STEP, self.template.step_position(progress.current_step))

    def start(self, progress: ApplicationProgress) -> ApplicationProgress:
        """Place the pointer on the first step visible under the current answers."""
        updated = copy.deepcopy(progress)
        visible = visible_steps(self.template, updated.answers)
        updated.current_step = visible[0] if visible else None
        updated.visited = [updated.current_step] if updated.current_step else []
        return updated

    def submit_step(
        self, progress: ApplicationProgress, step_id: str, answers: Mapping[str, Any]
    ) -> StepOutcome:
        self._require_draft(progress)
        if progress.current_step is None:
            raise IllegalTransition(
                "Form is already completed; go back to a step to change answers.",
                {"step": step_id},
            )
        if step_id != progress.current_step:
            raise IllegalTransition(
                f'Cannot submit step "{step_id}" while the form is at "{progress.current_step}".',
                {"step": step_id, "current_step": progress.current_step},
            )

        step = self.template.get_step(step_id)
        if step is None:
            raise IllegalTransition(f'Step "{step_id}" is not part of template "{self.template.id}".')

        own_ids = set(step.field_ids())
        payload = {k: v for k, v in answers.items() if k in own_ids}
        dropped = sorted(set(answers) - own_ids)
        if dropped:
            logger.warning("Ignoring answers for fields outside step %r: %s", step_id, ", ".join(dropped))

        merged = {**progress.answers, **payload}
        fields = reachable_fields(step, progress.answers, payload)
        violations = validate_fields(fields, merged)

        updated = copy.deepcopy(progress)
        for fid in own_ids:
            updated.errors.pop(fid, None)

        if violations:
            for fid, found in violations.items():
                updated.errors[fid] = [v.to_dict() for v in found]
            return StepOutcome(updated, violations)

        updated.answers = merged
        updated.current_step = self._next_visible(step_id, merged)
        if updated.current_step and updated.current_step not in updated.visited:
            updated.visited.append(updated.current_step)
        return StepOutcome(updated)

    def go_back(self, progress: ApplicationProgress, step_id: str) -> ApplicationProgress:
        self._require_draft(progress)
        target = self.template.step_position(step_id)
        if target < 0:
            raise IllegalTransition(f'Step "{step_id}" is not part of template "{self.template.id}".')
        if step_id not in progress.visited:
            raise IllegalTransition(f'Cannot go back to "{step_id}": it was never visited.', {"step": step_id})

        state, position = self.state(progress)
        if state == AT_STEP and (position is None or target >= position):
            raise IllegalTransition(
                f'Cannot go back to "{step_id}": it is not before the current step.',
                {"step": step_id, "current_step": progress.current_step},
            )

        updated = copy.deepcopy(progress)
        updated.current_step = step_id
        return updated

    def reset(self, progress: ApplicationProgress) -> ApplicationProgress:
        self._require_draft(progress)
        cleared = copy.deepcopy(progress)
        cleared.answers = {}
        cleared.errors = {}
        cleared.commits = {}
        return self.start(cleared)

    # ─── Private ───

    def _next_visible(self, step_id: str, answers: Mapping[str, Any]) -> str | None:
        position = self.template.step_position(step_id)
        visible = set(visible_steps(self.template, answers))
        for later in self.template.steps[position + 1:]:
            if later.id in visible:
                return later.id
        return None

    def _require_draft(self, progress: ApplicationProgress) -> None:
        if progress.status != DRAFT:
            raise IllegalTransition(
                f"Application is {progress.status}; only drafts can be edited.",
                {"status": progress.status},
            )
