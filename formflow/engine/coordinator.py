"""Submission coordinator — application lifecycle against the persistence store.

Every operation reads the record, computes the next record on a copy, and
returns it only after the store acknowledged the write. A store failure leaves
the stored record untouched, so callers may retry; commits and finalize are
idempotent for that reason.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from formflow.engine.machine import StepMachine
from formflow.engine.visibility import resolve, visible_steps
from formflow.errors import Forbidden, IllegalTransition, UnknownProgress, ValidationFailed
from formflow.permissions import UPDATE_ALL, UPDATE_OWN
from formflow.store.state import now_stamp
from formflow.types import (
    ACCEPTED,
    DRAFT,
    REJECTED,
    SUBMITTED,
    TERMINAL_STATUSES,
    UNDER_REVIEW,
    WITHDRAWN,
    ApplicationProgress,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from formflow.compiler.registry import TemplateRegistry
    from formflow.permissions import PermissionChecker
    from formflow.store.state import PersistenceBackend
    from formflow.types import FormTemplate, Violation

logger = logging.getLogger(__name__)

# Reviewer-driven status moves after submission
REVIEW_TRANSITIONS: dict[str, frozenset[str]] = {
    SUBMITTED: frozenset({UNDER_REVIEW, ACCEPTED, REJECTED}),
    UNDER_REVIEW: frozenset({ACCEPTED, REJECTED}),
}
WITHDRAWABLE = frozenset({DRAFT, SUBMITTED, UNDER_REVIEW})


def answers_fingerprint(step_id: str, answers: Mapping[str, Any]) -> str:
    canonical = json.dumps({"step": step_id, "answers": answers}, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ─── Result type ───

class CommitResult:
    def __init__(
        self,
        success: bool,
        message: str,
        progress: ApplicationProgress,
        next_step: str | None = None,
        violations: dict[str, list[Violation]] | None = None,
        replayed: bool = False,
    ):
        self.success = success
        self.message = message
        self.progress = progress
        self.next_step = next_step
        self.violations = violations or {}
        self.replayed = replayed

    def __bool__(self) -> bool:
        return self.success

    @property
    def advanced(self) -> bool:
        return self.success

    @property
    def completed(self) -> bool:
        return self.success and self.next_step is None

    def raise_for_violations(self) -> None:
        if self.violations:
            raise ValidationFailed(self.violations)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "advanced": self.advanced,
            "next_step": self.next_step,
            "violations": {k: [v.to_dict() for v in vs] for k, vs in self.violations.items()},
            "replayed": self.replayed,
            "progress": self.progress.to_dict(),
        }


# ─── Coordinator ───

class SubmissionCoordinator:
    def __init__(
        self,
        store: PersistenceBackend,
        templates: TemplateRegistry,
        permissions: PermissionChecker | None = None,
    ):
        self.store = store
        self.templates = templates
        self.permissions = permissions
        self._locks: dict[str, tuple[threading.Lock, int]] = {}  # {progress_id: (lock, holders)}
        self._locks_guard = threading.Lock()

    def start_application(self, template_id: str, subject: str) -> ApplicationProgress:
        template = self.templates.get(template_id)
        if not template.active:
            raise IllegalTransition(f'Template "{template_id}" is not accepting applications.')

        stamp = now_stamp()
        draft = ApplicationProgress(
            id=uuid.uuid4().hex,
            template_id=template.id,
            subject=subject,
            current_step=None,
            started_at=stamp,
            updated_at=stamp,
        )
        progress = StepMachine(template).start(draft)
        self.store.create(progress)
        logger.info("Started application %s on template %s for %s", progress.id, template.id, subject)
        return progress

    def commit_step(self, progress_id: str, step_id: str, raw_answers: Mapping[str, Any]) -> CommitResult:
        with self._locked(progress_id):
            progress = self._require_progress(progress_id)
            template = self._template_for(progress)
            fingerprint = answers_fingerprint(step_id, raw_answers)

            if progress.commits.get(step_id) == fingerprint and _moved_past(template, progress, step_id):
                logger.debug("Replayed commit of step %s on %s", step_id, progress_id)
                return CommitResult(
                    True, _advance_message(progress.current_step), progress,
                    next_step=progress.current_step, replayed=True,
                )

            outcome = StepMachine(template).submit_step(progress, step_id, raw_answers)
            updated = outcome.progress

            if outcome.violations:
                if updated.errors != progress.errors:
                    self._write(progress, updated, "reject", step_id, json.dumps(sorted(outcome.violations)))
                else:
                    updated = progress
                logger.info("Rejected step %s on %s: %d field(s) invalid",
                            step_id, progress_id, len(outcome.violations))
                return CommitResult(
                    False, f'Step "{step_id}" has invalid answers. Fix them and resubmit.',
                    updated, next_step=step_id, violations=outcome.violations,
                )

            updated.commits[step_id] = fingerprint
            updated = self._write(progress, updated, "commit", step_id,
                                  json.dumps(dict(raw_answers), ensure_ascii=False, default=str))
            logger.info("Committed step %s on %s, now at %s", step_id, progress_id, updated.current_step or "completed")
            return CommitResult(True, _advance_message(updated.current_step), updated, next_step=updated.current_step)

    def go_back(self, progress_id: str, step_id: str) -> ApplicationProgress:
        with self._locked(progress_id):
            progress = self._require_progress(progress_id)
            updated = StepMachine(self._template_for(progress)).go_back(progress, step_id)
            return self._write(progress, updated, "back", step_id)

    def reset(self, progress_id: str, subject: str | None = None) -> ApplicationProgress:
        """Explicit reset: the only way the answer set ever shrinks."""
        with self._locked(progress_id):
            progress = self._require_progress(progress_id)
            self._authorize(progress, subject, UPDATE_OWN, owner_needs_permission=False)
            updated = StepMachine(self._template_for(progress)).reset(progress)
            return self._write(progress, updated, "reset", None)

    def finalize(self, progress_id: str, subject: str | None = None) -> ApplicationProgress:
        with self._locked(progress_id):
            progress = self._require_progress(progress_id)
            self._authorize(progress, subject, UPDATE_OWN, owner_needs_permission=False)

            if progress.status != DRAFT:
                if progress.submission_count > 0:
                    logger.debug("Finalize replay on %s (status %s)", progress_id, progress.status)
                    return progress
                raise IllegalTransition(
                    f"Cannot submit an application that is {progress.status}.", {"status": progress.status}
                )
            if not progress.completed:
                raise IllegalTransition(
                    f'Cannot submit yet: step "{progress.current_step}" is not committed.',
                    {"current_step": progress.current_step},
                )

            updated = ApplicationProgress.from_dict(progress.to_dict())
            updated.status = SUBMITTED
            updated.completed_at = now_stamp()
            updated.submission_count += 1
            updated.updated_at = updated.completed_at
            updated.version = progress.version + 1
            self.store.finalize(updated, expected_version=progress.version)
            logger.info("Submitted application %s", progress_id)
            return updated

    def set_status(self, progress_id: str, status: str, subject: str) -> ApplicationProgress:
        """Reviewer move: submitted -> under_review -> accepted | rejected."""
        with self._locked(progress_id):
            progress = self._require_progress(progress_id)
            self._require_permission(subject, UPDATE_ALL)
            if progress.status == status:
                return progress
            if progress.status in TERMINAL_STATUSES:
                raise IllegalTransition(
                    f"Application is {progress.status}; no further status changes.", {"status": progress.status}
                )
            if status not in REVIEW_TRANSITIONS.get(progress.status, frozenset()):
                raise IllegalTransition(
                    f"Cannot move application from {progress.status} to {status}.",
                    {"status": progress.status, "target": status},
                )
            updated = ApplicationProgress.from_dict(progress.to_dict())
            updated.status = status
            return self._write(progress, updated, "status", None, status)

    def withdraw(self, progress_id: str, subject: str) -> ApplicationProgress:
        with self._locked(progress_id):
            progress = self._require_progress(progress_id)
            self._authorize(progress, subject, UPDATE_OWN, owner_needs_permission=True)
            if progress.status == WITHDRAWN:
                return progress
            if progress.status not in WITHDRAWABLE:
                raise IllegalTransition(
                    f"Cannot withdraw an application that is {progress.status}.", {"status": progress.status}
                )
            updated = ApplicationProgress.from_dict(progress.to_dict())
            updated.status = WITHDRAWN
            return self._write(progress, updated, "status", None, WITHDRAWN)

    def get_progress(self, progress_id: str) -> ApplicationProgress:
        return self._require_progress(progress_id)

    def get_history(self, progress_id: str, limit: int = 20) -> list[dict]:
        return self.store.get_history(progress_id, limit)

    def snapshot(self, progress_id: str) -> dict[str, Any]:
        progress = self._require_progress(progress_id)
        template = self._template_for(progress)
        steps = visible_steps(template, progress.answers)

        allowed: list[str] = []
        if progress.status == DRAFT:
            allowed.append("finalize" if progress.completed else "commit_step")
            if len(progress.visited) > 1 or progress.completed:
                allowed.append("back")
            allowed.append("reset")
        if progress.status in REVIEW_TRANSITIONS:
            allowed.append("set_status")
        if progress.status in WITHDRAWABLE:
            allowed.append("withdraw")

        position = f"{steps.index(progress.current_step) + 1}/{len(steps)}" if progress.current_step in steps else None
        summary_parts = [f"{template.title} > {progress.current_step or 'completed'}"]
        if position:
            summary_parts.append(f"step {position}")
        summary_parts.append(progress.status)
        if progress.errors:
            summary_parts.append(f"{len(progress.errors)} field error(s)")

        return {
            "id": progress.id,
            "template_id": template.id,
            "template_title": template.title,
            "subject": progress.subject,
            "status": progress.status,
            "current_step": progress.current_step,
            "completed": progress.completed,
            "visible_steps": steps,
            "visible_fields": resolve(template, progress.answers),
            "answers": progress.answers,
            "errors": progress.errors,
            "submission_count": progress.submission_count,
            "completed_at": progress.completed_at,
            "allowed_actions": allowed,
            "summary": ", ".join(summary_parts),
        }

    # ─── Private ───

    @contextmanager
    def _locked(self, progress_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock, holders = self._locks.get(progress_id, (threading.Lock(), 0))
            self._locks[progress_id] = (lock, holders + 1)
        try:
            with lock:
                yield
        finally:
            # entries live only while some caller holds or waits for the lock
            with self._locks_guard:
                _, holders = self._locks[progress_id]
                if holders == 1:
                    del self._locks[progress_id]
                else:
                    self._locks[progress_id] = (lock, holders - 1)

    def _require_progress(self, progress_id: str) -> ApplicationProgress:
        progress = self.store.load_draft(progress_id)
        if progress is None:
            raise UnknownProgress(f'Application "{progress_id}" not found', {"progress": progress_id})
        return progress

    def _template_for(self, progress: ApplicationProgress) -> FormTemplate:
        return self.templates.get(progress.template_id)

    def _write(
        self,
        before: ApplicationProgress,
        after: ApplicationProgress,
        action: str,
        step_id: str | None,
        data: str | None = None,
    ) -> ApplicationProgress:
        after.version = before.version + 1
        after.updated_at = now_stamp()
        self.store.save_step(after, expected_version=before.version, action=action, step_id=step_id, data=data)
        return after

    def _authorize(
        self,
        progress: ApplicationProgress,
        subject: str | None,
        own_permission: str,
        *,
        owner_needs_permission: bool,
    ) -> None:
        if subject is None or subject == progress.subject:
            if owner_needs_permission and subject is not None and self.permissions is not None:
                self._require_permission(subject, own_permission)
            return
        self._require_permission(subject, UPDATE_ALL)

    def _require_permission(self, subject: str, permission: str) -> None:
        if self.permissions is None or not self.permissions.has_permission(subject, permission):
            logger.warning("Permission %s denied for %s", permission, subject)
            raise Forbidden(f'"{subject}" lacks permission {permission}', {"permission": permission})


def _moved_past(template: FormTemplate, progress: ApplicationProgress, step_id: str) -> bool:
    if progress.status != DRAFT or progress.completed:
        return True
    return template.step_position(progress.current_step) > template.step_position(step_id)


def _advance_message(next_step: str | None) -> str:
    if next_step is None:
        return "All steps complete. The application can be submitted."
    return f"Advanced to: {next_step}"
