"""Error kinds raised by the form engine.

``ValidationFailed`` and ``IllegalTransition`` are normal control flow for a
caller driving a candidate through a form. The others are faults.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from formflow.compiler.validator import TemplateIssue
    from formflow.types import Violation


class FormEngineError(Exception):
    """Base class for every error the engine raises."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({detail_str})"


class MalformedTemplate(FormEngineError, ValueError):
    def __init__(self, message: str, issues: list[TemplateIssue] | None = None):
        super().__init__(message)
        self.issues = list(issues or [])


class ConfigError(FormEngineError, ValueError):
    pass


class ValidationFailed(FormEngineError):
    def __init__(self, violations: dict[str, list[Violation]]):
        fields = ", ".join(sorted(violations))
        super().__init__(f"Validation failed for: {fields}")
        self.violations = violations


class IllegalTransition(FormEngineError):
    pass


class Forbidden(FormEngineError):
    pass


class PersistenceUnavailable(FormEngineError):
    pass


class StaleProgress(PersistenceUnavailable):
    """The stored record moved on since it was read; reload and retry."""


class UnknownProgress(FormEngineError, LookupError):
    pass


class UnknownTemplate(FormEngineError, LookupError):
    pass
