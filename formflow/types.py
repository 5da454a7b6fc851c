from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# ─── Closed vocabularies ───

FIELD_TYPES = frozenset({
    "text", "textarea", "select", "checkbox", "radio", "file", "range", "toggle",
})
TEXT_TYPES = frozenset({"text", "textarea"})
CHOICE_TYPES = frozenset({"select", "radio", "checkbox"})
NUMERIC_TYPES = frozenset({"range"})
BOOLEAN_TYPES = frozenset({"checkbox", "toggle"})

OPERATORS = frozenset({
    "equals", "not_equals", "greater_than", "less_than",
    "contains", "not_contains", "is_empty", "is_not_empty",
})

RULE_TYPES = frozenset({
    "none", "email", "phone", "github_url", "linkedin", "twitter", "website",
})

DRAFT = "draft"
SUBMITTED = "submitted"
UNDER_REVIEW = "under_review"
ACCEPTED = "accepted"
REJECTED = "rejected"
WITHDRAWN = "withdrawn"

STATUSES = frozenset({DRAFT, SUBMITTED, UNDER_REVIEW, ACCEPTED, REJECTED, WITHDRAWN})
TERMINAL_STATUSES = frozenset({ACCEPTED, REJECTED, WITHDRAWN})

# ─── Template Definition IR (parsed from YAML) ───

@dataclass
class Condition:
    field: str
    operator: str
    value: Any = None


@dataclass
class ValidationRule:
    type: str = "none"
    message: str | None = None
    pattern: str | None = None
    min: float | None = None
    max: float | None = None


@dataclass
class FieldOption:
    label: str
    value: Any


@dataclass
class FieldDefinition:
    id: str
    type: str
    label: str = ""
    description: str = ""
    required: bool = False
    validation: ValidationRule = field(default_factory=ValidationRule)
    options: list[FieldOption] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)
    order: int = 0


@dataclass
class StepDefinition:
    id: str
    title: str = ""
    description: str = ""
    fields: list[FieldDefinition] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)
    order: int = 0

    def field_ids(self) -> list[str]:
        return [f.id for f in self.fields]


@dataclass
class FormTemplate:
    id: str
    title: str = ""
    description: str = ""
    steps: list[StepDefinition] = field(default_factory=list)  # sorted by order
    active: bool = True
    meta: dict[str, Any] = field(default_factory=dict)

    def get_step(self, step_id: str) -> StepDefinition | None:
        for s in self.steps:
            if s.id == step_id:
                return s
        return None

    def step_position(self, step_id: str) -> int:
        """Position of a step in the ordered sequence, -1 if unknown."""
        for i, s in enumerate(self.steps):
            if s.id == step_id:
                return i
        return -1

    def get_field(self, field_id: str) -> FieldDefinition | None:
        for s in self.steps:
            for f in s.fields:
                if f.id == field_id:
                    return f
        return None

    def step_of(self, field_id: str) -> StepDefinition | None:
        for s in self.steps:
            if any(f.id == field_id for f in s.fields):
                return s
        return None

# ─── Validation output ───

@dataclass
class Violation:
    field: str
    code: str  # required | out_of_range | pattern_mismatch | invalid_number
    message: str
    rule: str | None = None
    bound: str | None = None  # min | max, for out_of_range

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

# ─── Application Runtime State ───

@dataclass
class ApplicationProgress:
    id: str
    template_id: str
    subject: str
    current_step: str | None  # None = completed, every visible step committed
    status: str = DRAFT
    answers: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    visited: list[str] = field(default_factory=list)
    commits: dict[str, str] = field(default_factory=dict)  # {step_id: payload fingerprint}
    submission_count: int = 0
    completed_at: str | None = None
    started_at: str = ""
    updated_at: str = ""
    version: int = 0

    @property
    def completed(self) -> bool:
        return self.current_step is None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApplicationProgress:
        return cls(**data)
