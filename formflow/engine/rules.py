"""Field validator — declarative rules checked against a candidate value.

Every rule runs independently and all violations are collected.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from formflow.engine.conditions import as_number, as_text, is_empty
from formflow.types import BOOLEAN_TYPES, NUMERIC_TYPES, TEXT_TYPES, Violation

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from formflow.types import FieldDefinition

# Built-in patterns behind the named rule types
NAMED_PATTERNS: dict[str, str] = {
    "email": r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
    "phone": r"^\+?[0-9\s().-]{7,20}$",
    "github_url": r"^https?://(www\.)?github\.com/[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(/[\w.-]+)*/?$",
    "linkedin": r"^https?://([a-z]{2,3}\.)?linkedin\.com/(in|pub|company)/[\w%-]+/?$",
    "twitter": r"^(@?[A-Za-z0-9_]{1,15}|https?://(www\.)?(twitter|x)\.com/[A-Za-z0-9_]{1,15}/?)$",
    "website": r"^https?://[^\s/$.?#][^\s]*$",
}

NAMED_MESSAGES: dict[str, str] = {
    "email": "Enter a valid email address",
    "phone": "Enter a valid phone number",
    "github_url": "Enter a valid GitHub profile URL",
    "linkedin": "Enter a valid LinkedIn profile URL",
    "twitter": "Enter a valid Twitter handle or URL",
    "website": "Enter a valid website URL",
}

_NO_BOUNDS = frozenset({"file", "toggle"})


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def is_blank(field: FieldDefinition, value: Any) -> bool:
    """Emptiness for the required check; an unticked box counts as empty."""
    if is_empty(value):
        return True
    return field.type in BOOLEAN_TYPES and value is False


def validate(field: FieldDefinition, value: Any) -> list[Violation]:
    if is_blank(field, value):
        if field.required:
            return [Violation(field.id, "required", "This field is required", rule="required")]
        return []

    violations: list[Violation] = []
    violations.extend(_check_bounds(field, value))
    violations.extend(_check_patterns(field, value))
    return violations


def validate_fields(
    fields: Iterable[FieldDefinition], answers: Mapping[str, Any]
) -> dict[str, list[Violation]]:
    """Validate several fields; only fields with violations appear in the result."""
    result: dict[str, list[Violation]] = {}
    for f in fields:
        found = validate(f, answers.get(f.id))
        if found:
            result[f.id] = found
    return result


# ─── Checks ───

def _check_bounds(field: FieldDefinition, value: Any) -> list[Violation]:
    rule = field.validation
    if rule.min is None and rule.max is None:
        return []
    if field.type in _NO_BOUNDS:
        return []

    if isinstance(value, (list, tuple)):
        return _compare(field, len(value), "Select at least {} option(s)", "Select at most {} option(s)")

    if field.type in NUMERIC_TYPES:
        number = as_number(value)
        if number is None:
            return [Violation(field.id, "invalid_number", "Enter a number", rule="number")]
        return _compare(field, number, "Minimum value is {}", "Maximum value is {}")

    if field.type in TEXT_TYPES:
        return _compare(field, len(as_text(value)), "Must be at least {} characters", "Must be at most {} characters")

    # single choice: bounds apply to numeric option values only
    number = as_number(value)
    if number is None:
        return []
    return _compare(field, number, "Minimum value is {}", "Maximum value is {}")


def _compare(field: FieldDefinition, measured: float, min_msg: str, max_msg: str) -> list[Violation]:
    rule = field.validation
    violations: list[Violation] = []
    if rule.min is not None and measured < rule.min:
        violations.append(Violation(
            field.id, "out_of_range", min_msg.format(_fmt(rule.min)), rule="min", bound="min",
        ))
    if rule.max is not None and measured > rule.max:
        violations.append(Violation(
            field.id, "out_of_range", max_msg.format(_fmt(rule.max)), rule="max", bound="max",
        ))
    return violations


def _check_patterns(field: FieldDefinition, value: Any) -> list[Violation]:
    rule = field.validation
    text = as_text(value)
    violations: list[Violation] = []

    named = NAMED_PATTERNS.get(rule.type)
    if named and not compile_pattern(named).search(text):
        violations.append(Violation(
            field.id, "pattern_mismatch", rule.message or NAMED_MESSAGES[rule.type], rule=rule.type,
        ))

    if rule.pattern and not compile_pattern(rule.pattern).search(text):
        violations.append(Violation(
            field.id, "pattern_mismatch", rule.message or "Invalid format", rule="pattern",
        ))
    return violations


def _fmt(bound: float) -> str:
    return as_text(bound)
