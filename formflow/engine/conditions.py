"""Condition evaluator — visibility conditions over an answer set.

Pure functions, no I/O. Conditions reference raw stored answers by field id.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from formflow.types import Condition

logger = logging.getLogger(__name__)

# camelCase spellings used by template authoring tools -> canonical operator
OPERATOR_ALIASES = {
    "notEquals": "not_equals",
    "greaterThan": "greater_than",
    "lessThan": "less_than",
    "notContains": "not_contains",
    "isEmpty": "is_empty",
    "isNotEmpty": "is_not_empty",
}


def normalize_operator(operator: str) -> str:
    op = str(operator).strip()
    return OPERATOR_ALIASES.get(op, op)


def evaluate(condition: Condition, answers: Mapping[str, Any]) -> bool:
    answer = answers.get(condition.field)
    expected = condition.value

    match normalize_operator(condition.operator):
        case "equals":
            return as_text(answer) == as_text(expected)
        case "not_equals":
            return as_text(answer) != as_text(expected)
        case "greater_than":
            left, right = as_number(answer), as_number(expected)
            return left is not None and right is not None and left > right
        case "less_than":
            left, right = as_number(answer), as_number(expected)
            return left is not None and right is not None and left < right
        case "contains":
            return as_text(expected) in as_text(answer)
        case "not_contains":
            return as_text(expected) not in as_text(answer)
        case "is_empty":
            return is_empty(answer)
        case "is_not_empty":
            return not is_empty(answer)

    # Unrecognized operators never hide content.
    logger.debug("Unknown condition operator %r on field %r, treating as met",
                 condition.operator, condition.field)
    return True


def evaluate_all(conditions: Iterable[Condition] | None, answers: Mapping[str, Any]) -> bool:
    if not conditions:
        return True
    return all(evaluate(c, answers) for c in conditions)


# ─── Value coercion ───

def is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and not value)


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(as_text(v) for v in value)
    return str(value)


def as_number(value: Any) -> float | None:
    """Numeric reading of an answer, None when it is not a number."""
    if value is None or isinstance(value, (bool, list, tuple, dict)):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None
