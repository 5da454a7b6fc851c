"""Parse YAML form templates into the template IR."""
from __future__ import annotations

from typing import Any

import yaml

from formflow.engine.conditions import normalize_operator
from formflow.errors import MalformedTemplate
from formflow.types import (
    Condition,
    FieldDefinition,
    FieldOption,
    FormTemplate,
    StepDefinition,
    ValidationRule,
)

# Storage-layer and camelCase keys -> internal key mapping
KEY_MAP = {
    "order_index": "order",
    "orderIndex": "order",
    "is_required": "required",
    "is_active": "active",
    "isActive": "active",
    "validation_rules": "validation",
    "condition_logic": "conditions",
    "conditionLogic": "conditions",
    "metadata": "meta",
    "ui_options": "options",
    "form_steps": "steps",
    "form_fields": "fields",
}


def _normalize_key(key: str) -> str:
    return KEY_MAP.get(key, key)


def _normalize(obj):
    if isinstance(obj, dict):
        return {_normalize_key(k): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_normalize(item) for item in obj]
    return obj


def _parse_conditions(raw, owner: str) -> list[Condition]:
    if raw is None:
        return []
    if isinstance(raw, dict):
        # condition_logic rows sometimes wrap the list
        raw = raw.get("conditions", [raw] if "field" in raw else [])
    if not isinstance(raw, list):
        raise MalformedTemplate(f"[{owner}] conditions must be a list")

    conditions: list[Condition] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("field"):
            raise MalformedTemplate(f"[{owner}] every condition needs a field")
        conditions.append(Condition(
            field=str(item["field"]),
            operator=normalize_operator(item.get("operator", "equals")),
            value=item.get("value"),
        ))
    return conditions


def _parse_validation(raw, owner: str) -> ValidationRule:
    if raw is None:
        return ValidationRule()
    if isinstance(raw, str):
        return ValidationRule(type=raw)
    if not isinstance(raw, dict):
        raise MalformedTemplate(f"[{owner}] validation must be a mapping")
    return ValidationRule(
        type=str(raw.get("type") or "none"),
        message=raw.get("message"),
        pattern=raw.get("pattern"),
        min=_number(raw.get("min"), owner, "min"),
        max=_number(raw.get("max"), owner, "max"),
    )


def _parse_options(raw, owner: str) -> list[FieldOption]:
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get("choices") or []
    if not isinstance(raw, list):
        raise MalformedTemplate(f"[{owner}] options must be a list")

    options: list[FieldOption] = []
    for item in raw:
        if isinstance(item, dict):
            value = item.get("value", item.get("label"))
            options.append(FieldOption(label=str(item.get("label", value)), value=value))
        else:
            options.append(FieldOption(label=str(item), value=item))
    return options


def _number(value, owner: str, key: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedTemplate(f"[{owner}] validation {key} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedTemplate(f"[{owner}] validation {key} must be a number") from None


def _order(body: dict, default: int, owner: str) -> int:
    value = body.get("order", default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedTemplate(f"[{owner}] order must be an integer")
    return value


def _parse_field(raw, position: int, step_id: str) -> FieldDefinition:
    if isinstance(raw, str):
        raw = {"id": raw}
    if not isinstance(raw, dict) or not raw.get("id"):
        raise MalformedTemplate(f"[{step_id}] field #{position + 1} has no id")

    field_id = str(raw["id"])
    owner = f"{step_id}.{field_id}"
    return FieldDefinition(
        id=field_id,
        type=str(raw.get("type", "text")),
        label=str(raw.get("label", field_id)),
        description=raw.get("description") or "",
        required=bool(raw.get("required", False)),
        validation=_parse_validation(raw.get("validation"), owner),
        options=_parse_options(raw.get("options"), owner),
        conditions=_parse_conditions(raw.get("conditions"), owner),
        order=_order(raw, position, owner),
    )


def _parse_step(raw, position: int) -> StepDefinition:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise MalformedTemplate(f"Step #{position + 1} has no id")

    step_id = str(raw["id"])
    raw_fields = raw.get("fields") or []
    if not isinstance(raw_fields, list):
        raise MalformedTemplate(f"[{step_id}] fields must be a list")

    fields = [_parse_field(f, i, step_id) for i, f in enumerate(raw_fields)]
    return StepDefinition(
        id=step_id,
        title=str(raw.get("title", step_id)),
        description=raw.get("description") or "",
        fields=sorted(fields, key=lambda f: f.order),
        conditions=_parse_conditions(raw.get("conditions"), step_id),
        order=_order(raw, position, step_id),
    )


def parse_template(raw: dict[str, Any]) -> FormTemplate:
    if not isinstance(raw, dict):
        raise MalformedTemplate("Invalid template: expected a mapping")

    normalized = _normalize(raw)
    raw_steps = normalized.get("steps")
    if not isinstance(raw_steps, list):
        raise MalformedTemplate('Invalid template: missing "steps" list')

    template_id = normalized.get("id") or normalized.get("name")
    if not template_id:
        raise MalformedTemplate("Invalid template: missing id")

    steps = [_parse_step(s, i) for i, s in enumerate(raw_steps)]
    meta = normalized.get("meta") or {}
    return FormTemplate(
        id=str(template_id),
        title=str(normalized.get("title", template_id)),
        description=normalized.get("description") or "",
        steps=sorted(steps, key=lambda s: s.order),
        active=bool(normalized.get("active", True)),
        meta=dict(meta) if isinstance(meta, dict) else {},
    )


def parse_template_yaml(content: str) -> FormTemplate:
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise MalformedTemplate(f"Invalid YAML: {e}") from e
    return parse_template(raw)
