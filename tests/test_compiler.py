"""Template loading: parsing, key aliases, static checks and the registry."""
from __future__ import annotations

import logging

import pytest

from formflow.compiler import TemplateRegistry, format_issues, load_template, parse_template, validate_template
from formflow.compiler.parser import parse_template_yaml
from formflow.errors import MalformedTemplate, UnknownTemplate
from conftest import TEMPLATES_DIR


def two_steps(first_fields=None, second=None) -> dict:
    """Minimal template: step one with given fields, step two overridable."""
    return {
        "id": "t",
        "steps": [
            {"id": "one", "fields": first_fields or [{"id": "a", "type": "text"}]},
            second or {"id": "two", "fields": [{"id": "b", "type": "text"}]},
        ],
    }


def errors_of(exc: MalformedTemplate) -> list[str]:
    return [i.message for i in exc.issues if i.level == "error"]


# ─── Parsing ───

def test_job_template_parses(job_application):
    t = job_application
    assert t.id == "job_application"
    assert t.title == "Engineering Application"
    assert t.meta == {"department": "engineering"}
    assert [s.id for s in t.steps] == ["personal", "role", "engineering", "consent"]
    assert [s.order for s in t.steps] == [0, 1, 2, 3]

    age = t.get_field("age")
    assert age.type == "range"
    assert age.required
    assert (age.validation.min, age.validation.max) == (18.0, 65.0)

    portfolio = t.get_field("portfolio_url")
    assert portfolio.validation.type == "website"
    assert portfolio.validation.message == "Link to your portfolio site"
    assert portfolio.conditions[0].field == "has_portfolio"
    assert [o.value for o in t.get_field("has_portfolio").options] == ["yes", "no"]
    assert [o.label for o in t.get_field("has_portfolio").options] == ["Yes", "No"]

    assert t.step_of("languages").id == "engineering"
    assert t.step_position("consent") == 3
    assert t.step_position("nowhere") == -1


def test_storage_layer_aliases_are_accepted():
    t = load_template({
        "name": "aliased",
        "is_active": False,
        "form_steps": [
            {"id": "second", "order_index": 2, "form_fields": [{"id": "y", "type": "text"}],
             "condition_logic": {"conditions": [{"field": "x", "operator": "notEquals", "value": "n"}]}},
            {"id": "first", "order_index": 1, "form_fields": [
                {"id": "x", "type": "text", "is_required": True, "validation_rules": {"type": "email"}},
            ]},
        ],
    })
    assert t.id == "aliased"
    assert t.active is False
    assert [s.id for s in t.steps] == ["first", "second"]
    assert t.get_field("x").required
    assert t.get_field("x").validation.type == "email"
    assert t.get_step("second").conditions[0].operator == "not_equals"


def test_order_defaults_to_position_and_fields_are_sorted():
    t = parse_template({
        "id": "t",
        "steps": [{"id": "s", "fields": [
            {"id": "late", "type": "text", "order": 5},
            {"id": "early", "type": "text", "order": 1},
        ]}],
    })
    assert t.steps[0].order == 0
    assert t.steps[0].field_ids() == ["early", "late"]


def test_shorthand_field_and_validation_forms():
    t = parse_template({"id": "t", "steps": [{"id": "s", "fields": [
        "nickname",
        {"id": "mail", "validation": "email"},
    ]}]})
    nickname, mail = t.steps[0].fields
    assert nickname.type == "text"
    assert nickname.label == "nickname"
    assert mail.validation.type == "email"


@pytest.mark.parametrize("raw, message", [
    ([1, 2], "expected a mapping"),
    ({"id": "t"}, 'missing "steps"'),
    ({"steps": []}, "missing id"),
    ({"id": "t", "steps": [{"title": "no id"}]}, "Step #1 has no id"),
    ({"id": "t", "steps": [{"id": "s", "fields": [{"type": "text"}]}]}, "field #1 has no id"),
    ({"id": "t", "steps": [{"id": "s", "fields": "a"}]}, "fields must be a list"),
    ({"id": "t", "steps": [{"id": "s", "conditions": [{"operator": "equals"}]}]}, "needs a field"),
    ({"id": "t", "steps": [{"id": "s", "fields": [{"id": "f", "validation": {"min": "lots"}}]}]}, "must be a number"),
    ({"id": "t", "steps": [{"id": "s", "order": "first"}]}, "order must be an integer"),
])
def test_structural_problems_raise(raw, message):
    with pytest.raises(MalformedTemplate, match=message):
        parse_template(raw)


def test_invalid_yaml_raises():
    with pytest.raises(MalformedTemplate, match="Invalid YAML"):
        parse_template_yaml("steps: [unclosed")
    with pytest.raises(MalformedTemplate, match="expected a mapping"):
        parse_template_yaml("- just\n- a list\n")


def test_malformed_template_is_a_value_error():
    with pytest.raises(ValueError):
        load_template({"id": "t", "steps": []})


# ─── Static checks ───

def test_empty_step_list_rejected():
    with pytest.raises(MalformedTemplate) as exc:
        load_template({"id": "t", "steps": []})
    assert errors_of(exc.value) == ["Template has no steps"]


def test_duplicate_step_id_rejected():
    raw = two_steps(second={"id": "one", "fields": [{"id": "b", "type": "text"}]})
    with pytest.raises(MalformedTemplate) as exc:
        load_template(raw)
    assert any("Duplicate step id" in m for m in errors_of(exc.value))


def test_field_ids_unique_across_template():
    raw = two_steps(second={"id": "two", "fields": [{"id": "a", "type": "text"}]})
    with pytest.raises(MalformedTemplate) as exc:
        load_template(raw)
    assert any("Duplicate field id: 'a'" in m for m in errors_of(exc.value))


@pytest.mark.parametrize("orders, problem", [
    ((1, 1), "Duplicate step order index 1"),
    ((1, 3), "gap"),
])
def test_step_orders_must_be_contiguous(orders, problem):
    raw = two_steps()
    raw["steps"][0]["order"], raw["steps"][1]["order"] = orders
    with pytest.raises(MalformedTemplate) as exc:
        load_template(raw)
    assert any(problem in m for m in errors_of(exc.value))


def test_step_orders_may_start_anywhere():
    raw = two_steps()
    raw["steps"][0]["order"], raw["steps"][1]["order"] = 10, 11
    assert [s.id for s in load_template(raw).steps] == ["one", "two"]


@pytest.mark.parametrize("field, problem", [
    ({"id": "a", "type": "signature"}, "Unknown field type"),
    ({"id": "a", "validation": {"type": "ssn"}}, "Unknown validation rule"),
    ({"id": "a", "validation": {"pattern": "(unclosed"}}, "Invalid pattern"),
    ({"id": "a", "validation": {"min": 10, "max": 2}}, "greater than max"),
])
def test_field_definition_errors(field, problem):
    with pytest.raises(MalformedTemplate) as exc:
        load_template(two_steps(first_fields=[field]))
    assert any(problem in m for m in errors_of(exc.value))


def test_duplicate_field_order_rejected():
    fields = [{"id": "a", "order": 1}, {"id": "b", "order": 1}]
    with pytest.raises(MalformedTemplate) as exc:
        load_template({"id": "t", "steps": [{"id": "s", "fields": fields}]})
    assert any("Duplicate field order index" in m for m in errors_of(exc.value))


def test_condition_on_unknown_field_rejected():
    second = {"id": "two", "conditions": [{"field": "ghost", "operator": "equals", "value": 1}], "fields": []}
    with pytest.raises(MalformedTemplate) as exc:
        load_template(two_steps(second=second))
    assert errors_of(exc.value) == ["Condition references unknown field 'ghost'"]


def test_condition_on_later_step_rejected():
    raw = two_steps()
    raw["steps"][0]["conditions"] = [{"field": "b", "operator": "is_not_empty"}]
    with pytest.raises(MalformedTemplate) as exc:
        load_template(raw)
    assert any("from later step 'two'" in m for m in errors_of(exc.value))


def test_field_condition_must_look_at_earlier_field_in_step():
    fields = [
        {"id": "a", "type": "text", "conditions": [{"field": "b", "operator": "is_not_empty"}]},
        {"id": "b", "type": "text"},
    ]
    with pytest.raises(MalformedTemplate) as exc:
        load_template(two_steps(first_fields=fields, second={"id": "two", "fields": []}))
    assert any("not earlier in the step" in m for m in errors_of(exc.value))


def test_warnings_do_not_block_loading(caplog):
    second = {
        "id": "two",
        "conditions": [{"field": "a", "operator": "matches", "value": "x"}],
        "fields": [{"id": "b", "type": "radio"}],
    }
    with caplog.at_level(logging.WARNING, logger="formflow"):
        t = load_template(two_steps(second=second))
    assert t.get_step("two").conditions[0].operator == "matches"
    assert "Unknown operator 'matches'" in caplog.text
    assert "Choice field has no options" in caplog.text


def test_step_condition_on_own_field_is_a_warning():
    second = {"id": "two", "conditions": [{"field": "b", "operator": "is_empty"}],
              "fields": [{"id": "b", "type": "text"}]}
    issues = validate_template(load_template(two_steps(second=second)))
    assert [i.level for i in issues] == ["warning"]
    assert "its own field" in issues[0].message


def test_format_issues():
    raw = two_steps(first_fields=[{"id": "a", "type": "signature"}])
    raw["steps"][1]["conditions"] = [{"field": "a", "operator": "resembles"}]
    issues = validate_template(parse_template(raw))
    text = format_issues(issues)
    assert "1 error(s):" in text
    assert "1 warning(s):" in text
    assert "[one.a]" in text
    assert format_issues([]) == ""


# ─── Registry ───

def test_registry_loads_from_directory_and_caches():
    registry = TemplateRegistry(TEMPLATES_DIR)
    assert {"interest", "job_application"} <= set(registry.available())
    first = registry.get("interest")
    assert registry.get("interest") is first


def test_registry_unknown_template(tmp_path):
    with pytest.raises(UnknownTemplate):
        TemplateRegistry(tmp_path).get("missing")
    with pytest.raises(UnknownTemplate):
        TemplateRegistry().get("missing")


def test_registry_rejects_id_mismatch(tmp_path):
    (tmp_path / "alpha.yaml").write_text("id: beta\nsteps:\n  - id: s\n", encoding="utf-8")
    with pytest.raises(MalformedTemplate, match='expected "alpha"'):
        TemplateRegistry(tmp_path).get("alpha")


def test_registry_rejects_malformed_file(tmp_path):
    (tmp_path / "broken.yaml").write_text("id: broken\nsteps: []\n", encoding="utf-8")
    with pytest.raises(MalformedTemplate):
        TemplateRegistry(tmp_path).get("broken")


def test_register_validates(interest):
    registry = TemplateRegistry()
    registry.register(interest)
    assert registry.get("interest") is interest
    assert registry.available() == ["interest"]

    bad = parse_template(two_steps(first_fields=[{"id": "a", "type": "signature"}]))
    with pytest.raises(MalformedTemplate):
        registry.register(bad)
