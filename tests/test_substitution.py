from __future__ import annotations

import pytest

from provisioner.core.exceptions import BadRequest, TemplateSyntaxError, VariableValidationError
from provisioner.models.workflow import VariableValue, WorkflowTemplate, WorkflowVariable
from provisioner.services.substitution import (
    coerce_value,
    render,
    render_template,
    resolve_conditionals,
    resolve_variables,
)

TEMPLATE = WorkflowTemplate(
    id="sample",
    name="Sample",
    description="",
    type="Test",
    variables=(
        WorkflowVariable("version", "string", required=True),
        WorkflowVariable("retries", "number", default=3),
        WorkflowVariable("lint", "boolean", default=False),
    ),
    body=(
        "version: ${{ variables.version }}\n"
        "retries: ${{ variables.retries }}\n"
        "    ${{ if variables.lint }}\n"
        "lint: on\n"
        "    ${{ endif }}\n"
        "matrix: ${{ matrix.os }}\n"
    ),
)


def test_render_replaces_known_placeholders_and_keeps_unknown():
    body = "a=${{ variables.a }} b=${{variables.b}} c=${{ variables.c }} os=${{ matrix.os }}"
    out = render(body, {"a": "x", "b": 2})
    assert out == "a=x b=2 c=${{ variables.c }} os=${{ matrix.os }}"


def test_render_uses_yaml_friendly_scalar_text():
    out = render("${{ variables.t }} ${{ variables.f }} ${{ variables.n }} ${{ variables.x }}", {
        "t": True,
        "f": False,
        "n": 2.0,
        "x": 1.5,
    })
    assert out == "true false 2 1.5"


def test_render_does_not_resubstitute_inserted_text():
    out = render("run: ${{ variables.cmd }}", {"cmd": "echo ${{ variables.cmd }}"})
    assert out == "run: echo ${{ variables.cmd }}"


def test_conditionals_drop_false_branch_and_directive_lines():
    body = "start\n  ${{ if variables.on }}\nyes\n  ${{ else }}\nno\n  ${{ endif }}\nend\n"
    assert resolve_conditionals(body, {"on": True}) == "start\nyes\nend\n"
    assert resolve_conditionals(body, {"on": False}) == "start\nno\nend\n"


def test_conditionals_nest_and_missing_variable_is_false():
    body = (
        "${{ if variables.outer }}\n"
        "outer\n"
        "${{ if variables.inner }}\n"
        "inner\n"
        "${{ endif }}\n"
        "${{ endif }}\n"
        "tail"
    )
    assert resolve_conditionals(body, {"outer": True, "inner": True}) == "outer\ninner\ntail"
    assert resolve_conditionals(body, {"outer": True}) == "outer\ntail"
    assert resolve_conditionals(body, {"inner": True}) == "tail"


def test_negated_condition():
    body = "${{ if !variables.skip }}\nrun\n${{ endif }}\n"
    assert resolve_conditionals(body, {"skip": False}) == "run\n"
    assert resolve_conditionals(body, {"skip": True}) == ""


@pytest.mark.parametrize(
    "body",
    [
        "${{ if variables.a }}\nx\n",
        "x\n${{ endif }}\n",
        "${{ else }}\n",
        "${{ if variables.a }}\n${{ else }}\n${{ else }}\n${{ endif }}\n",
    ],
)
def test_unbalanced_blocks_are_rejected(body):
    with pytest.raises(TemplateSyntaxError):
        resolve_conditionals(body, {"a": True})


def test_resolve_variables_fills_defaults():
    values = resolve_variables(TEMPLATE, {"version": "1.0"})
    assert values == {
        "version": VariableValue("string", "1.0"),
        "retries": VariableValue("number", 3),
        "lint": VariableValue("boolean", False),
    }


def test_missing_required_variable_fails():
    with pytest.raises(VariableValidationError) as excinfo:
        resolve_variables(TEMPLATE, {"retries": 1})
    assert excinfo.value.details == {"missing": ["version"]}
    assert isinstance(excinfo.value, BadRequest)


def test_blank_string_counts_as_missing():
    with pytest.raises(VariableValidationError):
        resolve_variables(TEMPLATE, {"version": "   "})


def test_undeclared_variables_are_ignored():
    resolved = resolve_variables(TEMPLATE, {"version": "1", "colour": "red"})
    assert "colour" not in resolved
    assert resolved["version"] == VariableValue("string", "1")


def test_coerce_accepts_textual_forms():
    assert coerce_value(WorkflowVariable("n", "number"), "7") == VariableValue("number", 7)
    assert coerce_value(WorkflowVariable("n", "number"), "2.5") == VariableValue("number", 2.5)
    assert coerce_value(WorkflowVariable("b", "boolean"), "TRUE") == VariableValue("boolean", True)
    assert coerce_value(WorkflowVariable("b", "boolean"), "false") == VariableValue("boolean", False)
    assert coerce_value(WorkflowVariable("s", "string"), 17) == VariableValue("string", "17")


@pytest.mark.parametrize(
    "variable, raw",
    [
        (WorkflowVariable("n", "number"), "seven"),
        (WorkflowVariable("n", "number"), True),
        (WorkflowVariable("b", "boolean"), "maybe"),
        (WorkflowVariable("b", "boolean"), 1),
        (WorkflowVariable("s", "string"), False),
    ],
)
def test_coerce_rejects_wrong_kind(variable, raw):
    with pytest.raises(VariableValidationError):
        coerce_value(variable, raw)


def test_render_template_is_deterministic():
    first = render_template(TEMPLATE, {"version": "2", "lint": True})
    second = render_template(TEMPLATE, {"version": "2", "lint": True})
    assert first == second
    assert first == "version: 2\nretries: 3\nlint: on\nmatrix: ${{ matrix.os }}\n"


def test_variable_default_must_match_kind():
    with pytest.raises(ValueError):
        WorkflowVariable("flag", "boolean", default="yes")
