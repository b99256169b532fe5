"""
Variable substitution for workflow templates.

Placeholders look like ``${{ variables.name }}``. Conditional blocks use
``${{ if variables.name }}`` / ``${{ else }}`` / ``${{ endif }}`` on their own
lines and may nest. Any other ``${{ ... }}`` expression (``matrix.*``,
``github.*``, ``secrets.*``) belongs to GitHub Actions and is copied through.

Output is committed as an executable CI definition, so template bodies must
come from a trusted catalog; values are inserted verbatim.
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from provisioner.core.exceptions import TemplateSyntaxError, VariableValidationError
from provisioner.core.logger import get_logger
from provisioner.models.workflow import (
    VariableValue,
    WorkflowTemplate,
    WorkflowVariable,
    format_scalar,
    matches_kind,
)

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{\{\s*variables\.([A-Za-z_][\w-]*)\s*\}\}")
DIRECTIVE_PATTERN = re.compile(
    r"^[ \t]*\$\{\{\s*(?:if\s+(?P<negate>!\s*)?variables\.(?P<name>[A-Za-z_][\w-]*)"
    r"|(?P<else>else)|(?P<endif>endif))\s*\}\}[ \t]*(?:\r?\n|\Z)",
    re.MULTILINE,
)

_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def _text(value: Any) -> str:
    if isinstance(value, VariableValue):
        return value.as_text()
    if isinstance(value, (bool, int, float, str)):
        return format_scalar(value)
    return str(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, VariableValue):
        return value.truthy
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS | {""}
    return bool(value)


def render(body: str, values: Mapping[str, Any]) -> str:
    """Replace every ``${{ variables.<name> }}`` whose name is in ``values``.

    Placeholders without a value are left as they are.
    """

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return _text(values[name])

    return PLACEHOLDER_PATTERN.sub(replace, body)


def resolve_conditionals(body: str, values: Mapping[str, Any]) -> str:
    """Keep or drop conditional blocks; a variable absent from ``values`` is false."""
    output: list[str] = []
    # Each frame: (parent active, condition, seen else)
    stack: list[tuple[bool, bool, bool]] = []
    active = True
    position = 0

    for match in DIRECTIVE_PATTERN.finditer(body):
        if active:
            output.append(body[position:match.start()])
        position = match.end()

        if match.group("name"):
            condition = _truthy(values.get(match.group("name")))
            if match.group("negate"):
                condition = not condition
            stack.append((active, condition, False))
            active = active and condition
        elif match.group("else"):
            if not stack or stack[-1][2]:
                raise TemplateSyntaxError(f"Unexpected 'else' at offset {match.start()}")
            parent, condition, _ = stack[-1]
            stack[-1] = (parent, condition, True)
            active = parent and not condition
        else:
            if not stack:
                raise TemplateSyntaxError(f"Unexpected 'endif' at offset {match.start()}")
            active = stack.pop()[0]

    if stack:
        raise TemplateSyntaxError(f"{len(stack)} conditional block(s) left open")
    output.append(body[position:])
    return "".join(output)


def coerce_value(variable: WorkflowVariable, raw: Any) -> VariableValue:
    """Convert caller input to the variable's declared kind, or raise."""
    if matches_kind(variable.kind, raw):
        return VariableValue(variable.kind, raw)

    if variable.kind == "string" and isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return VariableValue("string", format_scalar(raw))

    if variable.kind == "number" and isinstance(raw, str):
        text = raw.strip()
        for parse in (int, float):
            try:
                return VariableValue("number", parse(text))
            except ValueError:
                continue

    if variable.kind == "boolean" and isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return VariableValue("boolean", True)
        if lowered in _FALSE_STRINGS:
            return VariableValue("boolean", False)

    raise VariableValidationError(
        f"Variable '{variable.name}' must be a {variable.kind}",
        details={"variable": variable.name, "expected": variable.kind, "received": repr(raw)},
    )


def resolve_variables(template: WorkflowTemplate, supplied: Mapping[str, Any] | None) -> dict[str, VariableValue]:
    """Validate caller values against the template schema and fill in defaults."""
    supplied = dict(supplied or {})
    unknown = sorted(name for name in supplied if template.variable(name) is None)
    if unknown:
        logger.warning("Ignoring undeclared variables for template %s: %s", template.id, unknown)

    resolved: dict[str, VariableValue] = {}
    missing: list[str] = []
    for variable in template.variables:
        raw = supplied.get(variable.name)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raw = variable.default
        if raw is None:
            if variable.required:
                missing.append(variable.name)
            continue
        resolved[variable.name] = coerce_value(variable, raw)

    if missing:
        raise VariableValidationError(
            f"Missing required variables: {', '.join(missing)}",
            details={"missing": missing},
        )
    return resolved


def render_template(template: WorkflowTemplate, supplied: Mapping[str, Any] | None) -> str:
    values = resolve_variables(template, supplied)
    return render(resolve_conditionals(template.body, values), values)
