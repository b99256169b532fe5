"""Domain records for workflow templates, provisioning inputs and results."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Tuple, Union

VariableKind = Literal["string", "number", "boolean"]
VARIABLE_KINDS = ("string", "number", "boolean")

AuditAction = Literal["create", "update", "delete"]
ResourceType = Literal["workflow", "template", "cron"]

Scalar = Union[str, int, float, bool]


def format_scalar(value: Scalar) -> str:
    """Textual form used inside workflow YAML: ``true``/``false``, ``3``, ``1.5``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def matches_kind(kind: str, value: Any) -> bool:
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, str)


@dataclass(frozen=True)
class VariableValue:
    """A template variable value tagged with its declared kind."""

    kind: VariableKind
    value: Scalar

    def __post_init__(self) -> None:
        if not matches_kind(self.kind, self.value):
            raise TypeError(f"{self.value!r} is not a {self.kind}")

    def as_text(self) -> str:
        return format_scalar(self.value)

    @property
    def truthy(self) -> bool:
        if self.kind == "boolean":
            return bool(self.value)
        if self.kind == "number":
            return self.value != 0
        return bool(str(self.value).strip())


@dataclass(frozen=True)
class WorkflowVariable:
    name: str
    kind: VariableKind
    description: str = ""
    required: bool = False
    default: Optional[Scalar] = None

    def __post_init__(self) -> None:
        if self.kind not in VARIABLE_KINDS:
            raise ValueError(f"Unknown variable kind {self.kind!r} for {self.name}")
        if self.default is not None and not matches_kind(self.kind, self.default):
            raise ValueError(f"Default for {self.name} must be a {self.kind}")


@dataclass(frozen=True)
class WorkflowTemplate:
    id: str
    name: str
    description: str
    type: str
    variables: Tuple[WorkflowVariable, ...]
    body: str

    def __post_init__(self) -> None:
        names = [variable.name for variable in self.variables]
        if len(names) != len(set(names)):
            raise ValueError(f"Template {self.id} declares a variable twice")

    def variable(self, name: str) -> Optional[WorkflowVariable]:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None


@dataclass(frozen=True)
class ScheduledJobSpec:
    name: str
    schedule: str
    command: str
    owner: str
    repo: str


@dataclass(frozen=True)
class AuditEvent:
    actor: str
    action: AuditAction
    resource_type: ResourceType
    resource_id: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ProvisionResult:
    repository: str
    path: str
    url: str
    sha: str
    created: bool
    next_run_at: Optional[datetime] = None


@dataclass(frozen=True)
class WorkflowFile:
    name: str
    path: str
    url: Optional[str]
    sha: str
    size: int
    download_url: Optional[str]
