"""Custom exception types for domain and API layers."""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base app exception."""


class IntegrationError(AppError):
    """External integration call failure."""


class GitHubAPIError(IntegrationError):
    """GitHub REST call failed. ``status`` is None for transport-level failures."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class GitHubNotFoundError(GitHubAPIError):
    """GitHub answered 404 for the requested resource."""

    def __init__(self, message: str = "Not Found"):
        super().__init__(message, status=404)


class TemplateSyntaxError(ValueError):
    """Unbalanced or misplaced conditional block in a workflow template body."""


class ProvisioningError(AppError):
    """Pipeline-fatal failure reported to the caller as ``kind`` + message."""

    kind = "Error"
    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class Unauthorized(ProvisioningError):
    kind = "Unauthorized"
    status_code = 401


class NoCredential(ProvisioningError):
    kind = "NoCredential"
    status_code = 401


class BadRequest(ProvisioningError):
    kind = "BadRequest"
    status_code = 400


class VariableValidationError(BadRequest):
    """A template variable is missing, unknown, or of the wrong kind."""


class InvalidCredential(ProvisioningError):
    kind = "InvalidCredential"
    status_code = 401


class Forbidden(ProvisioningError):
    kind = "Forbidden"
    status_code = 403


class PermissionCheckFailed(ProvisioningError):
    kind = "PermissionCheckFailed"


class TemplateNotFound(ProvisioningError):
    kind = "TemplateNotFound"
    status_code = 404


class DirectoryEnsureFailed(ProvisioningError):
    kind = "DirectoryEnsureFailed"


class WriteFailed(ProvisioningError):
    kind = "WriteFailed"


class VerificationFailed(ProvisioningError):
    kind = "VerificationFailed"


class RemoteError(ProvisioningError):
    kind = "RemoteError"
