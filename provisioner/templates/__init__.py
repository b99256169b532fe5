"""Built-in workflow template catalog."""

from .workflow_templates import SCHEDULED_JOB_BODY, WORKFLOW_TEMPLATES, get_template, list_templates

__all__ = ["SCHEDULED_JOB_BODY", "WORKFLOW_TEMPLATES", "get_template", "list_templates"]
