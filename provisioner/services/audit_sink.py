"""Persistence for workflow configs and audit events.

Callers treat every method here as best-effort: errors are raised to the
caller, which logs and discards them.
"""
from __future__ import annotations

from typing import Any, Callable

from sqlalchemy.orm import Session

from provisioner.core.logger import get_logger
from provisioner.database import get_session_factory
from provisioner.models import AuditLogRecord, WorkflowConfigRecord
from provisioner.models.workflow import AuditEvent

logger = get_logger(__name__)


class AuditSink:
    """Writes workflow configs and audit events through a SQLAlchemy session factory."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self.session_factory = session_factory

    @property
    def enabled(self) -> bool:
        return self.session_factory is not None

    def save_workflow_config(
        self,
        actor: str,
        repo_name: str,
        template_id: str,
        variables: dict[str, Any],
    ) -> None:
        if self.session_factory is None:
            logger.warning("Database not configured, skipping workflow config save")
            return
        db = self.session_factory()
        try:
            db.add(
                WorkflowConfigRecord(
                    actor=actor,
                    repo_name=repo_name,
                    template_id=template_id,
                    variables=variables,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def log_audit_event(self, event: AuditEvent) -> None:
        if self.session_factory is None:
            logger.warning("Database not configured, skipping audit log")
            return
        db = self.session_factory()
        try:
            db.add(
                AuditLogRecord(
                    actor=event.actor,
                    action=event.action,
                    resource_type=event.resource_type,
                    resource_id=event.resource_id,
                    details=event.details,
                    created_at=event.created_at,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_audit_sink() -> AuditSink:
    return AuditSink(get_session_factory())
