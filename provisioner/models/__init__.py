"""
SQLAlchemy models for the audit/config store.
"""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Text, Uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class WorkflowConfigRecord(Base):
    __tablename__ = "workflow_configs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor = Column(Text, nullable=False)
    repo_name = Column(Text, nullable=False)
    template_id = Column(Text, nullable=False)
    variables = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AuditLogRecord(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor = Column(Text, nullable=False)
    action = Column(Text, nullable=False)
    resource_type = Column(Text, nullable=False)
    resource_id = Column(Text, nullable=False)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
