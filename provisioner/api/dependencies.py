"""Shared API dependencies."""
from __future__ import annotations

from fastapi import Depends

from provisioner.core.security import SessionContext, get_optional_session
from provisioner.integrations.github import GitHubGateway, RepositoryGateway
from provisioner.services.audit_sink import AuditSink, get_audit_sink
from provisioner.services.provisioning import ProvisioningPipeline


def github_gateway(token: str) -> RepositoryGateway:
    return GitHubGateway(token)


def get_pipeline(sink: AuditSink = Depends(get_audit_sink)) -> ProvisioningPipeline:
    return ProvisioningPipeline(github_gateway, sink)


__all__ = ["SessionContext", "get_optional_session", "get_pipeline", "github_gateway"]
