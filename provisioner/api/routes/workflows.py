from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from provisioner.api.dependencies import get_pipeline
from provisioner.core.security import SessionContext, get_optional_session
from provisioner.schemas.provisioning import (
    ProvisionDetails,
    ProvisionResponse,
    WorkflowCreate,
    WorkflowRunSchema,
)
from provisioner.services.provisioning import ProvisioningPipeline

router = APIRouter()


@router.post("/workflows", response_model=ProvisionResponse)
async def create_workflow(
    payload: WorkflowCreate,
    session: Optional[SessionContext] = Depends(get_optional_session),
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
) -> ProvisionResponse:
    result = await pipeline.create_from_template(
        session,
        payload.template_id,
        payload.variables,
        payload.repo_name or "",
    )
    return ProvisionResponse(
        message=f"Workflow created successfully in {result.repository}",
        details=ProvisionDetails.from_result(result),
    )


@router.get("/repos/{owner}/{repo}/runs", response_model=list[WorkflowRunSchema])
async def list_workflow_runs(
    owner: str,
    repo: str,
    session: Optional[SessionContext] = Depends(get_optional_session),
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
) -> list[WorkflowRunSchema]:
    runs = await pipeline.list_workflow_runs(session, owner, repo)
    return [WorkflowRunSchema.from_run(run) for run in runs]
