"""
Scheduled job API Routes
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from provisioner.api.dependencies import get_pipeline
from provisioner.core.security import SessionContext, get_optional_session
from provisioner.models.workflow import ScheduledJobSpec
from provisioner.schemas.provisioning import (
    CronJobCreate,
    CronJobList,
    CronJobSchema,
    DeleteResponse,
    ProvisionDetails,
    ProvisionResponse,
)
from provisioner.services.provisioning import ProvisioningPipeline

router = APIRouter()


@router.post("", response_model=ProvisionResponse)
async def create_cron_job(
    payload: CronJobCreate,
    session: Optional[SessionContext] = Depends(get_optional_session),
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
) -> ProvisionResponse:
    job = ScheduledJobSpec(
        name=payload.name or "",
        schedule=payload.schedule or "",
        command=payload.command or "",
        owner=payload.owner or "",
        repo=payload.repo or "",
    )
    result = await pipeline.create_scheduled_job(session, job)
    return ProvisionResponse(
        message=f"Cron job created successfully in {result.repository}",
        details=ProvisionDetails.from_result(result),
    )


@router.get("", response_model=CronJobList)
async def list_cron_jobs(
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    session: Optional[SessionContext] = Depends(get_optional_session),
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
) -> CronJobList:
    files = await pipeline.list_scheduled_jobs(session, owner, repo)
    return CronJobList(
        cron_jobs=[CronJobSchema.from_file(item) for item in files],
        count=len(files),
        message="Successfully retrieved cron jobs" if files else "No cron jobs found",
    )


@router.delete("", response_model=DeleteResponse)
async def delete_cron_job(
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    path: Optional[str] = None,
    session: Optional[SessionContext] = Depends(get_optional_session),
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
) -> DeleteResponse:
    await pipeline.delete_scheduled_job(session, owner, repo, path)
    return DeleteResponse(message="Cron job deleted successfully")
