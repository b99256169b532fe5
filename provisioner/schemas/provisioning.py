from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from provisioner.integrations.github import RunSummary
from provisioner.models.workflow import ProvisionResult, WorkflowFile, WorkflowTemplate

VariableInput = Union[bool, int, float, str]


class CronJobCreate(BaseModel):
    name: Optional[str] = None
    schedule: Optional[str] = None
    command: Optional[str] = None
    owner: Optional[str] = None
    repo: Optional[str] = None


class WorkflowCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_id: str = Field(alias="templateId")
    variables: dict[str, VariableInput] = Field(default_factory=dict)
    repo_name: Optional[str] = Field(default=None, alias="repoName")


class ProvisionDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repository: str
    workflow_path: str = Field(alias="workflowPath")
    workflow_url: str = Field(alias="workflowUrl")
    sha: str
    created: bool
    next_run_at: Optional[datetime] = Field(default=None, alias="nextRunAt")

    @classmethod
    def from_result(cls, result: ProvisionResult) -> "ProvisionDetails":
        return cls(
            repository=result.repository,
            workflow_path=result.path,
            workflow_url=result.url,
            sha=result.sha,
            created=result.created,
            next_run_at=result.next_run_at,
        )


class ProvisionResponse(BaseModel):
    success: bool = True
    message: str
    details: ProvisionDetails


class CronJobSchema(BaseModel):
    name: str
    path: str
    url: Optional[str]
    sha: str
    size: int
    download_url: Optional[str]

    @classmethod
    def from_file(cls, item: WorkflowFile) -> "CronJobSchema":
        return cls(
            name=item.name,
            path=item.path,
            url=item.url,
            sha=item.sha,
            size=item.size,
            download_url=item.download_url,
        )


class CronJobList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cron_jobs: list[CronJobSchema] = Field(alias="cronJobs")
    count: int
    message: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class WorkflowRunSchema(BaseModel):
    id: int
    name: Optional[str]
    status: Optional[str]
    conclusion: Optional[str]
    head_branch: Optional[str]
    event: Optional[str]
    created_at: Optional[str]
    html_url: Optional[str]

    @classmethod
    def from_run(cls, run: RunSummary) -> "WorkflowRunSchema":
        return cls(**asdict(run))


class TemplateVariableSchema(BaseModel):
    name: str
    type: str
    description: str
    required: bool
    default: Optional[VariableInput] = None


class TemplateSchema(BaseModel):
    id: str
    name: str
    description: str
    type: str
    variables: list[TemplateVariableSchema]
    content: Optional[str] = None

    @classmethod
    def from_template(cls, template: WorkflowTemplate, include_content: bool = False) -> "TemplateSchema":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            type=template.type,
            variables=[
                TemplateVariableSchema(
                    name=variable.name,
                    type=variable.kind,
                    description=variable.description,
                    required=variable.required,
                    default=variable.default,
                )
                for variable in template.variables
            ],
            content=template.body if include_content else None,
        )
