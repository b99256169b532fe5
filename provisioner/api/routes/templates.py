from __future__ import annotations

from fastapi import APIRouter, HTTPException

from provisioner.schemas.provisioning import TemplateSchema
from provisioner.templates import get_template, list_templates

router = APIRouter()


@router.get("", response_model=list[TemplateSchema])
async def get_templates() -> list[TemplateSchema]:
    return [TemplateSchema.from_template(template) for template in list_templates()]


@router.get("/{template_id}", response_model=TemplateSchema)
async def template_detail(template_id: str) -> TemplateSchema:
    template = get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return TemplateSchema.from_template(template, include_content=True)
