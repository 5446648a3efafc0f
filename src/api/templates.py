"""Template API Routes."""

import logging
from typing import Dict, Any, List

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_db
from src.core.database import DatabaseService
from src.models import TemplateRecord, TemplateUpdate
from src.services.template_defaults import ensure_default_templates, preview_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/templates", tags=["templates"])


async def _get_template_or_404(db: DatabaseService, template_id: str) -> TemplateRecord:
    template = await db.get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.get("", response_model=List[TemplateRecord], summary="List active templates")
async def list_templates(db: DatabaseService = Depends(get_db)) -> List[TemplateRecord]:
    return await ensure_default_templates(db)


@router.get("/{template_id}", response_model=TemplateRecord, summary="Get a template")
async def get_template(template_id: str, db: DatabaseService = Depends(get_db)) -> TemplateRecord:
    return await _get_template_or_404(db, template_id)


@router.get("/{template_id}/preview", summary="Section outline of a template")
async def get_template_preview(template_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, Any]:
    return preview_template(await _get_template_or_404(db, template_id))


@router.post("", response_model=TemplateRecord, status_code=201, summary="Create a template")
async def create_template(body: TemplateRecord, db: DatabaseService = Depends(get_db)) -> TemplateRecord:
    if await db.get_template_by_name(body.name):
        raise HTTPException(status_code=409, detail="Template with this name already exists")

    created = await db.create_template(body.model_copy(update={"id": None}))
    if created is None:
        raise HTTPException(status_code=500, detail="Failed to create template")

    logger.info(f"Template created: {created.id} ({created.name})")
    return created


@router.put("/{template_id}", response_model=TemplateRecord, summary="Edit a template")
async def update_template(
    template_id: str,
    body: TemplateUpdate,
    db: DatabaseService = Depends(get_db)
) -> TemplateRecord:
    template = await _get_template_or_404(db, template_id)
    updates = body.model_dump(mode="json", exclude_unset=True)

    if "name" in updates and updates["name"] != template.name:
        clash = await db.get_template_by_name(updates["name"])
        if clash and clash.id != template_id:
            raise HTTPException(status_code=409, detail="Template with this name already exists")

    if updates:
        updates["version"] = template.version + 1

    updated = await db.update_template(template_id, updates)
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update template")
    return updated


@router.delete("/{template_id}", summary="Delete a template")
async def delete_template(template_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, str]:
    await _get_template_or_404(db, template_id)
    if not await db.delete_template(template_id):
        raise HTTPException(status_code=500, detail="Failed to delete template")
    return {"message": "Template deleted successfully"}
