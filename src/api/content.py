"""Content Library API Routes - company profile, team members, project references and past projects."""

import logging
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.deps import get_db
from src.core.database import DatabaseService
from src.models import Company, PastProject, ProjectReference, TeamMember

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/content", tags=["content"])

READ_ONLY_FIELDS = {"id", "created_at", "updated_at"}


def _editable(body: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in body.items() if k not in READ_ONLY_FIELDS}


# ===========================================
# Company
# ===========================================

@router.get("/company", response_model=Company, summary="Company profile")
async def get_company(
    company_id: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db)
) -> Company:
    company = await db.get_company(company_id) if company_id else await db.get_latest_company()
    if company is None:
        raise HTTPException(status_code=404, detail="Company profile not found")
    return company


@router.put("/company", response_model=Company, summary="Create or update the company profile")
async def upsert_company(
    body: Dict[str, Any],
    company_id: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db)
) -> Company:
    current = await db.get_company(company_id) if company_id else await db.get_latest_company()

    data = current.model_dump(mode="json", exclude={"created_at", "updated_at"}) if current else {}
    data.update(_editable(body))
    if company_id:
        data["id"] = company_id
    if not data.get("name"):
        raise HTTPException(status_code=400, detail="Company name is required")

    try:
        data = Company(**data).model_dump(mode="json", exclude_none=True, exclude={"created_at", "updated_at"})
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    company = await db.upsert_company(data)
    if company is None:
        raise HTTPException(status_code=500, detail="Failed to save company profile")
    return company


# ===========================================
# Team Members
# ===========================================

@router.get("/team", response_model=List[TeamMember], summary="Active team members")
async def list_team_members(db: DatabaseService = Depends(get_db)) -> List[TeamMember]:
    return await db.list_team_members()


@router.post("/team", response_model=TeamMember, status_code=201, summary="Add a team member")
async def create_team_member(body: Dict[str, Any], db: DatabaseService = Depends(get_db)) -> TeamMember:
    if not body.get("name_with_credentials") or not body.get("position"):
        raise HTTPException(status_code=400, detail="name and title are required")

    try:
        data = TeamMember(**_editable(body)).model_dump(mode="json", exclude_none=True)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    member = await db.create_team_member(data)
    if member is None:
        raise HTTPException(status_code=500, detail="Failed to create team member")
    return member


@router.put("/team/{member_id}", response_model=TeamMember, summary="Edit a team member")
async def update_team_member(
    member_id: str,
    body: Dict[str, Any],
    db: DatabaseService = Depends(get_db)
) -> TeamMember:
    if await db.get_team_member(member_id) is None:
        raise HTTPException(status_code=404, detail="Team member not found")

    member = await db.update_team_member(member_id, _editable(body))
    if member is None:
        raise HTTPException(status_code=500, detail="Failed to update team member")
    return member


@router.delete("/team/{member_id}", summary="Deactivate a team member")
async def delete_team_member(member_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, str]:
    if await db.get_team_member(member_id) is None:
        raise HTTPException(status_code=404, detail="Team member not found")

    # Soft delete keeps existing proposal selections resolvable
    if await db.update_team_member(member_id, {"is_active": False}) is None:
        raise HTTPException(status_code=500, detail="Failed to delete team member")
    return {"message": "Team member deleted successfully"}


# ===========================================
# Project References
# ===========================================

@router.get("/references", response_model=List[ProjectReference], summary="Active project references")
async def list_references(db: DatabaseService = Depends(get_db)) -> List[ProjectReference]:
    return await db.list_references()


@router.post("/references", response_model=ProjectReference, status_code=201, summary="Add a project reference")
async def create_reference(body: Dict[str, Any], db: DatabaseService = Depends(get_db)) -> ProjectReference:
    if not body.get("organization_name"):
        raise HTTPException(status_code=400, detail="organization_name is required")

    try:
        data = ProjectReference(**_editable(body)).model_dump(mode="json", exclude_none=True)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    reference = await db.create_reference(data)
    if reference is None:
        raise HTTPException(status_code=500, detail="Failed to create reference")
    return reference


@router.put("/references/{reference_id}", response_model=ProjectReference, summary="Edit a project reference")
async def update_reference(
    reference_id: str,
    body: Dict[str, Any],
    db: DatabaseService = Depends(get_db)
) -> ProjectReference:
    if await db.get_reference(reference_id) is None:
        raise HTTPException(status_code=404, detail="Reference not found")

    reference = await db.update_reference(reference_id, _editable(body))
    if reference is None:
        raise HTTPException(status_code=500, detail="Failed to update reference")
    return reference


@router.delete("/references/{reference_id}", summary="Deactivate a project reference")
async def delete_reference(reference_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, str]:
    if await db.get_reference(reference_id) is None:
        raise HTTPException(status_code=404, detail="Reference not found")

    if await db.update_reference(reference_id, {"is_active": False}) is None:
        raise HTTPException(status_code=500, detail="Failed to delete reference")
    return {"message": "Reference deleted successfully"}


# ===========================================
# Past Projects
# ===========================================

PROJECT_REQUIRED_FIELDS = ("title", "client_name", "description", "industry", "project_type", "duration")


@router.get("/projects", response_model=List[PastProject], summary="Active public past projects")
async def list_past_projects(
    project_type: Optional[str] = Query(None),
    industry: Optional[str] = Query(None),
    count: int = Query(20, ge=1, le=100),
    db: DatabaseService = Depends(get_db)
) -> List[PastProject]:
    return await db.list_past_projects(project_type=project_type, industry=industry, limit=count)


@router.post("/projects", response_model=PastProject, status_code=201, summary="Add a past project")
async def create_past_project(body: Dict[str, Any], db: DatabaseService = Depends(get_db)) -> PastProject:
    if not all(body.get(field) for field in PROJECT_REQUIRED_FIELDS):
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        data = PastProject(**_editable(body)).model_dump(mode="json", exclude_none=True)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    data["is_active"] = True

    project = await db.create_past_project(data)
    if project is None:
        raise HTTPException(status_code=500, detail="Failed to create project")

    logger.info(f"Past project created: {project.id} ({project.title})")
    return project


@router.put("/projects/{project_id}", response_model=PastProject, summary="Edit a past project")
async def update_past_project(
    project_id: str,
    body: Dict[str, Any],
    db: DatabaseService = Depends(get_db)
) -> PastProject:
    if await db.get_past_project(project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")

    project = await db.update_past_project(project_id, _editable(body))
    if project is None:
        raise HTTPException(status_code=500, detail="Failed to update project")
    return project


@router.delete("/projects/{project_id}", summary="Deactivate a past project")
async def delete_past_project(project_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, str]:
    if await db.get_past_project(project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")

    if await db.update_past_project(project_id, {"is_active": False}) is None:
        raise HTTPException(status_code=500, detail="Failed to delete project")
    return {"message": "Project deleted successfully"}
