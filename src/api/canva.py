"""Canva API Routes - OAuth connection, brand-template mappings, assets and proposal designs."""

import logging
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse, Response

from src.api.deps import get_canva_service, get_current_user
from src.models import Base64AssetUpload, CompanyMappingUpdate, UrlAssetUpload
from src.services.canva_service import CanvaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/canva", tags=["canva"])


# ===========================================
# Connection
# ===========================================

@router.get("/status", summary="Canva connection status")
async def status(
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    return await service.get_status(user["user_id"])


@router.post("/disconnect", summary="Forget the stored Canva tokens")
async def disconnect(
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    return {"ok": await service.disconnect(user["user_id"])}


@router.get("/connect-url", summary="Canva authorize URL")
async def connect_url(
    return_to: Optional[str] = Query(None),
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, str]:
    return {"url": service.connect_url(user["user_id"], return_to)}


@router.get("/callback", summary="OAuth redirect target")
async def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    service: CanvaService = Depends(get_canva_service)
) -> RedirectResponse:
    """Unauthenticated: the user is identified by the signed state token."""
    target = await service.handle_callback(code, state, error)
    return RedirectResponse(url=target, status_code=302)


# ===========================================
# Brand Templates and Mappings
# ===========================================

@router.get("/brand-templates", summary="Brand templates visible to the user")
async def brand_templates(
    continuation: Optional[str] = Query(None),
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    return await service.list_brand_templates(user["user_id"], continuation)


@router.get("/brand-templates/{brand_template_id}/dataset", summary="Autofill fields of a brand template")
async def brand_template_dataset(
    brand_template_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    dataset = await service.get_dataset(user["user_id"], brand_template_id)
    return {
        "brand_template_id": brand_template_id,
        "dataset": {key: field.model_dump() for key, field in dataset.items()},
    }


@router.get("/company-mappings/{company_id}", summary="Brand template bound to a company")
async def get_company_mapping(
    company_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    binding = await service.get_company_mapping(company_id)
    return {"mapping": binding.model_dump(mode="json") if binding else None}


@router.put("/company-mappings/{company_id}", summary="Bind a brand template to a company")
async def save_company_mapping(
    company_id: str,
    body: CompanyMappingUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    if not body.brand_template_id.strip():
        raise HTTPException(status_code=400, detail="brand_template_id is required")

    binding = await service.save_company_mapping(company_id, body.brand_template_id, body.field_mapping)
    if binding is None:
        raise HTTPException(status_code=500, detail="Failed to save company mapping")
    return {"ok": True, "mapping": binding.model_dump(mode="json")}


# ===========================================
# Assets
# ===========================================

@router.post("/assets/upload-url", summary="Upload an image to Canva from a URL")
async def upload_asset_url(
    body: UrlAssetUpload,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    asset = await service.upload_asset_from_url(user["user_id"], body.url, body.name)
    return {"ok": True, "asset": asset}


@router.post("/assets/upload-base64", summary="Upload an image to Canva from base64 data")
async def upload_asset_base64(
    body: Base64AssetUpload,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    if not (body.name or "").strip() or not body.data_base64:
        raise HTTPException(status_code=400, detail="name and data_base64 are required")

    asset = await service.upload_asset_base64(user["user_id"], body.data_base64, body.name.strip())
    return {"ok": True, "asset": asset}


@router.get("/companies/{company_id}/logo", summary="Canva asset linked as a company logo")
async def get_company_logo(
    company_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    link = await service.get_company_logo(company_id)
    return {"ok": True, "link": link.model_dump(mode="json") if link else None}


@router.post("/companies/{company_id}/logo", summary="Upload a company logo")
async def upload_company_logo(
    company_id: str,
    body: Base64AssetUpload,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    result = await service.upload_company_logo(user["user_id"], company_id, body.data_base64, body.name)
    return _asset_result(result)


@router.get("/team/{member_id}/headshot", summary="Canva asset linked as a member headshot")
async def get_headshot(
    member_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    link = await service.get_headshot(member_id)
    return {"ok": True, "link": link.model_dump(mode="json") if link else None}


@router.post("/team/{member_id}/headshot", summary="Upload a team member headshot")
async def upload_headshot(
    member_id: str,
    body: Base64AssetUpload,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    result = await service.upload_headshot(user["user_id"], member_id, body.data_base64, body.name)
    return _asset_result(result)


def _asset_result(result: Dict[str, Any]) -> Dict[str, Any]:
    link = result.get("link")
    return {
        "ok": True,
        "asset": result["asset"],
        "link": link.model_dump(mode="json") if link else None,
    }


# ===========================================
# Proposal Designs
# ===========================================

@router.post("/proposals/{proposal_id}/create-design", summary="Autofill a design for a proposal")
async def create_design(
    proposal_id: str,
    force: bool = Query(False),
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    return await service.ensure_design_for_proposal(user["user_id"], proposal_id, force=force)


@router.post("/proposals/{proposal_id}/export-pdf", summary="Export the proposal design as PDF")
async def export_design_pdf(
    proposal_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Response:
    data, file_name = await service.export_pdf(user["user_id"], proposal_id)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/proposals/{proposal_id}/validate", summary="Diagnose how each template field would be filled")
async def validate_design(
    proposal_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    service: CanvaService = Depends(get_canva_service)
) -> Dict[str, Any]:
    return await service.validate(user["user_id"], proposal_id)
