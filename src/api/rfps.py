"""RFP API Routes - upload, analysis, editing and attachments."""

import logging
import math
import os
import re
from datetime import datetime
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from src.api.deps import get_db, get_llm
from src.core.config import get_settings
from src.core.database import DatabaseService, new_id
from src.core.llm import LLMClient
from src.integrations.firecrawl import PageFetchError, firecrawl_service
from src.models import Attachment, ProposalRecord, RFPRecord, RFPUpdate
from src.services.rfp_analyzer import RFPAnalysisError, RFPAnalyzer, clean_text, extract_pdf_text
from src.services.rfp_rules import apply_rfp_rules
from src.services.section_titles import SectionTitleGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rfp", tags=["rfp"])

DERIVED_FIELDS = ("is_disqualified", "date_warnings", "date_meta", "fit_score")

ATTACHMENT_MIME_TYPES = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "doc",
    "application/vnd.ms-excel": "excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "excel",
    "text/plain": "txt",
    "image/jpeg": "image",
    "image/png": "image",
    "image/gif": "image",
    "image/webp": "image",
    "application/zip": "zip",
    "application/x-zip-compressed": "zip",
}


class AnalyzeUrlRequest(BaseModel):
    """Body for POST /api/rfp/analyze-url."""
    url: str


class SectionTitlesResponse(BaseModel):
    titles: List[str]
    cached: bool


# ===========================================
# Helpers
# ===========================================

async def _get_rfp_or_404(db: DatabaseService, rfp_id: str) -> RFPRecord:
    rfp = await db.get_rfp(rfp_id)
    if rfp is None:
        raise HTTPException(status_code=404, detail="RFP not found")
    return rfp


async def _analyze_and_store(
    db: DatabaseService,
    llm: LLMClient,
    text: str,
    source_label: str,
    file_name: str,
    file_size: int
) -> RFPRecord:
    fields = await RFPAnalyzer(llm).analyze(text, source_label)

    data = fields.model_dump(mode="json")
    data.update({"raw_text": text, "file_name": file_name, "file_size": file_size})
    apply_rfp_rules(data)

    record = await db.create_rfp(data)
    if record is None:
        raise HTTPException(status_code=500, detail="Failed to save RFP")

    logger.info(f"RFP saved: {record.id} ({source_label})")
    return record


def _safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", name or "file").strip("._") or "file"


# ===========================================
# Creation
# ===========================================

@router.post("/upload", response_model=RFPRecord, status_code=201, summary="Upload and analyze an RFP PDF")
async def upload_rfp(
    file: UploadFile = File(...),
    db: DatabaseService = Depends(get_db),
    llm: LLMClient = Depends(get_llm)
) -> RFPRecord:
    settings = get_settings()
    try:
        is_pdf = file.content_type == "application/pdf" or (file.filename or "").lower().endswith(".pdf")
        if not is_pdf:
            raise HTTPException(status_code=400, detail="Only PDF files are allowed")

        data = await file.read()
        if len(data) > settings.MAX_RFP_UPLOAD_MB * 1024 * 1024:
            raise HTTPException(
                status_code=400,
                detail=f"File exceeds {settings.MAX_RFP_UPLOAD_MB} MB limit"
            )

        logger.info(f"Analyzing RFP upload: {file.filename} ({len(data)} bytes)")
        text = extract_pdf_text(data)
        return await _analyze_and_store(db, llm, text, file.filename, file.filename, len(data))

    except HTTPException:
        raise
    except RFPAnalysisError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"RFP upload error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to analyze RFP: {str(e)}")


@router.post("/analyze-url", response_model=RFPRecord, status_code=201, summary="Analyze an RFP web page")
async def analyze_url(
    body: AnalyzeUrlRequest,
    db: DatabaseService = Depends(get_db),
    llm: LLMClient = Depends(get_llm)
) -> RFPRecord:
    try:
        if not body.url.strip():
            raise HTTPException(status_code=400, detail="URL is required")

        logger.info(f"Analyzing RFP from URL: {body.url}")
        text = clean_text(await firecrawl_service.fetch_page_text(body.url))
        file_name = f"URL_{int(datetime.utcnow().timestamp() * 1000)}"
        return await _analyze_and_store(db, llm, text, body.url, file_name, 0)

    except HTTPException:
        raise
    except PageFetchError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"RFP URL analysis error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to analyze RFP from URL: {str(e)}")


# ===========================================
# Reading
# ===========================================

@router.get("", summary="List RFPs")
async def list_rfps(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: DatabaseService = Depends(get_db)
) -> Dict[str, Any]:
    records, total = await db.list_rfps(page=page, limit=limit)
    return {
        "data": [r.model_dump(mode="json", exclude={"raw_text"}) for r in records],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.get("/search/{query}", summary="Search RFPs")
async def search_rfps(query: str, db: DatabaseService = Depends(get_db)) -> List[Dict[str, Any]]:
    records = await db.search_rfps(query)
    return [r.model_dump(mode="json", exclude={"raw_text"}) for r in records]


@router.get("/{rfp_id}", response_model=RFPRecord, summary="Get an RFP")
async def get_rfp(rfp_id: str, db: DatabaseService = Depends(get_db)) -> RFPRecord:
    rfp = await _get_rfp_or_404(db, rfp_id)

    # Deadlines may have passed since the last save
    data = rfp.model_dump(mode="json")
    apply_rfp_rules(data)
    derived = {field: data[field] for field in DERIVED_FIELDS}
    current = rfp.model_dump(mode="json", include=set(DERIVED_FIELDS))
    if derived != current:
        updated = await db.update_rfp(rfp_id, derived)
        return updated or RFPRecord(**data)
    return rfp


@router.get("/{rfp_id}/proposals", summary="Proposals answering an RFP")
async def list_rfp_proposals(rfp_id: str, db: DatabaseService = Depends(get_db)) -> List[ProposalRecord]:
    await _get_rfp_or_404(db, rfp_id)
    return await db.list_proposals(rfp_id=rfp_id)


# ===========================================
# Editing
# ===========================================

@router.put("/{rfp_id}", response_model=RFPRecord, summary="Edit an RFP")
async def update_rfp(
    rfp_id: str,
    body: RFPUpdate,
    db: DatabaseService = Depends(get_db)
) -> RFPRecord:
    try:
        rfp = await _get_rfp_or_404(db, rfp_id)
        updates = body.model_dump(mode="json", exclude_unset=True)

        merged = rfp.model_dump(mode="json")
        merged.update(updates)
        apply_rfp_rules(merged)
        updates.update({field: merged[field] for field in DERIVED_FIELDS})

        updated = await db.update_rfp(rfp_id, updates)
        if updated is None:
            raise HTTPException(status_code=500, detail="Failed to update RFP")
        return updated

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"RFP update error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update RFP: {str(e)}")


@router.delete("/{rfp_id}", summary="Delete an RFP")
async def delete_rfp(rfp_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, str]:
    await _get_rfp_or_404(db, rfp_id)
    if not await db.delete_rfp(rfp_id):
        raise HTTPException(status_code=500, detail="Failed to delete RFP")
    return {"message": "RFP deleted successfully"}


@router.post("/{rfp_id}/ai-section-titles", response_model=SectionTitlesResponse, summary="Proposal outline for an RFP")
async def ai_section_titles(
    rfp_id: str,
    force: bool = Query(False),
    db: DatabaseService = Depends(get_db),
    llm: LLMClient = Depends(get_llm)
) -> SectionTitlesResponse:
    rfp = await _get_rfp_or_404(db, rfp_id)
    if rfp.section_titles and not force:
        return SectionTitlesResponse(titles=rfp.section_titles, cached=True)

    titles = await SectionTitleGenerator(llm).generate(rfp)
    await db.update_rfp(rfp_id, {"section_titles": titles})
    return SectionTitlesResponse(titles=titles, cached=False)


# ===========================================
# Attachments
# ===========================================

@router.post("/{rfp_id}/attachments", response_model=Attachment, status_code=201, summary="Attach a file to an RFP")
async def upload_attachment(
    rfp_id: str,
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    db: DatabaseService = Depends(get_db)
) -> Attachment:
    settings = get_settings()
    try:
        rfp = await _get_rfp_or_404(db, rfp_id)

        file_type = ATTACHMENT_MIME_TYPES.get(file.content_type or "")
        if file_type is None:
            raise HTTPException(status_code=400, detail=f"File type {file.content_type} is not allowed")

        data = await file.read()
        if len(data) > settings.MAX_ATTACHMENT_UPLOAD_MB * 1024 * 1024:
            raise HTTPException(
                status_code=400,
                detail=f"File exceeds {settings.MAX_ATTACHMENT_UPLOAD_MB} MB limit"
            )

        attachment_id = new_id()
        directory = os.path.join(settings.UPLOAD_DIR, rfp_id)
        os.makedirs(directory, exist_ok=True)
        stored_name = f"{attachment_id}_{_safe_filename(file.filename)}"
        path = os.path.join(directory, stored_name)
        with open(path, "wb") as handle:
            handle.write(data)

        text_length = 0
        if file_type == "pdf":
            try:
                text_length = len(extract_pdf_text(data))
            except RFPAnalysisError:
                text_length = 0

        attachment = Attachment(
            id=attachment_id,
            file_name=stored_name,
            original_name=file.filename or stored_name,
            file_size=len(data),
            mime_type=file.content_type,
            file_type=file_type,
            file_path=path,
            uploaded_at=datetime.utcnow(),
            description=description,
            text_length=text_length,
        )

        attachments = [a.model_dump(mode="json") for a in rfp.attachments]
        attachments.append(attachment.model_dump(mode="json"))
        if await db.update_rfp(rfp_id, {"attachments": attachments}) is None:
            os.remove(path)
            raise HTTPException(status_code=500, detail="Failed to save attachment")

        logger.info(f"Attachment {attachment_id} added to RFP {rfp_id}")
        return attachment

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Attachment upload error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to upload attachment: {str(e)}")


@router.get("/{rfp_id}/attachments", response_model=List[Attachment], summary="List attachments")
async def list_attachments(rfp_id: str, db: DatabaseService = Depends(get_db)) -> List[Attachment]:
    rfp = await _get_rfp_or_404(db, rfp_id)
    return rfp.attachments


def _find_attachment(rfp: RFPRecord, attachment_id: str) -> Attachment:
    for attachment in rfp.attachments:
        if attachment.id == attachment_id:
            return attachment
    raise HTTPException(status_code=404, detail="Attachment not found")


@router.get("/{rfp_id}/attachments/{attachment_id}", summary="Download an attachment")
async def download_attachment(
    rfp_id: str,
    attachment_id: str,
    db: DatabaseService = Depends(get_db)
) -> FileResponse:
    attachment = _find_attachment(await _get_rfp_or_404(db, rfp_id), attachment_id)
    if not os.path.exists(attachment.file_path):
        raise HTTPException(status_code=404, detail="File not found on server")
    return FileResponse(
        attachment.file_path,
        media_type=attachment.mime_type,
        filename=attachment.original_name,
    )


@router.delete("/{rfp_id}/attachments/{attachment_id}", summary="Delete an attachment")
async def delete_attachment(
    rfp_id: str,
    attachment_id: str,
    db: DatabaseService = Depends(get_db)
) -> Dict[str, str]:
    rfp = await _get_rfp_or_404(db, rfp_id)
    attachment = _find_attachment(rfp, attachment_id)

    remaining = [a.model_dump(mode="json") for a in rfp.attachments if a.id != attachment_id]
    if await db.update_rfp(rfp_id, {"attachments": remaining}) is None:
        raise HTTPException(status_code=500, detail="Failed to delete attachment")

    if os.path.exists(attachment.file_path):
        try:
            os.remove(attachment.file_path)
        except OSError as e:
            logger.warning(f"Could not remove attachment file {attachment.file_path}: {e}")

    return {"message": "Attachment deleted successfully"}
