"""Proposal API Routes - generation, editing and export."""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from src.api.deps import get_db, get_llm
from src.core.database import DatabaseService
from src.core.llm import LLMClient, LLMError
from src.integrations.docx_export import docx_exporter
from src.integrations.drive import drive_storage
from src.integrations.pdf import export_filename, pdf_exporter
from src.models import (
    Company,
    ContentLibrarySelection,
    GenerateProposalRequest,
    LibraryCategory,
    ProposalRecord,
    ProposalUpdate,
    RFPRecord,
    TemplateRecord,
)
from src.services.content_library import ContentLibrary
from src.services.proposal_assembler import ProposalAssembler, render_library_section
from src.services.section_titles import SectionTitleGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proposals", tags=["proposals"])

AI_TEMPLATE_ID = "ai-template"

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SELECTION_CATEGORIES = {
    "company": LibraryCategory.EXPERIENCE,
    "team": LibraryCategory.TEAM,
    "references": LibraryCategory.REFERENCES,
}


# ===========================================
# Helpers
# ===========================================

async def _get_proposal_or_404(db: DatabaseService, proposal_id: str) -> ProposalRecord:
    proposal = await db.get_proposal(proposal_id)
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


async def _get_rfp_or_404(db: DatabaseService, rfp_id: str) -> RFPRecord:
    rfp = await db.get_rfp(rfp_id)
    if rfp is None:
        raise HTTPException(status_code=404, detail="RFP not found")
    return rfp


async def _outline(
    db: DatabaseService,
    llm: LLMClient,
    rfp: RFPRecord,
    template_id: str
) -> Tuple[List[str], Optional[TemplateRecord]]:
    """Section titles and template for a generation run."""
    if template_id == AI_TEMPLATE_ID:
        titles = rfp.section_titles
        if not titles:
            titles = await SectionTitleGenerator(llm).generate(rfp)
            await db.update_rfp(rfp.id, {"section_titles": titles})
        return titles, None

    template = await db.get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return [], template


async def _render(proposal: ProposalRecord, company: Optional[Company], fmt: str) -> Tuple[bytes, str, str]:
    """Export bytes, download name and MIME type. Rendering runs off the event loop."""
    if fmt == "docx":
        data = await asyncio.to_thread(docx_exporter.render, proposal, company)
        return data, export_filename(proposal.title, "docx"), DOCX_MIME
    data = await asyncio.to_thread(pdf_exporter.render, proposal, company)
    return data, export_filename(proposal.title, "pdf"), PDF_MIME


def _attachment(data: bytes, file_name: str, media_type: str) -> Response:
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


# ===========================================
# Generation
# ===========================================

@router.post("/generate", response_model=ProposalRecord, status_code=201, summary="Generate a proposal")
async def generate_proposal(
    body: GenerateProposalRequest,
    db: DatabaseService = Depends(get_db),
    llm: LLMClient = Depends(get_llm)
) -> ProposalRecord:
    """
    Assemble a proposal for an RFP.

    With template_id "ai-template" the sections come from the RFP's AI
    outline; otherwise from the stored template.
    """
    if not body.rfp_id or not body.template_id or not body.title:
        raise HTTPException(status_code=400, detail="rfp_id, template_id and title are required")

    try:
        rfp = await _get_rfp_or_404(db, body.rfp_id)
        titles, template = await _outline(db, llm, rfp, body.template_id)

        library = ContentLibrary(db)
        snapshot = await library.snapshot(body.company_id)
        result = await ProposalAssembler(llm).assemble(rfp, titles, snapshot, template=template)

        proposal = ProposalRecord(
            rfp_id=rfp.id,
            company_id=snapshot.company.id if snapshot.company else body.company_id,
            template_id=body.template_id,
            title=body.title,
            sections=result.sections,
            ai_content_confident=result.confident,
        )
        created = await db.create_proposal(proposal)
        if created is None:
            raise HTTPException(status_code=500, detail="Failed to save proposal")

        logger.info(f"Proposal {created.id} generated for RFP {rfp.id} ({len(result.sections)} sections)")
        return created

    except HTTPException:
        raise
    except LLMError as e:
        logger.error(f"Proposal generation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate proposal: {str(e)}")
    except Exception as e:
        logger.error(f"Proposal generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate proposal: {str(e)}")


@router.post("/{proposal_id}/generate-sections", response_model=ProposalRecord, summary="Regenerate all sections")
async def regenerate_sections(
    proposal_id: str,
    db: DatabaseService = Depends(get_db),
    llm: LLMClient = Depends(get_llm)
) -> ProposalRecord:
    try:
        proposal = await _get_proposal_or_404(db, proposal_id)
        rfp = await _get_rfp_or_404(db, proposal.rfp_id)

        if proposal.template_id and proposal.template_id != AI_TEMPLATE_ID:
            titles, template = await _outline(db, llm, rfp, proposal.template_id)
        elif proposal.sections:
            titles, template = list(proposal.sections), None
        else:
            titles, template = await _outline(db, llm, rfp, AI_TEMPLATE_ID)

        snapshot = await ContentLibrary(db).snapshot(proposal.company_id)
        result = await ProposalAssembler(llm).assemble(rfp, titles, snapshot, template=template)

        updated = await db.update_proposal(proposal_id, {
            "sections": result.sections,
            "ai_content_confident": result.confident,
            "version": proposal.version + 1,
        })
        if updated is None:
            raise HTTPException(status_code=500, detail="Failed to save proposal")
        return updated

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Section regeneration error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to regenerate sections: {str(e)}")


# ===========================================
# CRUD
# ===========================================

@router.get("", response_model=List[ProposalRecord], summary="List proposals")
async def list_proposals(
    rfp_id: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db)
) -> List[ProposalRecord]:
    return await db.list_proposals(rfp_id=rfp_id)


@router.get("/{proposal_id}", response_model=ProposalRecord, summary="Get a proposal")
async def get_proposal(proposal_id: str, db: DatabaseService = Depends(get_db)) -> ProposalRecord:
    return await _get_proposal_or_404(db, proposal_id)


@router.put("/{proposal_id}", response_model=ProposalRecord, summary="Edit a proposal")
async def update_proposal(
    proposal_id: str,
    body: ProposalUpdate,
    db: DatabaseService = Depends(get_db)
) -> ProposalRecord:
    proposal = await _get_proposal_or_404(db, proposal_id)

    updates: Dict[str, Any] = body.model_dump(mode="json", exclude_unset=True, exclude={"sections"})
    if body.sections is not None:
        updates["sections"] = body.sections
    if not updates:
        return proposal
    updates["version"] = proposal.version + 1

    updated = await db.update_proposal(proposal_id, updates)
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update proposal")
    return updated


@router.delete("/{proposal_id}", summary="Delete a proposal")
async def delete_proposal(proposal_id: str, db: DatabaseService = Depends(get_db)) -> Dict[str, str]:
    await _get_proposal_or_404(db, proposal_id)
    if not await db.delete_proposal(proposal_id):
        raise HTTPException(status_code=500, detail="Failed to delete proposal")
    return {"message": "Proposal deleted successfully"}


@router.put(
    "/{proposal_id}/content-library/{section_name}",
    response_model=ProposalRecord,
    summary="Choose library items for a section"
)
async def update_content_library_section(
    proposal_id: str,
    section_name: str,
    body: ContentLibrarySelection,
    db: DatabaseService = Depends(get_db)
) -> ProposalRecord:
    category = SELECTION_CATEGORIES.get(body.type)
    if category is None:
        raise HTTPException(status_code=400, detail="type must be one of: company, team, references")

    proposal = await _get_proposal_or_404(db, proposal_id)
    rfp = await _get_rfp_or_404(db, proposal.rfp_id)
    snapshot = await ContentLibrary(db).snapshot(proposal.company_id)

    selected = body.selected_ids if category != LibraryCategory.EXPERIENCE else None
    record = render_library_section(category, rfp, snapshot, selected_ids=selected)

    sections = dict(proposal.sections)
    sections[section_name] = record

    updated = await db.update_proposal(proposal_id, {
        "sections": sections,
        "version": proposal.version + 1,
    })
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update proposal")

    logger.info(f"Proposal {proposal_id}: '{section_name}' re-rendered from {body.type}")
    return updated


# ===========================================
# Export
# ===========================================

@router.get("/{proposal_id}/export-pdf", summary="Download the proposal as PDF")
async def export_pdf(proposal_id: str, db: DatabaseService = Depends(get_db)) -> Response:
    try:
        proposal = await _get_proposal_or_404(db, proposal_id)
        company = await ContentLibrary(db).get_company(proposal.company_id)
        data, file_name, media_type = await _render(proposal, company, "pdf")
        return _attachment(data, file_name, media_type)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"PDF export error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to export PDF: {str(e)}")


@router.get("/{proposal_id}/export-docx", summary="Download the proposal as Word")
async def export_docx(proposal_id: str, db: DatabaseService = Depends(get_db)) -> Response:
    try:
        proposal = await _get_proposal_or_404(db, proposal_id)
        company = await ContentLibrary(db).get_company(proposal.company_id)
        data, file_name, media_type = await _render(proposal, company, "docx")
        return _attachment(data, file_name, media_type)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"DOCX export error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to export DOCX: {str(e)}")


@router.post("/{proposal_id}/export-drive", summary="Upload an export to Google Drive")
async def export_drive(
    proposal_id: str,
    format: str = Query("pdf", pattern="^(pdf|docx)$"),
    db: DatabaseService = Depends(get_db)
) -> Dict[str, Any]:
    try:
        proposal = await _get_proposal_or_404(db, proposal_id)
        company = await ContentLibrary(db).get_company(proposal.company_id)
        data, file_name, media_type = await _render(proposal, company, format)

        if not drive_storage.is_available():
            raise HTTPException(status_code=503, detail="Google Drive is not configured")

        uploaded = await drive_storage.upload_file(data, file_name, media_type)
        if uploaded is None:
            raise HTTPException(status_code=500, detail="Failed to upload export to Google Drive")

        logger.info(f"Proposal {proposal_id} exported to Drive as {format}: {uploaded['file_id']}")
        return {
            "success": True,
            "format": format,
            "exported_at": datetime.utcnow().isoformat(),
            **uploaded,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Drive export error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to export to Drive: {str(e)}")
