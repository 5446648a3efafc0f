"""RFP-related models."""

from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from src.models.enums import ProjectType

NOT_MENTIONED = "Not mentioned in the document"


class ParsedSections(BaseModel):
    """Metadata about how an RFP's fields were extracted."""
    text_length: int = 0
    ai_enhanced: bool = False
    extraction_method: str = "heuristic"
    file_name: Optional[str] = None
    analyzed_at: Optional[datetime] = None


class RFPFields(BaseModel):
    """Structured fields extracted from an RFP document."""
    title: str = Field(NOT_MENTIONED, description="RFP title")
    client_name: str = Field(NOT_MENTIONED, description="Issuing organization")
    submission_deadline: str = Field(NOT_MENTIONED, description="Proposal due date (MM/DD/YYYY)")
    questions_deadline: str = Field(NOT_MENTIONED, description="Last day for questions")
    bid_meeting_date: str = Field(NOT_MENTIONED, description="Pre-bid meeting date")
    bid_registration_date: str = Field(NOT_MENTIONED, description="Bidder registration date")
    project_deadline: str = Field(NOT_MENTIONED, description="Project completion date")
    budget_range: str = Field(NOT_MENTIONED, description="Budget or not-to-exceed amount")
    project_type: ProjectType = Field(ProjectType.GENERAL, description="Project family")
    key_requirements: List[str] = Field(default_factory=lambda: [NOT_MENTIONED])
    evaluation_criteria: List[str] = Field(default_factory=lambda: [NOT_MENTIONED])
    deliverables: List[str] = Field(default_factory=lambda: [NOT_MENTIONED])
    special_requirements: List[str] = Field(default_factory=lambda: [NOT_MENTIONED])
    additional_info: List[str] = Field(default_factory=lambda: [NOT_MENTIONED])
    timeline: str = Field(NOT_MENTIONED, description="Project timeline")
    project_scope: str = Field(NOT_MENTIONED, description="Scope summary")
    contact_information: str = Field(NOT_MENTIONED, description="Issuer contact details")
    location: str = Field(NOT_MENTIONED, description="Project location")
    parsed_sections: ParsedSections = Field(default_factory=ParsedSections)


class Attachment(BaseModel):
    """File attached to an RFP."""
    id: str
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    file_type: str
    file_path: str
    uploaded_at: datetime
    description: Optional[str] = None
    text_length: int = 0


class RFPRecord(RFPFields):
    """Database record for an RFP."""
    id: Optional[str] = Field(None, description="Database record ID")
    raw_text: str = Field("", description="Full extracted text")
    section_titles: List[str] = Field(default_factory=list, description="Cached AI section list")
    attachments: List[Attachment] = Field(default_factory=list)
    is_disqualified: bool = False
    date_warnings: List[str] = Field(default_factory=list)
    date_meta: Dict[str, Any] = Field(default_factory=dict)
    fit_score: Optional[Dict[str, Any]] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RFPUpdate(BaseModel):
    """Fields an RFP edit may change."""
    title: Optional[str] = None
    client_name: Optional[str] = None
    submission_deadline: Optional[str] = None
    questions_deadline: Optional[str] = None
    bid_meeting_date: Optional[str] = None
    bid_registration_date: Optional[str] = None
    project_deadline: Optional[str] = None
    budget_range: Optional[str] = None
    project_type: Optional[ProjectType] = None
    key_requirements: Optional[List[str]] = None
    evaluation_criteria: Optional[List[str]] = None
    deliverables: Optional[List[str]] = None
    special_requirements: Optional[List[str]] = None
    additional_info: Optional[List[str]] = None
    timeline: Optional[str] = None
    project_scope: Optional[str] = None
    contact_information: Optional[str] = None
    location: Optional[str] = None
