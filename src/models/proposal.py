"""Proposal-related models."""

from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from src.models.enums import ProposalStatus, SectionType

NOT_AVAILABLE = "Not available in the RFP document"


class TitleContact(BaseModel):
    """Structured content of the Title section."""
    submitted_by: str = "Not specified"
    name: str = "Not specified"
    email: str = "Not specified"
    number: str = "Not specified"


class SectionRecord(BaseModel):
    """One named section of a proposal."""
    content: Union[TitleContact, str] = Field(..., description="Section body")
    type: SectionType = Field(SectionType.AI_GENERATED, description="Content provenance")
    last_modified: datetime = Field(default_factory=datetime.utcnow)
    selected_ids: Optional[List[str]] = Field(
        None,
        description="Content-library entities chosen for team/reference sections"
    )


class ProposalRecord(BaseModel):
    """Database record for a proposal."""
    id: Optional[str] = Field(None, description="Database record ID")
    rfp_id: str = Field(..., description="RFP this proposal answers")
    company_id: Optional[str] = Field(None, description="Company submitting the proposal")
    template_id: Optional[str] = Field(None, description="Template or 'ai-template'")
    title: str = Field(..., description="Proposal title")
    status: ProposalStatus = Field(ProposalStatus.DRAFT)
    sections: Dict[str, SectionRecord] = Field(default_factory=dict)
    custom_content: Dict[str, Any] = Field(default_factory=dict)
    budget_breakdown: Dict[str, Any] = Field(default_factory=dict)
    timeline_details: Dict[str, Any] = Field(default_factory=dict)
    team_assignments: List[Dict[str, Any]] = Field(default_factory=list)
    version: int = 1
    last_modified_by: Optional[str] = None
    ai_content_confident: Optional[bool] = Field(
        None,
        description="False when AI sections were recovered from unstructured output"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("sections", mode="before")
    @classmethod
    def _sections_from_rows(cls, value: Any) -> Any:
        """Accept the stored list-of-rows form as well as a mapping."""
        return rows_to_sections(value)

    def sections_to_rows(self) -> List[Dict[str, Any]]:
        """Serialize sections as an ordered list for JSON columns."""
        return sections_to_rows(self.sections)


def rows_to_sections(value: Any) -> Any:
    """Turn stored named rows back into an ordered mapping."""
    if isinstance(value, list):
        ordered: Dict[str, Any] = {}
        for row in value:
            if not isinstance(row, dict) or not row.get("name"):
                raise ValueError("section row missing name")
            row = dict(row)
            name = row.pop("name")
            ordered[name] = row
        return ordered
    return value


def sections_to_rows(sections: Dict[str, SectionRecord]) -> List[Dict[str, Any]]:
    """Serialize an ordered section map into named rows."""
    rows = []
    for name, record in sections.items():
        row = {"name": name}
        row.update(record.model_dump(mode="json", exclude_none=True))
        rows.append(row)
    return rows


class GenerateProposalRequest(BaseModel):
    """Body for POST /api/proposals/generate."""
    rfp_id: Optional[str] = None
    template_id: Optional[str] = None
    title: Optional[str] = None
    company_id: Optional[str] = None


class ProposalUpdate(BaseModel):
    """Fields a proposal edit may change."""
    title: Optional[str] = None
    status: Optional[ProposalStatus] = None
    sections: Optional[Dict[str, SectionRecord]] = None
    custom_content: Optional[Dict[str, Any]] = None
    budget_breakdown: Optional[Dict[str, Any]] = None
    timeline_details: Optional[Dict[str, Any]] = None
    team_assignments: Optional[List[Dict[str, Any]]] = None

    @field_validator("sections", mode="before")
    @classmethod
    def _sections_from_rows(cls, value: Any) -> Any:
        return rows_to_sections(value)


class ContentLibrarySelection(BaseModel):
    """Body for PUT /api/proposals/{id}/content-library/{section_name}."""
    selected_ids: List[str] = Field(default_factory=list)
    type: str = Field(..., description="company | team | references")


class AssemblyResult(BaseModel):
    """Output of one assembler run."""
    sections: Dict[str, SectionRecord]
    confident: bool = Field(True, description="Whether AI sections parsed as strict JSON")
