"""Proposal template models."""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from src.models.enums import ProjectType


class Placeholder(BaseModel):
    """Named slot inside a template section's base content."""
    key: str
    description: Optional[str] = None
    default_value: Optional[str] = None


class TemplateSection(BaseModel):
    """Ordered section descriptor of a template."""
    name: str = Field(..., description="Section title")
    content: str = Field("", description="Base content used as generation guidance")
    content_type: str = Field("static", description="Hint for how the section is written")
    is_required: bool = True
    order: int = 0
    placeholders: List[Placeholder] = Field(default_factory=list)


class TemplateRecord(BaseModel):
    """Database record for a proposal template."""
    id: Optional[str] = Field(None, description="Database record ID")
    name: str = Field(..., description="Unique template name")
    description: Optional[str] = None
    project_type: ProjectType = ProjectType.GENERAL
    sections: List[TemplateSection] = Field(default_factory=list)
    is_active: bool = True
    version: int = 1
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def ordered_sections(self) -> List[TemplateSection]:
        """Sections sorted by their declared order."""
        return sorted(self.sections, key=lambda s: s.order)


class TemplateUpdate(BaseModel):
    """Fields a template edit may change."""
    name: Optional[str] = None
    description: Optional[str] = None
    project_type: Optional[ProjectType] = None
    sections: Optional[List[TemplateSection]] = None
    is_active: Optional[bool] = None
    tags: Optional[List[str]] = None
