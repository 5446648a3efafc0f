"""Content-library models: company profile, team members, project references, past projects."""

from typing import Optional, List, Literal
from datetime import date, datetime
from pydantic import BaseModel, Field


class PrimaryContact(BaseModel):
    """Person who signs and fronts the company's proposals."""
    name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CompanyStatistics(BaseModel):
    """Headline numbers quoted in the experience section."""
    years_in_business: Optional[int] = None
    projects_completed: Optional[int] = None
    clients_satisfied: Optional[int] = None


class Company(BaseModel):
    """Company profile record."""
    id: Optional[str] = Field(None, description="Stable company identifier")
    name: str = Field(..., description="Company name")
    tagline: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    core_capabilities: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    statistics: CompanyStatistics = Field(default_factory=CompanyStatistics)
    cover_letter: Optional[str] = Field(None, description="Body text reused in cover letters")
    firm_qualifications_and_experience: Optional[str] = None
    primary_contact: Optional[PrimaryContact] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TeamMember(BaseModel):
    """Team member profile record."""
    id: Optional[str] = Field(None, description="Stable member identifier (member_...)")
    name_with_credentials: str = Field(..., description="Display name, e.g. 'Jane Doe, PMP'")
    position: str = Field(..., description="Role or title")
    email: Optional[str] = None
    biography: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectReference(BaseModel):
    """Past-project client reference record."""
    id: Optional[str] = Field(None, description="Reference identifier")
    organization_name: str = Field(..., description="Client organization")
    time_period: Optional[str] = None
    contact_name: Optional[str] = None
    contact_title: Optional[str] = None
    additional_title: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    scope_of_work: Optional[str] = None
    outcomes: Optional[str] = None
    is_active: bool = True
    is_public: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectFile(BaseModel):
    """File kept with a past project (case study, screenshots)."""
    name: Optional[str] = None
    path: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None


class PastProject(BaseModel):
    """Completed engagement kept as a case study."""
    id: Optional[str] = Field(None, description="Project identifier")
    title: str
    client_name: str
    description: str
    industry: str
    project_type: str
    duration: str
    budget: Optional[str] = None
    start_date: Optional[date] = None
    completion_date: Optional[date] = None
    key_outcomes: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)
    solutions: List[str] = Field(default_factory=list)
    team_members: List[str] = Field(default_factory=list)
    files: List[ProjectFile] = Field(default_factory=list)
    confidentiality_level: Literal["public", "restricted", "confidential"] = "public"
    is_active: bool = True
    is_public: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LibrarySnapshot(BaseModel):
    """Content-library state handed to the assembler in one piece."""
    company: Optional[Company] = None
    team_members: List[TeamMember] = Field(default_factory=list)
    references: List[ProjectReference] = Field(default_factory=list)
