"""Enumeration types for the proposal engine."""

from enum import Enum


class ProjectType(str, Enum):
    """Project families an RFP or template can belong to."""
    SOFTWARE_DEVELOPMENT = "software_development"
    STRATEGIC_COMMUNICATIONS = "strategic_communications"
    FINANCIAL_MODELING = "financial_modeling"
    GENERAL = "general"


class ProposalStatus(str, Enum):
    """Status progression for proposals."""
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    SUBMITTED = "submitted"
    WON = "won"
    LOST = "lost"


class SectionType(str, Enum):
    """Provenance of a proposal section's content."""
    AI_GENERATED = "ai-generated"
    CONTENT_LIBRARY = "content-library"
    CUSTOM = "custom"


class LibraryCategory(str, Enum):
    """Content-library categories a section title can be classified into."""
    TITLE = "title"
    COVER_LETTER = "cover-letter"
    EXPERIENCE = "experience"
    TEAM = "team"
    REFERENCES = "references"


class AssetOwnerType(str, Enum):
    """Owners of uploaded design-tool assets."""
    COMPANY = "company"
    TEAM_MEMBER = "team_member"


class AssetKind(str, Enum):
    """Kinds of uploaded design-tool assets."""
    LOGO = "logo"
    HEADSHOT = "headshot"
    GENERIC = "generic"
