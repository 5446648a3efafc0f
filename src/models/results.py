"""Result models for classification and LLM output parsing."""

from typing import Optional, Dict, Union, Literal
from pydantic import BaseModel, Field

from src.models.enums import LibraryCategory


# ===========================================
# Section Classification
# ===========================================

class Classified(BaseModel):
    """A classification the caller can trust. category None means AI-generated."""
    title: str
    category: Optional[LibraryCategory] = None
    method: Literal["exact", "model", "keywords"] = "model"


class ClassificationUncertain(BaseModel):
    """The model could not be used or gave an unusable reply."""
    title: str
    reason: str
    raw_reply: Optional[str] = None


ClassificationResult = Union[Classified, ClassificationUncertain]


# ===========================================
# Sections Response Parsing
# ===========================================

class StructuredSections(BaseModel):
    """AI sections parsed from a strict JSON reply."""
    kind: Literal["structured"] = "structured"
    sections: Dict[str, str] = Field(default_factory=dict)

    @property
    def confident(self) -> bool:
        return True


class UnstructuredSections(BaseModel):
    """AI sections recovered from markdown headings."""
    kind: Literal["unstructured"] = "unstructured"
    sections: Dict[str, str] = Field(default_factory=dict)
    pattern: Optional[str] = Field(None, description="Heading pattern that matched")

    @property
    def confident(self) -> bool:
        return False


ParseResult = Union[StructuredSections, UnstructuredSections]
