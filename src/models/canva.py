"""Canva integration models: connections, assets, template bindings, design cache."""

from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from datetime import datetime
from pydantic import BaseModel, Field

from src.models.enums import AssetOwnerType, AssetKind


# ===========================================
# Field Mappings
# ===========================================

class LiteralMapping(BaseModel):
    """Fill a text field with a fixed string."""
    kind: Literal["literal"] = "literal"
    value: str = ""


class SourceMapping(BaseModel):
    """Fill a field from a dotted path such as 'rfp.client_name'."""
    kind: Literal["source"] = "source"
    source: str = ""


class AssetMapping(BaseModel):
    """Fill an image field with an uploaded asset."""
    kind: Literal["asset"] = "asset"
    asset_id: str = ""


FieldMapping = Annotated[
    Union[LiteralMapping, SourceMapping, AssetMapping],
    Field(discriminator="kind")
]


# ===========================================
# Dataset Definitions and Values
# ===========================================

class DatasetField(BaseModel):
    """One fillable field of a brand template."""
    type: str = Field(..., description="text | image | chart")


class TextValue(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageValue(BaseModel):
    type: Literal["image"] = "image"
    asset_id: str


FieldValue = Union[TextValue, ImageValue]


class FieldDiagnosis(BaseModel):
    """How a single field would be resolved."""
    key: str
    field_type: str
    source: Literal["mapped", "auto", "unsupported", "none"]
    filled: bool
    preview: str = ""
    reason: Optional[str] = None
    mapping: Optional[Dict[str, Any]] = None


class DiagnosisTotals(BaseModel):
    total: int = 0
    filled: int = 0
    blank: int = 0
    unsupported: int = 0


class DatasetDiagnosis(BaseModel):
    """Per-field resolution report for a brand template."""
    totals: DiagnosisTotals
    results: List[FieldDiagnosis]


# ===========================================
# Persisted Records
# ===========================================

class CanvaConnection(BaseModel):
    """OAuth connection of one user, tokens stored encrypted."""
    id: Optional[str] = None
    user_id: str
    access_token_enc: Optional[str] = None
    refresh_token_enc: Optional[str] = None
    token_type: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CanvaAssetLink(BaseModel):
    """Uploaded asset tied to a company or team member."""
    id: Optional[str] = None
    owner_type: AssetOwnerType
    owner_id: str
    kind: AssetKind
    asset_id: str
    name: Optional[str] = None
    source_url: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class CanvaCompanyTemplate(BaseModel):
    """Brand template bound to a company, with its field mapping."""
    id: Optional[str] = None
    company_id: str
    brand_template_id: str
    field_mapping: Dict[str, FieldMapping] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None


class CanvaProposalDesign(BaseModel):
    """Cached design generated for a proposal."""
    id: Optional[str] = None
    proposal_id: str
    company_id: str
    brand_template_id: str
    design_id: Optional[str] = None
    design_url: Optional[str] = None
    edit_url: Optional[str] = None
    view_url: Optional[str] = None
    temp_urls_expire_at: Optional[datetime] = None
    last_proposal_updated_at: Optional[datetime] = None
    last_generated_at: Optional[datetime] = None


# ===========================================
# Request Bodies
# ===========================================

class CompanyMappingUpdate(BaseModel):
    """Body for PUT /api/canva/company-mappings/{company_id}."""
    brand_template_id: str
    field_mapping: Dict[str, FieldMapping] = Field(default_factory=dict)


class UrlAssetUpload(BaseModel):
    """Body for POST /api/canva/assets/upload-url."""
    url: str
    name: str = "asset"


class Base64AssetUpload(BaseModel):
    """Body for the base64, logo and headshot upload endpoints."""
    data_base64: str = Field(..., description="Image bytes, optionally as a data: URL")
    name: Optional[str] = None
