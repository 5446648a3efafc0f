"""Models package - All Pydantic models organized by domain."""

from src.models.enums import (
    ProjectType,
    ProposalStatus,
    SectionType,
    LibraryCategory,
    AssetOwnerType,
    AssetKind,
)
from src.models.content import (
    PrimaryContact,
    CompanyStatistics,
    Company,
    TeamMember,
    ProjectReference,
    PastProject,
    ProjectFile,
    LibrarySnapshot,
)
from src.models.rfp import NOT_MENTIONED, ParsedSections, RFPFields, Attachment, RFPRecord, RFPUpdate
from src.models.proposal import (
    NOT_AVAILABLE,
    TitleContact,
    SectionRecord,
    ProposalRecord,
    GenerateProposalRequest,
    ProposalUpdate,
    ContentLibrarySelection,
    AssemblyResult,
)
from src.models.template import Placeholder, TemplateSection, TemplateRecord, TemplateUpdate
from src.models.canva import (
    LiteralMapping,
    SourceMapping,
    AssetMapping,
    FieldMapping,
    DatasetField,
    TextValue,
    ImageValue,
    FieldValue,
    FieldDiagnosis,
    DiagnosisTotals,
    DatasetDiagnosis,
    CanvaConnection,
    CanvaAssetLink,
    CanvaCompanyTemplate,
    CanvaProposalDesign,
    CompanyMappingUpdate,
    UrlAssetUpload,
    Base64AssetUpload,
)
from src.models.results import (
    Classified,
    ClassificationUncertain,
    ClassificationResult,
    StructuredSections,
    UnstructuredSections,
    ParseResult,
)

__all__ = [
    # Enums
    "ProjectType",
    "ProposalStatus",
    "SectionType",
    "LibraryCategory",
    "AssetOwnerType",
    "AssetKind",
    # Content library
    "PrimaryContact",
    "CompanyStatistics",
    "Company",
    "TeamMember",
    "ProjectReference",
    "PastProject",
    "ProjectFile",
    "LibrarySnapshot",
    # RFP models
    "NOT_MENTIONED",
    "ParsedSections",
    "RFPFields",
    "Attachment",
    "RFPRecord",
    "RFPUpdate",
    # Proposal models
    "NOT_AVAILABLE",
    "TitleContact",
    "SectionRecord",
    "ProposalRecord",
    "GenerateProposalRequest",
    "ProposalUpdate",
    "ContentLibrarySelection",
    "AssemblyResult",
    # Template models
    "Placeholder",
    "TemplateSection",
    "TemplateRecord",
    "TemplateUpdate",
    # Canva models
    "LiteralMapping",
    "SourceMapping",
    "AssetMapping",
    "FieldMapping",
    "DatasetField",
    "TextValue",
    "ImageValue",
    "FieldValue",
    "FieldDiagnosis",
    "DiagnosisTotals",
    "DatasetDiagnosis",
    "CanvaConnection",
    "CanvaAssetLink",
    "CanvaCompanyTemplate",
    "CanvaProposalDesign",
    "CompanyMappingUpdate",
    "UrlAssetUpload",
    "Base64AssetUpload",
    # Result models
    "Classified",
    "ClassificationUncertain",
    "ClassificationResult",
    "StructuredSections",
    "UnstructuredSections",
    "ParseResult",
]
