"""
Dataset Mapper - fills a brand template's named fields from proposal data.

One resolution routine serves two callers: build_dataset_values() produces
the payload sent to Canva autofill, diagnose_dataset_values() explains per
field what would be filled and why a field stays blank.

Resolution order per field:
    1. chart fields are skipped
    2. an explicit mapping wins (literal, source path or asset)
    3. key-name heuristics (indexed team/reference keys, logo, common names)
    4. otherwise the field is left blank
"""

import json
import logging
import re
from typing import Optional, List, Dict, Any, Tuple, NamedTuple

from pydantic import BaseModel, Field

from src.models import (
    NOT_AVAILABLE,
    NOT_MENTIONED,
    AssetMapping,
    Company,
    DatasetDiagnosis,
    DatasetField,
    DiagnosisTotals,
    FieldDiagnosis,
    FieldMapping,
    FieldValue,
    ImageValue,
    LiteralMapping,
    ProjectReference,
    ProposalRecord,
    RFPRecord,
    SourceMapping,
    TeamMember,
    TextValue,
    TitleContact,
)
from src.services.section_formatters import format_title_object_to_text

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 140
TEAM_ID_PREFIX = "member_"

REASON_CHART = "Chart fields are not supported yet."
REASON_MAPPED_IMAGE = "Mapping selected but asset_id missing or invalid."
REASON_MAPPED_TEXT = "Mapping selected but source/literal produced empty value."
REASON_NO_LOGO = "Company logo asset_id not found (upload logo)."
REASON_NO_HEADSHOT = "Auto-fill needs selected team members + uploaded headshots."
REASON_NO_SELECTION = "Auto-fill depends on proposal content library selections."
REASON_UNMAPPED = "No mapping set for this field."

TEAM_KEY_RE = re.compile(
    r"(team|personnel|staff|key_personnel)[^0-9]*([0-9]{1,2}).*"
    r"(name|bio|biography|position|role|title|photo|headshot|image)$"
)
REFERENCE_KEY_RE = re.compile(
    r"(reference|past_performance)[^0-9]*([0-9]{1,2}).*"
    r"(title|name|client|scope|description|summary|outcome|results)$"
)

PHOTO_ATTRS = {"photo", "headshot", "image"}
TEAM_TEXT_ATTRS = {
    "name": "name_with_credentials",
    "bio": "biography",
    "biography": "biography",
    "position": "position",
    "role": "position",
    "title": "position",
}
REFERENCE_TEXT_ATTRS = {
    "title": "organization_name",
    "name": "organization_name",
    "client": "organization_name",
    "scope": "scope_of_work",
    "description": "scope_of_work",
    "summary": "scope_of_work",
    "outcome": "outcomes",
    "results": "outcomes",
}

# Key words that must all appear in a field key -> dotted source path
PATH_GUESSES: List[Tuple[Tuple[str, ...], str]] = [
    (("proposal", "title"), "proposal.title"),
    (("rfp", "title"), "rfp.title"),
    (("client",), "rfp.client_name"),
    (("submission",), "rfp.submission_deadline"),
    (("due",), "rfp.submission_deadline"),
    (("company", "name"), "company.name"),
    (("cover", "letter"), "proposal.sections.Cover Letter.content"),
    (("coverletter",), "proposal.sections.Cover Letter.content"),
]

# Key words in a field key -> words to look for in proposal section names
SECTION_GUESSES: List[Tuple[Tuple[str, ...], Tuple[str, ...]]] = [
    (("executive", "summary"), ("executive summary",)),
    (("method",), ("method", "approach")),
    (("approach",), ("approach", "method")),
    (("deliverable",), ("deliverable",)),
    (("timeline",), ("timeline", "schedule")),
    (("schedule",), ("schedule", "timeline")),
    (("understanding",), ("understanding",)),
    (("budget",), ("budget", "cost", "pricing")),
    (("team",), ("personnel", "team")),
    (("personnel",), ("personnel", "team")),
    (("reference",), ("reference",)),
    (("past_performance",), ("reference", "past performance")),
]

_EMPTY_MARKERS = {NOT_MENTIONED, NOT_AVAILABLE}


class MappingContext(BaseModel):
    """Everything a field can be filled from."""
    proposal: ProposalRecord
    rfp: Optional[RFPRecord] = None
    company: Optional[Company] = None
    logo_asset_id: Optional[str] = None
    team_members: List[TeamMember] = Field(default_factory=list)
    headshots: Dict[str, str] = Field(default_factory=dict, description="member id -> asset id")
    references: List[ProjectReference] = Field(default_factory=list)

    def root(self) -> Dict[str, Any]:
        """Plain-data view used for dotted path lookups."""
        return {
            "proposal": self.proposal.model_dump(mode="json"),
            "rfp": self.rfp.model_dump(mode="json") if self.rfp else None,
            "company": self.company.model_dump(mode="json") if self.company else None,
        }


class Resolution(NamedTuple):
    value: Optional[FieldValue]
    source: str
    reason: Optional[str] = None


# ===========================================
# Value Helpers
# ===========================================

def get_path(root: Dict[str, Any], path: str) -> Any:
    """
    Walk a dotted path through nested dicts.

    Keys match exactly first, then case-insensitively, so
    'proposal.sections.cover letter.content' finds 'Cover Letter'.
    """
    current: Any = root
    for part in (p for p in path.strip().split(".") if p):
        if not isinstance(current, dict):
            return None
        if part in current:
            current = current[part]
            continue
        folded = part.casefold()
        for key, value in current.items():
            if isinstance(key, str) and key.casefold() == folded:
                current = value
                break
        else:
            return None
    return current


def to_text(value: Any) -> str:
    """Render any looked-up value as field text; sentinels count as empty."""
    if value is None:
        return ""
    if isinstance(value, str):
        text = value.strip()
    elif isinstance(value, (bool, int, float)):
        text = str(value)
    elif isinstance(value, dict) and value and set(value) <= set(TitleContact.model_fields):
        text = format_title_object_to_text(TitleContact(**value))
    elif isinstance(value, list) and all(isinstance(v, str) for v in value):
        text = "\n".join(v for v in value if v not in _EMPTY_MARKERS)
    else:
        text = json.dumps(value, indent=2, default=str)
    return "" if text in _EMPTY_MARKERS else text


def collect_selected_ids(proposal: ProposalRecord) -> Tuple[List[str], List[str]]:
    """Team member ids and reference ids chosen across the proposal's sections."""
    team_ids: List[str] = []
    reference_ids: List[str] = []
    for section in proposal.sections.values():
        for selected in section.selected_ids or []:
            bucket = team_ids if selected.startswith(TEAM_ID_PREFIX) else reference_ids
            if selected not in bucket:
                bucket.append(selected)
    return team_ids, reference_ids


def guess_source(key: str, section_names: List[str]) -> Optional[str]:
    """Dotted path a field key most likely refers to, if any."""
    k = key.lower()
    for words, path in PATH_GUESSES:
        if all(word in k for word in words):
            return path

    for words, wanted in SECTION_GUESSES:
        if all(word in k for word in words):
            for name in section_names:
                if any(w in name.lower() for w in wanted):
                    return f"proposal.sections.{name}.content"
            # Recognized key, but the proposal has no such section
            return f"proposal.sections.{wanted[0].title()}.content"

    # Any other title-like key names the RFP
    if "title" in k:
        return "rfp.title"
    return None


def _text(value: Any) -> Optional[TextValue]:
    text = to_text(value)
    return TextValue(text=text) if text else None


def _image(asset_id: Optional[str]) -> Optional[ImageValue]:
    asset_id = (asset_id or "").strip()
    return ImageValue(asset_id=asset_id) if asset_id else None


# ===========================================
# Resolution
# ===========================================

def _resolve_mapping(
    mapping: FieldMapping,
    field_type: str,
    root: Dict[str, Any]
) -> Optional[FieldValue]:
    if isinstance(mapping, LiteralMapping):
        return _text(mapping.value) if field_type == "text" else None
    if isinstance(mapping, AssetMapping):
        return _image(mapping.asset_id) if field_type == "image" else None
    if isinstance(mapping, SourceMapping):
        if not mapping.source.strip():
            return None
        value = get_path(root, mapping.source)
        if field_type == "image":
            return _image(to_text(value))
        return _text(value)
    raise TypeError(f"Unhandled field mapping: {type(mapping).__name__}")


def _resolve_team_key(match: "re.Match[str]", field_type: str, ctx: MappingContext) -> Resolution:
    index = int(match.group(2)) - 1
    attr = match.group(3)
    member = ctx.team_members[index] if 0 <= index < len(ctx.team_members) else None

    if field_type == "image":
        if attr in PHOTO_ATTRS and member is not None:
            value = _image(ctx.headshots.get(member.id or ""))
            if value:
                return Resolution(value, "auto")
        return Resolution(None, "auto", REASON_NO_HEADSHOT)

    if member is not None and attr in TEAM_TEXT_ATTRS:
        value = _text(getattr(member, TEAM_TEXT_ATTRS[attr]))
        if value:
            return Resolution(value, "auto")
    return Resolution(None, "auto", REASON_NO_SELECTION)


def _resolve_reference_key(match: "re.Match[str]", ctx: MappingContext) -> Resolution:
    index = int(match.group(2)) - 1
    reference = ctx.references[index] if 0 <= index < len(ctx.references) else None
    if reference is not None:
        value = _text(getattr(reference, REFERENCE_TEXT_ATTRS[match.group(3)]))
        if value:
            return Resolution(value, "auto")
    return Resolution(None, "auto", REASON_NO_SELECTION)


def _resolve_heuristic(
    key: str,
    field_type: str,
    ctx: MappingContext,
    root: Dict[str, Any]
) -> Resolution:
    k = key.lower()

    team = TEAM_KEY_RE.search(k)
    if team:
        return _resolve_team_key(team, field_type, ctx)

    if field_type == "text":
        reference = REFERENCE_KEY_RE.search(k)
        if reference:
            return _resolve_reference_key(reference, ctx)

    if field_type == "image":
        if "logo" in k:
            value = _image(ctx.logo_asset_id)
            return Resolution(value, "auto") if value else Resolution(None, "auto", REASON_NO_LOGO)
        return Resolution(None, "none", REASON_UNMAPPED)

    path = guess_source(key, list(ctx.proposal.sections))
    if path:
        value = _text(get_path(root, path))
        return Resolution(value, "auto") if value else Resolution(None, "auto", REASON_NO_SELECTION)

    return Resolution(None, "none", REASON_UNMAPPED)


def resolve_field(
    key: str,
    field: DatasetField,
    mapping: Optional[FieldMapping],
    ctx: MappingContext,
    root: Optional[Dict[str, Any]] = None
) -> Resolution:
    """
    Resolve one dataset field.

    An explicit mapping is final: when it yields nothing the field stays
    blank rather than falling back to a guess.
    """
    if root is None:
        root = ctx.root()

    field_type = (field.type or "text").lower()
    if field_type == "chart":
        return Resolution(None, "unsupported", REASON_CHART)

    if mapping is not None:
        value = _resolve_mapping(mapping, field_type, root)
        if value:
            return Resolution(value, "mapped")
        return Resolution(
            None,
            "mapped",
            REASON_MAPPED_IMAGE if field_type == "image" else REASON_MAPPED_TEXT,
        )

    return _resolve_heuristic(key, field_type, ctx, root)


def build_dataset_values(
    dataset: Dict[str, DatasetField],
    mapping: Dict[str, FieldMapping],
    ctx: MappingContext
) -> Dict[str, FieldValue]:
    """Autofill payload: only fields that resolved to a value are present."""
    root = ctx.root()
    values: Dict[str, FieldValue] = {}
    for key, field in dataset.items():
        resolution = resolve_field(key, field, mapping.get(key), ctx, root)
        if resolution.value is not None:
            values[key] = resolution.value

    logger.info(f"Dataset values built: {len(values)}/{len(dataset)} fields filled")
    return values


def _preview(value: Optional[FieldValue]) -> str:
    if isinstance(value, TextValue):
        return value.text[:PREVIEW_CHARS]
    if isinstance(value, ImageValue):
        return value.asset_id
    return ""


def diagnose_dataset_values(
    dataset: Dict[str, DatasetField],
    mapping: Dict[str, FieldMapping],
    ctx: MappingContext
) -> DatasetDiagnosis:
    """Per-field report of how build_dataset_values() would fill the template."""
    root = ctx.root()
    results: List[FieldDiagnosis] = []

    for key, field in dataset.items():
        field_mapping = mapping.get(key)
        resolution = resolve_field(key, field, field_mapping, ctx, root)
        filled = resolution.value is not None
        results.append(FieldDiagnosis(
            key=key,
            field_type=field.type,
            source=resolution.source,
            filled=filled,
            preview=_preview(resolution.value),
            reason=None if filled else resolution.reason,
            mapping=field_mapping.model_dump() if field_mapping is not None else None,
        ))

    totals = DiagnosisTotals(
        total=len(results),
        filled=sum(1 for r in results if r.filled),
        blank=sum(1 for r in results if not r.filled and r.source != "unsupported"),
        unsupported=sum(1 for r in results if r.source == "unsupported"),
    )
    return DatasetDiagnosis(totals=totals, results=results)
