"""
Proposal Assembler - builds the ordered section map of a proposal.

Library-backed sections are rendered deterministically from the content
library; every other section is written by the model in one batched call
whose reply is parsed as JSON, or recovered from markdown headings when the
model ignores the JSON instruction.
"""

import asyncio
import json
import logging
import re
from datetime import datetime
from typing import Optional, List, Dict, Iterable, Tuple, Any

from src.core.llm import LLMClient
from src.models import (
    NOT_AVAILABLE,
    NOT_MENTIONED,
    LibraryCategory,
    SectionType,
    SectionRecord,
    AssemblyResult,
    LibrarySnapshot,
    RFPFields,
    RFPRecord,
    TemplateRecord,
    StructuredSections,
    UnstructuredSections,
    ParseResult,
)
from src.services.section_classifier import SectionClassifier
from src.services.content_library import (
    select_relevant_team_members,
    select_relevant_references,
)
from src.services.section_formatters import (
    format_title_section,
    format_cover_letter_section,
    format_experience_section,
    format_team_members_section,
    format_references_section,
    clean_generated_content,
)

logger = logging.getLogger(__name__)

COMPULSORY_SECTIONS = ["Title", "Cover Letter"]
FINAL_SECTION = "references"
MIN_SECTION_LENGTH = 10
TEMPLATE_GUIDANCE_CHARS = 1200
RFP_TEXT_CHARS = 15000

HEADING_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("h2", re.compile(r"^##\s+(.+)$", re.MULTILINE)),
    ("h1", re.compile(r"^#\s+(.+)$", re.MULTILINE)),
    ("bold", re.compile(r"^\*\*(.+?)\*\*\s*$", re.MULTILINE)),
    ("colon", re.compile(r"^(.+?):\s*$", re.MULTILINE)),
]
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = (
    "You are an expert proposal writer who answers government and commercial "
    "RFPs. You write specific, professional content grounded only in the RFP "
    "provided, and you always return valid JSON."
)

SECTION_GUIDELINES = """Formatting rules:
- Budget / cost / pricing sections: a markdown table with columns Item | Description | Cost, followed by a total row. Use amounts from the RFP only; otherwise state that pricing will be provided on request.
- Timeline / schedule / workplan sections: a markdown table with columns Phase | Activities | Duration.
- Requirements, deliverables and scope sections: bullet lists, one requirement per bullet, grouped under short bold labels.
- Understanding / approach / methodology sections: 3-5 short paragraphs or phased bullet lists that reference the RFP's own requirements.
- Title (only if requested): four lines "Submitted by:", "Name:", "Email:", "Number:" using contact details stated in the RFP.
- Never invent names, dates, prices or contact details. If the RFP does not provide what a section needs, write exactly: Not available in the RFP document
- Do not use placeholders in square brackets."""


# ===========================================
# Ordering
# ===========================================

def build_section_order(titles: Iterable[str]) -> List[str]:
    """
    Canonical ordered title list.

    Title and Cover Letter first, case-insensitive de-duplication keeping
    the first spelling, References moved to the end when present.
    """
    ordered: List[str] = []
    seen = set()

    for title in [*COMPULSORY_SECTIONS, *titles]:
        name = (title or "").strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        ordered.append(name)

    tail = [name for name in ordered if name.lower() == FINAL_SECTION]
    return [name for name in ordered if name.lower() != FINAL_SECTION] + tail


# ===========================================
# Reply Parsing
# ===========================================

def _as_text(value: Any) -> str:
    """Flatten a JSON value the model returned for a section into text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(f"- {_as_text(item)}" for item in value)
    if isinstance(value, dict):
        return "\n".join(f"**{key}:** {_as_text(item)}" for key, item in value.items())
    return str(value)


def extract_sections_from_markdown(text: str) -> Tuple[Optional[str], Dict[str, str]]:
    """
    Split text on the first heading pattern that matches at least once.

    Returns the pattern name (None if nothing matched) and the sections whose
    body is longer than the minimum length.
    """
    text = text or ""
    for name, pattern in HEADING_PATTERNS:
        matches = list(pattern.finditer(text))
        if not matches:
            continue

        sections: Dict[str, str] = {}
        for index, match in enumerate(matches):
            end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
            heading = match.group(1).strip().strip("*").strip()
            body = text[match.end():end].strip()
            if len(body) > MIN_SECTION_LENGTH:
                sections[heading] = body
        return name, sections

    return None, {}


def parse_sections_response(text: str, expected: List[str]) -> ParseResult:
    """Parse the model reply as JSON, or recover sections from markdown headings."""
    match = _JSON_OBJECT_RE.search(text or "")
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None

        if isinstance(data, dict):
            expected_lower = {title.lower() for title in expected}
            if any(str(key).strip().lower() in expected_lower for key in data):
                return StructuredSections(
                    sections={str(key).strip(): _as_text(value) for key, value in data.items()}
                )

    pattern, sections = extract_sections_from_markdown(text)
    logger.warning(
        f"Sections reply was not usable JSON; recovered {len(sections)} sections "
        f"with heading pattern {pattern}"
    )
    return UnstructuredSections(sections=sections, pattern=pattern)


def _says_unavailable(content: str) -> bool:
    lowered = content.lower()
    return len(content) < 80 and ("not available" in lowered or "not specified" in lowered)


def validate_ai_sections(parsed: Dict[str, str], expected: List[str]) -> Dict[str, str]:
    """
    Exactly one entry per expected title.

    Missing, too short or 'not available' content becomes the sentinel; the
    Title block is kept as written.
    """
    by_lower = {key.strip().lower(): value for key, value in parsed.items()}
    validated: Dict[str, str] = {}

    for title in expected:
        content = parsed.get(title)
        if content is None:
            content = by_lower.get(title.lower(), "")
        content = (content or "").strip()

        if title.lower() == "title":
            validated[title] = content or NOT_AVAILABLE
        elif len(content) < MIN_SECTION_LENGTH or _says_unavailable(content):
            validated[title] = NOT_AVAILABLE
        else:
            validated[title] = clean_generated_content(content)

    return validated


# ===========================================
# Library Sections
# ===========================================

def render_library_section(
    category: LibraryCategory,
    rfp: RFPFields,
    library: LibrarySnapshot,
    selected_ids: Optional[List[str]] = None,
    now: Optional[datetime] = None
) -> SectionRecord:
    """Render one library-backed section. Team and references record their selection."""
    now = now or datetime.utcnow()
    chosen: Optional[List[str]] = None

    if category == LibraryCategory.TITLE:
        content = format_title_section(library.company)
    elif category == LibraryCategory.COVER_LETTER:
        content = format_cover_letter_section(library.company, rfp, today=now)
    elif category == LibraryCategory.EXPERIENCE:
        content = format_experience_section(library.company)
    elif category == LibraryCategory.TEAM:
        if selected_ids is None:
            selected_ids = [m.id for m in select_relevant_team_members(library.team_members, rfp)]
        content = format_team_members_section(library.team_members, selected_ids)
        chosen = selected_ids or None
    elif category == LibraryCategory.REFERENCES:
        if selected_ids is None:
            selected_ids = [r.id for r in select_relevant_references(library.references, rfp)]
        content = format_references_section(library.references, selected_ids)
        chosen = selected_ids or None
    else:
        raise ValueError(f"Unknown library category: {category}")

    return SectionRecord(
        content=content,
        type=SectionType.CONTENT_LIBRARY,
        last_modified=now,
        selected_ids=chosen,
    )


# ===========================================
# Prompt
# ===========================================

def _bullets(values: List[str]) -> str:
    values = [v for v in values if v and v != NOT_MENTIONED]
    return "\n".join(f"- {v}" for v in values) if values else NOT_MENTIONED


def build_sections_prompt(
    rfp: RFPFields,
    titles: List[str],
    template: Optional[TemplateRecord] = None
) -> str:
    """Prompt asking for every AI-only section as one JSON object."""
    parts = [
        "Write the following sections of a proposal responding to this RFP.",
        "",
        "RFP SUMMARY",
        f"Title: {rfp.title}",
        f"Client: {rfp.client_name}",
        f"Submission deadline: {rfp.submission_deadline}",
        f"Budget: {rfp.budget_range}",
        f"Project type: {rfp.project_type.value}",
        f"Timeline: {rfp.timeline}",
        f"Location: {rfp.location}",
        f"Contact information: {rfp.contact_information}",
        f"Scope: {rfp.project_scope}",
        "Key requirements:",
        _bullets(rfp.key_requirements),
        "Deliverables:",
        _bullets(rfp.deliverables),
        "Evaluation criteria:",
        _bullets(rfp.evaluation_criteria),
    ]

    if isinstance(rfp, RFPRecord) and rfp.raw_text:
        parts += ["", "RFP TEXT (excerpt)", rfp.raw_text[:RFP_TEXT_CHARS]]

    if template is not None:
        by_name = {s.name.lower(): s for s in template.sections}
        guidance = []
        for title in titles:
            section = by_name.get(title.lower())
            if section is None:
                continue
            entry = (
                f'"{title}": Required: {"yes" if section.is_required else "no"}; '
                f"Type: {section.content_type}"
            )
            if section.content:
                entry += f"\nBase content: {section.content[:TEMPLATE_GUIDANCE_CHARS]}"
            guidance.append(entry)
        if guidance:
            parts += ["", f"TEMPLATE GUIDANCE ({template.name})", *guidance]

    parts += [
        "",
        SECTION_GUIDELINES,
        "",
        "Return ONLY a JSON object whose keys are exactly these section titles, "
        "in this order, each mapped to the section content as a markdown string:",
        json.dumps(titles),
    ]
    return "\n".join(parts)


# ===========================================
# Assembler
# ===========================================

class ProposalAssembler:
    """
    Produces the full ordered section map for a proposal.

    Each title is classified once; library sections never reach the model
    and all AI sections share one request.
    """

    def __init__(self, llm: LLMClient, classifier: Optional[SectionClassifier] = None):
        self.llm = llm
        self.classifier = classifier or SectionClassifier(llm)

    async def assemble(
        self,
        rfp: RFPFields,
        section_titles: Iterable[str],
        library: LibrarySnapshot,
        template: Optional[TemplateRecord] = None,
        now: Optional[datetime] = None
    ) -> AssemblyResult:
        """
        Build every section of a proposal.

        Args:
            rfp: RFP being answered
            section_titles: Titles chosen for this proposal (appended after template sections)
            library: Content-library snapshot
            template: Optional template supplying ordered sections and guidance
            now: Timestamp stamped on every section

        Returns:
            AssemblyResult whose keys are exactly the canonical title list

        Raises:
            LLMError: the batched generation call failed
        """
        now = now or datetime.utcnow()
        titles: List[str] = []
        if template is not None:
            titles.extend(section.name for section in template.ordered_sections())
        titles.extend(section_titles)

        order = build_section_order(titles)
        library_sections, ai_titles = await self.partition(order)
        logger.info(
            f"Assembling {len(order)} sections: {len(library_sections)} from library, "
            f"{len(ai_titles)} AI-generated"
        )

        parsed: ParseResult = StructuredSections()
        if ai_titles:
            parsed = await self.generate_ai_sections(rfp, ai_titles, template)
        ai_content = validate_ai_sections(parsed.sections, ai_titles)

        sections: Dict[str, SectionRecord] = {}
        for title in order:
            if title in library_sections:
                sections[title] = render_library_section(
                    library_sections[title], rfp, library, now=now
                )
            else:
                sections[title] = SectionRecord(
                    content=ai_content[title],
                    type=SectionType.AI_GENERATED,
                    last_modified=now,
                )

        return AssemblyResult(sections=sections, confident=parsed.confident)

    async def partition(self, order: List[str]) -> Tuple[Dict[str, LibraryCategory], List[str]]:
        """Split titles into library-backed categories and AI-only titles."""
        categories = await asyncio.gather(*(self.classifier.classify(t) for t in order))

        library_sections: Dict[str, LibraryCategory] = {}
        ai_titles: List[str] = []
        experience_used = False

        for title, category in zip(order, categories):
            if category == LibraryCategory.EXPERIENCE:
                if experience_used:
                    category = None
                experience_used = True

            if category is None:
                ai_titles.append(title)
            else:
                library_sections[title] = category

        return library_sections, ai_titles

    async def generate_ai_sections(
        self,
        rfp: RFPFields,
        titles: List[str],
        template: Optional[TemplateRecord] = None
    ) -> ParseResult:
        """One model call for all AI-only sections."""
        prompt = build_sections_prompt(rfp, titles, template)
        reply = await self.llm.complete(
            prompt,
            system=SYSTEM_PROMPT,
            temperature=0.3,
            max_tokens=12000,
        )
        return parse_sections_response(reply, titles)
