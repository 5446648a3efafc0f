"""
Deterministic section formatters backed by the content library.

These build the Title, Cover Letter, Experience, Team and References
sections without any model call, plus the text cleaners shared with the
AI-generated path.
"""

import re
from datetime import datetime
from typing import Optional, List, Sequence

from src.models import (
    NOT_AVAILABLE,
    NOT_MENTIONED,
    TitleContact,
    Company,
    TeamMember,
    ProjectReference,
    RFPFields,
)

NOT_SPECIFIED = "Not specified"

TEAM_INTRO = (
    "Our experienced team brings together diverse expertise and proven track "
    "record to deliver exceptional results."
)
REFERENCES_INTRO = (
    "Below are some of our recent project references that demonstrate our "
    "capabilities and client satisfaction:"
)
NO_SUITABLE_MEMBERS = "No suitable team members found for this project."
NO_SUITABLE_REFERENCES = "No suitable project references found for this project."

_PLACEHOLDER_RE = re.compile(r"\[(?:[A-Z][A-Za-z'/ ]{0,40})\](?!\()")
_BULLET_RE = re.compile(r"^\s*[●•▪◦]\s*", re.MULTILINE)

_TITLE_FIELDS = [
    ("submitted_by", "Submitted by"),
    ("name", "Name"),
    ("email", "Email"),
    ("number", "Number"),
]


# ===========================================
# Title Section
# ===========================================

def format_title_section(company: Optional[Company]) -> TitleContact:
    """Build the Title section's contact block from the company profile."""
    if company is None:
        return TitleContact()

    contact = company.primary_contact
    first_word = company.name.split()[0] if company.name.split() else "Company"

    return TitleContact(
        submitted_by=company.name,
        name=(contact.name if contact and contact.name else f"{first_word} Representative"),
        email=(contact.email if contact and contact.email else company.email) or NOT_SPECIFIED,
        number=(contact.phone if contact and contact.phone else company.phone) or NOT_SPECIFIED,
    )


def format_title_object_to_text(title: TitleContact) -> str:
    """Render a TitleContact as the four-line 'Submitted by / Name / Email / Number' block."""
    return "\n".join(f"{label}: {getattr(title, field)}" for field, label in _TITLE_FIELDS)


def parse_title_text_to_object(text: str) -> TitleContact:
    """Parse a 'Submitted by / Name / Email / Number' block back into a TitleContact."""
    values = {}
    for field, label in _TITLE_FIELDS:
        match = re.search(rf"^\s*{label}\s*:\s*(.*?)\s*$", text or "", re.IGNORECASE | re.MULTILINE)
        if match and match.group(1):
            values[field] = match.group(1)
    return TitleContact(**values)


# ===========================================
# Cover Letter
# ===========================================

def _known(value: Optional[str]) -> Optional[str]:
    if not value or value.strip() in (NOT_MENTIONED, NOT_AVAILABLE, NOT_SPECIFIED):
        return None
    return value.strip()


def format_cover_letter_section(
    company: Optional[Company],
    rfp: Optional[RFPFields] = None,
    today: Optional[datetime] = None
) -> str:
    """Build the cover letter from the company's stored letter text."""
    if company is None:
        return NOT_AVAILABLE

    today = today or datetime.utcnow()
    client = _known(rfp.client_name) if rfp else None
    contact = company.primary_contact
    first_word = company.name.split()[0] if company.name.split() else "Company"

    body = company.cover_letter or company.description or (
        f"{company.name} is pleased to submit this proposal and looks forward to "
        f"the opportunity to work with you."
    )
    body = replace_company_name(body, company.name)
    if company.website:
        body = replace_website(body, company.website)

    signer = contact.name if contact and contact.name else f"{first_word} Representative"
    signer_title = contact.title if contact and contact.title else "Project Director"
    email = (contact.email if contact and contact.email else company.email) or ""
    phone = (contact.phone if contact and contact.phone else company.phone) or ""

    lines = [
        f"**Submitted to:** {client or NOT_SPECIFIED}",
        f"**Submitted by:** {company.name}",
        f"**Date:** {today.strftime('%m/%d/%Y')}",
        "",
        f"Dear {client} Team," if client else "Dear Hiring Manager,",
        "",
        body.strip(),
        "",
        "Sincerely,",
        "",
        f"{signer}, {signer_title}",
    ]
    lines.extend(line for line in (email, phone) if line)
    return "\n".join(lines)


# ===========================================
# Experience
# ===========================================

def format_experience_section(company: Optional[Company]) -> str:
    """Firm qualifications followed by headline statistics and core services."""
    if company is None:
        return NOT_AVAILABLE

    parts = []
    narrative = company.firm_qualifications_and_experience or company.description
    if narrative:
        parts.append(replace_company_name(narrative.strip(), company.name))

    stats = company.statistics
    stat_lines = []
    if stats.years_in_business:
        stat_lines.append(f"- **Years in Business:** {stats.years_in_business}")
    if stats.projects_completed:
        stat_lines.append(f"- **Projects Completed:** {stats.projects_completed}")
    if stats.clients_satisfied:
        stat_lines.append(f"- **Satisfied Clients:** {stats.clients_satisfied}")
    if stat_lines:
        parts.append("\n".join(stat_lines))

    if company.core_capabilities:
        parts.append(f"Our core services include: {', '.join(company.core_capabilities)}.")

    if company.certifications:
        parts.append(f"Certifications: {', '.join(company.certifications)}.")

    return "\n\n".join(parts) if parts else NOT_AVAILABLE


# ===========================================
# Team and References
# ===========================================

def _filter_by_ids(items: Sequence, selected_ids: Optional[List[str]]) -> list:
    """Keep items whose id is selected, in selection order."""
    if not selected_ids:
        return list(items)
    by_id = {item.id: item for item in items}
    return [by_id[item_id] for item_id in selected_ids if item_id in by_id]


def format_team_members_section(
    members: Sequence[TeamMember],
    selected_ids: Optional[List[str]] = None
) -> str:
    """Intro line, then '**name** - position' and biography per member."""
    if not members:
        return NOT_AVAILABLE

    chosen = _filter_by_ids(members, selected_ids)
    if not chosen:
        return NO_SUITABLE_MEMBERS

    entries = [TEAM_INTRO]
    for member in chosen:
        entry = f"**{member.name_with_credentials}** - {member.position}"
        if member.biography:
            entry += f"\n\n{clean_key_personnel_content(member.biography)}"
        entries.append(entry)
    return "\n\n".join(entries)


def format_references_section(
    references: Sequence[ProjectReference],
    selected_ids: Optional[List[str]] = None
) -> str:
    """Intro line, then organization, contact and scope per reference."""
    if not references:
        return NOT_AVAILABLE

    chosen = _filter_by_ids(references, selected_ids)
    if not chosen:
        return NO_SUITABLE_REFERENCES

    entries = [REFERENCES_INTRO]
    for ref in chosen:
        lines = [
            f"**{ref.organization_name}**" + (f" ({ref.time_period})" if ref.time_period else "")
        ]

        if ref.contact_name:
            contact = ref.contact_name
            if ref.contact_title:
                contact += f", {ref.contact_title}"
            if ref.additional_title:
                contact += f" - {ref.additional_title}"
            lines.append(f"**Contact:** {contact} of {ref.organization_name}")
        if ref.contact_email:
            lines.append(f"**Email:** {ref.contact_email}")
        if ref.contact_phone:
            lines.append(f"**Phone:** {ref.contact_phone}")
        if ref.scope_of_work:
            lines.append(f"**Scope of Work:** {ref.scope_of_work.strip()}")

        entries.append("\n".join(lines))
    return "\n\n".join(entries)


# ===========================================
# Text Cleaners
# ===========================================

def replace_company_name(text: str, company_name: str) -> str:
    """Fill company-name placeholders left in stored library text."""
    return re.sub(r"\[(?:Company Name|Company|Your Company)\]|\{company\}", company_name, text, flags=re.IGNORECASE)


def replace_website(text: str, website: str) -> str:
    return re.sub(r"\[(?:Website|Company Website)\]|\{website\}", website, text, flags=re.IGNORECASE)


def clean_key_personnel_content(text: str) -> str:
    """Normalize pasted bullet glyphs to markdown dashes."""
    return _BULLET_RE.sub("- ", text).strip()


def clean_generated_content(text: str) -> str:
    """Strip bracketed placeholders from model output; sentinel if little is left."""
    cleaned = _PLACEHOLDER_RE.sub("", text or "")
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()
    if len(cleaned) < 20:
        return NOT_AVAILABLE
    return cleaned
