"""Content Library service - read access to company, team and reference data."""

import asyncio
import logging
import re
from typing import Optional, List, Sequence, Set

from src.core.database import DatabaseService, db_service
from src.models import (
    NOT_MENTIONED,
    Company,
    TeamMember,
    ProjectReference,
    LibrarySnapshot,
    RFPFields,
)

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z][a-z0-9+#.-]{2,}")
_STOPWORDS = {
    "the", "and", "for", "with", "that", "this", "will", "are", "our", "your",
    "from", "all", "any", "into", "such", "must", "shall", "have", "has",
    "been", "not", "mentioned", "document", "project", "services", "provide",
}


def _words(*texts: Optional[str]) -> Set[str]:
    words: Set[str] = set()
    for text in texts:
        if text and text != NOT_MENTIONED:
            words.update(w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS)
    return words


def _rfp_words(rfp: RFPFields) -> Set[str]:
    return _words(
        rfp.title,
        rfp.project_scope,
        " ".join(rfp.key_requirements),
        " ".join(rfp.deliverables),
        rfp.project_type.value.replace("_", " "),
    )


def _rank(items: Sequence, item_words, rfp: RFPFields, limit: int) -> list:
    """Order by keyword overlap with the RFP, stable on ties."""
    if not items:
        return []

    wanted = _rfp_words(rfp)
    scored = [(len(wanted & item_words(item)), index, item) for index, item in enumerate(items)]
    if not any(score for score, _, _ in scored):
        return list(items[:limit])

    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    return [item for _, _, item in scored[:limit]]


def select_relevant_team_members(
    members: Sequence[TeamMember],
    rfp: RFPFields,
    limit: int = 4
) -> List[TeamMember]:
    """Pick the members whose position and bio best overlap the RFP."""
    return _rank(members, lambda m: _words(m.position, m.biography), rfp, limit)


def select_relevant_references(
    references: Sequence[ProjectReference],
    rfp: RFPFields,
    limit: int = 3
) -> List[ProjectReference]:
    """Pick the references whose scope best overlaps the RFP."""
    return _rank(
        references,
        lambda r: _words(r.organization_name, r.scope_of_work, r.outcomes),
        rfp,
        limit,
    )


class ContentLibrary:
    """
    Read-side of the content library.

    Gathers everything the assembler and the dataset mapper need in one
    round of concurrent queries.
    """

    def __init__(self, db: Optional[DatabaseService] = None):
        self.db = db or db_service

    async def get_company(self, company_id: Optional[str] = None) -> Optional[Company]:
        """Company by id, or the most recent profile when no id is given."""
        if company_id:
            return await self.db.get_company(company_id)
        return await self.db.get_latest_company()

    async def snapshot(self, company_id: Optional[str] = None) -> LibrarySnapshot:
        """Company, active team members and active references."""
        company, members, references = await asyncio.gather(
            self.get_company(company_id),
            self.db.list_team_members(),
            self.db.list_references(),
        )
        logger.info(
            f"Library snapshot: company={company.id if company else None}, "
            f"{len(members)} members, {len(references)} references"
        )
        return LibrarySnapshot(company=company, team_members=members, references=references)

    async def get_team_members_by_ids(self, member_ids: List[str]) -> List[TeamMember]:
        """Active members in the requested order; unknown ids are skipped."""
        if not member_ids:
            return []
        members = await self.db.list_team_members()
        by_id = {m.id: m for m in members}
        return [by_id[mid] for mid in member_ids if mid in by_id]

    async def get_references_by_ids(self, reference_ids: List[str]) -> List[ProjectReference]:
        """Active references in the requested order; unknown ids are skipped."""
        if not reference_ids:
            return []
        references = await self.db.list_references()
        by_id = {r.id: r for r in references}
        return [by_id[rid] for rid in reference_ids if rid in by_id]


# Singleton instance
content_library = ContentLibrary()
