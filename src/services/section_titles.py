"""Section title generation - picks the proposal sections an RFP calls for."""

import json
import logging
import re
from typing import Optional, List, Any

from src.core.llm import LLMClient
from src.models import NOT_MENTIONED, RFPFields, RFPRecord

logger = logging.getLogger(__name__)

BASE_SECTIONS = [
    "Title",
    "Cover Letter",
    "Technical Approach and Methodology",
    "Key Personnel and Experience",
    "Budget Estimate",
    "Project Timeline",
    "References",
]
COMPULSORY = ["Title", "Cover Letter"]
MAX_SECTIONS = 15
MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 120

# Loose spellings mapped onto the base section names
CANONICAL_NAMES = {
    "title page": "Title",
    "cover page": "Title",
    "cover letter": "Cover Letter",
    "letter of transmittal": "Cover Letter",
    "transmittal letter": "Cover Letter",
    "references": "References",
    "client references": "References",
    "reference": "References",
}

_NUMBERING_RE = re.compile(r"^\s*(?:[-*•●]+|\(?[0-9ivxIVX]+[.)]|[A-Za-z][.)]|section\s+[0-9]+[:.)-]?)\s*")

TITLES_PROMPT = """You are preparing the outline of a proposal that answers the RFP below.
List the proposal section titles this RFP asks for, in the order the RFP expects them.
Use the RFP's own wording for section names where it gives any.

RFP title: {title}
Client: {client}
Project type: {project_type}
Evaluation criteria:
{criteria}
Key requirements:
{requirements}

RFP text (excerpt):
{text}

Return a JSON object of the form {{"titles": ["...", "..."]}}. Do not number the titles."""


def _coerce_titles(data: Any) -> List[str]:
    """Accept a bare list or an object carrying titles / sections / section_titles."""
    if isinstance(data, dict):
        for key in ("titles", "sections", "section_titles"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            return []
    if not isinstance(data, list):
        return []

    titles = []
    for item in data:
        if isinstance(item, dict):
            item = item.get("title") or item.get("name")
        if isinstance(item, str):
            titles.append(item)
    return titles


def sanitize_titles(titles: List[str]) -> List[str]:
    """Strip numbering, enforce length limits, canonicalize, de-duplicate."""
    cleaned: List[str] = []
    seen = set()

    for raw in titles:
        title = _NUMBERING_RE.sub("", raw or "").strip().strip("*#:").strip()
        if not MIN_TITLE_LENGTH <= len(title) <= MAX_TITLE_LENGTH:
            continue
        title = CANONICAL_NAMES.get(title.lower(), title)
        if title.lower() in seen:
            continue
        seen.add(title.lower())
        cleaned.append(title)

    return cleaned


def finalize_titles(titles: List[str]) -> List[str]:
    """Compulsory sections first, References last, capped length."""
    middle = [
        t for t in titles
        if t.lower() not in {c.lower() for c in COMPULSORY} and t.lower() != "references"
    ]
    # References always closes the outline
    room = MAX_SECTIONS - len(COMPULSORY) - 1
    return [*COMPULSORY, *middle[:room], "References"]


class SectionTitleGenerator:
    """Asks the model for an RFP-specific outline, falling back to the base sections."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm

    async def generate(self, rfp: RFPFields) -> List[str]:
        """Return the ordered section titles for a proposal answering this RFP."""
        if self.llm is None or not self.llm.is_available():
            logger.info("Section titles: model unavailable, using base sections")
            return list(BASE_SECTIONS)

        text = rfp.raw_text[:8000] if isinstance(rfp, RFPRecord) else ""
        prompt = TITLES_PROMPT.format(
            title=rfp.title,
            client=rfp.client_name,
            project_type=rfp.project_type.value,
            criteria="\n".join(f"- {c}" for c in rfp.evaluation_criteria if c != NOT_MENTIONED) or NOT_MENTIONED,
            requirements="\n".join(f"- {r}" for r in rfp.key_requirements[:20] if r != NOT_MENTIONED) or NOT_MENTIONED,
            text=text or NOT_MENTIONED,
        )

        try:
            reply = await self.llm.complete(prompt, temperature=0.2, max_tokens=800, json_mode=True)
            titles = sanitize_titles(_coerce_titles(json.loads(reply)))
        except Exception as e:
            logger.warning(f"Section title generation failed, using base sections: {e}")
            return list(BASE_SECTIONS)

        if len(titles) < 3:
            logger.info(f"Section titles: only {len(titles)} usable titles, using base sections")
            return list(BASE_SECTIONS)

        return finalize_titles(titles)
