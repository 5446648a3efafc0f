"""Section Classifier - decides which content-library category backs a section title."""

import logging
from typing import Optional, List, Tuple

from src.core.llm import LLMClient
from src.models import (
    LibraryCategory,
    Classified,
    ClassificationUncertain,
    ClassificationResult,
)

logger = logging.getLogger(__name__)


# Checked in order; team comes before experience so that
# "Key Personnel and Experience" resolves to the team roster.
KEYWORD_TABLE: List[Tuple[LibraryCategory, List[str]]] = [
    (LibraryCategory.COVER_LETTER, [
        "cover letter",
        "introduction letter",
        "transmittal letter",
    ]),
    (LibraryCategory.TEAM, [
        "personnel",
        "team",
        "staff",
        "project team",
        "team member",
        "human resource",
    ]),
    (LibraryCategory.REFERENCES, [
        "reference",
        "past project",
        "client reference",
        "project portfolio",
    ]),
    (LibraryCategory.EXPERIENCE, [
        "experience",
        "qualification",
        "background",
        "capabilities",
        "expertise",
        "credentials",
        "track record",
        "company profile",
    ]),
]

CLASSIFY_PROMPT = """Classify this RFP proposal section title into exactly one category.

Section title: "{title}"

Categories:
- title: the proposal's title page (submitting company and contact details)
- cover-letter: a cover, introduction or transmittal letter
- experience: firm qualifications, company background, capabilities, track record
- team: key personnel, project team, staff, team members and their bios
- references: client references, past projects, past performance
- null: anything else (approach, methodology, budget, timeline, understanding, ...)

A title that mentions personnel or team members is "team" even if it also says "experience".

Answer with the category name only."""


class SectionClassifier:
    """
    Maps free-form section titles to content-library categories.

    The model is asked first; when it is unavailable or answers with
    something unusable, the keyword table is applied as a separate
    recovery step. classify() never raises.
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm

    async def classify(self, title: str) -> Optional[LibraryCategory]:
        """Return the library category for a title, or None for AI-generated content."""
        result = await self.classify_with_model(title)

        if isinstance(result, Classified):
            logger.debug(f"Classified '{title}' as {result.category} ({result.method})")
            return result.category

        category = self.classify_by_keywords(title)
        logger.info(
            f"Classifier uncertain for '{title}' ({result.reason}); "
            f"keyword fallback -> {category.value if category else None}"
        )
        return category

    async def classify_with_model(self, title: str) -> ClassificationResult:
        """Exact-match short-circuit, then one model call."""
        normalized = (title or "").strip().lower()

        if normalized == "title":
            return Classified(title=title, category=LibraryCategory.TITLE, method="exact")
        if normalized == "cover letter":
            return Classified(title=title, category=LibraryCategory.COVER_LETTER, method="exact")

        if self.llm is None or not self.llm.is_available():
            return ClassificationUncertain(title=title, reason="model unavailable")

        try:
            reply = await self.llm.complete(
                CLASSIFY_PROMPT.format(title=title),
                temperature=0.1,
                max_tokens=20,
            )
        except Exception as e:
            logger.warning(f"Classification call failed for '{title}': {e}")
            return ClassificationUncertain(title=title, reason=f"model error: {e}")

        return self.interpret_reply(title, reply)

    @staticmethod
    def interpret_reply(title: str, reply: str) -> ClassificationResult:
        """Map a raw model reply onto a classification."""
        text = (reply or "").strip().lower().strip("\"'`.")

        if "cover-letter" in text or "cover letter" in text:
            return Classified(title=title, category=LibraryCategory.COVER_LETTER)
        if "title" in text and "cover" not in text:
            return Classified(title=title, category=LibraryCategory.TITLE)
        if "team" in text:
            return Classified(title=title, category=LibraryCategory.TEAM)
        if "experience" in text:
            return Classified(title=title, category=LibraryCategory.EXPERIENCE)
        if "reference" in text:
            return Classified(title=title, category=LibraryCategory.REFERENCES)
        if text in ("null", "none"):
            return Classified(title=title, category=None)

        return ClassificationUncertain(title=title, reason="unrecognised reply", raw_reply=reply)

    @staticmethod
    def classify_by_keywords(title: str) -> Optional[LibraryCategory]:
        """Keyword-substring recovery step."""
        normalized = (title or "").strip().lower()
        if not normalized:
            return None

        if normalized == "title":
            return LibraryCategory.TITLE

        for category, keywords in KEYWORD_TABLE:
            if any(keyword in normalized for keyword in keywords):
                return category
        return None
