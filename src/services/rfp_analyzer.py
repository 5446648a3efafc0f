"""
RFP Analyzer - turns raw RFP text into structured fields.

A regex pass always runs first and always produces a complete result. When
a model is configured, its JSON answer is coerced into the same shape and
supersedes the heuristic value field by field.
"""

import io
import json
import logging
import re
from datetime import datetime
from typing import Optional, List, Dict, Any

from pypdf import PdfReader

from src.core.llm import LLMClient
from src.models import NOT_MENTIONED, ProjectType, RFPFields, ParsedSections
from src.services.rfp_rules import parse_deadline, format_us_date

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50
LLM_TEXT_CHARS = 30000
MAX_LIST_ITEMS = 15

LIST_FIELDS = [
    "key_requirements",
    "evaluation_criteria",
    "deliverables",
    "special_requirements",
    "additional_info",
]
TEXT_FIELDS = [
    "title",
    "client_name",
    "submission_deadline",
    "questions_deadline",
    "bid_meeting_date",
    "bid_registration_date",
    "project_deadline",
    "budget_range",
    "timeline",
    "project_scope",
    "contact_information",
    "location",
]
DATE_FIELDS = {
    "submission_deadline",
    "questions_deadline",
    "bid_meeting_date",
    "bid_registration_date",
    "project_deadline",
}


class RFPAnalysisError(Exception):
    """Raised when a document has no usable text."""


# ===========================================
# Text Extraction
# ===========================================

def clean_text(text: str) -> str:
    """Normalize newlines and whitespace in extracted text."""
    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [re.sub(r"[ \t\f\v]+", " ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def extract_pdf_text(data: bytes) -> str:
    """
    Extract and clean the text of a PDF.

    Raises:
        RFPAnalysisError: the PDF cannot be read or has almost no text
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        logger.error(f"PDF parsing failed: {e}")
        raise RFPAnalysisError(f"Could not read PDF: {e}") from e

    text = clean_text("\n\n".join(pages))
    if len(text) < MIN_TEXT_LENGTH:
        raise RFPAnalysisError("Content appears empty or unreadable.")

    logger.info(f"Extracted {len(text)} chars from {len(pages)} PDF pages")
    return text


# ===========================================
# Heuristic Extraction
# ===========================================

MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
DATE_RE = re.compile(
    rf"(\d{{1,2}}/\d{{1,2}}/\d{{2,4}}|{MONTHS}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}|\d{{4}}-\d{{2}}-\d{{2}})",
    re.IGNORECASE
)
MONEY = r"\$\s?\d[\d,]*(?:\.\d{1,2})?(?:\s*(?:million|thousand|[mk])\b)?"
BUDGET_RE = re.compile(rf"{MONEY}(?:\s*(?:-|–|to)\s*{MONEY})?", re.IGNORECASE)
BUDGET_CONTEXT_RE = re.compile(
    r"budget|not[- ]to[- ]exceed|\bNTE\b|funding|ceiling|maximum\s+(?:contract\s+)?(?:amount|value)|estimated\s+(?:cost|value)",
    re.IGNORECASE
)
EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
PHONE_RE = re.compile(r"\(?\b\d{3}\)?[-.\s]\d{3}[-.\s]\d{4}\b")

SUBMISSION_RE = re.compile(
    r"(?:proposals?|responses?|submissions?|bids?|quotes?|statements?\s+of\s+qualifications?)\s+"
    r"(?:are\s+|must\s+be\s+|shall\s+be\s+|will\s+be\s+)?(?:due|received|accepted|submitted)"
    r"|(?:submission|closing|due|response)\s+(?:date|deadline)|\bdeadline\b|\bdue\s+date\b",
    re.IGNORECASE
)
QUESTIONS_RE = re.compile(
    r"(?:questions?|inquiries|clarifications?)[^\n]{0,60}?(?:deadline|due|no\s+later\s+than|until|by)",
    re.IGNORECASE
)
BID_MEETING_RE = re.compile(
    r"pre[- ]?(?:bid|proposal|submission)\s+(?:meeting|conference)|site\s+visit",
    re.IGNORECASE
)
REGISTRATION_RE = re.compile(r"(?:bidder|vendor|supplier)?\s*registration|must\s+register", re.IGNORECASE)
COMPLETION_RE = re.compile(r"(?:project|work)\s+(?:completion|end)\s+date|completed\s+(?:by|no\s+later\s+than)", re.IGNORECASE)

TITLE_RE = re.compile(r"request\s+for\s+(?:proposals?|qualifications|quotes?|information)|\bRF[PQI]\b", re.IGNORECASE)
CLIENT_PATTERNS = [
    re.compile(r"(?:issued|released|prepared)\s+by[:\s]+([A-Z][^\n,;]{3,80})"),
    re.compile(r"\b((?:City|County|State|Town|Village|Commonwealth|Department|Office|Board)\s+of\s+[A-Z][A-Za-z.'\- ]{2,60})"),
    re.compile(r"\b([A-Z][A-Za-z&.'\- ]{2,60}\s+(?:School District|Authority|University|College|Agency|Commission))\b"),
]
REQUIREMENT_RE = re.compile(r"\b(?:shall|must|is\s+required\s+to|are\s+required\s+to)\b", re.IGNORECASE)
SPECIAL_RE = re.compile(
    r"insurance|bond|licen[cs]e|certif|MBE|WBE|DBE|background\s+check|security\s+clearance|E-?Verify",
    re.IGNORECASE
)
DELIVERABLES_HEADING = re.compile(r"^(?:[0-9.]+\s*)?(?:project\s+|expected\s+)?deliverables?\b", re.IGNORECASE)
EVALUATION_HEADING = re.compile(r"evaluation\s+(?:criteria|factors)|selection\s+criteria|scoring\s+criteria", re.IGNORECASE)
SCOPE_HEADING = re.compile(r"^(?:[0-9.]+\s*)?(?:scope\s+of\s+(?:work|services)|project\s+scope|purpose|background|project\s+overview)\b", re.IGNORECASE)
TIMELINE_RE = re.compile(
    r"[^.\n]*(?:contract\s+term|period\s+of\s+performance|project\s+duration|timeline)[^.\n]*\d[^.\n]*",
    re.IGNORECASE
)
LOCATION_RE = re.compile(r"(?:located\s+(?:in|at)|location\s*:)\s*([^\n.;]{3,80})", re.IGNORECASE)
BULLET_RE = re.compile(r"^(?:[-*•●▪]|\(?[0-9]{1,2}[.)]|\(?[a-z][.)])\s+")

PROJECT_TYPE_KEYWORDS = {
    ProjectType.SOFTWARE_DEVELOPMENT: [
        "software", "application development", "web application", "mobile app",
        "database", "system integration", "it services", "platform", "website",
    ],
    ProjectType.STRATEGIC_COMMUNICATIONS: [
        "communications", "marketing", "public relations", "outreach", "branding",
        "media", "advertising", "community engagement",
    ],
    ProjectType.FINANCIAL_MODELING: [
        "financial model", "financial analysis", "actuarial", "rate study",
        "cost analysis", "forecast", "budget analysis", "fiscal",
    ],
}


def normalize_date(value: str) -> Optional[str]:
    """Return MM/DD/YYYY for a date string, or None if unreadable."""
    value = (value or "").strip()
    short = re.match(r"^(\d{1,2})/(\d{1,2})/(\d{2})$", value)
    if short:
        value = f"{short.group(1)}/{short.group(2)}/20{short.group(3)}"
    parsed = parse_deadline(value)
    return format_us_date(parsed) if parsed else None


def _date_near(text: str, context: "re.Pattern[str]", window: int = 160) -> Optional[str]:
    for match in context.finditer(text):
        found = DATE_RE.search(text, match.start(), match.end() + window)
        if found:
            normalized = normalize_date(found.group(1))
            if normalized:
                return normalized
    return None


def _find_title(lines: List[str]) -> Optional[str]:
    for index, line in enumerate(lines[:60]):
        if TITLE_RE.search(line) and len(line) < 200:
            # Bare "REQUEST FOR PROPOSALS" headers carry the subject on the next line
            if len(line) < 30 and index + 1 < len(lines) and lines[index + 1]:
                return f"{line} - {lines[index + 1]}"
            return line
    for line in lines[:20]:
        if len(line) >= 10:
            return line
    return None


def _find_client(text: str) -> Optional[str]:
    for pattern in CLIENT_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip(" .-")
    return None


def _find_budget(lines: List[str]) -> Optional[str]:
    for line in lines:
        if BUDGET_CONTEXT_RE.search(line):
            match = BUDGET_RE.search(line)
            if match:
                return match.group(0).strip()
    return None


def _find_requirements(text: str) -> List[str]:
    sentences = re.split(r"(?<=[.;])\s+|\n", text)
    found: List[str] = []
    seen = set()
    for sentence in sentences:
        sentence = BULLET_RE.sub("", sentence.strip())
        if not 20 <= len(sentence) <= 300 or not REQUIREMENT_RE.search(sentence):
            continue
        if sentence.lower() in seen:
            continue
        seen.add(sentence.lower())
        found.append(sentence)
        if len(found) >= MAX_LIST_ITEMS:
            break
    return found


def _section_items(lines: List[str], heading: "re.Pattern[str]") -> List[str]:
    """Bulleted or short lines following a heading, until a blank gap or the next heading."""
    for index, line in enumerate(lines):
        if len(line) > 80 or not heading.search(line):
            continue

        items: List[str] = []
        blank_run = 0
        for following in lines[index + 1:]:
            if not following:
                blank_run += 1
                if blank_run >= 2 or items:
                    break
                continue
            blank_run = 0
            if following.isupper() and len(following) < 60 and items:
                break
            item = BULLET_RE.sub("", following).strip()
            if len(item) >= 5:
                items.append(item)
            if len(items) >= MAX_LIST_ITEMS:
                break
        if items:
            return items
    return []


def _find_scope(lines: List[str]) -> Optional[str]:
    for index, line in enumerate(lines):
        if len(line) <= 80 and SCOPE_HEADING.search(line):
            body: List[str] = []
            for following in lines[index + 1:]:
                if not following and body:
                    break
                if following:
                    body.append(following)
            text = " ".join(body).strip()
            if text:
                return text[:600]
    return None


def _find_contact(text: str) -> Optional[str]:
    emails = list(dict.fromkeys(EMAIL_RE.findall(text)))[:2]
    phones = list(dict.fromkeys(PHONE_RE.findall(text)))[:2]
    parts = []
    if emails:
        parts.append(f"Email: {', '.join(emails)}")
    if phones:
        parts.append(f"Phone: {', '.join(phones)}")
    return "; ".join(parts) or None


def detect_project_type(text: str) -> ProjectType:
    lowered = text.lower()
    scores = {
        project_type: sum(lowered.count(keyword) for keyword in keywords)
        for project_type, keywords in PROJECT_TYPE_KEYWORDS.items()
    }
    best = max(scores, key=scores.get)
    return best if scores[best] > 0 else ProjectType.GENERAL


def extract_heuristic_fields(text: str) -> Dict[str, Any]:
    """Regex pass over the raw text. Never raises; misses become the sentinel."""
    lines = [line.strip() for line in (text or "").split("\n")]
    timeline = TIMELINE_RE.search(text)
    location = LOCATION_RE.search(text)

    fields: Dict[str, Any] = {
        "title": _find_title([line for line in lines if line]),
        "client_name": _find_client(text),
        "submission_deadline": _date_near(text, SUBMISSION_RE),
        "questions_deadline": _date_near(text, QUESTIONS_RE),
        "bid_meeting_date": _date_near(text, BID_MEETING_RE),
        "bid_registration_date": _date_near(text, REGISTRATION_RE),
        "project_deadline": _date_near(text, COMPLETION_RE),
        "budget_range": _find_budget(lines),
        "project_type": detect_project_type(text),
        "key_requirements": _find_requirements(text),
        "evaluation_criteria": _section_items(lines, EVALUATION_HEADING),
        "deliverables": _section_items(lines, DELIVERABLES_HEADING),
        "special_requirements": [s for s in _find_requirements(text) if SPECIAL_RE.search(s)],
        "additional_info": [],
        "timeline": timeline.group(0).strip()[:300] if timeline else None,
        "project_scope": _find_scope(lines),
        "contact_information": _find_contact(text),
        "location": location.group(1).strip() if location else None,
    }

    for field in TEXT_FIELDS:
        if not fields.get(field):
            fields[field] = NOT_MENTIONED
    for field in LIST_FIELDS:
        fields[field] = ensure_list(fields[field])
    return fields


# ===========================================
# Model Output Coercion
# ===========================================

def to_text(value: Any) -> str:
    """Flatten any JSON value into a single string."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        return "; ".join(f"{key}: {to_text(item)}" for key, item in value.items() if to_text(item))
    if isinstance(value, (list, tuple)):
        return "; ".join(to_text(item) for item in value if to_text(item))
    return str(value)


def ensure_list(value: Any) -> List[str]:
    """Force a value into a non-empty list of strings."""
    if value is None:
        items: List[str] = []
    elif isinstance(value, (list, tuple)):
        items = [to_text(item) for item in value]
    else:
        items = [to_text(value)]
    items = [item for item in items if item]
    return items or [NOT_MENTIONED]


def coerce_model_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Shape an unconstrained model answer into RFP fields."""
    coerced: Dict[str, Any] = {}

    for field in TEXT_FIELDS:
        if field in raw:
            text = to_text(raw[field])
            if field in DATE_FIELDS and text:
                text = normalize_date(text) or text
            coerced[field] = text

    for field in LIST_FIELDS:
        if field in raw:
            coerced[field] = ensure_list(raw[field])

    if "project_type" in raw:
        value = to_text(raw["project_type"]).lower().replace("-", "_").replace(" ", "_")
        valid = {member.value for member in ProjectType}
        coerced["project_type"] = ProjectType(value) if value in valid else ProjectType.GENERAL

    return coerced


def _has_value(value: Any) -> bool:
    if isinstance(value, list):
        return bool(value) and value != [NOT_MENTIONED]
    if isinstance(value, ProjectType):
        return value != ProjectType.GENERAL
    return bool(value) and value != NOT_MENTIONED


def merge_fields(heuristic: Dict[str, Any], model: Dict[str, Any]) -> Dict[str, Any]:
    """Model values win wherever they carry information."""
    merged = dict(heuristic)
    for field, value in model.items():
        if _has_value(value):
            merged[field] = value
    return merged


# ===========================================
# Analyzer
# ===========================================

ANALYSIS_PROMPT = """Extract the following fields from this RFP and return them as one JSON object.

Fields:
- title, client_name, budget_range, timeline, project_scope, contact_information, location: strings
- submission_deadline, questions_deadline, bid_meeting_date, bid_registration_date, project_deadline: dates as MM/DD/YYYY
- project_type: one of software_development, strategic_communications, financial_modeling, general
- key_requirements, evaluation_criteria, deliverables, special_requirements, additional_info: arrays of strings

Use "Not mentioned in the document" for anything the RFP does not state. Do not guess.

RFP ({source}):
{text}"""


class RFPAnalyzer:
    """
    Converts raw RFP text into RFPFields.

    The heuristic result is the floor; the model can only improve on it.
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm

    async def analyze(self, text: str, source_label: str) -> RFPFields:
        """
        Extract structured fields.

        Args:
            text: Cleaned document text
            source_label: File name or URL the text came from

        Returns:
            RFPFields with analysis metadata
        """
        heuristic = extract_heuristic_fields(text)
        fields = heuristic
        ai_enhanced = False

        if self.llm is not None and self.llm.is_available():
            model_fields = await self._model_pass(text, source_label)
            if model_fields:
                fields = merge_fields(heuristic, model_fields)
                ai_enhanced = True

        fields["parsed_sections"] = ParsedSections(
            text_length=len(text or ""),
            ai_enhanced=ai_enhanced,
            extraction_method="heuristic+llm" if ai_enhanced else "heuristic",
            file_name=source_label,
            analyzed_at=datetime.utcnow(),
        )

        logger.info(
            f"Analyzed '{source_label}': title={fields['title'][:60]!r}, "
            f"deadline={fields['submission_deadline']}, ai={ai_enhanced}"
        )
        return RFPFields(**fields)

    async def _model_pass(self, text: str, source_label: str) -> Optional[Dict[str, Any]]:
        """Best-effort model extraction. Any failure returns None."""
        try:
            reply = await self.llm.complete(
                ANALYSIS_PROMPT.format(source=source_label, text=text[:LLM_TEXT_CHARS]),
                temperature=0.1,
                max_tokens=3000,
                json_mode=True,
            )
            match = re.search(r"\{[\s\S]*\}", reply or "")
            if not match:
                logger.warning(f"RFP model pass returned no JSON for '{source_label}'")
                return None

            raw = json.loads(match.group(0))
            if not isinstance(raw, dict):
                return None
            return coerce_model_fields(raw)

        except Exception as e:
            logger.warning(f"RFP model pass failed for '{source_label}', keeping heuristics: {e}")
            return None
