"""
RFP rules recomputed on every save.

Deadlines are stored as loose strings. A value that cannot be read as a
date places no constraint on the RFP and is reported as a warning.
"""

import logging
import re
from collections import Counter
from datetime import datetime, date
from typing import Optional, Dict, Any, List, Tuple

from dateutil import parser as date_parser

from src.models import NOT_MENTIONED

logger = logging.getLogger(__name__)

US_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")
DUE_SOON_DAYS = 7

DEADLINE_FIELDS = {
    "submission_deadline": "Submission deadline",
    "questions_deadline": "Questions deadline",
    "bid_meeting_date": "Pre-bid meeting",
    "bid_registration_date": "Bid registration",
}

MANDATORY_MEETING_RE = re.compile(
    r"mandatory\s+(?:pre[- ]?(?:bid|proposal)\s+)?(?:meeting|conference|site\s+visit)"
    r"|(?:pre[- ]?(?:bid|proposal)\s+)?(?:meeting|conference)\s+(?:is\s+)?mandatory",
    re.IGNORECASE
)
MANDATORY_REGISTRATION_RE = re.compile(
    r"(?:must|required\s+to)\s+register|registration\s+(?:is\s+)?(?:mandatory|required)",
    re.IGNORECASE
)

FIT_PENALTIES: List[Tuple[str, "re.Pattern[str]", int]] = [
    ("bid_bond", re.compile(r"bid\s+(?:bond|security|guarantee)", re.IGNORECASE), 15),
    ("performance_bond", re.compile(r"performance\s+(?:bond|security)", re.IGNORECASE), 15),
    ("license", re.compile(r"licen[cs]e[ds]?\s+(?:is\s+)?(?:required|in\s+the\s+state)|must\s+(?:hold|possess)\s+(?:a\s+)?(?:valid\s+)?licen[cs]e", re.IGNORECASE), 10),
    ("certification", re.compile(r"certif(?:ied|ication)\s+(?:is\s+)?required|must\s+be\s+certified|(?:MBE|WBE|DBE|SBE)\s+certif", re.IGNORECASE), 10),
    ("registration", MANDATORY_REGISTRATION_RE, 5),
]


def parse_deadline(value: Optional[str]) -> Optional[date]:
    """
    Read a stored deadline.

    MM/DD/YYYY is tried first and must round-trip (no 02/30); other textual
    dates ('March 5, 2025', '2025-03-05') go through dateutil. Anything else
    is None.
    """
    if not value or value.strip() == NOT_MENTIONED:
        return None

    match = US_DATE_RE.match(value)
    if match:
        month, day, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        return date_parser.parse(value, fuzzy=False).date()
    except (ValueError, OverflowError, TypeError):
        return None


def format_us_date(value: date) -> str:
    return value.strftime("%m/%d/%Y")


def check_disqualification(data: Dict[str, Any], now: Optional[datetime] = None) -> Tuple[bool, List[str]]:
    """
    Decide whether an RFP can no longer be answered.

    Disqualified when the submission deadline has passed, or when a bid
    meeting or registration the RFP text marks mandatory has passed. A
    passed questions deadline only warns.
    """
    today = (now or datetime.utcnow()).date()
    raw_text = data.get("raw_text") or ""
    warnings: List[str] = []
    disqualified = False

    mandatory = {
        "submission_deadline": True,
        "questions_deadline": False,
        "bid_meeting_date": bool(MANDATORY_MEETING_RE.search(raw_text)),
        "bid_registration_date": bool(MANDATORY_REGISTRATION_RE.search(raw_text)),
    }

    for field, label in DEADLINE_FIELDS.items():
        value = data.get(field)
        if not value or value == NOT_MENTIONED:
            continue

        deadline = parse_deadline(value)
        if deadline is None:
            warnings.append(f"{label} '{value}' could not be read as a date; it was not checked.")
            continue

        if deadline < today:
            if mandatory[field]:
                disqualified = True
                warnings.append(f"{label} ({format_us_date(deadline)}) has passed.")
            else:
                warnings.append(f"{label} ({format_us_date(deadline)}) has passed (informational).")

    return disqualified, warnings


def compute_date_sanity(data: Dict[str, Any], now: Optional[datetime] = None) -> Tuple[List[str], Dict[str, Any]]:
    """Cross-check deadlines against each other and against the document's dominant year."""
    today = (now or datetime.utcnow()).date()
    warnings: List[str] = []
    meta: Dict[str, Any] = {}

    parsed = {field: parse_deadline(data.get(field)) for field in DEADLINE_FIELDS}

    years = Counter(int(y) for y in re.findall(r"\b(20[0-9]{2})\b", data.get("raw_text") or ""))
    if years:
        dominant_year = years.most_common(1)[0][0]
        meta["dominant_year"] = dominant_year
        for field, value in parsed.items():
            if value and abs(value.year - dominant_year) >= 1 and years[value.year] <= 1:
                warnings.append(
                    f"{DEADLINE_FIELDS[field]} year {value.year} differs from the document's "
                    f"usual year {dominant_year}; possible typo."
                )

    submission = parsed["submission_deadline"]
    if submission:
        days_until = (submission - today).days
        meta["days_until_submission"] = days_until
        if 0 <= days_until <= DUE_SOON_DAYS:
            warnings.append(f"Submission is due in {days_until} day(s).")

    questions = parsed["questions_deadline"]
    if questions and submission and questions > submission:
        warnings.append("Questions deadline falls after the submission deadline.")

    return warnings, meta


def compute_fit_score(data: Dict[str, Any]) -> Dict[str, Any]:
    """Start at 100 and subtract for burdensome requirements found in the text."""
    text = " ".join([
        data.get("raw_text") or "",
        " ".join(data.get("special_requirements") or []),
        " ".join(data.get("key_requirements") or []),
    ])

    flags = []
    score = 100
    for flag, pattern, penalty in FIT_PENALTIES:
        if pattern.search(text):
            flags.append(flag)
            score -= penalty

    return {"score": max(score, 0), "flags": flags}


def apply_rfp_rules(data: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Recompute the derived fields of an RFP in place.

    Called with the full record on create and with the merged record on
    every update.
    """
    disqualified, deadline_warnings = check_disqualification(data, now)
    sanity_warnings, meta = compute_date_sanity(data, now)

    data["is_disqualified"] = disqualified
    data["date_warnings"] = deadline_warnings + sanity_warnings
    data["date_meta"] = meta
    data["fit_score"] = compute_fit_score(data)

    if disqualified:
        logger.info(f"RFP '{data.get('title')}' is disqualified: {deadline_warnings}")
    return data
