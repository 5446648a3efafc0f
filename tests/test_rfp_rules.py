"""Tests for deadline, date-sanity and fit rules."""

from datetime import date, datetime

import pytest

from src.models import NOT_MENTIONED
from src.services.rfp_rules import (
    apply_rfp_rules,
    check_disqualification,
    compute_date_sanity,
    compute_fit_score,
    parse_deadline,
)

NOW = datetime(2030, 6, 15, 9, 0)


class TestParseDeadline:

    @pytest.mark.parametrize("value,expected", [
        ("06/20/2030", date(2030, 6, 20)),
        ("June 20, 2030", date(2030, 6, 20)),
        ("2030-06-20", date(2030, 6, 20)),
    ])
    def test_readable(self, value, expected):
        assert parse_deadline(value) == expected

    @pytest.mark.parametrize("value", [None, "", NOT_MENTIONED, "02/30/2030", "two weeks after award"])
    def test_unreadable(self, value):
        assert parse_deadline(value) is None


class TestDisqualification:
    """Which passed deadlines disqualify."""

    def test_passed_submission_disqualifies(self):
        disqualified, warnings = check_disqualification({"submission_deadline": "06/01/2030"}, NOW)

        assert disqualified is True
        assert "Submission deadline (06/01/2030) has passed." in warnings

    def test_future_submission(self):
        disqualified, warnings = check_disqualification({"submission_deadline": "07/01/2030"}, NOW)

        assert disqualified is False
        assert warnings == []

    def test_questions_deadline_only_warns(self):
        disqualified, warnings = check_disqualification({"questions_deadline": "06/01/2030"}, NOW)

        assert disqualified is False
        assert "informational" in warnings[0]

    def test_optional_meeting_only_warns(self):
        data = {"bid_meeting_date": "06/01/2030", "raw_text": "An optional pre-bid meeting will be held."}

        disqualified, _ = check_disqualification(data, NOW)

        assert disqualified is False

    def test_mandatory_meeting_disqualifies(self):
        data = {"bid_meeting_date": "06/01/2030", "raw_text": "A mandatory pre-bid meeting will be held."}

        disqualified, _ = check_disqualification(data, NOW)

        assert disqualified is True

    def test_mandatory_registration_disqualifies(self):
        data = {"bid_registration_date": "06/01/2030", "raw_text": "Vendors must register before the meeting."}

        disqualified, _ = check_disqualification(data, NOW)

        assert disqualified is True

    def test_unreadable_deadline_warns_without_constraint(self):
        disqualified, warnings = check_disqualification({"submission_deadline": "TBD"}, NOW)

        assert disqualified is False
        assert "could not be read" in warnings[0]

    def test_all_deadlines_passed(self):
        data = {
            "submission_deadline": "06/10/2030",
            "questions_deadline": "05/20/2030",
            "bid_meeting_date": "05/25/2030",
            "bid_registration_date": "05/15/2030",
            "raw_text": "A mandatory pre-bid meeting will be held. Vendors must register in advance.",
        }

        disqualified, warnings = check_disqualification(data, NOW)

        assert disqualified is True
        assert len(warnings) == 4

    def test_all_deadlines_ahead(self):
        data = {
            "submission_deadline": "08/10/2030",
            "questions_deadline": "07/20/2030",
            "bid_meeting_date": "07/25/2030",
            "bid_registration_date": "07/15/2030",
            "raw_text": "A mandatory pre-bid meeting will be held. Vendors must register in advance.",
        }

        assert check_disqualification(data, NOW) == (False, [])

    def test_not_mentioned_skipped(self):
        assert check_disqualification({"submission_deadline": NOT_MENTIONED}, NOW) == (False, [])


class TestDateSanity:

    def test_due_soon(self):
        warnings, meta = compute_date_sanity({"submission_deadline": "06/18/2030"}, NOW)

        assert meta["days_until_submission"] == 3
        assert "Submission is due in 3 day(s)." in warnings

    def test_questions_after_submission(self):
        data = {"submission_deadline": "07/01/2030", "questions_deadline": "07/05/2030"}

        warnings, _ = compute_date_sanity(data, NOW)

        assert "Questions deadline falls after the submission deadline." in warnings

    def test_year_typo(self):
        data = {
            "submission_deadline": "07/01/2031",
            "raw_text": "Issued 2030. Questions by 2030. Award in 2030.",
        }

        warnings, meta = compute_date_sanity(data, NOW)

        assert meta["dominant_year"] == 2030
        assert any("possible typo" in w for w in warnings)


class TestFitScore:

    def test_clean_rfp(self):
        assert compute_fit_score({"raw_text": "Build a website."}) == {"score": 100, "flags": []}

    def test_penalties_stack(self):
        text = "A bid bond and a performance bond are required. Vendors must register."

        result = compute_fit_score({"raw_text": text})

        assert result["flags"] == ["bid_bond", "performance_bond", "registration"]
        assert result["score"] == 65


class TestApplyRules:

    def test_sets_every_derived_field(self):
        data = {"title": "Old RFP", "submission_deadline": "01/01/2030", "raw_text": "RFP 2030"}

        result = apply_rfp_rules(data, NOW)

        assert result is data
        assert data["is_disqualified"] is True
        assert data["date_warnings"]
        assert data["date_meta"]["dominant_year"] == 2030
        assert data["fit_score"]["score"] == 100

    def test_edit_can_requalify(self):
        data = {"submission_deadline": "01/01/2030"}
        apply_rfp_rules(data, NOW)

        data["submission_deadline"] = "12/01/2030"
        apply_rfp_rules(data, NOW)

        assert data["is_disqualified"] is False
