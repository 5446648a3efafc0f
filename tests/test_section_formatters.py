"""Tests for deterministic library section formatters."""

from datetime import datetime

import pytest

from src.models import NOT_AVAILABLE, Company, RFPFields, TitleContact
from src.services.section_formatters import (
    NO_SUITABLE_MEMBERS,
    NO_SUITABLE_REFERENCES,
    REFERENCES_INTRO,
    TEAM_INTRO,
    clean_generated_content,
    clean_key_personnel_content,
    format_cover_letter_section,
    format_experience_section,
    format_references_section,
    format_team_members_section,
    format_title_object_to_text,
    format_title_section,
    parse_title_text_to_object,
)


class TestTitleSection:
    """Tests for the title contact block."""

    def test_from_primary_contact(self, sample_company):
        title = format_title_section(sample_company)

        assert title == TitleContact(
            submitted_by="Acme Consulting",
            name="Jane Doe",
            email="jane@acme.example.com",
            number="555-010-2001",
        )

    def test_falls_back_to_company_details(self):
        title = format_title_section(Company(name="Beta Labs", email="info@beta.example.com"))

        assert title.name == "Beta Representative"
        assert title.email == "info@beta.example.com"
        assert title.number == "Not specified"

    def test_no_company(self):
        assert format_title_section(None) == TitleContact()

    def test_text_round_trip(self, sample_company):
        title = format_title_section(sample_company)

        text = format_title_object_to_text(title)

        assert text.splitlines()[0] == "Submitted by: Acme Consulting"
        assert parse_title_text_to_object(text) == title

    def test_parse_tolerates_spacing_and_case(self):
        parsed = parse_title_text_to_object("  submitted BY :  Acme \nName: Jane\n")

        assert parsed.submitted_by == "Acme"
        assert parsed.name == "Jane"
        assert parsed.email == "Not specified"


class TestCoverLetter:
    """Tests for format_cover_letter_section."""

    def test_header_and_signature(self, sample_company):
        rfp = RFPFields(client_name="County of Riverside")

        letter = format_cover_letter_section(sample_company, rfp, today=datetime(2030, 3, 1))

        assert letter.startswith("**Submitted to:** County of Riverside")
        assert "**Date:** 03/01/2030" in letter
        assert "Dear County of Riverside Team," in letter
        assert "Jane Doe, Principal" in letter

    def test_unknown_client(self, sample_company):
        letter = format_cover_letter_section(sample_company, RFPFields(), today=datetime(2030, 3, 1))

        assert "**Submitted to:** Not specified" in letter
        assert "Dear Hiring Manager," in letter

    def test_placeholders_filled(self):
        company = Company(name="Beta Labs", website="https://beta.example.com", cover_letter="[Company Name] ({website})")

        letter = format_cover_letter_section(company, None, today=datetime(2030, 3, 1))

        assert "Beta Labs (https://beta.example.com)" in letter

    def test_no_company(self):
        assert format_cover_letter_section(None) == NOT_AVAILABLE


class TestExperience:

    def test_narrative_stats_and_services(self, sample_company):
        text = format_experience_section(sample_company)

        assert text.startswith("Acme has delivered")
        assert "- **Years in Business:** 12" in text
        assert "Our core services include: Software development, Data engineering." in text

    def test_empty_profile(self):
        assert format_experience_section(Company(name="Empty Co")) == NOT_AVAILABLE


class TestTeamAndReferences:
    """Tests for roster and reference sections."""

    def test_team_all_members(self, sample_team_members):
        text = format_team_members_section(sample_team_members)

        assert text.startswith(TEAM_INTRO)
        assert "**Jane Doe, PMP** - Project Manager" in text
        assert "**John Smith** - Lead Engineer" in text

    def test_team_selection_order(self, sample_team_members):
        text = format_team_members_section(sample_team_members, ["member_2", "member_1"])

        assert text.index("John Smith") < text.index("Jane Doe")

    def test_team_unknown_selection(self, sample_team_members):
        assert format_team_members_section(sample_team_members, ["member_9"]) == NO_SUITABLE_MEMBERS

    def test_team_empty_library(self):
        assert format_team_members_section([]) == NOT_AVAILABLE

    def test_reference_details(self, sample_references):
        text = format_references_section(sample_references, ["ref_1"])

        assert text.startswith(REFERENCES_INTRO)
        assert "**Contact:** Pat Lee of City of Springfield" in text
        assert "**Email:** pat@springfield.gov" in text
        assert "**Scope of Work:** Permit management software development." in text
        assert "Shelby County" not in text

    def test_reference_unknown_selection(self, sample_references):
        assert format_references_section(sample_references, ["nope"]) == NO_SUITABLE_REFERENCES


class TestCleaners:

    def test_bullet_glyphs_normalized(self):
        assert clean_key_personnel_content("● One\n• Two") == "- One\n- Two"

    @pytest.mark.parametrize("text", ["", "[Insert Name]", "  [Company]  ok  "])
    def test_little_left_becomes_sentinel(self, text):
        assert clean_generated_content(text) == NOT_AVAILABLE

    def test_links_kept(self):
        text = "See the [Project Plan](https://example.com/plan) for the full schedule."

        assert clean_generated_content(text) == text
