"""Tests for proposal assembly."""

import asyncio
import json
from datetime import datetime

import pytest

from src.core.llm import LLMError
from src.models import (
    NOT_AVAILABLE,
    LibraryCategory,
    LibrarySnapshot,
    SectionType,
    StructuredSections,
    TitleContact,
    UnstructuredSections,
)
from src.services.proposal_assembler import (
    ProposalAssembler,
    build_section_order,
    build_sections_prompt,
    extract_sections_from_markdown,
    parse_sections_response,
    render_library_section,
    validate_ai_sections,
)
from src.services.section_classifier import SectionClassifier

from tests.fakes import FakeLLM

NOW = datetime(2030, 3, 1, 12, 0)

LONG_APPROACH = "We will run discovery workshops, then build the portal in two-week sprints."
LONG_BUDGET = "| Item | Description | Cost |\n|---|---|---|\n| Build | Portal | $100,000 |"


def keyword_assembler(reply: str) -> ProposalAssembler:
    """Assembler whose classifier works from keywords and whose model returns `reply`."""
    llm = FakeLLM(replies=[reply])
    return ProposalAssembler(llm, classifier=SectionClassifier(None))


class TestSectionOrder:
    """Tests for build_section_order."""

    def test_compulsory_first_and_references_last(self):
        order = build_section_order(["References", "Approach", "Budget"])

        assert order == ["Title", "Cover Letter", "Approach", "Budget", "References"]

    def test_case_insensitive_dedupe_keeps_first_spelling(self):
        order = build_section_order(["approach", "APPROACH", "cover letter", " Budget "])

        assert order == ["Title", "Cover Letter", "approach", "Budget"]

    def test_blank_titles_dropped(self):
        assert build_section_order(["", "  ", None]) == ["Title", "Cover Letter"]


class TestReplyParsing:
    """Tests for parse_sections_response and markdown recovery."""

    def test_strict_json(self):
        reply = json.dumps({"Approach": LONG_APPROACH, "Budget": LONG_BUDGET})

        result = parse_sections_response(reply, ["Approach", "Budget"])

        assert isinstance(result, StructuredSections)
        assert result.confident is True
        assert result.sections["Approach"] == LONG_APPROACH

    def test_json_inside_prose(self):
        reply = "Here you go:\n```json\n" + json.dumps({"Approach": LONG_APPROACH}) + "\n```"

        result = parse_sections_response(reply, ["Approach"])

        assert isinstance(result, StructuredSections)

    def test_nested_json_values_flattened(self):
        reply = json.dumps({"Deliverables": ["Portal", "Training"]})

        result = parse_sections_response(reply, ["Deliverables"])

        assert result.sections["Deliverables"] == "- Portal\n- Training"

    def test_markdown_recovery_is_not_confident(self):
        reply = f"## Approach\n{LONG_APPROACH}\n\n## Budget\n{LONG_BUDGET}"

        result = parse_sections_response(reply, ["Approach", "Budget"])

        assert isinstance(result, UnstructuredSections)
        assert result.confident is False
        assert result.pattern == "h2"
        assert set(result.sections) == {"Approach", "Budget"}

    def test_json_with_unrelated_keys_falls_back(self):
        reply = json.dumps({"foo": "bar"})

        result = parse_sections_response(reply, ["Approach"])

        assert isinstance(result, UnstructuredSections)
        assert result.sections == {}

    def test_short_bodies_dropped(self):
        pattern, sections = extract_sections_from_markdown("**Approach**\nshort\n**Budget**\n" + LONG_BUDGET)

        assert pattern == "bold"
        assert list(sections) == ["Budget"]


class TestValidation:
    """Tests for validate_ai_sections."""

    def test_every_expected_key_present(self):
        validated = validate_ai_sections({"approach": LONG_APPROACH}, ["Approach", "Budget"])

        assert validated["Approach"] == LONG_APPROACH
        assert validated["Budget"] == NOT_AVAILABLE

    @pytest.mark.parametrize("content", ["tiny", "Not specified in RFP", "Budget is not available."])
    def test_weak_content_becomes_sentinel(self, content):
        assert validate_ai_sections({"Budget": content}, ["Budget"])["Budget"] == NOT_AVAILABLE

    def test_placeholders_removed(self):
        content = "Our team at [Company Name] will deliver the permit portal on schedule."

        validated = validate_ai_sections({"Approach": content}, ["Approach"])

        assert "[Company Name]" not in validated["Approach"]


class TestLibrarySections:
    """Tests for render_library_section."""

    def test_title_is_contact_object(self, sample_rfp_record, sample_library):
        record = render_library_section(LibraryCategory.TITLE, sample_rfp_record, sample_library, now=NOW)

        assert isinstance(record.content, TitleContact)
        assert record.content.submitted_by == "Acme Consulting"
        assert record.type == SectionType.CONTENT_LIBRARY

    def test_team_records_selection(self, sample_rfp_record, sample_library):
        record = render_library_section(
            LibraryCategory.TEAM, sample_rfp_record, sample_library, selected_ids=["member_2"], now=NOW
        )

        assert record.selected_ids == ["member_2"]
        assert "John Smith" in record.content
        assert "Jane Doe" not in record.content

    def test_references_auto_selection(self, sample_rfp_record, sample_library):
        record = render_library_section(LibraryCategory.REFERENCES, sample_rfp_record, sample_library, now=NOW)

        # Best keyword overlap first
        assert record.selected_ids[0] == "ref_1"

    def test_experience_has_no_selection(self, sample_rfp_record, sample_library):
        record = render_library_section(LibraryCategory.EXPERIENCE, sample_rfp_record, sample_library, now=NOW)

        assert record.selected_ids is None
        assert "Years in Business" in record.content


class TestPrompt:
    """Tests for build_sections_prompt."""

    def test_prompt_lists_titles_and_template_guidance(self, sample_rfp_record, sample_template):
        prompt = build_sections_prompt(sample_rfp_record, ["Technical Approach"], sample_template)

        assert json.dumps(["Technical Approach"]) in prompt
        assert "TEMPLATE GUIDANCE (Software Development Proposal)" in prompt
        assert "Phases and testing." in prompt
        assert "Budget Estimate" not in prompt


class TestAssemble:
    """Tests for ProposalAssembler.assemble."""

    def test_keys_follow_canonical_order(self, sample_rfp_record, sample_library):
        reply = json.dumps({"Approach": LONG_APPROACH, "Budget": LONG_BUDGET})
        assembler = keyword_assembler(reply)

        result = asyncio.run(assembler.assemble(
            sample_rfp_record,
            ["References", "Approach", "Key Personnel", "Budget"],
            sample_library,
            now=NOW,
        ))

        assert list(result.sections) == [
            "Title", "Cover Letter", "Approach", "Key Personnel", "Budget", "References"
        ]
        assert result.confident is True
        assert result.sections["Approach"].type == SectionType.AI_GENERATED
        assert result.sections["Key Personnel"].type == SectionType.CONTENT_LIBRARY
        assert all(s.last_modified == NOW for s in result.sections.values())

    def test_library_sections_never_sent_to_model(self, sample_rfp_record, sample_library):
        assembler = keyword_assembler(json.dumps({"Approach": LONG_APPROACH}))

        asyncio.run(assembler.assemble(sample_rfp_record, ["Approach", "Project Team"], sample_library, now=NOW))

        prompt = assembler.llm.prompts[-1]
        assert '"Approach"' in prompt
        assert '"Project Team"' not in prompt

    def test_no_model_call_when_everything_is_library(self, sample_rfp_record, sample_library):
        assembler = keyword_assembler("unused")

        result = asyncio.run(assembler.assemble(sample_rfp_record, ["References"], sample_library, now=NOW))

        assert assembler.llm.prompts == []
        assert list(result.sections) == ["Title", "Cover Letter", "References"]

    def test_second_experience_title_goes_to_model(self, sample_rfp_record, sample_library):
        reply = json.dumps({"Relevant Experience": LONG_APPROACH})
        assembler = keyword_assembler(reply)

        result = asyncio.run(assembler.assemble(
            sample_rfp_record, ["Firm Qualifications", "Relevant Experience"], sample_library, now=NOW
        ))

        assert result.sections["Firm Qualifications"].type == SectionType.CONTENT_LIBRARY
        assert result.sections["Relevant Experience"].type == SectionType.AI_GENERATED

    def test_template_sections_come_first_in_template_order(self, sample_rfp_record, sample_library, sample_template):
        reply = json.dumps({"Technical Approach": LONG_APPROACH, "Budget Estimate": LONG_BUDGET})
        assembler = keyword_assembler(reply)

        result = asyncio.run(assembler.assemble(
            sample_rfp_record, [], sample_library, template=sample_template, now=NOW
        ))

        assert list(result.sections) == ["Title", "Cover Letter", "Technical Approach", "Budget Estimate"]

    def test_markdown_reply_marks_result_unconfident(self, sample_rfp_record, sample_library):
        assembler = keyword_assembler(f"## Approach\n{LONG_APPROACH}")

        result = asyncio.run(assembler.assemble(sample_rfp_record, ["Approach"], sample_library, now=NOW))

        assert result.confident is False
        assert result.sections["Approach"].content == LONG_APPROACH

    def test_empty_library(self, sample_rfp_record):
        assembler = keyword_assembler("{}")

        result = asyncio.run(assembler.assemble(sample_rfp_record, ["Project Team"], LibrarySnapshot(), now=NOW))

        assert result.sections["Cover Letter"].content == NOT_AVAILABLE
        assert result.sections["Project Team"].content == NOT_AVAILABLE

    def test_personnel_and_experience_without_requirements(self, sample_rfp_record, sample_library):
        sample_rfp_record.key_requirements = []
        assembler = keyword_assembler("unused")

        result = asyncio.run(assembler.assemble(
            sample_rfp_record, ["Key Personnel and Experience"], sample_library, now=NOW
        ))

        section = result.sections["Key Personnel and Experience"]
        assert section.type == SectionType.CONTENT_LIBRARY
        assert "**Jane Doe, PMP** - Project Manager" in section.content
        assert "**John Smith** - Lead Engineer" in section.content
        assert assembler.llm.prompts == []

    def test_personnel_and_experience_with_empty_team(self, sample_rfp_record, sample_company):
        sample_rfp_record.key_requirements = []
        assembler = keyword_assembler("unused")

        result = asyncio.run(assembler.assemble(
            sample_rfp_record,
            ["Key Personnel and Experience"],
            LibrarySnapshot(company=sample_company),
            now=NOW,
        ))

        assert result.sections["Key Personnel and Experience"].content == NOT_AVAILABLE

    def test_llm_failure_propagates(self, sample_rfp_record, sample_library):
        def boom(prompt, system):
            raise LLMError("provider down")

        assembler = ProposalAssembler(FakeLLM(handler=boom), classifier=SectionClassifier(None))

        with pytest.raises(LLMError):
            asyncio.run(assembler.assemble(sample_rfp_record, ["Approach"], sample_library, now=NOW))
