"""Tests for RFP text extraction and field analysis."""

import asyncio
import json

import pytest

from src.core.llm import LLMError
from src.models import NOT_MENTIONED, ProjectType
from src.services.rfp_analyzer import (
    RFPAnalysisError,
    RFPAnalyzer,
    clean_text,
    coerce_model_fields,
    ensure_list,
    extract_heuristic_fields,
    extract_pdf_text,
    merge_fields,
    normalize_date,
    to_text,
)

from tests.fakes import FakeLLM

SAMPLE_RFP = """REQUEST FOR PROPOSALS
Permit Portal Modernization

Issued by: County of Riverside

Proposals are due by March 15, 2030 at 2:00 PM.
Questions must be submitted no later than 03/01/2030.
The total budget is not to exceed $250,000.

SCOPE OF WORK
The County seeks a vendor to replace its legacy permit software with a web application.

DELIVERABLES
- Cloud-hosted permit portal
- Staff training program

EVALUATION CRITERIA
1. Technical approach
2. Cost proposal

The vendor must provide proof of insurance before contract execution.
Contact: procurement@riverside.gov or 555-123-4567.
"""


class TestTextHelpers:

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("a\r\n\r\n\r\n\r\nb \t c") == "a\n\nb c"

    def test_invalid_pdf(self):
        with pytest.raises(RFPAnalysisError):
            extract_pdf_text(b"not a pdf")

    @pytest.mark.parametrize("value,expected", [
        ("3/5/30", "03/05/2030"),
        ("March 5, 2030", "03/05/2030"),
        ("whenever", None),
    ])
    def test_normalize_date(self, value, expected):
        assert normalize_date(value) == expected

    def test_to_text_flattens(self):
        assert to_text({"name": "Pat", "phone": None, "tags": ["a", "b"]}) == "name: Pat; tags: a; b"

    def test_ensure_list(self):
        assert ensure_list(None) == [NOT_MENTIONED]
        assert ensure_list("one") == ["one"]
        assert ensure_list(["", "x"]) == ["x"]


class TestHeuristicFields:
    """Regex pass over a representative RFP."""

    @pytest.fixture
    def fields(self):
        return extract_heuristic_fields(SAMPLE_RFP)

    def test_title_joins_bare_header(self, fields):
        assert fields["title"] == "REQUEST FOR PROPOSALS - Permit Portal Modernization"

    def test_client(self, fields):
        assert fields["client_name"] == "County of Riverside"

    def test_dates(self, fields):
        assert fields["submission_deadline"] == "03/15/2030"
        assert fields["questions_deadline"] == "03/01/2030"

    def test_budget(self, fields):
        assert fields["budget_range"] == "$250,000"

    def test_lists(self, fields):
        assert fields["deliverables"] == ["Cloud-hosted permit portal", "Staff training program"]
        assert fields["evaluation_criteria"] == ["Technical approach", "Cost proposal"]
        assert any("insurance" in item for item in fields["special_requirements"])

    def test_scope_and_contact(self, fields):
        assert fields["project_scope"].startswith("The County seeks a vendor")
        assert "procurement@riverside.gov" in fields["contact_information"]
        assert "555-123-4567" in fields["contact_information"]

    def test_project_type(self, fields):
        assert fields["project_type"] == ProjectType.SOFTWARE_DEVELOPMENT

    def test_misses_use_sentinel(self):
        fields = extract_heuristic_fields("nothing useful here")

        assert fields["budget_range"] == NOT_MENTIONED
        assert fields["deliverables"] == [NOT_MENTIONED]
        assert fields["project_type"] == ProjectType.GENERAL


class TestModelMerge:

    def test_coerce_shapes_values(self):
        coerced = coerce_model_fields({
            "submission_deadline": "March 20, 2030",
            "deliverables": "Portal",
            "project_type": "Strategic Communications",
            "unknown": "ignored",
        })

        assert coerced == {
            "submission_deadline": "03/20/2030",
            "deliverables": ["Portal"],
            "project_type": ProjectType.STRATEGIC_COMMUNICATIONS,
        }

    def test_invalid_project_type_is_general(self):
        assert coerce_model_fields({"project_type": "bridges"})["project_type"] == ProjectType.GENERAL

    def test_model_only_overrides_informative_values(self):
        heuristic = {"title": "From regex", "budget_range": "$1", "deliverables": ["A"]}
        model = {"title": NOT_MENTIONED, "budget_range": "$2", "deliverables": [NOT_MENTIONED]}

        merged = merge_fields(heuristic, model)

        assert merged == {"title": "From regex", "budget_range": "$2", "deliverables": ["A"]}


class TestAnalyzer:
    """Tests for RFPAnalyzer.analyze."""

    def test_heuristic_only_without_model(self):
        fields = asyncio.run(RFPAnalyzer(FakeLLM(available=False)).analyze(SAMPLE_RFP, "rfp.pdf"))

        assert fields.client_name == "County of Riverside"
        assert fields.parsed_sections.ai_enhanced is False
        assert fields.parsed_sections.extraction_method == "heuristic"
        assert fields.parsed_sections.file_name == "rfp.pdf"
        assert fields.parsed_sections.text_length == len(SAMPLE_RFP)

    def test_model_enhances(self):
        reply = json.dumps({"title": "Permit Portal RFP", "location": "Riverside, CA"})
        llm = FakeLLM(replies=[reply])

        fields = asyncio.run(RFPAnalyzer(llm).analyze(SAMPLE_RFP, "rfp.pdf"))

        assert fields.title == "Permit Portal RFP"
        assert fields.location == "Riverside, CA"
        assert fields.submission_deadline == "03/15/2030"
        assert fields.parsed_sections.extraction_method == "heuristic+llm"

    @pytest.mark.parametrize("reply", ["no json at all", "[1, 2]", "{broken"])
    def test_bad_model_reply_keeps_heuristics(self, reply):
        fields = asyncio.run(RFPAnalyzer(FakeLLM(replies=[reply])).analyze(SAMPLE_RFP, "rfp.pdf"))

        assert fields.parsed_sections.ai_enhanced is False
        assert fields.client_name == "County of Riverside"

    def test_model_error_keeps_heuristics(self):
        def boom(prompt, system):
            raise LLMError("timeout")

        fields = asyncio.run(RFPAnalyzer(FakeLLM(handler=boom)).analyze(SAMPLE_RFP, "rfp.pdf"))

        assert fields.parsed_sections.ai_enhanced is False
