"""Tests for PDF (markdown/HTML stage) and Word exports."""

import io
from datetime import datetime

import pytest
from docx import Document

from src.integrations.docx_export import DocxExporter
from src.integrations.pdf import PDFExporter, export_filename, proposal_sections, proposal_to_markdown
from src.models import ProposalRecord, SectionRecord


class TestMarkdown:
    """Tests for the markdown document behind the PDF export."""

    def test_title_block_and_order(self, sample_proposal):
        text = proposal_to_markdown(sample_proposal, today=datetime(2030, 3, 1))

        assert text.startswith("# Riverside Permit Portal Proposal")
        assert "**Submitted by:** Acme Consulting" in text
        assert "**Date:** March 01, 2030" in text
        assert "## Title" not in text
        assert text.index("## Cover Letter") < text.index("## Technical Approach") < text.index("## Key Personnel")

    def test_company_fills_missing_title(self, sample_company):
        proposal = ProposalRecord(rfp_id="rfp_1", title="Bare", sections={
            "Approach": SectionRecord(content="Plan."),
        })

        text = proposal_to_markdown(proposal, sample_company)

        assert "**Submitted by:** Acme Consulting" in text

    def test_title_split_from_body(self, sample_proposal):
        contact, body = proposal_sections(sample_proposal)

        assert contact.name == "Jane Doe"
        assert [name for name, _ in body] == ["Cover Letter", "Technical Approach", "Key Personnel"]


class TestHtml:

    def test_markdown_features_rendered(self, sample_proposal, sample_company):
        html = PDFExporter().render_html(sample_proposal, sample_company)

        assert "<h2>Technical Approach</h2>" in html
        assert "<table>" in html
        assert "<strong>Design</strong>" in html
        assert "Acme Consulting | Confidential" in html

    def test_header_without_company(self, sample_proposal):
        assert "Proposal | Confidential" in PDFExporter().render_html(sample_proposal)


class TestDocx:
    """Tests for DocxExporter.render."""

    @pytest.fixture
    def document(self, sample_proposal, sample_company):
        data = DocxExporter().render(sample_proposal, sample_company)
        assert data[:2] == b"PK"
        return Document(io.BytesIO(data))

    def test_title_page(self, document):
        title = document.paragraphs[0]

        assert title.style.name == "Title"
        assert title.text == "Riverside Permit Portal Proposal"
        assert any(p.text == "Submitted by: Acme Consulting" for p in document.paragraphs)

    def test_section_headings(self, document):
        headings = [p.text for p in document.paragraphs if p.style.name == "Heading 1"]

        # The cover letter is laid out as a letter, without a heading
        assert headings == ["Technical Approach", "Key Personnel"]
        assert any(p.text.startswith("Dear Selection Committee") for p in document.paragraphs)

    def test_light_markdown(self, document):
        bullets = [p for p in document.paragraphs if p.style.name == "List Bullet"]

        assert [p.text for p in bullets] == ["Discovery", "Design workshops"]
        assert bullets[1].runs[0].bold is True
        assert any(p.style.name == "Heading 3" and p.text == "Phase 1" for p in document.paragraphs)

    def test_table(self, document):
        table = document.tables[0]

        assert [cell.text for cell in table.rows[0].cells] == ["Phase", "Weeks"]
        assert [cell.text for cell in table.rows[1].cells] == ["Build", "12"]
        assert table.rows[0].cells[0].paragraphs[0].runs[0].bold is True


class TestFilename:

    @pytest.mark.parametrize("title,expected", [
        ("Riverside Permit/Portal: 2030", "Riverside_Permit_Portal__2030.pdf"),
        ("", "proposal.pdf"),
        ("!!!", "proposal.pdf"),
    ])
    def test_safe_names(self, title, expected):
        assert export_filename(title, "pdf") == expected
