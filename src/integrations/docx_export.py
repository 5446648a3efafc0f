"""Word export for proposals using python-docx."""

import io
import logging
import re
from datetime import datetime
from typing import Optional, List

from docx import Document
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from src.integrations.pdf import proposal_sections
from src.models import Company, ProposalRecord, TitleContact

logger = logging.getLogger(__name__)

COVER_LETTER_SECTION = "cover letter"
BODY_FONT = "Calibri"

_HEADING_RE = re.compile(r"^(#{1,4})\s+(.+)$")
_BULLET_RE = re.compile(r"^\s*[-*•]\s+(.+)$")
_NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+(.+)$")
_BOLD_RE = re.compile(r"(\*\*[^*]+\*\*)")
_TABLE_RULE_RE = re.compile(r"^\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?$")


def _add_runs(paragraph, text: str) -> None:
    """Add text to a paragraph, turning **bold** spans into bold runs."""
    for part in _BOLD_RE.split(text):
        if not part:
            continue
        if part.startswith("**") and part.endswith("**"):
            paragraph.add_run(part[2:-2]).bold = True
        else:
            paragraph.add_run(part)


def _table_cells(line: str) -> List[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


class DocxExporter:
    """
    Converts proposals to .docx bytes.

    Title page, cover letter page, then one heading per remaining section.
    Section bodies are read as light markdown: headings, bullets, numbered
    items, **bold** runs and pipe tables.
    """

    def _new_document(self) -> Document:
        doc = Document()
        style = doc.styles["Normal"]
        style.font.name = BODY_FONT
        style.font.size = Pt(11)
        return doc

    def _title_page(
        self,
        doc: Document,
        proposal: ProposalRecord,
        contact: Optional[TitleContact],
        company: Optional[Company]
    ) -> None:
        heading = doc.add_heading(proposal.title, 0)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

        if contact is None and company is not None:
            contact = TitleContact(submitted_by=company.name)
        if contact is not None:
            for label, value in (
                ("Submitted by", contact.submitted_by),
                ("Name", contact.name),
                ("Email", contact.email),
                ("Number", contact.number),
            ):
                paragraph = doc.add_paragraph()
                paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
                _add_runs(paragraph, f"**{label}:** {value}")

        date_line = doc.add_paragraph(datetime.now().strftime("%B %d, %Y"))
        date_line.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _add_table(self, doc: Document, rows: List[List[str]]) -> None:
        width = max(len(row) for row in rows)
        table = doc.add_table(rows=0, cols=width)
        table.style = "Table Grid"
        table.alignment = WD_TABLE_ALIGNMENT.CENTER

        for row_index, row in enumerate(rows):
            cells = table.add_row().cells
            for col_index in range(width):
                text = row[col_index] if col_index < len(row) else ""
                paragraph = cells[col_index].paragraphs[0]
                _add_runs(paragraph, text)
                if row_index == 0:
                    for run in paragraph.runs:
                        run.bold = True

    def add_markdown(self, doc: Document, text: str) -> None:
        """Append a light-markdown body to the document."""
        table_rows: List[List[str]] = []

        def flush_table():
            if table_rows:
                self._add_table(doc, table_rows)
                table_rows.clear()

        for raw_line in text.splitlines():
            line = raw_line.rstrip()

            if line.strip().startswith("|"):
                if not _TABLE_RULE_RE.match(line.strip()):
                    table_rows.append(_table_cells(line))
                continue
            flush_table()

            if not line.strip():
                continue

            heading = _HEADING_RE.match(line.strip())
            if heading:
                level = min(len(heading.group(1)) + 1, 4)
                doc.add_heading(heading.group(2).strip("* "), level=level)
                continue

            bullet = _BULLET_RE.match(line)
            if bullet:
                _add_runs(doc.add_paragraph(style="List Bullet"), bullet.group(1))
                continue

            numbered = _NUMBERED_RE.match(line)
            if numbered:
                _add_runs(doc.add_paragraph(style="List Number"), numbered.group(1))
                continue

            _add_runs(doc.add_paragraph(), line.strip())

        flush_table()

    def render(self, proposal: ProposalRecord, company: Optional[Company] = None) -> bytes:
        """
        Render a proposal to a Word document.

        Args:
            proposal: Proposal with its ordered sections
            company: Submitting company, used when the title section is missing

        Returns:
            .docx file content
        """
        contact, sections = proposal_sections(proposal)
        doc = self._new_document()
        self._title_page(doc, proposal, contact, company)

        for name, body in sections:
            doc.add_page_break()
            if name.strip().lower() == COVER_LETTER_SECTION:
                # Cover letter keeps its own heading-less letter layout
                self.add_markdown(doc, body)
                continue
            doc.add_heading(name, level=1)
            self.add_markdown(doc, body)

        buffer = io.BytesIO()
        doc.save(buffer)
        data = buffer.getvalue()
        logger.info(f"Generated DOCX for proposal {proposal.id}: {len(data)} bytes")
        return data


# Singleton instance
docx_exporter = DocxExporter()
