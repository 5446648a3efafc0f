"""PDF export for proposals - markdown rendered through WeasyPrint."""

import logging
from datetime import datetime
from typing import Optional, List, Tuple

import markdown
from jinja2 import Template

from src.models import Company, ProposalRecord, TitleContact

logger = logging.getLogger(__name__)

TITLE_SECTION = "title"

PROPOSAL_MARKDOWN = """# {{ title }}

{% if contact %}
**Submitted by:** {{ contact.submitted_by }}<br>
**Name:** {{ contact.name }}<br>
**Email:** {{ contact.email }}<br>
**Number:** {{ contact.number }}
{% endif %}

**Date:** {{ date }}

{% for name, body in sections %}
---

## {{ name }}

{{ body }}

{% endfor %}
"""

PROPOSAL_HTML = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{{ title }}</title>
    <style>{{ css }}</style>
</head>
<body>
    <div class="proposal-content">
        {{ body }}
    </div>
</body>
</html>
"""

PROPOSAL_CSS = """
@page {
    size: letter;
    margin: 1in;
    @top-right {
        content: "{{ company_name }} | Confidential";
        font-size: 10px;
        color: #666;
    }
    @bottom-center {
        content: "Page " counter(page) " of " counter(pages);
        font-size: 10px;
        color: #666;
    }
}

body {
    font-family: 'Helvetica Neue', Arial, sans-serif;
    font-size: 11pt;
    line-height: 1.6;
    color: #222;
}

h1 {
    font-size: 24pt;
    padding-bottom: 10px;
    border-bottom: 3px solid #1f3a5f;
}

h2 {
    font-size: 16pt;
    margin-top: 25px;
    border-bottom: 1px solid #ddd;
    page-break-after: avoid;
}

table {
    width: 100%;
    border-collapse: collapse;
    margin: 20px 0;
}

th, td {
    border: 1px solid #ccc;
    padding: 8px;
    text-align: left;
}

th {
    background-color: #1f3a5f;
    color: white;
}

hr {
    border: none;
    page-break-after: always;
}
"""


def section_body(content) -> str:
    """Markdown body of one stored section."""
    if isinstance(content, TitleContact):
        return (
            f"**Submitted by:** {content.submitted_by}  \n"
            f"**Name:** {content.name}  \n"
            f"**Email:** {content.email}  \n"
            f"**Number:** {content.number}"
        )
    return str(content or "").strip()


def proposal_sections(proposal: ProposalRecord) -> Tuple[Optional[TitleContact], List[Tuple[str, str]]]:
    """Split the title block from the ordered body sections."""
    contact = None
    body: List[Tuple[str, str]] = []
    for name, record in proposal.sections.items():
        if name.strip().lower() == TITLE_SECTION and isinstance(record.content, TitleContact):
            contact = record.content
            continue
        body.append((name, section_body(record.content)))
    return contact, body


def proposal_to_markdown(
    proposal: ProposalRecord,
    company: Optional[Company] = None,
    today: Optional[datetime] = None
) -> str:
    """Render a whole proposal as one markdown document."""
    contact, sections = proposal_sections(proposal)
    if contact is None and company is not None:
        contact = TitleContact(submitted_by=company.name)

    return Template(PROPOSAL_MARKDOWN).render(
        title=proposal.title,
        contact=contact,
        date=(today or datetime.now()).strftime("%B %d, %Y"),
        sections=sections,
    )


class PDFExporter:
    """
    Converts proposals to PDF bytes.

    Markdown (tables, fenced code) becomes HTML, which WeasyPrint lays out.
    """

    def render_html(self, proposal: ProposalRecord, company: Optional[Company] = None) -> str:
        """Full HTML document for a proposal."""
        html_body = markdown.markdown(
            proposal_to_markdown(proposal, company),
            extensions=["tables", "fenced_code"]
        )
        css = Template(PROPOSAL_CSS).render(company_name=company.name if company else "Proposal")
        return Template(PROPOSAL_HTML).render(title=proposal.title, css=css, body=html_body)

    def render(self, proposal: ProposalRecord, company: Optional[Company] = None) -> bytes:
        """
        Render a proposal to PDF.

        Args:
            proposal: Proposal with its ordered sections
            company: Submitting company, used for the title block and header

        Returns:
            PDF file content
        """
        from weasyprint import HTML

        pdf_bytes = HTML(string=self.render_html(proposal, company)).write_pdf()
        logger.info(f"Generated PDF for proposal {proposal.id}: {len(pdf_bytes)} bytes")
        return pdf_bytes


def export_filename(title: str, extension: str) -> str:
    """Filesystem-safe download name for an export."""
    safe = "".join(c if c.isalnum() else "_" for c in (title or "proposal")).strip("_")
    return f"{safe or 'proposal'}.{extension}"


# Singleton instance
pdf_exporter = PDFExporter()
