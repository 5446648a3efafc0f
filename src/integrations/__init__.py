"""Integrations module - External service connectors."""

from src.integrations.canva import CanvaClient, CanvaError, canva_client, poll_job
from src.integrations.firecrawl import FirecrawlService, PageFetchError, firecrawl_service
from src.integrations.drive import DriveStorage, drive_storage
from src.integrations.pdf import PDFExporter, pdf_exporter, export_filename
from src.integrations.docx_export import DocxExporter, docx_exporter

__all__ = [
    "CanvaClient",
    "CanvaError",
    "canva_client",
    "poll_job",
    "FirecrawlService",
    "PageFetchError",
    "firecrawl_service",
    "DriveStorage",
    "drive_storage",
    "PDFExporter",
    "pdf_exporter",
    "export_filename",
    "DocxExporter",
    "docx_exporter",
]
