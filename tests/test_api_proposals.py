"""Tests for proposal API endpoints."""

import json
from unittest.mock import patch, AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.core.llm import LLMError
from src.models import ProposalRecord, SectionRecord

APPROACH = "We will run discovery workshops, then build the portal in two-week sprints."
LIBRARY_ANSWERS = {"Project Team": "team", "References": "references"}


def model_handler(prompt, system):
    """Route classifier prompts and section prompts to canned answers."""
    if prompt.startswith("Classify this RFP proposal section title"):
        for title, answer in LIBRARY_ANSWERS.items():
            if f'"{title}"' in prompt:
                return answer
        return "null"
    if prompt.startswith("You are preparing the outline"):
        return json.dumps({"titles": ["Approach", "Project Team", "Budget"]})
    return json.dumps({"Approach": APPROACH, "Budget": "Fixed fee of $120,000 across three phases."})


@pytest.fixture
def library(mock_db, sample_company, sample_team_members, sample_references):
    mock_db.get_latest_company.return_value = sample_company
    mock_db.get_company.return_value = sample_company
    mock_db.list_team_members.return_value = sample_team_members
    mock_db.list_references.return_value = sample_references


@pytest.fixture
def stored_proposal(mock_db, sample_proposal, sample_rfp_record):
    mock_db.get_proposal.return_value = sample_proposal
    mock_db.get_rfp.return_value = sample_rfp_record
    mock_db.update_proposal.side_effect = lambda pid, updates: sample_proposal.model_copy(update=updates)
    return sample_proposal


class TestGenerate:
    """Tests for POST /api/proposals/generate."""

    def test_required_fields(self, client: TestClient):
        response = client.post("/api/proposals/generate", json={"rfp_id": "rfp_1"})

        assert response.status_code == 400
        assert response.json()["error"] == "rfp_id, template_id and title are required"

    def test_unknown_rfp(self, client: TestClient):
        response = client.post(
            "/api/proposals/generate",
            json={"rfp_id": "nope", "template_id": "ai-template", "title": "Draft"},
        )

        assert response.status_code == 404

    def test_unknown_template(self, client: TestClient, mock_db, sample_rfp_record):
        mock_db.get_rfp.return_value = sample_rfp_record

        response = client.post(
            "/api/proposals/generate",
            json={"rfp_id": "rfp_1", "template_id": "tpl_9", "title": "Draft"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Template not found"

    def test_ai_outline(self, client: TestClient, mock_db, fake_llm, library, sample_rfp_record):
        sample_rfp_record.section_titles = ["Title", "Cover Letter", "Approach", "Project Team", "References"]
        mock_db.get_rfp.return_value = sample_rfp_record
        mock_db.create_proposal.side_effect = lambda p: p.model_copy(update={"id": "prop_9"})
        fake_llm.handler = model_handler

        response = client.post(
            "/api/proposals/generate",
            json={"rfp_id": "rfp_1", "template_id": "ai-template", "title": "Riverside Proposal"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["id"] == "prop_9"
        assert body["company_id"] == "company_1"
        assert body["ai_content_confident"] is True
        assert list(body["sections"]) == ["Title", "Cover Letter", "Approach", "Project Team", "References"]
        assert body["sections"]["Approach"]["type"] == "ai-generated"
        assert body["sections"]["Project Team"]["type"] == "content-library"
        assert body["sections"]["Title"]["content"]["submitted_by"] == "Acme Consulting"

    def test_outline_generated_once_and_cached(self, client: TestClient, mock_db, fake_llm, library, sample_rfp_record):
        mock_db.get_rfp.return_value = sample_rfp_record
        mock_db.create_proposal.side_effect = lambda p: p.model_copy(update={"id": "prop_9"})
        fake_llm.handler = model_handler

        response = client.post(
            "/api/proposals/generate",
            json={"rfp_id": "rfp_1", "template_id": "ai-template", "title": "Riverside Proposal"},
        )

        assert response.status_code == 201
        titles = mock_db.update_rfp.call_args[0][1]["section_titles"]
        assert titles == ["Title", "Cover Letter", "Approach", "Project Team", "Budget", "References"]

    def test_stored_template(self, client: TestClient, mock_db, fake_llm, library, sample_rfp_record, sample_template):
        mock_db.get_rfp.return_value = sample_rfp_record
        mock_db.get_template.return_value = sample_template
        mock_db.create_proposal.side_effect = lambda p: p.model_copy(update={"id": "prop_9"})
        fake_llm.handler = lambda prompt, system: (
            "null" if prompt.startswith("Classify") else
            json.dumps({"Technical Approach": APPROACH, "Budget Estimate": "Fixed fee of $120,000 in total."})
        )

        response = client.post(
            "/api/proposals/generate",
            json={"rfp_id": "rfp_1", "template_id": "tpl_1", "title": "Riverside Proposal"},
        )

        assert list(response.json()["sections"]) == ["Title", "Cover Letter", "Technical Approach", "Budget Estimate"]

    def test_model_failure(self, client: TestClient, mock_db, fake_llm, library, sample_rfp_record):
        sample_rfp_record.section_titles = ["Title", "Cover Letter", "Approach"]
        mock_db.get_rfp.return_value = sample_rfp_record

        def handler(prompt, system):
            if prompt.startswith("Classify"):
                return "null"
            raise LLMError("provider down")

        fake_llm.handler = handler

        response = client.post(
            "/api/proposals/generate",
            json={"rfp_id": "rfp_1", "template_id": "ai-template", "title": "Riverside Proposal"},
        )

        assert response.status_code == 500
        assert "Failed to generate proposal" in response.json()["error"]
        mock_db.create_proposal.assert_not_called()


class TestRegenerate:

    def test_existing_sections_rebuilt(self, client: TestClient, mock_db, fake_llm, library, stored_proposal):
        fake_llm.handler = lambda prompt, system: (
            "team" if '"Key Personnel"' in prompt else
            "null" if prompt.startswith("Classify") else
            json.dumps({"Technical Approach": APPROACH})
        )

        response = client.post("/api/proposals/prop_1/generate-sections")

        assert response.status_code == 200
        updates = mock_db.update_proposal.call_args[0][1]
        assert list(updates["sections"]) == ["Title", "Cover Letter", "Technical Approach", "Key Personnel"]
        assert updates["version"] == 2


class TestEditing:
    """Tests for proposal CRUD."""

    def test_list_by_rfp(self, client: TestClient, mock_db, sample_proposal):
        mock_db.list_proposals.return_value = [sample_proposal]

        response = client.get("/api/proposals?rfp_id=rfp_1")

        assert response.status_code == 200
        assert response.json()[0]["id"] == "prop_1"
        mock_db.list_proposals.assert_awaited_once_with(rfp_id="rfp_1")

    def test_get_missing(self, client: TestClient):
        assert client.get("/api/proposals/nope").status_code == 404

    def test_update_bumps_version(self, client: TestClient, mock_db, stored_proposal):
        response = client.put("/api/proposals/prop_1", json={
            "title": "Renamed",
            "sections": {"Approach": {"content": "Edited by hand.", "type": "custom"}},
        })

        assert response.status_code == 200
        updates = mock_db.update_proposal.call_args[0][1]
        assert updates["title"] == "Renamed"
        assert updates["version"] == 2
        assert isinstance(updates["sections"]["Approach"], SectionRecord)

    def test_section_rows_accepted(self, client: TestClient, mock_db, stored_proposal):
        response = client.put("/api/proposals/prop_1", json={
            "sections": [{"name": "Approach", "content": "Edited by hand.", "type": "custom"}],
        })

        assert response.status_code == 200
        assert list(mock_db.update_proposal.call_args[0][1]["sections"]) == ["Approach"]

    def test_section_row_without_name(self, client: TestClient, mock_db, stored_proposal):
        response = client.put("/api/proposals/prop_1", json={
            "sections": [{"content": "Edited by hand.", "type": "custom"}],
        })

        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request"
        mock_db.update_proposal.assert_not_called()

    def test_empty_update_is_noop(self, client: TestClient, mock_db, stored_proposal):
        response = client.put("/api/proposals/prop_1", json={})

        assert response.status_code == 200
        mock_db.update_proposal.assert_not_called()

    def test_delete(self, client: TestClient, mock_db, stored_proposal):
        response = client.delete("/api/proposals/prop_1")

        assert response.status_code == 200
        mock_db.delete_proposal.assert_awaited_once_with("prop_1")


class TestContentLibrarySelection:
    """Tests for PUT /api/proposals/{id}/content-library/{section_name}."""

    def test_invalid_type(self, client: TestClient, stored_proposal):
        response = client.put(
            "/api/proposals/prop_1/content-library/Key Personnel",
            json={"type": "vendors", "selected_ids": []},
        )

        assert response.status_code == 400

    def test_team_selection(self, client: TestClient, mock_db, library, stored_proposal):
        response = client.put(
            "/api/proposals/prop_1/content-library/Key Personnel",
            json={"type": "team", "selected_ids": ["member_2"]},
        )

        assert response.status_code == 200
        updates = mock_db.update_proposal.call_args[0][1]
        record = updates["sections"]["Key Personnel"]
        assert record.selected_ids == ["member_2"]
        assert "John Smith" in record.content
        assert updates["version"] == 2

    def test_company_ignores_ids(self, client: TestClient, mock_db, library, stored_proposal):
        client.put(
            "/api/proposals/prop_1/content-library/Firm Qualifications",
            json={"type": "company", "selected_ids": ["member_1"]},
        )

        record = mock_db.update_proposal.call_args[0][1]["sections"]["Firm Qualifications"]
        assert record.selected_ids is None
        assert "Years in Business" in record.content


class TestExport:
    """Tests for the export endpoints."""

    def test_docx_download(self, client: TestClient, library, stored_proposal):
        response = client.get("/api/proposals/prop_1/export-docx")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )
        assert 'filename="Riverside_Permit_Portal_Proposal.docx"' in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_export_missing_proposal(self, client: TestClient):
        assert client.get("/api/proposals/nope/export-pdf").status_code == 404

    def test_drive_not_configured(self, client: TestClient, library, stored_proposal):
        with patch("src.api.proposals.drive_storage.is_available", return_value=False):
            response = client.post("/api/proposals/prop_1/export-drive?format=docx")

        assert response.status_code == 503

    def test_drive_upload(self, client: TestClient, library, stored_proposal):
        uploaded = {
            "file_id": "drive_1",
            "name": "Riverside_Permit_Portal_Proposal.docx",
            "web_view_link": "https://drive.example/view",
            "web_content_link": "https://drive.example/download",
        }
        with patch("src.api.proposals.drive_storage.is_available", return_value=True), \
                patch("src.api.proposals.drive_storage.upload_file", new_callable=AsyncMock) as mock_upload:
            mock_upload.return_value = uploaded
            response = client.post("/api/proposals/prop_1/export-drive?format=docx")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["format"] == "docx"
        assert body["file_id"] == "drive_1"
        assert mock_upload.call_args[0][1] == "Riverside_Permit_Portal_Proposal.docx"

    def test_drive_bad_format(self, client: TestClient, stored_proposal):
        assert client.post("/api/proposals/prop_1/export-drive?format=rtf").status_code == 422
