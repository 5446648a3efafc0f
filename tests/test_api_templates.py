"""Tests for template API endpoints."""

from fastapi.testclient import TestClient

from src.models import TemplateRecord
from src.services.template_defaults import build_default_templates


class TestListTemplates:

    def test_seeds_defaults_when_empty(self, client: TestClient, mock_db):
        mock_db.create_template.side_effect = lambda t: t.model_copy(update={"id": f"tpl_{t.project_type.value}"})

        response = client.get("/api/templates")

        assert response.status_code == 200
        defaults = build_default_templates()
        assert len(response.json()) == len(defaults)
        assert mock_db.create_template.await_count == len(defaults)
        assert all("default" in t["tags"] for t in response.json())

    def test_existing_name_not_reseeded(self, client: TestClient, mock_db):
        first = build_default_templates()[0]
        mock_db.get_template_by_name.side_effect = lambda name: first if name == first.name else None
        mock_db.create_template.side_effect = lambda t: t

        client.get("/api/templates")

        created = [call[0][0].name for call in mock_db.create_template.call_args_list]
        assert first.name not in created

    def test_inactive_hidden(self, client: TestClient, mock_db, sample_template):
        retired = sample_template.model_copy(update={"id": "tpl_2", "name": "Old", "is_active": False})
        mock_db.list_templates.return_value = [sample_template, retired]

        response = client.get("/api/templates")

        assert [t["id"] for t in response.json()] == ["tpl_1"]
        mock_db.create_template.assert_not_called()


class TestTemplateCrud:
    """Tests for create, preview, update and delete."""

    def test_preview_in_order(self, client: TestClient, mock_db, sample_template):
        mock_db.get_template.return_value = sample_template

        response = client.get("/api/templates/tpl_1/preview")

        assert response.status_code == 200
        body = response.json()
        assert body["section_count"] == 2
        assert [s["name"] for s in body["sections"]] == ["Technical Approach", "Budget Estimate"]

    def test_missing(self, client: TestClient):
        assert client.get("/api/templates/nope").status_code == 404

    def test_create_duplicate_name(self, client: TestClient, mock_db, sample_template):
        mock_db.get_template_by_name.return_value = sample_template

        response = client.post("/api/templates", json={"name": "Software Development Proposal"})

        assert response.status_code == 409
        assert response.json()["error"] == "Template with this name already exists"

    def test_create_ignores_client_id(self, client: TestClient, mock_db):
        mock_db.create_template.side_effect = lambda t: t.model_copy(update={"id": "tpl_new"})

        response = client.post("/api/templates", json={"id": "forged", "name": "Custom", "sections": []})

        assert response.status_code == 201
        sent: TemplateRecord = mock_db.create_template.call_args[0][0]
        assert sent.id is None
        assert response.json()["id"] == "tpl_new"

    def test_rename_clash(self, client: TestClient, mock_db, sample_template):
        other = sample_template.model_copy(update={"id": "tpl_2", "name": "Taken"})
        mock_db.get_template.return_value = sample_template
        mock_db.get_template_by_name.return_value = other

        response = client.put("/api/templates/tpl_1", json={"name": "Taken"})

        assert response.status_code == 409

    def test_update_bumps_version(self, client: TestClient, mock_db, sample_template):
        mock_db.get_template.return_value = sample_template
        mock_db.update_template.return_value = sample_template

        client.put("/api/templates/tpl_1", json={"description": "Refreshed"})

        updates = mock_db.update_template.call_args[0][1]
        assert updates == {"description": "Refreshed", "version": 2}

    def test_delete(self, client: TestClient, mock_db, sample_template):
        mock_db.get_template.return_value = sample_template

        response = client.delete("/api/templates/tpl_1")

        assert response.status_code == 200
        mock_db.delete_template.assert_awaited_once_with("tpl_1")
