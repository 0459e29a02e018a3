"""Tests for API endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import SAMPLE_RFP_TEXT, ai_response
from rfp_workflow.api.app import create_app
from rfp_workflow.api.dependencies import get_vector_store


@pytest.fixture
def client(mock_vector_store):
    """Create test client."""
    app = create_app()
    app.dependency_overrides[get_vector_store] = lambda: mock_vector_store
    return TestClient(app)


@pytest.fixture
def register(client):
    def _register(email: str, tier: int = 9) -> dict[str, str]:
        response = client.post("/api/v1/users", json={"email": email, "name": "Analyst", "tier": tier})
        assert response.status_code == 201
        return {"X-User-Id": response.json()["id"]}

    return _register


@pytest.fixture
def admin(register) -> dict[str, str]:
    return register("admin@example.com")


@pytest.fixture
def document_id(client, admin) -> str:
    response = client.post(
        "/api/v1/rfp/upload",
        headers=admin,
        data={"title": "Citizen Portal"},
        files={"file": ("citizen_portal.txt", SAMPLE_RFP_TEXT.encode(), "text/plain")},
    )
    assert response.status_code == 201
    return response.json()["rfp_document_id"]


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "1.0.0"}


class TestRootEndpoint:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "RFP Workflow API"
        assert "docs" in data


class TestAuthentication:
    """Tests for caller identification."""

    def test_missing_user_header(self, client):
        response = client.get("/api/v1/projects")

        assert response.status_code == 401
        assert response.json()["detail"] == "X-User-Id header is required"

    def test_duplicate_user(self, client, register):
        register("analyst@example.com")

        response = client.post("/api/v1/users", json={"email": "analyst@example.com"})

        assert response.status_code == 409
        assert response.json()["code"] == "USER_EXISTS"

    def test_get_user(self, client, admin):
        response = client.get(f"/api/v1/users/{admin['X-User-Id']}", headers=admin)

        assert response.status_code == 200
        assert response.json()["email"] == "admin@example.com"


class TestProjectEndpoints:
    """Tests for project routes."""

    def test_project_lifecycle(self, client, admin):
        created = client.post("/api/v1/projects", headers=admin, json={"name": "Portal", "priority": "high"})
        assert created.status_code == 201
        project = created.json()
        assert project["role"] == "owner"
        assert project["metadata"]["priority"] == "high"

        listed = client.get("/api/v1/projects", headers=admin).json()
        assert [p["id"] for p in listed] == [project["id"]]

        updated = client.patch(f"/api/v1/projects/{project['id']}", headers=admin, json={"name": "Citizen Portal"})
        assert updated.json()["name"] == "Citizen Portal"

        assert client.delete(f"/api/v1/projects/{project['id']}", headers=admin).status_code == 204
        assert client.get(f"/api/v1/projects/{project['id']}", headers=admin).status_code == 404

    def test_blank_name_rejected(self, client, admin):
        response = client.post("/api/v1/projects", headers=admin, json={"name": "  "})

        assert response.status_code == 400
        assert response.json() == {"detail": "Project name is required", "code": "NAME_REQUIRED"}

    def test_non_member_forbidden(self, client, admin, register):
        project = client.post("/api/v1/projects", headers=admin, json={"name": "Portal"}).json()
        outsider = register("outsider@example.com", tier=2)

        response = client.get(f"/api/v1/projects/{project['id']}", headers=outsider)

        assert response.status_code == 403
        assert response.json()["code"] == "PERMISSION_DENIED"


class TestRfpEndpoints:
    """Tests for upload, analysis and question routes."""

    def test_upload_requires_title(self, client, admin):
        response = client.post(
            "/api/v1/rfp/upload",
            headers=admin,
            files={"file": ("rfp.txt", b"Scope of work", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "TITLE_REQUIRED"

    def test_analyze_and_list_questions(self, client, admin, document_id, mock_provider, sample_analysis):
        mock_provider.send_messages.return_value = ai_response(sample_analysis.model_dump(mode="json"))

        with patch("rfp_workflow.graph.workflow.ProviderFactory.create_for_model", return_value=mock_provider):
            response = client.post("/api/v1/rfp/analyze", headers=admin, json={"rfp_document_id": document_id})

        assert response.status_code == 200
        data = response.json()
        assert data["was_cached"] is False
        assert data["questions_generated"] == 5
        analysis_id = data["analysis"]["id"]
        assert data["analysis"]["status"] == "awaiting_responses"

        questions = client.get(f"/api/v1/rfp/analyses/{analysis_id}/questions", headers=admin)
        assert len(questions.json()) == 5

        keywords = client.get(f"/api/v1/rfp/analyses/{analysis_id}/keywords", headers=admin).json()
        assert keywords["technical_keywords"]

    def test_analyze_unknown_document(self, client, admin):
        response = client.post("/api/v1/rfp/analyze", headers=admin, json={"rfp_document_id": "missing"})

        assert response.status_code == 404
        assert response.json()["code"] == "RFP_DOCUMENT_NOT_FOUND"

    def test_analyze_requires_document_id(self, client, admin):
        assert client.post("/api/v1/rfp/analyze", headers=admin, json={}).status_code == 422

    def test_guidance_missing(self, client, admin):
        response = client.get("/api/v1/rfp/analyses/missing/next-step-guidance", headers=admin)
        assert response.status_code == 404


class TestDocumentEndpoints:
    """Tests for extraction and knowledge-base routes."""

    def test_extract(self, client):
        response = client.post(
            "/api/v1/documents/extract",
            files={"file": ("brief.txt", SAMPLE_RFP_TEXT.encode(), "text/plain")},
        )

        assert response.status_code == 200
        assert "REQ-001" in response.json()["text"]

    def test_get_stats(self, client):
        response = client.get("/api/v1/documents/stats")

        assert response.status_code == 200
        assert response.json()["document_count"] == 2

    def test_search_requires_query(self, client, admin):
        response = client.get("/api/v1/documents/search", headers=admin, params={"query": " "})

        assert response.status_code == 400
        assert response.json()["code"] == "QUERY_REQUIRED"


class TestAdminEndpoints:
    def test_non_admin_cannot_register_models(self, client, register):
        guest = register("guest@example.com", tier=0)

        response = client.post(
            "/api/v1/admin/ai-models",
            headers=guest,
            json={"provider": "openai", "model_id": "gpt-4.1", "name": "GPT-4.1"},
        )

        assert response.status_code == 403
        assert response.json()["code"] == "ADMIN_REQUIRED"

    def test_admin_registers_model(self, client, admin):
        response = client.post(
            "/api/v1/admin/ai-models",
            headers=admin,
            json={"provider": "openai", "model_id": "gpt-4.1", "name": "GPT-4.1"},
        )

        assert response.status_code == 201
        models = client.get("/api/v1/ai/models", headers=admin).json()
        assert [m["model_id"] for m in models] == ["gpt-4.1"]
