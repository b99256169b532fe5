from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from provisioner.api.dependencies import get_pipeline
from provisioner.core.security import create_session_token
from provisioner.main import app

PREFIX = "/api/v1"


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_session_token("dev@example.com", access_token="gho_test_token")
    return {"Authorization": f"Bearer {token}"}


def test_create_cron_job(client, auth_headers, gateway):
    response = client.post(
        f"{PREFIX}/cron",
        headers=auth_headers,
        json={
            "name": "Daily Backup",
            "schedule": "0 0 * * *",
            "command": "npm run backup",
            "owner": "acme",
            "repo": "widgets",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Cron job created successfully in acme/widgets"
    assert body["details"]["workflowPath"] == ".github/workflows/daily-backup.yml"
    assert body["details"]["workflowUrl"] == (
        "https://github.com/acme/widgets/blob/main/.github/workflows/daily-backup.yml"
    )
    assert "cron: '0 0 * * *'" in gateway.content("acme", "widgets", ".github/workflows/daily-backup.yml")


def test_create_cron_job_without_session(client):
    response = client.post(f"{PREFIX}/cron", json={"name": "x"})
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_session_without_github_token(client):
    token = create_session_token("dev@example.com")
    response = client.get(
        f"{PREFIX}/cron",
        params={"owner": "acme", "repo": "widgets"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "NoCredential"


def test_tampered_session_is_unauthorized(client):
    response = client.get(
        f"{PREFIX}/cron",
        params={"owner": "acme", "repo": "widgets"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_missing_fields_is_bad_request(client, auth_headers):
    response = client.post(f"{PREFIX}/cron", headers=auth_headers, json={"name": "Daily Backup"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "BadRequest"
    assert body["details"]["missing"] == ["schedule", "command", "owner", "repo"]


def test_non_admin_is_forbidden(client, auth_headers, gateway):
    gateway.permission = "write"
    response = client.post(
        f"{PREFIX}/workflows",
        headers=auth_headers,
        json={"templateId": "go", "variables": {}, "repoName": "acme/widgets"},
    )
    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"
    assert "write_file" not in gateway.calls


def test_create_workflow_from_template(client, auth_headers, gateway):
    response = client.post(
        f"{PREFIX}/workflows",
        headers=auth_headers,
        json={
            "templateId": "go",
            "variables": {"goVersion": "1.21", "runTests": True, "buildBinary": False},
            "repoName": "acme/widgets",
        },
    )
    assert response.status_code == 200
    assert response.json()["details"]["workflowPath"] == ".github/workflows/go.yml"
    content = gateway.content("acme", "widgets", ".github/workflows/go.yml")
    assert "go test" in content
    assert "go build" not in content


def test_unknown_template_is_404(client, auth_headers):
    response = client.post(
        f"{PREFIX}/workflows",
        headers=auth_headers,
        json={"templateId": "cobol", "repoName": "acme/widgets"},
    )
    assert response.status_code == 404
    assert response.json()["error"] == "TemplateNotFound"


def test_list_and_delete_cron_jobs(client, auth_headers, gateway):
    empty = client.get(f"{PREFIX}/cron", params={"owner": "acme", "repo": "widgets"}, headers=auth_headers)
    assert empty.status_code == 200
    assert empty.json()["cronJobs"] == []
    assert empty.json()["count"] == 0

    gateway.put("acme", "widgets", ".github/workflows/.gitkeep", "")
    gateway.put("acme", "widgets", ".github/workflows/daily-backup.yml", "name: Daily Backup")
    listed = client.get(f"{PREFIX}/cron", params={"owner": "acme", "repo": "widgets"}, headers=auth_headers)
    assert [job["name"] for job in listed.json()["cronJobs"]] == ["daily-backup"]

    deleted = client.delete(
        f"{PREFIX}/cron",
        params={"owner": "acme", "repo": "widgets", "path": ".github/workflows/daily-backup.yml"},
        headers=auth_headers,
    )
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "message": "Cron job deleted successfully"}
    assert ".github/workflows/daily-backup.yml" not in gateway.paths()


def test_list_workflow_runs(client, auth_headers, gateway, sample_run):
    gateway.runs = [sample_run]
    response = client.get(f"{PREFIX}/repos/acme/widgets/runs", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()[0]["id"] == 42


def test_templates_catalog(client):
    listing = client.get(f"{PREFIX}/templates")
    assert listing.status_code == 200
    assert {item["id"] for item in listing.json()} == {"nodejs-cicd", "java-gradle", "go", "postgres", "monorepo"}

    detail = client.get(f"{PREFIX}/templates/go")
    assert detail.status_code == 200
    assert detail.json()["variables"][0] == {
        "name": "goVersion",
        "type": "string",
        "description": "Go version to use",
        "required": True,
        "default": "1.21",
    }
    assert "${{ if variables.runTests }}" in detail.json()["content"]

    assert client.get(f"{PREFIX}/templates/cobol").status_code == 404


def test_health_without_database(client):
    response = client.get(f"{PREFIX}/health")
    assert response.status_code == 200
    assert response.json()["database"] == {"ok": True, "configured": False}
