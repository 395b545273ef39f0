#tests\test_api.py

"""Test the HTTP API with in-memory collaborators."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from deployment_engine.api.container import get_container, get_stages
from deployment_engine.api.main import app
from deployment_engine.container import build_container


@pytest.fixture
def container(settings):
    return build_container(settings, dry_run=True)


@pytest.fixture
def client(container):
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestDeploymentsApi:
    """Test the deployments endpoints."""

    def test_plan(self, client):
        response = client.get("/deployments/plan")

        assert response.status_code == 200
        plan = response.json()
        assert [p["stage_id"] for p in plan] == [
            "image", "storage", "secret", "config", "database", "application", "exposure",
        ]
        assert plan[0]["position"] == 1
        assert plan[4]["depends_on"] == ["storage", "secret"]

    def test_plan_with_missing_stage(self, client, stages):
        app.dependency_overrides[get_stages] = lambda: [s for s in stages if s.stage_id != "secret"]

        response = client.get("/deployments/plan")

        assert response.status_code == 422
        assert "secret" in response.json()["detail"]

    def test_create_deployment(self, client, container):
        response = client.post("/deployments/")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "COMPLETED"
        assert len(body["stage_runs"]) == 7
        assert container.control_plane.get("Ingress", "django-app-ingress") is not None

    def test_get_deployment(self, client):
        run_id = client.post("/deployments/").json()["run_id"]

        response = client.get(f"/deployments/{run_id}")

        assert response.status_code == 200
        assert response.json()["run_id"] == run_id

    def test_get_unknown_deployment(self, client):
        response = client.get(f"/deployments/{uuid4()}")

        assert response.status_code == 404

    def test_failed_deployment_then_resume(self, client, container):
        """A failing stage returns 502 with the run id; resuming completes it."""
        container.control_plane.fail_on("Deployment", "mysql", "quota exceeded")

        response = client.post("/deployments/")

        assert response.status_code == 502
        failure = response.json()
        assert failure["stage_id"] == "database"
        assert "quota exceeded" in failure["cause"]

        stored = client.get(f"/deployments/{failure['run_id']}").json()
        assert stored["status"] == "FAILED"
        assert stored["failed_stage_id"] == "database"

        container.control_plane.clear_failure("Deployment", "mysql")
        response = client.post(f"/deployments/{failure['run_id']}/resume")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "COMPLETED"
        assert body["resumed_from"] == failure["run_id"]
        assert len(container.control_plane.created("Secret")) == 1

    def test_resume_unknown_run(self, client):
        response = client.post(f"/deployments/{uuid4()}/resume")

        assert response.status_code == 404

    def test_resume_with_invalid_stage_set(self, client, stages):
        run_id = client.post("/deployments/").json()["run_id"]
        app.dependency_overrides[get_stages] = lambda: [s for s in stages if s.stage_id != "secret"]

        response = client.post(f"/deployments/{run_id}/resume")

        assert response.status_code == 422
        assert "secret" in response.json()["detail"]
