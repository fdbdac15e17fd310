import random

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAnalyzer, FakeGenerationService
from codetempo.api.routes import create_app
from codetempo.config import Settings
from codetempo.services.playback import NullAudioPlayer
from codetempo.services.session import CodeTempoSession

SOURCE = "function add(a, b) {\n  return a + b;\n}\n\nmodule.exports = { add };\n"


@pytest.fixture
def service():
    return FakeGenerationService()


@pytest.fixture
def session(service):
    settings = Settings(
        poll_interval=0, max_polls=3, analysis_debounce=0, diagnostics_debounce=0
    )
    return CodeTempoSession(
        settings,
        service=service,
        player=NullAudioPlayer(),
        analyzer=FakeAnalyzer(),
        rng=random.Random(0),
    )


@pytest.fixture
def client(session):
    with TestClient(create_app(session)) as client:
        yield client


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestEvents:
    def test_document_event(self, client):
        response = client.post(
            "/api/events/document",
            json={"uri": "file:///src/add.js", "language_id": "javascript", "text": SOURCE},
        )
        assert response.status_code == 202
        assert response.json() == {"scheduled": True, "uri": "file:///src/add.js"}

    def test_diagnostics_event(self, client):
        response = client.post("/api/events/diagnostics", json={"errors": 2, "warnings": 1})
        assert response.status_code == 202
        assert response.json() == {"scheduled": True}

    def test_negative_diagnostics_rejected(self, client):
        response = client.post("/api/events/diagnostics", json={"errors": -1})
        assert response.status_code == 422

    def test_successful_build_task_celebrates(self, client, service):
        response = client.post(
            "/api/events/task",
            json={"name": "Build", "command": "npm run build", "exit_code": 0, "source": "npm"},
        )
        assert response.status_code == 200
        assert response.json() == {"accepted": True}
        assert [r.context for r in service.submitted] == ["compilation_success_celebration"]

    def test_terminal_event(self, client, service):
        response = client.post(
            "/api/events/terminal", json={"message": "All tests passed", "type": "info"}
        )
        assert "success:passed" in response.json()["patterns"]
        assert service.submitted == []

    def test_filesystem_event(self, client):
        response = client.post("/api/events/filesystem", json={"path": "dist/bundle.js"})
        assert response.json() == {"forwarded": True}

        response = client.post("/api/events/filesystem", json={"path": "src/index.js"})
        assert response.json() == {"forwarded": False}


class TestControls:
    def test_manual_celebration(self, client, service):
        response = client.post("/api/celebrate", json={"celebration_type": "deployment"})

        assert response.status_code == 200
        body = response.json()
        assert body["celebration_type"] == "deployment"
        assert body["description"] == "Deployment successful!"
        assert body["source"] == "manual"
        assert service.submitted[0].context == "deployment_celebration"

    def test_toggle_disables_everything(self, client, service):
        assert client.post("/api/toggle").json() == {"enabled": False}

        assert client.post("/api/celebrate", json={}).status_code == 409
        response = client.post(
            "/api/events/document",
            json={"uri": "file:///src/add.js", "language_id": "javascript", "text": SOURCE},
        )
        assert response.json()["scheduled"] is False
        assert service.submitted == []

        assert client.post("/api/toggle").json() == {"enabled": True}

    def test_mute_toggle(self, client):
        assert client.post("/api/audio/mute").json() == {"muted": True}
        assert client.post("/api/audio/mute").json() == {"muted": False}
        assert client.post("/api/audio/stop").json() == {"stopped": True}

    def test_status(self, client):
        body = client.get("/api/status").json()
        assert body["enabled"] is True
        assert body["muted"] is False
        assert body["current_job"] is None
        assert body["diagnostics"] == {"summary": None, "trend": "unknown"}
        assert body["pending_documents"] == []
