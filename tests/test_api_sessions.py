"""
API tests for the session, settings and analytics routes.

Uses FastAPI's TestClient with dependency overrides, so no OpenAI key or
running server is needed.

Usage:
    python -m pytest tests/test_api_sessions.py -v
"""
import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_archive, get_orchestrator, get_settings
from app.core.exceptions import AnalysisError
from app.core.memory_manager import SessionArchive
from app.core.settings import Settings
from app.core.state import RegenerationCooldown
from app.main import app

from test_utils import JOB_POST, FakeClock, make_orchestrator


@pytest.fixture
def archive():
    return SessionArchive()


@pytest.fixture
def wire(archive):
    """Install an orchestrator with queued scores behind the API"""
    def _wire(*scores, settings=None, cooldown=None):
        settings = settings or Settings(regeneration_cooldown_seconds=0)
        orchestrator = make_orchestrator(*scores, settings=settings, cooldown=cooldown, sink=archive)
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        app.dependency_overrides[get_archive] = lambda: archive
        app.dependency_overrides[get_settings] = lambda: settings
        return TestClient(app)

    yield _wire
    app.dependency_overrides.clear()


def open_session(client, **body):
    response = client.post("/sessions", json={"original_input": JOB_POST, **body})
    assert response.status_code == 201, response.text
    return response.json()["session_id"]


class TestSessionFlow:
    """End-to-end review cycle over HTTP"""

    def test_start_session(self, wire):
        client = wire()
        response = client.post("/sessions", json={"original_input": JOB_POST, "baseline_intensity": "light"})

        assert response.status_code == 201
        session = response.json()["session"]
        assert session["state"] == "idle"
        assert session["current_intensity"] == "light"
        assert session["attempt_count"] == 0

    def test_unsafe_then_escalate_to_safe(self, wire):
        client = wire(220, 160)
        session_id = open_session(client, baseline_intensity="medium")

        analyzed = client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."})
        assert analyzed.status_code == 200
        outcome = analyzed.json()["outcome"]
        assert outcome["classification"] == "unsafe"
        assert outcome["state"] == "awaiting_escalation_decision"

        escalated = client.post(f"/sessions/{session_id}/escalate", json={"attempt_count": 0})
        assert escalated.status_code == 200
        outcome = escalated.json()["outcome"]
        assert outcome["classification"] == "safe"
        assert outcome["comparison"] == {"previous": 220, "current": 160}

        state = client.get(f"/sessions/{session_id}").json()
        assert state["state"] == "safe"
        assert state["current_intensity"] == "heavy"
        assert [entry["score"] for entry in state["score_history"]] == [220, 160]

    def test_repeated_text_is_skipped(self, wire):
        client = wire(220)
        session_id = open_session(client)
        client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."})

        repeated = client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."})

        assert repeated.status_code == 200
        assert repeated.json()["skipped"] is True
        assert len(client.get(f"/sessions/{session_id}").json()["score_history"]) == 1

    def test_analysis_unavailable_and_retry(self, wire):
        client = wire(AnalysisError("timeout"), 150)
        session_id = open_session(client)

        first = client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."}).json()
        assert first["outcome"]["state"] == "analysis_unavailable"
        assert first["outcome"]["score"] is None
        assert first["outcome"]["notice"]

        retried = client.post(f"/sessions/{session_id}/retry-analysis")
        assert retried.status_code == 200
        assert retried.json()["outcome"]["classification"] == "safe"


class TestErrors:
    """Orchestrator exceptions become structured JSON errors"""

    def test_unknown_session_is_404(self, wire):
        client = wire()
        response = client.get("/sessions/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_invalid_intensity_is_400(self, wire):
        client = wire()
        response = client.post("/sessions", json={"original_input": JOB_POST, "baseline_intensity": "extreme"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_exhausted_ladder_is_409(self, wire):
        client = wire(220)
        session_id = open_session(client, baseline_intensity="heavy")
        client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."})

        response = client.post(f"/sessions/{session_id}/escalate")

        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_MAXIMAL"

    def test_cooldown_is_429_with_retry_after(self, wire):
        clock = FakeClock()
        client = wire(230, 220, cooldown=RegenerationCooldown(120, clock=clock))
        session_id = open_session(client, baseline_intensity="off")
        client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."})
        assert client.post(f"/sessions/{session_id}/escalate").status_code == 200

        response = client.post(f"/sessions/{session_id}/escalate")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"
        assert response.json()["details"]["retry_after"] == 120


class TestAcceptAndDismiss:
    """Closing sessions over HTTP"""

    def test_accept_requires_override_when_unsafe(self, wire, archive):
        client = wire(220)
        session_id = open_session(client, client_id="user-7")
        client.post(f"/sessions/{session_id}/generation", json={"text": "First draft."})

        refused = client.post(f"/sessions/{session_id}/accept", json={"override": False})
        assert refused.status_code == 400

        accepted = client.post(f"/sessions/{session_id}/accept", json={"override": True})
        assert accepted.status_code == 200
        snapshot = accepted.json()["snapshot"]
        assert snapshot["overridden"] is True
        assert snapshot["final_score"] == 220
        assert len(archive.get_snapshots("user-7")) == 1

        summary = client.get("/analytics/summary", params={"client_id": "user-7"}).json()
        assert summary["total_sessions"] == 1
        assert summary["override_rate"] == 1.0
        assert summary["active_sessions"] == 0

        listed = client.get("/analytics/sessions", params={"client_id": "user-7"}).json()
        assert listed["count"] == 1
        assert listed["sessions"][0]["handle"] == session_id

    def test_dismiss(self, wire):
        client = wire()
        session_id = open_session(client)

        assert client.delete(f"/sessions/{session_id}").status_code == 200
        assert client.delete(f"/sessions/{session_id}").status_code == 200, "Dismiss is idempotent"
        assert client.get(f"/sessions/{session_id}").status_code == 404


class TestSettingsRoute:
    """Tests for GET /settings"""

    def test_settings_view(self, wire):
        client = wire(settings=Settings(detection_threshold=170, max_attempts=2))
        data = client.get("/settings").json()

        assert data["detectionThreshold"] == 170
        assert data["maxAttempts"] == 2
        assert data["thresholdRange"] == [140.0, 220.0]
        assert [level["value"] for level in data["intensityLevels"]] == ["off", "light", "medium", "heavy"]
        assert data["openaiApiKey"] == ""
