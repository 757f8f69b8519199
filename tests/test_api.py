"""
Tests for the FastAPI endpoints.
"""

import pytest
from typing import Literal
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from pausegraph.config import Settings
from pausegraph.engine.graph import Graph, START, END
from pausegraph.main import create_app
from pausegraph.storage.memory import MemoryCheckpointStore
from pausegraph.workflows.registry import WorkflowRegistry


app = create_app(Settings(CHECKPOINT_BACKEND="memory"))


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

client = TestClient(app)


def session_url(workflow: str, session_id: str, action: str = "") -> str:
    url = f"/workflows/{workflow}/sessions/{session_id}"
    return f"{url}/{action}" if action else url


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "PauseGraph"
        assert "version" in data
        assert "endpoints" in data
        assert sorted(data["demo_workflows"]) == ["flight-refinement", "flight-selection"]

    def test_health(self):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["workflows_count"] == 2
        assert data["checkpoint_backend"] == "memory"


class TestWorkflowEndpoints:
    """Tests for workflow listing."""

    def test_list_workflows(self):
        """Test listing workflows."""
        response = client.get("/workflows")
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 2
        names = [w["name"] for w in data["workflows"]]
        assert "flight-selection" in names
        assert "flight-refinement" in names

    def test_get_workflow(self):
        """Test getting a specific workflow."""
        response = client.get("/workflows/flight-refinement")
        assert response.status_code == 200

        data = response.json()
        assert data["entry_point"] == "initialize"
        assert "check_remaining" in data["nodes"]

    def test_get_nonexistent_workflow(self):
        """Test getting a workflow that doesn't exist."""
        response = client.get("/workflows/nonexistent")
        assert response.status_code == 404


# ============================================================
# Session Endpoints
# ============================================================

class TestSessionEndpoints:
    """Tests for invoke/resume/inspect/delete."""

    def test_invoke_completes(self):
        """Test a query with a single match completes in one call."""
        response = client.post(
            session_url("flight-selection", "osaka", "invoke"),
            json={"initial_state": {"input": "Flights to Osaka"}},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["session_id"] == "osaka"
        assert data["workflow"] == "flight-selection"
        assert data["cursor"] == END
        assert data["interrupt"] is None
        assert "Peach Aviation" in data["state"]["final"]
        assert data["execution_log"][0]["node"] == "retrieve_flights"

    def test_suspend_and_resume(self):
        """Test the full suspend, inspect, resume, delete cycle."""
        response = client.post(
            session_url("flight-selection", "japan", "invoke"),
            json={"initial_state": {"input": "Flights to Japan"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "suspended"
        assert data["cursor"] == "request_user_choice"
        assert len(data["interrupt"]["options"]) == 3

        response = client.get(session_url("flight-selection", "japan"))
        assert response.status_code == 200
        checkpoint = response.json()
        assert checkpoint["status"] == "suspended"
        assert checkpoint["interrupt"]["node"] == "request_user_choice"
        assert checkpoint["interrupt"]["resume_key"] == "user_choice"

        response = client.post(
            session_url("flight-selection", "japan", "invoke"),
            json={"initial_state": {"input": "Flights to Osaka"}},
        )
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "ResumeRequiredError"
        assert detail["session_id"] == "japan"
        assert detail["node"] == "request_user_choice"

        response = client.post(
            session_url("flight-selection", "japan", "resume"), json={"value": "2"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["state"]["selected"]["metadata"]["airport_code"] == "HND"

        response = client.post(
            session_url("flight-selection", "japan", "resume"), json={"value": "2"}
        )
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "NoPendingInterruptError"

        response = client.delete(session_url("flight-selection", "japan"))
        assert response.status_code == 204

        assert client.get(session_url("flight-selection", "japan")).status_code == 404
        assert client.delete(session_url("flight-selection", "japan")).status_code == 404

    def test_resume_unknown_session(self):
        """Test resuming a session that never ran."""
        response = client.post(
            session_url("flight-selection", "never-started", "resume"), json={"value": "1"}
        )
        assert response.status_code == 409

    def test_unknown_workflow(self):
        """Test session calls on a workflow that doesn't exist."""
        response = client.post(
            session_url("nonexistent", "s1", "invoke"), json={"initial_state": {}}
        )
        assert response.status_code == 404

    def test_sessions_are_namespaced(self):
        """Test that the same session id is independent per workflow."""
        client.post(
            session_url("flight-selection", "shared", "invoke"),
            json={"initial_state": {"input": "Flights to Japan"}},
        )
        response = client.post(
            session_url("flight-refinement", "shared", "invoke"),
            json={"initial_state": {"input": "Flights to Osaka"}},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        selection = client.get(session_url("flight-selection", "shared")).json()
        assert selection["status"] == "suspended"

    def test_wrong_answer_type_keeps_session_suspended(self):
        """Test that a non-string answer is refused and the pause kept."""
        client.post(
            session_url("flight-selection", "typed", "invoke"),
            json={"initial_state": {"input": "Flights to Japan"}},
        )
        response = client.post(
            session_url("flight-selection", "typed", "resume"), json={"value": 2}
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "InvalidResumeValueError"
        assert detail["node"] == "request_user_choice"
        assert detail["session_id"] == "typed"

        checkpoint = client.get(session_url("flight-selection", "typed")).json()
        assert checkpoint["status"] == "suspended"

    def test_retried_resume_is_refused(self):
        """Test that resending an answered resume request gets a 409."""
        data = client.post(
            session_url("flight-refinement", "retry", "invoke"),
            json={"initial_state": {"input": "Flights to Japan"}},
        ).json()
        interrupt_id = data["interrupt_id"]
        assert interrupt_id is not None

        body = {"value": "Tokyo", "interrupt_id": interrupt_id}
        response = client.post(session_url("flight-refinement", "retry", "resume"), json=body)
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"
        assert response.json()["interrupt_id"] != interrupt_id

        response = client.post(session_url("flight-refinement", "retry", "resume"), json=body)
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "NoPendingInterruptError"

        checkpoint = client.get(session_url("flight-refinement", "retry")).json()
        assert checkpoint["state"]["refinements"] == ["Tokyo"]
        assert len(checkpoint["state"]["candidates"]) == 2


# ============================================================
# Failure Mapping
# ============================================================

def failing_app():
    """An app with workflows that fail or never stop."""
    def explode(state):
        raise RuntimeError("backend unavailable")

    def spin(state) -> Literal["again", "stop"]:
        return "again"

    broken = Graph(name="broken")
    broken.add_node("explode", explode)
    broken.add_edge(START, "explode")
    broken.add_edge("explode", END)

    looping = Graph(name="looping")
    looping.add_node("tick", lambda s: {"ticks": s.get("ticks", 0) + 1})
    looping.add_edge(START, "tick")
    looping.add_conditional_edge("tick", spin, {"again": "tick", "stop": END})

    registry = WorkflowRegistry(MemoryCheckpointStore(), max_steps=3)
    registry.register(broken)
    registry.register(looping)
    return create_app(Settings(CHECKPOINT_BACKEND="memory"), registry=registry)


class TestFailureMapping:
    """Tests for engine errors surfacing as HTTP errors."""

    def test_node_failure(self):
        """Test that a failing node maps to 500 with the node name."""
        failing = TestClient(failing_app())
        response = failing.post(session_url("broken", "s1", "invoke"), json={})

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "NodeExecutionError"
        assert detail["node"] == "explode"
        assert "backend unavailable" in detail["detail"]

        checkpoint = failing.get(session_url("broken", "s1")).json()
        assert checkpoint["status"] == "running"
        assert checkpoint["cursor"] == "explode"

    def test_step_limit(self):
        """Test that a runaway loop maps to 500."""
        failing = TestClient(failing_app())
        response = failing.post(session_url("looping", "s1", "invoke"), json={})

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "StepLimitExceededError"
        assert detail["node"] == "tick"


# ============================================================
# Async Tests (using httpx)
# ============================================================

@pytest.mark.asyncio
async def test_refinement_over_http():
    """Test refining a search across several HTTP calls."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            session_url("flight-refinement", "async-1", "invoke"),
            json={"initial_state": {"input": "Flights to Japan"}},
        )
        assert response.status_code == 200
        assert response.json()["cursor"] == "request_refinement"

        response = await ac.post(
            session_url("flight-refinement", "async-1", "resume"),
            json={"value": "Tokyo"},
        )
        data = response.json()
        assert data["status"] == "suspended"
        assert len(data["state"]["candidates"]) == 2

        response = await ac.post(
            session_url("flight-refinement", "async-1", "resume"),
            json={"value": "Haneda"},
        )
        data = response.json()
        assert data["status"] == "completed"
        assert data["state"]["refinements"] == ["Tokyo", "Haneda"]
        assert "Japan Airlines" in data["state"]["final"]


@pytest.mark.asyncio
async def test_invoke_validation_error():
    """Test that a malformed body is rejected."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            session_url("flight-selection", "bad", "invoke"),
            json={"initial_state": "not a dict"},
        )

    assert response.status_code == 422
