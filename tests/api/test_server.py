"""
API Tests for the FastAPI front end

Uses FastAPI's TestClient against an app wired with in-memory collaborators.
"""

import pytest
from unittest.mock import AsyncMock, Mock
from fastapi.testclient import TestClient

from autoheal.agents.alert_parser import ParserEngine
from autoheal.agents.human_review import ApprovalCoordinator
from autoheal.agents.orchestrator import MessageOrchestrator, NO_RESULT_TEXT
from autoheal.agents.report_agent import ReportAgent
from autoheal.agents.retrieval_agent import RetrievalEngine
from autoheal.api.server import create_app
from autoheal.config.settings import RetrievalConfig
from autoheal.rules.policies import PolicyRegistry
from autoheal.rules.policy_engine import DecisionEngine
from autoheal.tools.embedding_client import EmbeddingClient
from autoheal.tools.history_index import InMemoryHistoryIndex
from autoheal.tools.mcp_client import ToolConnectionManager
from autoheal.tools.remediation_tools import DISCOVER_TOOL, RECREATE_TOOL, RemediationToolClient
from autoheal.utils.error_handling import EmbeddingServiceError
from tests.conftest import FakeEmbeddingBackend, FakeToolTransport, ok_result


@pytest.fixture
def transport():
    return FakeToolTransport({
        DISCOVER_TOOL: ok_result({"zone": "us-central1-a", "migName": "web-mig", "projectId": "proj-a"}),
        RECREATE_TOOL: ok_result({"success": True, "message": "ok"}),
    })


@pytest.fixture
def index():
    return InMemoryHistoryIndex()


@pytest.fixture
def closer():
    return Mock()


@pytest.fixture
def client(transport, index, closer):
    async def connector():
        return transport

    coordinator = ApprovalCoordinator(RemediationToolClient(ToolConnectionManager(connector), timeout_seconds=1.0))
    retrieval = RetrievalEngine(
        embedder=EmbeddingClient(FakeEmbeddingBackend(vector=[1.0, 0.0]), max_length=10000),
        index=index,
        generator=Mock(generate=AsyncMock(return_value="From history: recreate it.")),
        settings=RetrievalConfig(backend="memory", score_threshold=0.5),
    )
    orchestrator = MessageOrchestrator(
        parser=ParserEngine(PolicyRegistry.load()),
        decision_engine=DecisionEngine(),
        report_agent=ReportAgent(),
        retrieval=retrieval,
        coordinator=coordinator,
    )
    app = create_app(orchestrator, coordinator, closers=[closer])
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["remote_execution"] is True


def test_metrics_exposed(client):
    client.post("/api/analyze", json={"text": "hello there", "channel_id": "C1"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "autoheal_messages_processed_total" in response.text


def test_analyze_alert_returns_approval_controls(client, disk_alert_text):
    response = client.post("/api/analyze", json={"text": disk_alert_text, "channel_id": "C1", "message_ts": "1.2"})

    body = response.json()
    assert response.status_code == 200
    assert body["source"] == "policy_engine"
    assert body["data"]["decision"]["decision"] == "NEEDS_APPROVAL"
    buttons = body["blocks"][-1]["elements"]
    assert buttons[0]["value"] == body["data"]["token"]


def test_analyze_question_without_history(client):
    response = client.post("/api/analyze", json={"text": "who is on call?", "channel_id": "C1"})

    body = response.json()
    assert body["source"] == "none"
    assert body["text"] == NO_RESULT_TEXT
    assert body["blocks"][-1]["elements"][0]["action_id"] == "search_all_channels"


def test_search_all_uses_every_channel(client, index):
    index.upsert("p1", [1.0, 0.0], {"text": "recreated web-1", "source": "C9:1", "channel_id": "C9"})

    scoped = client.post("/api/analyze", json={"text": "web-1?", "channel_id": "C1"}).json()
    unscoped = client.post("/api/search-all", json={"text": "web-1?"}).json()

    assert scoped["source"] == "none"
    assert unscoped["source"] == "rag_history"
    assert unscoped["text"] == "From history: recreate it."


def test_approve_executes(client, transport, disk_alert_text):
    token = client.post("/api/analyze", json={"text": disk_alert_text}).json()["data"]["token"]

    response = client.post("/api/actions/approve", json={"token": token, "actor": "oncall"})

    body = response.json()
    assert response.status_code == 200
    assert body["state"] == "EXECUTED"
    assert body["success"] is True
    assert "Approved and Executed" in body["blocks"][0]["text"]["text"]
    assert len(transport.calls) == 2


def test_reject_does_not_execute(client, transport, disk_alert_text):
    token = client.post("/api/analyze", json={"text": disk_alert_text}).json()["data"]["token"]

    response = client.post("/api/actions/reject", json={"token": token})

    assert response.json()["state"] == "REJECTED"
    assert transport.calls == []


def test_bad_token_is_400(client):
    response = client.post("/api/actions/approve", json={"token": "garbage"})

    assert response.status_code == 400


def test_closers_run_on_shutdown():
    closer = Mock()
    coordinator = ApprovalCoordinator(None)
    orchestrator = Mock()
    app = create_app(orchestrator, coordinator, closers=[closer])

    with TestClient(app):
        closer.assert_not_called()

    closer.assert_called_once()


def test_search_all_accepts_button_value(client, index):
    index.upsert("p1", [1.0, 0.0], {"text": "recreated web-1", "source": "C9:1", "channel_id": "C9"})
    scoped = client.post("/api/analyze", json={"text": "web-1?", "channel_id": "C1", "message_ts": "5.5"}).json()
    value = scoped["blocks"][-1]["elements"][0]["value"]

    response = client.post("/api/search-all", json={"value": value})

    body = response.json()
    assert response.status_code == 200
    assert body["source"] == "rag_history"
    assert body["text"] == "From history: recreate it."


@pytest.mark.parametrize("payload", [{}, {"value": "not json"}, {"value": "{\"searched_channel\": \"C1\"}"}])
def test_search_all_rejects_bad_input(client, payload):
    assert client.post("/api/search-all", json=payload).status_code == 400


def test_history_ingestion_feeds_answers(client, index):
    before = client.post("/api/analyze", json={"text": "how did we fix web-1?", "channel_id": "C1"}).json()

    response = client.post("/api/history/index", json={"messages": [
        {"text": "we recreated web-1 in web-mig", "channel_id": "C1", "message_ts": "1.1", "user": "ana"},
        {"text": "thanks!", "channel_id": "C1", "message_ts": "1.2"},
    ]})
    after = client.post("/api/analyze", json={"text": "how did we fix web-1?", "channel_id": "C1"}).json()

    assert before["source"] == "none"
    assert response.status_code == 200
    assert response.json() == {"messages": 2, "chunks": index.count()}
    assert index.count() == 2
    assert after["source"] == "rag_history"
    assert after["text"] == "From history: recreate it."


def test_history_ingestion_failure_is_503():
    retrieval = RetrievalEngine(
        embedder=EmbeddingClient(FakeEmbeddingBackend(error=EmbeddingServiceError("ollama down")), max_length=10000),
        index=InMemoryHistoryIndex(),
        generator=Mock(generate=AsyncMock(return_value="unused")),
        settings=RetrievalConfig(backend="memory"),
    )
    orchestrator = Mock(retrieval=retrieval)
    app = create_app(orchestrator, ApprovalCoordinator(None))

    with TestClient(app) as test_client:
        response = test_client.post("/api/history/index", json={"messages": [
            {"text": "some history", "channel_id": "C1", "message_ts": "1.1"},
        ]})

    assert response.status_code == 503
