"""Tests for the HTTP surface."""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from diagram_ai.models import Confidence, IntentClassification, IntentDiagramType, ValidationResult
from diagram_ai.providers.base import ProviderConnectionError, ProviderError
from diagram_ai.providers.cancellation import RequestCancelled
from diagram_ai.renderers.mermaid_engine import MermaidEngineUnavailable
from diagram_ai.server import app
from sample_replies import INVALID_REVERSE_ARROW, REPLY_ENDPOINT, REPLY_EXPLANATION_ONLY


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_interpret_endpoint_reply(client):
    response = client.post("/api/interpret", json={"content": REPLY_ENDPOINT})
    assert response.status_code == 200
    body = response.json()
    assert body["has_diagram"] is True
    assert body["code"].startswith("flowchart TD")
    assert body["metadata"]["diagram_type"] == "endpoint"
    assert body["metadata"]["http_method"] == "POST"
    assert [p["status"] for p in body["metadata"]["response_payloads"]] == ["200", "400", "401"]
    assert '"email"' in body["metadata"]["request_payloads"][0]["json"]


def test_interpret_question_answer(client):
    body = client.post("/api/interpret", json={"content": REPLY_EXPLANATION_ONLY}).json()
    assert body["has_diagram"] is False
    assert body["code"] == ""
    assert body["explanation"] == REPLY_EXPLANATION_ONLY


def test_sanitize(client):
    response = client.post("/api/sanitize", json={"code": INVALID_REVERSE_ARROW})
    assert response.json() == {"code": "flowchart TD\n B --> A\n B --> C"}


def test_validate_empty_code_skips_engine(client):
    with patch("diagram_ai.tools.syntax_validator.get_mermaid_engine") as engine:
        body = client.post("/api/validate", json={"code": "   "}).json()
    engine.assert_not_called()
    assert body == {"is_valid": False, "error": "Diagram code is empty"}


def test_validate_reports_engine_result(client):
    result = ValidationResult(is_valid=False, error="Parse error on line 2")
    with patch("diagram_ai.server.validate_mermaid_syntax", return_value=result):
        body = client.post("/api/validate", json={"code": "flowchart TD\n A -->"}).json()
    assert body == {"is_valid": False, "error": "Parse error on line 2"}


def test_validate_engine_unavailable(client):
    with patch("diagram_ai.server.validate_mermaid_syntax", side_effect=MermaidEngineUnavailable("no docker")):
        response = client.post("/api/validate", json={"code": "flowchart TD"})
    assert response.status_code == 503


def test_intent_resolves_context_type(client):
    classification = IntentClassification(
        is_question=False,
        diagram_type=IntentDiagramType.CONTEXT,
        confidence=Confidence.HIGH,
        reasoning="Edits the open diagram",
    )
    with patch("diagram_ai.server.classify_intent", return_value=classification) as classify:
        response = client.post(
            "/api/intent",
            json={"message": "add a retry", "current_diagram": "sequenceDiagram", "current_type": "sequence"},
        )
    assert response.status_code == 200
    body = response.json()
    assert body["diagram_type"] == "context"
    assert body["resolved_type"] == "sequence"
    assert body["confidence"] == "high"
    assert classify.call_args.kwargs["current_diagram"] == "sequenceDiagram"


def test_intent_rejects_empty_message(client):
    assert client.post("/api/intent", json={"message": ""}).status_code == 422


@pytest.mark.parametrize(
    "error, status",
    [
        (RequestCancelled(), 499),
        (ProviderConnectionError("timed out"), 503),
        (ProviderError("quota exceeded", code="429"), 502),
    ],
)
def test_intent_provider_failures(client, error, status):
    with patch("diagram_ai.server.classify_intent", side_effect=error):
        response = client.post("/api/intent", json={"message": "hello"})
    assert response.status_code == status
