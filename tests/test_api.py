from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app import main
from app.main import MAX_MESSAGE_LENGTH, app
from tutor.errors import ProviderError


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["message"] == "Santi.JR Backend Server is running"
    assert body["timestamp"].endswith("Z")


def test_ask_returns_response_and_timestamp(client, stub):
    resp = client.post("/ask", json={"message": "What is photosynthesis?"})
    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"response", "timestamp"}
    assert body["response"] == stub.reply
    assert stub.calls == [("ask", "What is photosynthesis?")]


def test_ask_accepts_message_at_length_limit(client):
    resp = client.post("/ask", json={"message": "a" * MAX_MESSAGE_LENGTH})
    assert resp.status_code == 200


@pytest.mark.parametrize(
    "payload",
    [{}, {"message": ""}, {"message": "   \n\t"}, {"message": 42}, {"message": None}, {"text": "hi"}],
)
def test_ask_rejects_invalid_message(client, stub, payload):
    resp = client.post("/ask", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Invalid request",
        "details": "Message is required and must be a non-empty string",
    }
    assert stub.calls == []


def test_ask_rejects_missing_body(client):
    resp = client.post("/ask")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request"


def test_ask_rejects_too_long_message(client, stub):
    resp = client.post("/ask", json={"message": "a" * (MAX_MESSAGE_LENGTH + 1)})
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Message too long",
        "details": "Message must be less than 10,000 characters",
    }
    assert stub.calls == []


def test_ask_quota_error_maps_to_429(client, stub):
    stub.error = ProviderError("429 Resource has been exhausted (e.g. check quota).")
    resp = client.post("/ask", json={"message": "hello"})
    assert resp.status_code == 429
    assert resp.json() == {"error": "Rate limit exceeded", "details": "Please try again later"}


def test_ask_api_key_error_maps_to_configuration_error(client, stub):
    stub.error = ProviderError("400 API key not valid. Please pass a valid API key.")
    resp = client.post("/ask", json={"message": "hello"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Configuration error"


def test_ask_other_provider_error_is_internal(client, stub):
    stub.error = ProviderError("503 The model is overloaded.")
    resp = client.post("/ask", json={"message": "hello"})
    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Internal server error",
        "details": "Failed to process your request. Please try again.",
    }


def test_ask_is_repeatable_apart_from_timestamp(client):
    first = client.post("/ask", json={"message": "Explain fractions"}).json()
    second = client.post("/ask", json={"message": "Explain fractions"}).json()
    first.pop("timestamp")
    second.pop("timestamp")
    assert first == second


def test_teach_echoes_topic(client, stub):
    resp = client.post("/teach", json={"topic": "gravity"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["topic"] == "gravity"
    assert body["response"]
    assert "timestamp" in body
    assert stub.calls == [("teach", "gravity")]


@pytest.mark.parametrize("payload", [{}, {"topic": ""}, {"topic": "  "}, {"topic": ["math"]}])
def test_teach_rejects_invalid_topic(client, payload):
    resp = client.post("/teach", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Invalid request",
        "details": "Topic is required and must be a non-empty string",
    }


def test_teach_provider_errors_are_not_classified(client, stub):
    stub.error = ProviderError("quota exceeded")
    resp = client.post("/teach", json={"topic": "gravity"})
    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Internal server error",
        "details": "Failed to generate teaching content",
    }


def test_unknown_route_is_404(client):
    resp = client.get("/unknown-route")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found", "details": "The requested endpoint does not exist"}


def test_wrong_method_is_404(client):
    resp = client.get("/ask")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Not found"


def test_unexpected_exception_is_server_error(client, stub):
    stub.error = RuntimeError("boom")
    resp = client.post("/ask", json={"message": "hello"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Server error", "details": "An unexpected error occurred"}
    assert "boom" not in resp.text


def test_missing_api_key_surfaces_as_configuration_error(monkeypatch):
    monkeypatch.setattr(main.settings, "gemini_api_key", None)
    with TestClient(app) as client:
        assert client.app.state.tutor.configured is False
        resp = client.post("/ask", json={"message": "hello"})
        assert resp.status_code == 500
        assert resp.json()["error"] == "Configuration error"

        resp = client.post("/teach", json={"topic": "gravity"})
        assert resp.status_code == 500
        assert resp.json()["error"] == "Internal server error"


def test_cors_headers_present(client):
    resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers.get("access-control-allow-origin") in ("*", "http://localhost:5173")


def test_ask_counts_emoji_as_two_units(client, stub):
    # 5,001 emoji are 10,002 UTF-16 code units
    resp = client.post("/ask", json={"message": "\U0001F600" * 5001})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Message too long"
    assert stub.calls == []

    resp = client.post("/ask", json={"message": "\U0001F600" * 5000})
    assert resp.status_code == 200


@pytest.mark.parametrize("path", ["/ask", "/teach"])
def test_unparseable_json_body_is_server_error(client, stub, path):
    resp = client.post(path, content=b'{"message": ', headers={"content-type": "application/json"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Server error", "details": "An unexpected error occurred"}
    assert stub.calls == []


def test_head_health(client):
    resp = client.head("/health")
    assert resp.status_code == 200
