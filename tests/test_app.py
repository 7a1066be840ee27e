"""Tests for the FastAPI app (app.py) routes and caching behaviour."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from helpers import MINUTE, generate_conversation


def _analyze_body(msgs, participants=("Alice", "Bob")) -> dict:
    return {
        "participants": list(participants),
        "messages": [
            {"sender": m.sender, "timestamp_ms": m.timestamp_ms, "content": m.content}
            for m in msgs
        ],
    }


# ── Health check ──────────────────────────────


class TestHealthCheck:
    @pytest.mark.parametrize("route", ["/health", "/healthz"])
    def test_returns_ok(self, client, route):
        response = client.get(route)
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


# ── File-backed routes ────────────────────────


class TestApiData:
    def test_returns_200(self, client):
        response = client.get("/api/data")
        assert response.status_code == 200
        assert "application/json" in response.headers["content-type"]

    def test_payload_matches_mock(self, client, mock_payload):
        assert client.get("/api/data").json() == mock_payload


class TestApiRefresh:
    def test_response_has_status_refreshed(self, client):
        data = client.get("/api/refresh").json()
        assert data["status"] == "refreshed"
        assert data["generated_at"] == "2024-01-15T12:00:00"


class TestCaching:
    def test_second_request_uses_cache(self, client):
        with patch("app.build_file_payload") as mock_build:
            mock_build.return_value = {"generated_at": "2024-01-15T12:00:00"}
            client.get("/api/data")
            client.get("/api/data")
            assert mock_build.call_count == 1

    def test_refresh_forces_rebuild(self, client):
        with patch("app.build_file_payload") as mock_build:
            mock_build.return_value = {"generated_at": "2024-01-15T12:00:00"}
            client.get("/api/data")
            assert mock_build.call_count == 1

            client.get("/api/refresh")
            assert mock_build.call_count == 2


class TestErrors:
    def test_api_data_503_when_log_missing(self, client):
        with patch(
            "app._get_cached_data",
            side_effect=HTTPException(status_code=503, detail="Message log not found"),
        ):
            assert client.get("/api/data").status_code == 503


class TestBuildFilePayload:
    """Exercise the real loader against files on disk."""

    def test_missing_file_is_503(self, tmp_path):
        import app as app_module

        with pytest.raises(HTTPException) as exc_info:
            app_module.build_file_payload(tmp_path / "missing.json")
        assert exc_info.value.status_code == 503

    def test_invalid_json_is_500(self, tmp_path):
        import app as app_module

        path = tmp_path / "messages.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(HTTPException) as exc_info:
            app_module.build_file_payload(path)
        assert exc_info.value.status_code == 500
        assert "Invalid JSON" in exc_info.value.detail

    def test_malformed_record_is_500(self, tmp_path):
        import app as app_module

        path = tmp_path / "messages.json"
        path.write_text(json.dumps([{"sender": "Alice"}]), encoding="utf-8")
        with pytest.raises(HTTPException) as exc_info:
            app_module.build_file_payload(path)
        assert exc_info.value.status_code == 500

    def test_valid_log(self, tmp_path):
        import app as app_module

        msgs = generate_conversation(20, 5 * MINUTE)
        path = tmp_path / "messages.json"
        path.write_text(json.dumps(_analyze_body(msgs)), encoding="utf-8")

        payload = app_module.build_file_payload(path)
        assert payload["status"] == "ok"
        assert payload["participants"] == ["Alice", "Bob"]
        assert "generated_at" in payload


# ── POST /api/analyze ─────────────────────────


class TestApiAnalyze:
    def test_sufficient_log(self, client):
        msgs = generate_conversation(20, 5 * MINUTE)
        response = client.post("/api/analyze", json=_analyze_body(msgs))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert set(data["rti"]) == {"Alice", "Bob"}
        assert data["response_asymmetry"] == pytest.approx(1.0)

    def test_unsorted_messages_are_sorted(self, client):
        msgs = generate_conversation(20, 5 * MINUTE)
        body = _analyze_body(msgs)
        body["messages"].reverse()
        data = client.post("/api/analyze", json=body).json()
        assert data["status"] == "ok"
        assert data["turns"][0]["sender"] == "Alice"

    def test_short_log_is_insufficient(self, client):
        msgs = generate_conversation(5, 5 * MINUTE)
        data = client.post("/api/analyze", json=_analyze_body(msgs)).json()
        assert data == {
            "status": "insufficient_data",
            "reason": "too_few_messages",
            "message_count": 10,
            "response_count": 0,
        }

    def test_unknown_sender_is_422(self, client):
        msgs = generate_conversation(20, 5 * MINUTE)
        response = client.post("/api/analyze", json=_analyze_body(msgs, ("Alice", "Carol")))
        assert response.status_code == 422
        assert "Bob" in response.json()["detail"]

    def test_single_participant_is_422(self, client):
        response = client.post(
            "/api/analyze",
            json={"participants": ["Alice"], "messages": []},
        )
        assert response.status_code == 422


# ── 404 for unknown routes ───────────────────


class TestNotFound:
    def test_unknown_api_route_returns_404(self, client):
        assert client.get("/api/nonexistent").status_code == 404
