"""Shared fixtures for response-time tests."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


# ── Minimal file payload for app.py tests ──


def _minimal_file_payload() -> dict:
    """Return a minimal payload matching build_file_payload() shape.

    Keys and structure must match the dict returned by
    ``app.build_file_payload`` for a log too small to analyze.
    """
    return {
        "status": "insufficient_data",
        "reason": "too_few_messages",
        "message_count": 12,
        "response_count": 0,
        "participants": ["Alice", "Bob"],
        "generated_at": "2024-01-15T12:00:00",
    }


@pytest.fixture()
def mock_payload():
    """Return the minimal file payload dict."""
    return _minimal_file_payload()


@pytest.fixture()
def client(mock_payload):
    """TestClient for app.py with a mocked message log.

    Patches build_file_payload so no messages.json is needed.
    Resets the module-level cache between tests.
    """
    import app as app_module

    with patch.object(
        app_module, "_cache", {"data": None, "built_at": 0.0}
    ):
        with patch(
            "app.build_file_payload", return_value=mock_payload
        ):
            with TestClient(app_module.app) as tc:
                yield tc
