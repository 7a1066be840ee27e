"""FastAPI service for conversation response-time analytics.

Serves the analysis of a configured message log with a cached payload
(1-hour TTL since the log only changes on a new export), and analyzes
ad-hoc logs posted to ``/api/analyze``.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
import os
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from messages import Message, load_messages
from response_times import analyze_response_times, build_response_time_payload

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
MESSAGES_PATH = Path(
    os.getenv("RT_MESSAGES_PATH", str(Path(__file__).parent / "messages.json"))
)
CACHE_TTL_SECONDS = int(os.getenv("RT_CACHE_TTL_SECONDS", "3600"))  # 1 hour

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Response Time Analytics",
    root_path=os.getenv("RT_ROOT_PATH", ""),
)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------
class MessageIn(BaseModel):
    index: int | None = None
    sender: str = Field(min_length=1)
    timestamp_ms: int
    content: str = ""


class AnalyzeRequest(BaseModel):
    participants: list[str] = Field(min_length=2)
    messages: list[MessageIn]


# ---------------------------------------------------------------------------
# Thread-safe cache
# ---------------------------------------------------------------------------
_cache_lock = threading.Lock()
_cache: dict[str, Any] = {
    "data": None,
    "built_at": 0.0,
}


def build_file_payload(path: Path = MESSAGES_PATH) -> dict[str, Any]:
    """Load the message log at *path* and return the analysis payload.

    Raises:
        HTTPException: 503 if the log is missing, 500 if it holds invalid
            JSON or malformed records.
    """
    try:
        messages, participants = load_messages(path)
    except FileNotFoundError:
        raise HTTPException(status_code=503, detail="Message log not found") from None
    except json.JSONDecodeError:
        raise HTTPException(status_code=500, detail=f"Invalid JSON in {path.name}") from None
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from None

    payload = build_response_time_payload(analyze_response_times(messages, participants))
    payload["participants"] = participants
    payload["generated_at"] = datetime.now().isoformat()
    return payload


def _get_cached_data(force_refresh: bool = False) -> dict[str, Any]:
    """Return the cached payload, rebuilding if stale or forced."""
    now = time.monotonic()
    with _cache_lock:
        if (
            not force_refresh
            and _cache["data"] is not None
            and (now - _cache["built_at"]) < CACHE_TTL_SECONDS
        ):
            return _cache["data"]

    data = build_file_payload(MESSAGES_PATH)

    with _cache_lock:
        _cache["data"] = data
        _cache["built_at"] = time.monotonic()

    return data


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/data")
def api_data():
    """Return the analysis payload for the configured message log."""
    return _get_cached_data()


@app.get("/api/refresh")
def api_refresh():
    """Force a cache rebuild and return the new build time."""
    data = _get_cached_data(force_refresh=True)
    return {
        "status": "refreshed",
        "generated_at": data["generated_at"],
    }


@app.post("/api/analyze")
def api_analyze(request: AnalyzeRequest):
    """Analyze a posted message log.

    Messages are sorted by timestamp before analysis.  Returns 422 when a
    sender is not in the participant list.
    """
    participants = set(request.participants)
    unknown = sorted({m.sender for m in request.messages} - participants)
    if unknown:
        raise HTTPException(
            status_code=422,
            detail=f"Senders not in participants: {', '.join(unknown)}",
        )

    messages = sorted(
        (
            Message(
                index=i if m.index is None else m.index,
                sender=m.sender,
                timestamp_ms=m.timestamp_ms,
                content=m.content,
            )
            for i, m in enumerate(request.messages)
        ),
        key=lambda m: (m.timestamp_ms, m.index),
    )
    result = analyze_response_times(messages, request.participants)
    return build_response_time_payload(result)
