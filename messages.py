"""Normalized message log: the record type and loaders.

The engine only ever sees ``Message`` records.  Format-specific importers
(WhatsApp, Messenger, Discord, ...) live elsewhere and are expected to write
the normalized log this module reads: either a JSON document or a CSV file
with ``sender``, ``timestamp_ms`` and ``content`` columns.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

_TIMESTAMP_KEYS = ("timestamp_ms", "timestampMs", "timestamp")


@dataclass(frozen=True)
class Message:
    index: int
    sender: str
    timestamp_ms: int
    content: str = ""


def _record_timestamp(record: dict[str, Any], position: int) -> int:
    for key in _TIMESTAMP_KEYS:
        if key in record and record[key] is not None:
            try:
                return int(record[key])
            except (TypeError, ValueError):
                raise ValueError(
                    f"Message {position}: timestamp {record[key]!r} is not numeric"
                ) from None
    raise ValueError(f"Message {position}: missing timestamp")


def message_from_record(record: dict[str, Any], position: int) -> Message:
    """Build a ``Message`` from one raw log record.

    Args:
        record: Dict with ``sender``, a timestamp under ``timestamp_ms``,
            ``timestampMs`` or ``timestamp`` (epoch milliseconds), and
            optionally ``content`` and ``index``.
        position: Position of the record in the log, used as the index
            when the record has none and in error messages.

    Returns:
        The parsed ``Message``.

    Raises:
        ValueError: If the record is not a dict, has no sender, or has a
            missing or non-numeric timestamp.
    """
    if not isinstance(record, dict):
        raise ValueError(f"Message {position}: expected an object, got {type(record).__name__}")
    sender = record.get("sender")
    if not isinstance(sender, str) or not sender:
        raise ValueError(f"Message {position}: missing sender")
    content = record.get("content")
    index = record.get("index")
    return Message(
        index=position if index is None else int(index),
        sender=sender,
        timestamp_ms=_record_timestamp(record, position),
        content=content if isinstance(content, str) else "",
    )


def infer_participants(messages: list[Message]) -> list[str]:
    """Return distinct senders in order of first appearance."""
    seen: dict[str, None] = {}
    for msg in messages:
        seen.setdefault(msg.sender, None)
    return list(seen)


def _ensure_ordered(messages: list[Message]) -> list[Message]:
    ordered = sorted(messages, key=lambda m: (m.timestamp_ms, m.index))
    if ordered != messages:
        logger.warning(
            "Message log was not in timestamp order; reordered %d messages.",
            len(messages),
        )
    return ordered


def _load_json_records(path: Path) -> tuple[list[Any], list[str] | None]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict) and isinstance(data.get("messages"), list):
        participants = data.get("participants")
        if participants is not None and not (
            isinstance(participants, list) and all(isinstance(p, str) for p in participants)
        ):
            raise ValueError("'participants' must be a list of names")
        return data["messages"], participants
    raise ValueError("Expected a list of messages or an object with a 'messages' list")


def _load_csv_records(path: Path) -> list[dict[str, Any]]:
    df = pd.read_csv(path, dtype={"sender": str, "content": str}, keep_default_na=False)
    missing = {"sender", "timestamp_ms"} - set(df.columns)
    if missing:
        raise ValueError(f"CSV log is missing columns: {', '.join(sorted(missing))}")
    return df.to_dict(orient="records")


def load_messages(
    path: str | Path,
    participants: list[str] | None = None,
) -> tuple[list[Message], list[str]]:
    """Load a normalized message log from JSON or CSV.

    JSON may be a plain list of message objects, or an object with a
    ``messages`` list and an optional ``participants`` list.  CSV files
    (``.csv`` suffix) are read with pandas.

    Args:
        path: Filesystem path to the log.
        participants: Explicit participant names.  Overrides any list in
            the file; when neither is given, senders are inferred in order
            of first appearance.

    Returns:
        A 2-tuple of (messages sorted by timestamp, participant names).

    Raises:
        FileNotFoundError: If *path* does not exist.
        json.JSONDecodeError: If a JSON log is not valid JSON.
        ValueError: If records are malformed or fewer than two
            participants can be determined.
    """
    path = Path(path)
    if path.suffix.lower() == ".csv":
        records: list[Any] = _load_csv_records(path)
        file_participants = None
    else:
        records, file_participants = _load_json_records(path)

    messages = _ensure_ordered(
        [message_from_record(rec, i) for i, rec in enumerate(records)]
    )
    names = participants or file_participants or infer_participants(messages)
    if len(names) < 2:
        raise ValueError(f"Need at least 2 participants, found {len(names)}")
    return messages, list(names)
