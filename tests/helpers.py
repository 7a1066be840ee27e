"""Shared test helpers for response-time tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import datetime

from messages import Message

SECOND = 1_000
MINUTE = 60_000
HOUR = 3_600_000
DAY = 24 * HOUR


def ts(iso: str) -> int:
    """Epoch milliseconds for a naive local ISO datetime string."""
    return int(datetime.fromisoformat(iso).timestamp() * 1000)


def make_msg(sender: str, timestamp_ms: int, index: int = 0, content: str = "msg") -> Message:
    return Message(index=index, sender=sender, timestamp_ms=timestamp_ms, content=content)


def generate_conversation(
    pair_count: int,
    response_gap_ms: int,
    pair_gap_ms: int = 5 * MINUTE,
    base: str = "2024-06-15T12:00:00",
) -> list[Message]:
    """Build alternating Alice/Bob pairs.

    Bob answers each Alice message after *response_gap_ms*; Alice opens the
    next pair *pair_gap_ms* after Bob's reply.
    """
    msgs: list[Message] = []
    t = ts(base)
    for i in range(pair_count):
        msgs.append(make_msg("Alice", t, len(msgs), f"Message {i * 2}"))
        t += response_gap_ms
        msgs.append(make_msg("Bob", t, len(msgs), f"Reply {i * 2 + 1}"))
        t += pair_gap_ms
    return msgs


def generate_daily_conversation(
    days: int,
    bob_gap_ms: int = 5 * MINUTE,
    alice_gap_ms: int = 30 * MINUTE,
    exchanges_per_day: int = 4,
    base: str = "2024-01-15T12:00:00",
) -> list[Message]:
    """Build *days* days of identical daily exchanges starting at noon."""
    msgs: list[Message] = []
    start = ts(base)
    for day in range(days):
        t = start + day * DAY
        for j in range(exchanges_per_day):
            msgs.append(make_msg("Alice", t, len(msgs), f"msg {day}-{j}"))
            t += bob_gap_ms
            msgs.append(make_msg("Bob", t, len(msgs), f"reply {day}-{j}"))
            t += alice_gap_ms
    return msgs
