"""Turn building, adaptive session gap and response-event extraction.

These are the first three stages of the response-time pipeline:

1. ``build_turns`` groups consecutive same-sender messages into turns.
2. ``compute_adaptive_session_gap`` derives where one conversation session
   ends and the next begins from the log's own rhythm.
3. ``extract_response_events`` turns cross-sender turn transitions into
   latency-labeled ``ResponseEvent`` records.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta, tzinfo

from messages import Message
from rt_models import (
    CATEGORY_THRESHOLDS,
    MIN_GAP_SAMPLES,
    SESSION_GAP_SAMPLE_CUTOFF_MS,
    SLOW_CATEGORY,
    EngineConfig,
    ResponseEvent,
    Turn,
)
from rt_stats import local_datetime, percentile

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = EngineConfig()


def build_turns(
    messages: list[Message],
    burst_threshold_ms: int = _DEFAULT_CONFIG.burst_threshold_ms,
) -> list[Turn]:
    """Group consecutive same-sender messages into turns.

    A new turn starts when the sender changes, or when the same sender
    stays silent for at least *burst_threshold_ms* before writing again.

    Args:
        messages: Messages in timestamp order.
        burst_threshold_ms: Same-sender gap that splits a turn.

    Returns:
        Turns in order.  Empty when *messages* is empty.
    """
    if not messages:
        return []

    turns: list[Turn] = []
    first = messages[0]
    sender = first.sender
    start_index = end_index = first.index
    start_ts = end_ts = first.timestamp_ms
    count = 1
    chars = len(first.content)

    for msg in messages[1:]:
        if msg.sender == sender and msg.timestamp_ms - end_ts < burst_threshold_ms:
            end_index = msg.index
            end_ts = msg.timestamp_ms
            count += 1
            chars += len(msg.content)
            continue
        turns.append(Turn(sender, start_index, end_index, start_ts, end_ts, count, chars))
        sender = msg.sender
        start_index = end_index = msg.index
        start_ts = end_ts = msg.timestamp_ms
        count = 1
        chars = len(msg.content)

    turns.append(Turn(sender, start_index, end_index, start_ts, end_ts, count, chars))
    return turns


def compute_adaptive_session_gap(
    messages: list[Message],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> int:
    """Estimate the session-boundary gap from inter-message gaps.

    Takes every positive gap between consecutive messages (any sender)
    shorter than one hour, doubles their 75th percentile and clamps the
    result to ``[min_session_gap_ms, max_session_gap_ms]``.  Logs with too
    few short gaps fall back to ``default_session_gap_ms``.

    Args:
        messages: Messages in timestamp order.
        config: Engine thresholds.

    Returns:
        The adaptive session gap in milliseconds.
    """
    gaps = [
        cur.timestamp_ms - prev.timestamp_ms
        for prev, cur in zip(messages, messages[1:])
        if 0 < cur.timestamp_ms - prev.timestamp_ms < SESSION_GAP_SAMPLE_CUTOFF_MS
    ]
    if len(gaps) < MIN_GAP_SAMPLES:
        logger.debug(
            "Only %d short gaps; using default session gap %d ms",
            len(gaps), config.default_session_gap_ms,
        )
        return config.default_session_gap_ms

    gaps.sort()
    adaptive = percentile(gaps, 75) * 2
    clamped = max(config.min_session_gap_ms, min(config.max_session_gap_ms, adaptive))
    return int(round(clamped))


def is_overnight(
    prev_end_ms: int,
    response_ms: int,
    tz: tzinfo | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> bool:
    """Return True if a reply gap spans the local night window.

    The prior turn must end inside a night window (``night_start_hour`` of
    one day to ``night_end_hour`` of the next), the reply must arrive no
    later than that window's end, and the gap must be at least
    ``min_overnight_gap_ms`` so that quick late-night replies stay ordinary.
    """
    if response_ms - prev_end_ms < config.min_overnight_gap_ms:
        return False

    prev = local_datetime(prev_end_ms, tz)
    if prev.hour >= config.night_start_hour:
        night_day = prev
    elif prev.hour < config.night_end_hour:
        night_day = prev - timedelta(days=1)
    else:
        return False

    night_start = night_day.replace(
        hour=config.night_start_hour, minute=0, second=0, microsecond=0,
    )
    night_end = (night_start + timedelta(days=1)).replace(hour=config.night_end_hour)
    return local_datetime(response_ms, tz) <= night_end


def classify_latency(latency_ms: int) -> str:
    for name, upper in CATEGORY_THRESHOLDS:
        if latency_ms < upper:
            return name
    return SLOW_CATEGORY


def is_session_break(
    prev: Turn,
    curr: Turn,
    session_gap_ms: int,
    tz: tzinfo | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> bool:
    """Return True if *curr* opens a new session after *prev*.

    A gap of at least *session_gap_ms* is a break, except when *curr* is
    another participant's overnight reply.
    """
    gap = curr.start_timestamp_ms - prev.end_timestamp_ms
    if gap < session_gap_ms:
        return False
    if prev.sender != curr.sender and is_overnight(
        prev.end_timestamp_ms, curr.start_timestamp_ms, tz, config,
    ):
        return False
    return True


def extract_response_events(
    turns: list[Turn],
    session_gap_ms: int,
    tz: tzinfo | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> list[ResponseEvent]:
    """Build response events from adjacent cross-sender turn pairs.

    Latency runs from the end of the earlier turn to the start of the reply.
    Non-positive latencies are skipped, as are cross-session transitions
    (latency at or above *session_gap_ms*) that are not overnight replies.

    Args:
        turns: Turns in order, from ``build_turns``.
        session_gap_ms: Adaptive session gap.
        tz: Time zone for hour, weekday, month and overnight rules; system
            local time when None.
        config: Engine thresholds.

    Returns:
        Response events in chronological order.
    """
    events: list[ResponseEvent] = []
    for prev, curr in zip(turns, turns[1:]):
        if prev.sender == curr.sender:
            continue
        latency = curr.start_timestamp_ms - prev.end_timestamp_ms
        if latency <= 0:
            continue
        overnight = is_overnight(prev.end_timestamp_ms, curr.start_timestamp_ms, tz, config)
        if latency >= session_gap_ms and not overnight:
            continue

        sent = local_datetime(curr.start_timestamp_ms, tz)
        events.append(
            ResponseEvent(
                responder=curr.sender,
                initiator=prev.sender,
                latency_ms=latency,
                responded_at_ms=curr.start_timestamp_ms,
                category=classify_latency(latency),
                is_overnight=overnight,
                hour_of_day=sent.hour,
                day_of_week=sent.weekday(),
                month=sent.strftime("%Y-%m"),
                effort_weighted_ms=latency / math.log(1 + max(1, curr.total_chars)),
            )
        )
    return events
