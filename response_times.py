"""Conversation response-time analysis: the one-call entry point.

``analyze_response_times`` runs the whole pipeline over an ordered message
log (turns, adaptive session gap, response events, per-person stats,
indices, monthly trends, sliding windows, anomalies) and returns either a
``ResponseTimeAnalysis`` or an ``InsufficientData`` value.  Callers must
check ``result.sufficient`` before reading metrics.

The engine is pure: no I/O, no shared state, identical input gives
identical output.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import tzinfo
from typing import Any

from indices import (
    compute_ewrt,
    compute_ghosting_index,
    compute_initiative_ratio,
    compute_person_stats,
    compute_ra_trend,
    compute_response_asymmetry,
    compute_rti,
    responders_with_baseline,
)
from messages import Message
from rt_models import (
    REASON_TOO_FEW_MESSAGES,
    REASON_TOO_FEW_RESPONDERS,
    REASON_TOO_FEW_RESPONSES,
    AnalysisResult,
    EngineConfig,
    InsufficientData,
    ResponseTimeAnalysis,
)
from trends import (
    compute_monthly_ra,
    compute_monthly_rti,
    compute_sliding_windows,
    detect_anomalies,
)
from turns import build_turns, compute_adaptive_session_gap, extract_response_events

logger = logging.getLogger(__name__)


def analyze_response_times(
    messages: list[Message],
    participants: list[str],
    config: EngineConfig | None = None,
    tz: tzinfo | None = None,
) -> AnalysisResult:
    """Run the full response-time pipeline on one conversation.

    Args:
        messages: Messages ordered by timestamp.  Senders must come from
            *participants*; the engine does not validate this.
        participants: Two or more participant names.  Every per-person map
            in the result is keyed by exactly these names.
        config: Engine thresholds; defaults to ``EngineConfig()``.
        tz: Time zone used for hour-of-day, weekday, month and overnight
            rules.  System local time when None.

    Returns:
        ``ResponseTimeAnalysis`` when there is enough data, otherwise
        ``InsufficientData`` naming the guard that tripped: fewer than 30
        messages, fewer than 10 response events, or fewer than two
        participants with enough baseline responses.
    """
    config = config or EngineConfig()
    participants = list(participants)

    if len(messages) < config.min_messages:
        return _insufficient(REASON_TOO_FEW_MESSAGES, len(messages), 0)

    session_gap = compute_adaptive_session_gap(messages, config)
    logger.debug("Adaptive session gap: %d ms", session_gap)

    turns = build_turns(messages, config.burst_threshold_ms)
    responses = extract_response_events(turns, session_gap, tz, config)
    if len(responses) < config.min_responses:
        return _insufficient(REASON_TOO_FEW_RESPONSES, len(messages), len(responses))

    per_person = {name: compute_person_stats(responses, name, config) for name in participants}
    if len(responders_with_baseline(per_person, config)) < 2:
        return _insufficient(REASON_TOO_FEW_RESPONDERS, len(messages), len(responses))

    monthly_ra = compute_monthly_ra(responses, participants, config)
    sliding_windows = compute_sliding_windows(
        messages, responses, turns, per_person, session_gap, tz, config,
    )

    return ResponseTimeAnalysis(
        adaptive_session_gap_ms=session_gap,
        turns=turns,
        responses=responses,
        per_person=per_person,
        rti=compute_rti(responses, per_person, config),
        response_asymmetry=compute_response_asymmetry(per_person, config),
        response_asymmetry_trend=compute_ra_trend(monthly_ra, responses, participants, config),
        ghosting_index=compute_ghosting_index(turns, participants, session_gap, tz, config),
        initiative_ratio=compute_initiative_ratio(turns, participants, session_gap, tz, config),
        ewrt=compute_ewrt(responses, participants, config),
        monthly_rti=compute_monthly_rti(responses, per_person, config),
        monthly_ra=monthly_ra,
        sliding_windows=sliding_windows,
        anomalies=detect_anomalies(sliding_windows, participants, config),
    )


def _insufficient(reason: str, message_count: int, response_count: int) -> InsufficientData:
    logger.info(
        "Insufficient data for response-time analysis (%s): %d messages, %d responses",
        reason, message_count, response_count,
    )
    return InsufficientData(
        reason=reason,
        message_count=message_count,
        response_count=response_count,
    )


def build_response_time_payload(result: AnalysisResult) -> dict[str, Any]:
    """Convert an analysis result into a JSON-ready dict.

    Args:
        result: Output of ``analyze_response_times``.

    Returns:
        Dict with a ``status`` of ``"ok"`` plus every metric field, or
        ``"insufficient_data"`` plus ``reason``, ``message_count`` and
        ``response_count``.
    """
    payload = asdict(result)
    payload.pop("sufficient", None)
    status = "ok" if result.sufficient else "insufficient_data"
    return {"status": status, **payload}
