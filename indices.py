"""Per-person statistics and the response-time indices.

Indices computed here:

- RTI (Response Time Index): a person's median latency over the
  conversation-wide median.  1.0 means "typical for this conversation".
- RA (Response Asymmetry): slowest participant's median over the fastest's,
  with a diverging / converging / stable trend label.
- Ghosting Index: share of a person's turns that nobody answered before
  the session ended.
- Initiative Ratio: share of sessions a person opened.
- EWRT: recency-weighted latency, an exponentially weighted moving average
  of a person's latencies.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import tzinfo

from rt_models import (
    CATEGORIES,
    MIN_MONTHLY_RA_SAMPLES,
    MIN_TREND_MONTHS,
    TREND_CONVERGING,
    TREND_DIVERGING,
    TREND_STABLE,
    EngineConfig,
    MonthlyRa,
    PerPersonStats,
    ResponseEvent,
    Turn,
)
from rt_stats import ewma, mean, median, percentile, ratio_of_extremes
from turns import is_session_break

_DEFAULT_CONFIG = EngineConfig()


def baseline_events(
    events: list[ResponseEvent],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> list[ResponseEvent]:
    """Return the events that feed latency baselines.

    Overnight replies measure sleep, not responsiveness, so they are left
    out unless ``config.exclude_overnight`` is False.
    """
    if not config.exclude_overnight:
        return list(events)
    return [e for e in events if not e.is_overnight]


def _empty_stats() -> PerPersonStats:
    return PerPersonStats(
        sample_size=0,
        median_ms=0.0,
        mean_ms=0.0,
        fastest_ms=0.0,
        slowest_ms=0.0,
        p25_ms=0.0,
        p75_ms=0.0,
        iqr_ms=0.0,
        per_hour_median=[0.0] * 24,
        per_dow_median=[0.0] * 7,
        overnight_count=0,
        category_distribution={c: 0.0 for c in CATEGORIES},
    )


def _bucket_medians(buckets: list[list[int]], fallback: float) -> list[float]:
    return [median(b) if b else fallback for b in buckets]


def compute_person_stats(
    events: list[ResponseEvent],
    person: str,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> PerPersonStats:
    """Aggregate one responder's latencies.

    Args:
        events: All response events of the conversation.
        person: Responder to aggregate.
        config: Engine thresholds (overnight baseline policy).

    Returns:
        ``PerPersonStats`` over the person's baseline events.  Hour and
        weekday buckets with no samples fall back to the overall median.
        ``category_distribution`` and ``overnight_count`` cover all of the
        person's events, overnight included.  An all-zero record is returned
        when the person has no baseline events.
    """
    own = [e for e in events if e.responder == person]
    base = baseline_events(own, config)
    if not base:
        stats = _empty_stats()
        if not own:
            return stats
        return replace(
            stats,
            overnight_count=sum(1 for e in own if e.is_overnight),
            category_distribution=_category_distribution(own),
        )

    latencies = [e.latency_ms for e in base]
    ordered = sorted(latencies)
    med = median(latencies)
    p25 = percentile(ordered, 25)
    p75 = percentile(ordered, 75)

    per_hour: list[list[int]] = [[] for _ in range(24)]
    per_dow: list[list[int]] = [[] for _ in range(7)]
    for e in base:
        per_hour[e.hour_of_day].append(e.latency_ms)
        per_dow[e.day_of_week].append(e.latency_ms)

    return PerPersonStats(
        sample_size=len(base),
        median_ms=med,
        mean_ms=mean(latencies),
        fastest_ms=float(ordered[0]),
        slowest_ms=float(ordered[-1]),
        p25_ms=p25,
        p75_ms=p75,
        iqr_ms=p75 - p25,
        per_hour_median=_bucket_medians(per_hour, med),
        per_dow_median=_bucket_medians(per_dow, med),
        overnight_count=sum(1 for e in own if e.is_overnight),
        category_distribution=_category_distribution(own),
    )


def _category_distribution(events: list[ResponseEvent]) -> dict[str, float]:
    counts = {c: 0 for c in CATEGORIES}
    for e in events:
        counts[e.category] += 1
    total = len(events)
    return {c: (n / total if total else 0.0) for c, n in counts.items()}


def compute_rti(
    events: list[ResponseEvent],
    per_person: dict[str, PerPersonStats],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> dict[str, float]:
    """Response Time Index: person median / conversation-wide median.

    The global median is taken over every baseline event of the listed
    participants.  People without samples get 0.0.
    """
    global_median = median(
        [e.latency_ms for e in baseline_events(events, config) if e.responder in per_person]
    )
    return {
        name: (
            stats.median_ms / global_median
            if stats.sample_size and global_median > 0
            else 0.0
        )
        for name, stats in per_person.items()
    }


def responders_with_baseline(
    per_person: dict[str, PerPersonStats],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> list[str]:
    return [
        name for name, stats in per_person.items()
        if stats.sample_size >= config.min_baseline_samples
    ]


def compute_response_asymmetry(
    per_person: dict[str, PerPersonStats],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> float:
    """Slowest participant's median over the fastest's (always >= 1.0)."""
    names = responders_with_baseline(per_person, config)
    return ratio_of_extremes([per_person[n].median_ms for n in names])


def _events_ra(events: list[ResponseEvent], participants: list[str]) -> float | None:
    medians = []
    for name in participants:
        lat = [e.latency_ms for e in events if e.responder == name]
        if len(lat) >= MIN_MONTHLY_RA_SAMPLES:
            medians.append(median(lat))
    if len(medians) < 2:
        return None
    return ratio_of_extremes(medians)


def _classify_trend(early: float, late: float, threshold: float) -> str:
    if early <= 0:
        return TREND_STABLE
    change = (late - early) / early
    if change > threshold:
        return TREND_DIVERGING
    if change < -threshold:
        return TREND_CONVERGING
    return TREND_STABLE


def compute_ra_trend(
    monthly_ra: list[MonthlyRa],
    events: list[ResponseEvent],
    participants: list[str],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> str:
    """Classify how response asymmetry moves over the conversation.

    With at least four monthly RA points the mean of the early half of the
    months is compared with the late half.  Shorter conversations split
    their baseline events chronologically in two and compare the RA of each
    half.  A relative change beyond ``config.ra_trend_threshold`` is
    ``diverging`` (growing) or ``converging`` (shrinking).

    Args:
        monthly_ra: Ordered monthly RA series.
        events: All response events.
        participants: Participant names.
        config: Engine thresholds.

    Returns:
        One of ``diverging``, ``converging`` or ``stable``.
    """
    if len(monthly_ra) >= MIN_TREND_MONTHS:
        half = len(monthly_ra) // 2
        early = mean([m.ra for m in monthly_ra[:half]])
        late = mean([m.ra for m in monthly_ra[half:]])
        return _classify_trend(early, late, config.ra_trend_threshold)

    base = baseline_events(events, config)
    half = len(base) // 2
    early_ra = _events_ra(base[:half], participants)
    late_ra = _events_ra(base[half:], participants)
    if early_ra is None or late_ra is None:
        return TREND_STABLE
    return _classify_trend(early_ra, late_ra, config.ra_trend_threshold)


def compute_ghosting_index(
    turns: list[Turn],
    participants: list[str],
    session_gap_ms: int,
    tz: tzinfo | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> dict[str, float]:
    """Share of each person's turns left unanswered within their session.

    A turn counts as answered once any other participant takes a turn
    before the next session break.  A trailing turn at the end of the log
    is unanswered, so a fully reciprocal conversation lands near 0 rather
    than exactly 0.

    Args:
        turns: Turns in order.
        participants: Names to report; every name gets an entry.
        session_gap_ms: Adaptive session gap.
        tz: Time zone for the overnight exception to session breaks.
        config: Engine thresholds.

    Returns:
        Dict mapping each participant to a value in [0, 1] (0.0 when the
        person has no turns).
    """
    totals = {name: 0 for name in participants}
    unanswered = {name: 0 for name in participants}
    # Waiting turns always belong to one sender: a reply answers them all.
    pending_sender: str | None = None
    pending_count = 0

    for i, turn in enumerate(turns):
        if i > 0 and is_session_break(turns[i - 1], turn, session_gap_ms, tz, config):
            if pending_sender in unanswered:
                unanswered[pending_sender] += pending_count
            pending_count = 0
        if turn.sender != pending_sender:
            pending_sender = turn.sender
            pending_count = 0
        pending_count += 1
        if turn.sender in totals:
            totals[turn.sender] += 1

    if pending_sender in unanswered:
        unanswered[pending_sender] += pending_count

    return {
        name: (unanswered[name] / totals[name] if totals[name] else 0.0)
        for name in participants
    }


def compute_initiative_ratio(
    turns: list[Turn],
    participants: list[str],
    session_gap_ms: int,
    tz: tzinfo | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> dict[str, float]:
    """Share of sessions each participant opened.

    The first turn opens the first session; every session break opens
    another.  With two participants the ratios sum to 1.
    """
    opened = {name: 0 for name in participants}
    if not turns:
        return {name: 0.0 for name in participants}

    sessions = 1
    if turns[0].sender in opened:
        opened[turns[0].sender] += 1
    for prev, curr in zip(turns, turns[1:]):
        if is_session_break(prev, curr, session_gap_ms, tz, config):
            sessions += 1
            if curr.sender in opened:
                opened[curr.sender] += 1

    return {name: opened[name] / sessions for name in participants}


def compute_ewrt(
    events: list[ResponseEvent],
    participants: list[str],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> dict[str, float]:
    """Recency-weighted latency per person (EWMA over baseline events)."""
    base = baseline_events(events, config)
    return {
        name: ewma(
            [e.latency_ms for e in base if e.responder == name],
            config.ewrt_half_life,
        )
        for name in participants
    }
