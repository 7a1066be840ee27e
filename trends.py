"""Monthly trends, rolling 30-day windows and anomaly detection.

Windowed and monthly RTI compare a person against their *own* lifetime
median, so a value of 2.5 means "2.5x slower than usual for them".
"""

from __future__ import annotations

from bisect import bisect_left
from datetime import tzinfo

from indices import baseline_events, compute_ghosting_index, compute_initiative_ratio
from messages import Message
from rt_models import (
    GHOSTING_SPIKE_DELTA,
    INITIATIVE_COLLAPSE_RATIO,
    INITIATIVE_COLLAPSE_STREAK,
    MIN_ANOMALY_WINDOWS,
    MIN_MONTHLY_RA_SAMPLES,
    MIN_MONTHLY_SAMPLES,
    MIN_WINDOW_PERSON_SAMPLES,
    MIN_WINDOW_RESPONSES,
    SLIDING_STEP_MS,
    SLIDING_WINDOW_MS,
    WITHDRAWAL_STREAK,
    Anomaly,
    EngineConfig,
    MonthlyRa,
    MonthlyRti,
    PerPersonStats,
    ResponseEvent,
    SlidingWindow,
    Turn,
    WindowPersonStats,
)
from rt_stats import median, ratio_of_extremes

_DEFAULT_CONFIG = EngineConfig()


# ---------------------------------------------------------------------------
# Monthly series
# ---------------------------------------------------------------------------

def _group_by_month(events: list[ResponseEvent]) -> dict[str, list[ResponseEvent]]:
    months: dict[str, list[ResponseEvent]] = {}
    for e in events:
        months.setdefault(e.month, []).append(e)
    return dict(sorted(months.items()))


def compute_monthly_rti(
    events: list[ResponseEvent],
    per_person: dict[str, PerPersonStats],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> dict[str, list[MonthlyRti]]:
    """Per-person monthly RTI against each person's lifetime median.

    Months with fewer than three baseline samples for a person are left out
    of that person's series.

    Args:
        events: All response events.
        per_person: Lifetime stats per participant.
        config: Engine thresholds (overnight baseline policy).

    Returns:
        Dict mapping every participant to an ordered list of
        ``MonthlyRti`` points (empty when the person has no baseline).
    """
    by_month = _group_by_month(baseline_events(events, config))
    series: dict[str, list[MonthlyRti]] = {}
    for name, stats in per_person.items():
        points: list[MonthlyRti] = []
        if stats.median_ms > 0:
            for month, month_events in by_month.items():
                lat = [e.latency_ms for e in month_events if e.responder == name]
                if len(lat) < MIN_MONTHLY_SAMPLES:
                    continue
                points.append(MonthlyRti(month, median(lat) / stats.median_ms, len(lat)))
        series[name] = points
    return series


def compute_monthly_ra(
    events: list[ResponseEvent],
    participants: list[str],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> list[MonthlyRa]:
    """Response asymmetry per calendar month.

    A month is included when at least two participants have two or more
    baseline samples in it.
    """
    result: list[MonthlyRa] = []
    for month, month_events in _group_by_month(baseline_events(events, config)).items():
        medians = []
        for name in participants:
            lat = [e.latency_ms for e in month_events if e.responder == name]
            if len(lat) >= MIN_MONTHLY_RA_SAMPLES:
                medians.append(median(lat))
        if len(medians) >= 2:
            result.append(MonthlyRa(month, ratio_of_extremes(medians)))
    return result


# ---------------------------------------------------------------------------
# Sliding windows
# ---------------------------------------------------------------------------

def compute_sliding_windows(
    messages: list[Message],
    events: list[ResponseEvent],
    turns: list[Turn],
    per_person: dict[str, PerPersonStats],
    session_gap_ms: int,
    tz: tzinfo | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> list[SlidingWindow]:
    """Rolling 30-day windows stepped every 7 days.

    Windows start at the first message and are produced only when the log
    spans at least 30 days; shorter logs yield an empty list.  Each window
    independently computes per-person medians and RTI, RA, and the
    Ghosting Index and Initiative Ratio over turns starting inside it.
    Windows holding fewer than five response events are skipped.

    Args:
        messages: Messages in timestamp order.
        events: All response events.
        turns: All turns.
        per_person: Lifetime stats per participant (RTI baselines).
        session_gap_ms: Adaptive session gap.
        tz: Time zone for the overnight exception to session breaks.
        config: Engine thresholds.

    Returns:
        Ordered list of ``SlidingWindow`` records.
    """
    if not messages:
        return []
    first_ts = messages[0].timestamp_ms
    last_ts = messages[-1].timestamp_ms
    if last_ts - first_ts < SLIDING_WINDOW_MS:
        return []

    participants = list(per_person)
    # Events and turns are chronological, so each window is a slice.
    event_times = [e.responded_at_ms for e in events]
    turn_starts = [t.start_timestamp_ms for t in turns]
    windows: list[SlidingWindow] = []
    start = first_ts
    while start + SLIDING_WINDOW_MS <= last_ts + SLIDING_STEP_MS:
        end = start + SLIDING_WINDOW_MS
        in_window = events[bisect_left(event_times, start):bisect_left(event_times, end)]
        if len(in_window) >= MIN_WINDOW_RESPONSES:
            window_turns = turns[bisect_left(turn_starts, start):bisect_left(turn_starts, end)]
            windows.append(
                _build_window(
                    start, end, in_window, window_turns, per_person, participants,
                    session_gap_ms, tz, config,
                )
            )
        start += SLIDING_STEP_MS
    return windows


def _build_window(
    start: int,
    end: int,
    in_window: list[ResponseEvent],
    window_turns: list[Turn],
    per_person: dict[str, PerPersonStats],
    participants: list[str],
    session_gap_ms: int,
    tz: tzinfo | None,
    config: EngineConfig,
) -> SlidingWindow:
    base = baseline_events(in_window, config)
    window_people: dict[str, WindowPersonStats] = {}
    for name in participants:
        lat = [e.latency_ms for e in base if e.responder == name]
        if len(lat) < MIN_WINDOW_PERSON_SAMPLES:
            continue
        med = median(lat)
        lifetime = per_person[name].median_ms
        window_people[name] = WindowPersonStats(
            rti=med / lifetime if lifetime > 0 else 1.0,
            median_ms=med,
            sample_size=len(lat),
        )

    return SlidingWindow(
        window_start_ms=start,
        window_end_ms=end,
        ra=ratio_of_extremes([p.median_ms for p in window_people.values()]),
        per_person=window_people,
        ghosting_index=compute_ghosting_index(
            window_turns, participants, session_gap_ms, tz, config,
        ),
        initiative_ratio=compute_initiative_ratio(
            window_turns, participants, session_gap_ms, tz, config,
        ),
    )


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------

def _anomaly(
    kind: str,
    person: str,
    idx: int,
    windows: list[SlidingWindow],
    magnitude: float,
    description: str,
) -> Anomaly:
    return Anomaly(
        type=kind,
        person=person,
        window_index=idx,
        window_start_ms=windows[idx].window_start_ms,
        window_end_ms=windows[idx].window_end_ms,
        magnitude=max(0.0, min(1.0, magnitude)),
        description=description,
    )


def _slowdowns(
    name: str,
    series: list[tuple[int, float]],
    windows: list[SlidingWindow],
    threshold: float,
) -> list[Anomaly]:
    return [
        _anomaly(
            "sudden_slowdown", name, idx, windows,
            (rti - threshold) / threshold,
            f"{name}: RTI={rti:.1f} ({threshold:g}x slower than usual)",
        )
        for idx, rti in series
        if rti > threshold
    ]


def _withdrawals(
    name: str,
    series: list[tuple[int, float]],
    windows: list[SlidingWindow],
) -> list[Anomaly]:
    found: list[Anomaly] = []
    streak_start = 0
    for i in range(1, len(series) + 1):
        rising = i < len(series) and series[i][1] > series[i - 1][1]
        if rising:
            continue
        length = i - streak_start
        if length >= WITHDRAWAL_STREAK:
            first_rti = series[streak_start][1]
            last_idx, last_rti = series[i - 1]
            found.append(
                _anomaly(
                    "gradual_withdrawal", name, last_idx, windows,
                    (last_rti - first_rti) / 2,
                    f"{name}: RTI rose for {length} windows in a row "
                    f"({first_rti:.1f} -> {last_rti:.1f})",
                )
            )
        streak_start = i
    return found


def _ghosting_spikes(name: str, windows: list[SlidingWindow]) -> list[Anomaly]:
    found: list[Anomaly] = []
    for i in range(1, len(windows)):
        delta = windows[i].ghosting_index[name] - windows[i - 1].ghosting_index[name]
        if delta > GHOSTING_SPIKE_DELTA:
            found.append(
                _anomaly(
                    "ghosting_spike", name, i, windows, delta / 0.5,
                    f"{name}: ghosting index jumped {delta * 100:.0f}pp",
                )
            )
    return found


def _initiative_collapses(name: str, windows: list[SlidingWindow]) -> list[Anomaly]:
    found: list[Anomaly] = []
    streak: list[int] = []
    for i in range(len(windows) + 1):
        if i < len(windows) and windows[i].initiative_ratio[name] < INITIATIVE_COLLAPSE_RATIO:
            streak.append(i)
            continue
        if len(streak) >= INITIATIVE_COLLAPSE_STREAK:
            lowest = min(windows[j].initiative_ratio[name] for j in streak)
            found.append(
                _anomaly(
                    "initiative_collapse", name, streak[-1], windows,
                    (INITIATIVE_COLLAPSE_RATIO - lowest) / INITIATIVE_COLLAPSE_RATIO,
                    f"{name}: initiative ratio under "
                    f"{INITIATIVE_COLLAPSE_RATIO:.0%} for {len(streak)} windows",
                )
            )
        streak = []
    return found


def detect_anomalies(
    windows: list[SlidingWindow],
    participants: list[str],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> list[Anomaly]:
    """Scan sliding windows for sudden shifts in a person's behaviour.

    Kinds reported:

    - ``sudden_slowdown``: windowed RTI above
      ``config.slowdown_rti_threshold`` (2.5 by default).
    - ``gradual_withdrawal``: windowed RTI rising across three or more
      consecutive windows with data; reported once per streak.
    - ``ghosting_spike``: windowed Ghosting Index up more than 20 points
      from the previous window.
    - ``initiative_collapse``: windowed Initiative Ratio below 15% for
      three or more consecutive windows; reported once per streak.

    Fewer than three windows yield no anomalies.

    Args:
        windows: Ordered sliding windows.
        participants: Participant names.
        config: Engine thresholds.

    Returns:
        Anomalies ordered by window index, then by participant order.
    """
    if len(windows) < MIN_ANOMALY_WINDOWS:
        return []

    found: list[Anomaly] = []
    for name in participants:
        series = [
            (i, w.per_person[name].rti)
            for i, w in enumerate(windows)
            if name in w.per_person
        ]
        found.extend(_slowdowns(name, series, windows, config.slowdown_rti_threshold))
        found.extend(_withdrawals(name, series, windows))
        found.extend(_ghosting_spikes(name, windows))
        found.extend(_initiative_collapses(name, windows))

    order = {name: i for i, name in enumerate(participants)}
    return sorted(found, key=lambda a: (a.window_index, order[a.person]))
