"""Constants, configuration and result records for the response-time engine.

Every record here is a frozen dataclass: stages build them once and never
mutate them afterwards.  The engine returns either a fully-populated
``ResponseTimeAnalysis`` or an ``InsufficientData`` value, never a partial
mix of the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# ---------------------------------------------------------------------------
# Turn building / session gap
# ---------------------------------------------------------------------------
BURST_THRESHOLD_MS = 2 * MINUTE_MS
MIN_SESSION_GAP_MS = 15 * MINUTE_MS
MAX_SESSION_GAP_MS = 2 * HOUR_MS
DEFAULT_SESSION_GAP_MS = 30 * MINUTE_MS
SESSION_GAP_SAMPLE_CUTOFF_MS = HOUR_MS  # gaps at or above this are ignored
MIN_GAP_SAMPLES = 20

# ---------------------------------------------------------------------------
# Overnight window (local time)
# ---------------------------------------------------------------------------
NIGHT_START_HOUR = 23
NIGHT_END_HOUR = 8
MIN_OVERNIGHT_GAP_MS = 4 * HOUR_MS

# ---------------------------------------------------------------------------
# Response categories (upper bounds, exclusive)
# ---------------------------------------------------------------------------
CATEGORY_THRESHOLDS = (
    ("instant", 30_000),
    ("quick", 2 * MINUTE_MS),
    ("normal", 15 * MINUTE_MS),
)
SLOW_CATEGORY = "slow"
CATEGORIES = ("instant", "quick", "normal", "slow")

# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------
MIN_MESSAGES = 30
MIN_RESPONSES = 10
MIN_BASELINE_SAMPLES = 5

# ---------------------------------------------------------------------------
# Indices / trends
# ---------------------------------------------------------------------------
RA_TREND_THRESHOLD = 0.15  # relative change in RA
MIN_TREND_MONTHS = 4
EWRT_HALF_LIFE_RESPONSES = 16.0
MIN_MONTHLY_SAMPLES = 3
MIN_MONTHLY_RA_SAMPLES = 2

SLIDING_WINDOW_MS = 30 * DAY_MS
SLIDING_STEP_MS = 7 * DAY_MS
MIN_WINDOW_RESPONSES = 5
MIN_WINDOW_PERSON_SAMPLES = 3

# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------
MIN_ANOMALY_WINDOWS = 3
SLOWDOWN_RTI_THRESHOLD = 2.5
WITHDRAWAL_STREAK = 3
GHOSTING_SPIKE_DELTA = 0.20
INITIATIVE_COLLAPSE_RATIO = 0.15
INITIATIVE_COLLAPSE_STREAK = 3

TREND_DIVERGING = "diverging"
TREND_CONVERGING = "converging"
TREND_STABLE = "stable"

REASON_TOO_FEW_MESSAGES = "too_few_messages"
REASON_TOO_FEW_RESPONSES = "too_few_responses"
REASON_TOO_FEW_RESPONDERS = "too_few_responders"


@dataclass(frozen=True)
class EngineConfig:
    """Tunable thresholds for one analysis run.

    Defaults are the module constants above.  ``exclude_overnight`` keeps
    overnight replies out of per-person baselines (medians, RTI, EWRT,
    windows) while still reporting them as response events.
    """

    burst_threshold_ms: int = BURST_THRESHOLD_MS
    min_session_gap_ms: int = MIN_SESSION_GAP_MS
    max_session_gap_ms: int = MAX_SESSION_GAP_MS
    default_session_gap_ms: int = DEFAULT_SESSION_GAP_MS
    night_start_hour: int = NIGHT_START_HOUR
    night_end_hour: int = NIGHT_END_HOUR
    min_overnight_gap_ms: int = MIN_OVERNIGHT_GAP_MS
    exclude_overnight: bool = True
    min_messages: int = MIN_MESSAGES
    min_responses: int = MIN_RESPONSES
    min_baseline_samples: int = MIN_BASELINE_SAMPLES
    ra_trend_threshold: float = RA_TREND_THRESHOLD
    ewrt_half_life: float = EWRT_HALF_LIFE_RESPONSES
    slowdown_rti_threshold: float = SLOWDOWN_RTI_THRESHOLD


@dataclass(frozen=True)
class Turn:
    sender: str
    start_index: int
    end_index: int
    start_timestamp_ms: int
    end_timestamp_ms: int
    message_count: int
    total_chars: int


@dataclass(frozen=True)
class ResponseEvent:
    """One cross-sender turn transition.

    ``latency_ms`` is measured from the end of the initiator's turn to the
    start of the responder's turn.  ``hour_of_day`` and ``day_of_week``
    (0 = Monday) describe when the response was sent, in local time.
    """

    responder: str
    initiator: str
    latency_ms: int
    responded_at_ms: int
    category: str
    is_overnight: bool
    hour_of_day: int
    day_of_week: int
    month: str
    effort_weighted_ms: float


@dataclass(frozen=True)
class PerPersonStats:
    sample_size: int
    median_ms: float
    mean_ms: float
    fastest_ms: float
    slowest_ms: float
    p25_ms: float
    p75_ms: float
    iqr_ms: float
    per_hour_median: list[float]
    per_dow_median: list[float]
    overnight_count: int
    category_distribution: dict[str, float]


@dataclass(frozen=True)
class MonthlyRti:
    month: str
    rti: float
    sample_size: int


@dataclass(frozen=True)
class MonthlyRa:
    month: str
    ra: float


@dataclass(frozen=True)
class WindowPersonStats:
    rti: float
    median_ms: float
    sample_size: int


@dataclass(frozen=True)
class SlidingWindow:
    window_start_ms: int
    window_end_ms: int
    ra: float
    per_person: dict[str, WindowPersonStats]
    ghosting_index: dict[str, float]
    initiative_ratio: dict[str, float]


@dataclass(frozen=True)
class Anomaly:
    type: str
    person: str
    window_index: int
    window_start_ms: int
    window_end_ms: int
    magnitude: float
    description: str


@dataclass(frozen=True)
class ResponseTimeAnalysis:
    adaptive_session_gap_ms: int
    turns: list[Turn]
    responses: list[ResponseEvent]
    per_person: dict[str, PerPersonStats]
    rti: dict[str, float]
    response_asymmetry: float
    response_asymmetry_trend: str
    ghosting_index: dict[str, float]
    initiative_ratio: dict[str, float]
    ewrt: dict[str, float]
    monthly_rti: dict[str, list[MonthlyRti]]
    monthly_ra: list[MonthlyRa]
    sliding_windows: list[SlidingWindow]
    anomalies: list[Anomaly]
    sufficient: bool = field(default=True, init=False)


@dataclass(frozen=True)
class InsufficientData:
    """Low-confidence gate: too little data to compute meaningful metrics."""

    reason: str
    message_count: int
    response_count: int = 0
    sufficient: bool = field(default=False, init=False)


AnalysisResult = Union[ResponseTimeAnalysis, InsufficientData]
