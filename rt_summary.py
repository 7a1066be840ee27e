"""rt_summary.py

Run the response-time engine on a normalized message log, print a summary
report and write the results to an output directory.

Usage:
    python rt_summary.py messages.json [--participants Alice Bob]
        [--output-dir response_time_analytics] [--utc] [--verbose]
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import timezone
from typing import Any

from messages import load_messages
from response_times import analyze_response_times, build_response_time_payload
from rt_models import AnalysisResult, ResponseTimeAnalysis

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "response_time_analytics"

_TURN_FIELDS = [
    "sender", "start_index", "end_index", "start_timestamp_ms",
    "end_timestamp_ms", "message_count", "total_chars",
]
_RESPONSE_FIELDS = [
    "responder", "initiator", "latency_ms", "responded_at_ms", "category",
    "is_overnight", "hour_of_day", "day_of_week", "month", "effort_weighted_ms",
]


def format_duration(ms: float) -> str:
    """Format milliseconds as a short human-readable duration.

    Args:
        ms: Duration in milliseconds.

    Returns:
        A string such as ``"45s"``, ``"3min 20s"`` or ``"2h 5min"``.
    """
    if ms < 60_000:
        return f"{round(ms / 1000)}s"
    if ms < 3_600_000:
        minutes = int(ms // 60_000)
        seconds = round((ms % 60_000) / 1000)
        return f"{minutes}min {seconds}s" if seconds else f"{minutes}min"
    hours = int(ms // 3_600_000)
    minutes = round((ms % 3_600_000) / 60_000)
    return f"{hours}h {minutes}min" if minutes else f"{hours}h"


def _write_csv(path: str, fieldnames: list[str], rows: list[dict]) -> None:
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def save_analytics_files(
    result: AnalysisResult,
    output_dir: str = DEFAULT_OUTPUT_DIR,
) -> None:
    """Write JSON/CSV result files to *output_dir*.

    Always writes ``response_times.json`` (the full payload).  When the
    result is sufficient it also writes ``turns.csv``, ``responses.csv``
    and ``per_person.csv``.

    Args:
        result: Output of ``analyze_response_times``.
        output_dir: Directory for output files.  Created if it doesn't
            exist.
    """
    os.makedirs(output_dir, exist_ok=True)

    with open(f"{output_dir}/response_times.json", "w") as f:
        json.dump(build_response_time_payload(result), f, indent=2)

    if not isinstance(result, ResponseTimeAnalysis):
        return

    _write_csv(f"{output_dir}/turns.csv", _TURN_FIELDS, [asdict(t) for t in result.turns])
    _write_csv(
        f"{output_dir}/responses.csv", _RESPONSE_FIELDS, [asdict(r) for r in result.responses],
    )
    _write_csv(
        f"{output_dir}/per_person.csv",
        ["name", "sample_size", "median_ms", "mean_ms", "fastest_ms", "slowest_ms",
         "rti", "ewrt", "ghosting_index", "initiative_ratio"],
        [
            {
                "name": name,
                "sample_size": stats.sample_size,
                "median_ms": stats.median_ms,
                "mean_ms": round(stats.mean_ms, 2),
                "fastest_ms": stats.fastest_ms,
                "slowest_ms": stats.slowest_ms,
                "rti": round(result.rti[name], 3),
                "ewrt": round(result.ewrt[name], 2),
                "ghosting_index": round(result.ghosting_index[name], 3),
                "initiative_ratio": round(result.initiative_ratio[name], 3),
            }
            for name, stats in result.per_person.items()
        ],
    )


def print_summary_report(result: AnalysisResult) -> None:
    """Print the CLI summary report to stdout."""
    print(f"\n{'=' * 60}")
    print("Response Time Summary")
    print(f"{'=' * 60}")

    if not isinstance(result, ResponseTimeAnalysis):
        print("Not enough data for a response-time analysis.")
        print(f"Reason: {result.reason}")
        print(f"Messages: {result.message_count:,}  Responses: {result.response_count:,}")
        print(f"{'=' * 60}")
        return

    print(f"Turns: {len(result.turns):,}")
    print(f"Responses: {len(result.responses):,}")
    print(f"Session Gap: {format_duration(result.adaptive_session_gap_ms)}")
    print(
        f"Response Asymmetry: {result.response_asymmetry:.2f} "
        f"({result.response_asymmetry_trend})"
    )

    print(f"\n{'Name':<20} {'Median':<12} {'RTI':<6} {'EWRT':<12} {'Ghost':<7} {'Init':<6}")
    print(f"{'-' * 66}")
    for name, stats in result.per_person.items():
        print(
            f"{name[:20]:<20} {format_duration(stats.median_ms):<12} "
            f"{result.rti[name]:<6.2f} {format_duration(result.ewrt[name]):<12} "
            f"{result.ghosting_index[name]:<7.0%} {result.initiative_ratio[name]:<6.0%}"
        )

    if result.sliding_windows:
        print(f"\nSliding Windows: {len(result.sliding_windows)}")
    if result.anomalies:
        print("\nAnomalies:")
        for anomaly in result.anomalies:
            print(f"  [{anomaly.type}] window {anomaly.window_index}: {anomaly.description}")

    print(f"{'=' * 60}")


def main(
    path: str,
    participants: list[str] | None = None,
    output_dir: str = DEFAULT_OUTPUT_DIR,
    utc: bool = False,
) -> None:
    """Load a log, analyze it, save files and print the report.

    Exits with status 1 when the log is missing, is not valid JSON, or
    holds malformed records.
    """
    try:
        messages, names = load_messages(path, participants)
    except FileNotFoundError:
        print(f"Error: message log not found: {path}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as exc:
        print(f"Error: invalid JSON in {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        print(f"Error: malformed message log {path}: {exc}", file=sys.stderr)
        sys.exit(1)

    logger.info("Loaded %d messages from %s (%s)", len(messages), path, ", ".join(names))
    result = analyze_response_times(messages, names, tz=timezone.utc if utc else None)
    save_analytics_files(result, output_dir)
    print_summary_report(result)
    print(f"\nResults saved to the '{output_dir}' directory.")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze conversation response times.")
    parser.add_argument("path", help="Normalized message log (.json or .csv)")
    parser.add_argument(
        "--participants", nargs="+", default=None,
        help="Participant names (default: inferred from senders)",
    )
    parser.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, help="Output directory")
    parser.add_argument("--utc", action="store_true", help="Use UTC instead of local time")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    main(args.path, args.participants, args.output_dir, args.utc)
