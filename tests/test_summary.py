"""Tests for rt_summary.py: the CLI entry point and its output files."""

from __future__ import annotations

import csv
import json
from unittest.mock import patch

import pytest

from helpers import MINUTE, generate_conversation
from response_times import analyze_response_times
from rt_summary import format_duration, main, save_analytics_files

MODULE = "rt_summary"


def _write_log(tmp_path, msgs):
    path = tmp_path / "messages.json"
    path.write_text(
        json.dumps([
            {"sender": m.sender, "timestamp_ms": m.timestamp_ms, "content": m.content}
            for m in msgs
        ]),
        encoding="utf-8",
    )
    return path


class TestMainErrorHandling:
    """Verify main() exits with code 1 on file-related errors."""

    def test_missing_file_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(str(tmp_path / "nonexistent.json"), output_dir=str(tmp_path / "out"))
        assert exc_info.value.code == 1

    def test_invalid_json_exits_1(self):
        err = json.JSONDecodeError("bad value", "", 0)
        with patch(f"{MODULE}.load_messages", side_effect=err):
            with pytest.raises(SystemExit) as exc_info:
                main("corrupt.json")
            assert exc_info.value.code == 1

    def test_malformed_log_exits_1(self, tmp_path):
        path = tmp_path / "messages.json"
        path.write_text(json.dumps([{"sender": "Alice", "timestamp_ms": 1}]), encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(str(path), output_dir=str(tmp_path / "out"))
        assert exc_info.value.code == 1


class TestMainSuccessfulRun:
    def test_writes_result_files(self, tmp_path, capsys):
        path = _write_log(tmp_path, generate_conversation(20, 5 * MINUTE))
        out = tmp_path / "out"
        main(str(path), output_dir=str(out))

        payload = json.loads((out / "response_times.json").read_text())
        assert payload["status"] == "ok"
        for name in ("turns.csv", "responses.csv", "per_person.csv"):
            assert (out / name).exists()

        with open(out / "per_person.csv", newline="") as f:
            rows = list(csv.DictReader(f))
        assert [r["name"] for r in rows] == ["Alice", "Bob"]
        assert "Response Time Summary" in capsys.readouterr().out

    def test_insufficient_log_writes_json_only(self, tmp_path, capsys):
        path = _write_log(tmp_path, generate_conversation(5, 5 * MINUTE))
        out = tmp_path / "out"
        main(str(path), output_dir=str(out))

        payload = json.loads((out / "response_times.json").read_text())
        assert payload["reason"] == "too_few_messages"
        assert not (out / "turns.csv").exists()
        assert "too_few_messages" in capsys.readouterr().out


def test_responses_csv_has_one_row_per_event(tmp_path):
    result = analyze_response_times(generate_conversation(20, 5 * MINUTE), ["Alice", "Bob"])
    save_analytics_files(result, str(tmp_path))
    with open(tmp_path / "responses.csv", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == len(result.responses)
    assert rows[0]["responder"] == "Bob"


@pytest.mark.parametrize(
    "ms, expected",
    [
        (45_000, "45s"),
        (60_000, "1min"),
        (200_000, "3min 20s"),
        (3_600_000, "1h"),
        (7_500_000, "2h 5min"),
    ],
)
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected
