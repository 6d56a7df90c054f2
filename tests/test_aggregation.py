"""Tests for wire-tap summaries and the tap-summary command."""

import json

from click.testing import CliRunner

from sugobot.aggregation import TapAggregator
from sugobot.cli import cli


def _write(path, records):
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record) + "\n")


def test_summarize_counts_per_file_and_cmd(tmp_path):
    _write(tmp_path / "wire_unknown.jsonl", [
        {"ts": 1, "cmd": 777},
        {"ts": 5, "cmd": 777},
        {"ts": 3, "cmd": 778},
        {"ts": 4, "cmd": None},
    ])
    _write(tmp_path / "gifts.jsonl", [{"ts": 2, "cmd": 320}])

    summary = TapAggregator(tmp_path).summarize()

    rows = {(r["file"], r["cmd"]): r for r in summary.to_dict("records")}
    assert rows[("wire_unknown.jsonl", "777")]["count"] == 2
    assert rows[("wire_unknown.jsonl", "777")]["first_ts"] == 1
    assert rows[("wire_unknown.jsonl", "777")]["last_ts"] == 5
    assert rows[("wire_unknown.jsonl", "none")]["count"] == 1
    assert rows[("gifts.jsonl", "320")]["count"] == 1
    assert len(summary) == 4


def test_unknown_cmds_most_frequent_first(tmp_path):
    _write(tmp_path / "wire_unknown.jsonl", [
        {"ts": 1, "cmd": 900},
        {"ts": 2, "cmd": 901},
        {"ts": 3, "cmd": 901},
    ])

    assert TapAggregator(tmp_path).unknown_cmds() == ["901", "900"]


def test_malformed_lines_are_skipped(tmp_path):
    (tmp_path / "pk.jsonl").write_text('{"ts": 1, "cmd": 330}\nnot json\n\n', encoding="utf-8")

    summary = TapAggregator(tmp_path).summarize()

    assert summary.to_dict("records") == [
        {"file": "pk.jsonl", "cmd": "330", "count": 1, "first_ts": 1, "last_ts": 1}
    ]


def test_empty_dir_gives_empty_summary(tmp_path):
    summary = TapAggregator(tmp_path).summarize()

    assert summary.empty
    assert list(summary.columns) == ["file", "cmd", "count", "first_ts", "last_ts"]


def test_tap_summary_command(tmp_path):
    _write(tmp_path / "wire_unknown.jsonl", [{"ts": 1, "cmd": 555}])

    result = CliRunner().invoke(cli, ["tap-summary", "--tap-dir", str(tmp_path)])

    assert result.exit_code == 0
    assert "wire_unknown.jsonl" in result.output
    assert "Unmapped command codes: 555" in result.output


def test_tap_summary_command_without_records(tmp_path):
    result = CliRunner().invoke(cli, ["tap-summary", "--tap-dir", str(tmp_path)])

    assert result.exit_code == 0
    assert "No wire-tap records" in result.output
