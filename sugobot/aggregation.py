"""Summaries of wire-tap files for offline protocol discovery."""

import json
import logging
from pathlib import Path

import pandas as pd

from sugobot.channel import EventKind
from sugobot.wiretap import TAP_FILES

logger = logging.getLogger(__name__)


class TapAggregator:
    """Aggregates wire-tap JSONL records by file and command code."""

    def __init__(self, tap_dir: Path):
        self.tap_dir = tap_dir

    def summarize(self) -> pd.DataFrame:
        """
        Count records per tap file and command code.

        Returns:
            DataFrame with columns: file, cmd, count, first_ts, last_ts,
            sorted by file then descending count
        """
        columns = ["file", "cmd", "count", "first_ts", "last_ts"]

        records = []
        for filename in sorted(set(TAP_FILES.values())):
            path = self.tap_dir / filename
            if not path.exists():
                continue
            for record in self._load_records(path):
                records.append({
                    "file": filename,
                    "cmd": "none" if record.get("cmd") is None else str(record["cmd"]),
                    "ts": record.get("ts"),
                })

        if not records:
            logger.warning(f"No wire-tap records found in {self.tap_dir}")
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(records)

        summary = (
            df.groupby(["file", "cmd"])
            .agg(count=("ts", "size"), first_ts=("ts", "min"), last_ts=("ts", "max"))
            .reset_index()
            .sort_values(["file", "count"], ascending=[True, False])
            .reset_index(drop=True)
        )
        return summary[columns]

    def unknown_cmds(self) -> list[str]:
        """Command codes seen in the unknown tap, most frequent first."""
        summary = self.summarize()
        unknown = summary[summary["file"] == TAP_FILES[EventKind.UNKNOWN]]
        return unknown["cmd"].tolist()

    def _load_records(self, path: Path) -> list[dict]:
        """Load JSONL records, skipping malformed lines."""
        records = []
        with open(path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping malformed line {line_no} in {path}: {e}")
                    continue
                if isinstance(record, dict):
                    records.append(record)
        return records
