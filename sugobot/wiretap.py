"""Append-only JSONL wire tap for protocol discovery and auditing."""

import json
import logging
import time
from pathlib import Path
from typing import Any

from sugobot.channel import ChannelListener, DomainEvent, EventKind

logger = logging.getLogger(__name__)

TAP_FILES = {
    EventKind.UNKNOWN: "wire_unknown.jsonl",
    EventKind.GIFT: "gifts.jsonl",
    EventKind.CHAT: "chat.jsonl",
    EventKind.PK: "pk.jsonl",
}


class WireTap(ChannelListener):
    """
    Records classified frames, one JSON object per line.

    Unknown frames are the raw material for extending the command-code
    table, so they are always kept. Writes are best effort: failures are
    logged and never reach the channel.
    """

    def __init__(self, tap_dir: Path):
        self.tap_dir = Path(tap_dir)
        self.record_count = 0

    def append(self, filename: str, record: dict[str, Any]) -> bool:
        """Append one record; returns False if the write failed."""
        try:
            self.tap_dir.mkdir(parents=True, exist_ok=True)
            with open(self.tap_dir / filename, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"[WIRE TAP] Failed to write {filename}: {e}")
            return False

        self.record_count += 1
        return True

    def tap(self, event: DomainEvent) -> bool:
        filename = TAP_FILES.get(event.kind)
        if filename is None:
            return False

        record = {"ts": int(time.time() * 1000), **event.frame.to_record()}
        return self.append(filename, record)

    async def on_unknown(self, event: DomainEvent) -> None:
        self.tap(event)

    async def on_gift(self, event: DomainEvent) -> None:
        self.tap(event)

    async def on_chat(self, event: DomainEvent) -> None:
        self.tap(event)

    async def on_pk(self, event: DomainEvent) -> None:
        self.tap(event)
