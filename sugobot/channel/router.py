"""
Command-code classification and event fan-out.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from sugobot.channel.codec import parse_json
from sugobot.channel.models import DomainEvent, EventKind, WireFrame

logger = logging.getLogger(__name__)

# Discovered empirically from live traffic. Extend as the wire tap shows more.
HELLO_CMDS = frozenset({338})
CHAT_CMDS = frozenset({301, 302, 310, 311})
GIFT_CMDS = frozenset({320, 321, 322})
PK_CMDS = frozenset({330, 331, 332})
MEMBERSHIP_CMDS = frozenset({340, 341})

CMD_KINDS: Dict[int, EventKind] = {
    **{cmd: EventKind.HELLO for cmd in HELLO_CMDS},
    **{cmd: EventKind.CHAT for cmd in CHAT_CMDS},
    **{cmd: EventKind.GIFT for cmd in GIFT_CMDS},
    **{cmd: EventKind.PK for cmd in PK_CMDS},
    **{cmd: EventKind.MEMBERSHIP for cmd in MEMBERSHIP_CMDS},
}

_RECONNECT_SENTINEL = re.compile(r'^"?RECONNECT"?$', re.IGNORECASE)
_WELCOME_TEXT = re.compile(r"\b(connected|welcome|ok)\b", re.IGNORECASE)


def classify(cmd: Optional[int]) -> EventKind:
    """Map a command code to an event kind. Unmapped codes are UNKNOWN."""
    if cmd is None:
        return EventKind.UNKNOWN
    return CMD_KINDS.get(cmd, EventKind.UNKNOWN)


def is_reconnect_sentinel(text: str) -> bool:
    """Check whether the server asked us to drop the session and come back."""
    return bool(_RECONNECT_SENTINEL.match(text.strip()))


def is_handshake_accepted(text: str) -> bool:
    """
    Decide whether a frame acknowledges our CONNECT.

    Args:
        text: Decoded frame text

    Returns:
        True only when a known success marker is present
    """
    data = parse_json(text)
    if data is None:
        return bool(_WELCOME_TEXT.search(text))

    if not isinstance(data, dict):
        return False

    if data.get("result") or data.get("connected") or data.get("ok"):
        return True
    if data.get("type") in ("WELCOME", "CONNECTED"):
        return True
    return data.get("rc") == 0 and data.get("msg") == "OK"


class ChannelListener:
    """
    Observer for channel events.

    Subclass and override the callbacks you care about. All callbacks
    are coroutines, awaited in frame arrival order.
    """

    async def on_open(self) -> None:
        pass

    async def on_close(self, code: int, reason: str) -> None:
        pass

    async def on_error(self, message: str) -> None:
        pass

    async def on_log(self, message: str) -> None:
        pass

    async def on_raw(self, data: bytes) -> None:
        pass

    async def on_message(self, payload: Any) -> None:
        """Every decoded frame: a parsed JSON value, or plain text."""
        pass

    async def on_hello(self, event: DomainEvent) -> None:
        pass

    async def on_chat(self, event: DomainEvent) -> None:
        pass

    async def on_gift(self, event: DomainEvent) -> None:
        pass

    async def on_pk(self, event: DomainEvent) -> None:
        pass

    async def on_membership(self, event: DomainEvent) -> None:
        pass

    async def on_unknown(self, event: DomainEvent) -> None:
        pass


_HANDLERS = {
    EventKind.HELLO: "on_hello",
    EventKind.CHAT: "on_chat",
    EventKind.GIFT: "on_gift",
    EventKind.PK: "on_pk",
    EventKind.MEMBERSHIP: "on_membership",
    EventKind.UNKNOWN: "on_unknown",
}


class FrameRouter:
    """Fans decoded frames and lifecycle events out to listeners."""

    def __init__(self, listeners: Optional[Iterable[ChannelListener]] = None):
        self._listeners: List[ChannelListener] = list(listeners or [])

    def subscribe(self, listener: ChannelListener) -> None:
        """Register a listener."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChannelListener) -> None:
        """Remove a listener if registered."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, handler_name: str, *args: Any) -> None:
        """Call a handler on every listener, isolating their failures."""
        for listener in list(self._listeners):
            handler = getattr(listener, handler_name)
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in listener {handler_name}: {e}", exc_info=True)

    async def route(self, text: str) -> Optional[DomainEvent]:
        """
        Classify decoded text and dispatch it.

        Args:
            text: Decoded frame text

        Returns:
            The dispatched DomainEvent, or None for plain text
        """
        data = parse_json(text)
        if data is None:
            await self.emit("on_message", text)
            return None

        await self.emit("on_message", data)

        if isinstance(data, dict):
            frame = WireFrame.from_raw(data)
        else:
            frame = WireFrame(cmd=None, data=data)
        kind = classify(frame.cmd)
        event = DomainEvent(kind=kind, frame=frame)

        if kind is EventKind.UNKNOWN:
            preview = json.dumps(data, ensure_ascii=False, default=str)[:100]
            await self.emit("on_log", f"Unknown cmd {frame.cmd}: {preview}")
            logger.info(f"Unknown cmd {frame.cmd}: {preview}")

        await self.emit(_HANDLERS[kind], event)
        return event
