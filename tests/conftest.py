"""Shared fixtures: an in-memory socket so the channel runs without network."""

import asyncio
import json
from typing import Any, Callable, Optional, Union

import pytest

from sugobot.channel import (
    ChannelListener,
    CmdFrameBuilders,
    ConnectionConfig,
    ConnectionLostError,
    SocketError,
    SugoChannel,
)

GRACE = 0.05
RECONNECT_DELAY = 0.05


class FakeSocket:
    """Stands in for SugoWebSocket."""

    def __init__(self, protocol: Optional[str] = "proto-ok"):
        self.protocol = protocol
        self.sent: list[Union[str, bytes]] = []
        self.pings = 0
        self.closed = False
        self.close_code = 1006
        self.close_reason = ""
        self._inbox: asyncio.Queue = asyncio.Queue()

    def feed(self, payload: Union[str, bytes, dict]) -> None:
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        self._inbox.put_nowait(payload)

    def fail(self, message: str) -> None:
        self._inbox.put_nowait(SocketError(message))

    def drop(self, code: int = 1006, reason: str = "gone") -> None:
        """Simulate the server closing the connection."""
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(None)

    def sent_json(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    def sent_cmds(self) -> list[int]:
        return [frame["cmd"] for frame in self.sent_json()]

    async def send(self, frame: Union[str, bytes]) -> None:
        if self.closed:
            raise ConnectionLostError("Failed to send message: socket closed")
        self.sent.append(frame)

    async def ping(self) -> None:
        self.pings += 1

    async def receive(self) -> Optional[Union[str, bytes]]:
        if self.closed:
            return None
        item = await self._inbox.get()
        if isinstance(item, Exception):
            raise item
        if self.closed:
            return None
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.closed:
            self.closed = True
            self.close_code = code
            self.close_reason = reason
        self._inbox.put_nowait(None)


class FakeConnector:
    """Hands out queued sockets (or raises queued errors), then fresh ones."""

    def __init__(self, *items: Any):
        self._items = list(items)
        self.configs: list[ConnectionConfig] = []
        self.sockets: list[FakeSocket] = []

    async def __call__(self, config: ConnectionConfig) -> FakeSocket:
        self.configs.append(config)
        item = self._items.pop(0) if self._items else FakeSocket()
        if isinstance(item, Exception):
            raise item
        self.sockets.append(item)
        return item

    @property
    def calls(self) -> int:
        return len(self.configs)


class RecordingListener(ChannelListener):
    """Remembers every callback as (name, args)."""

    def __init__(self):
        self.calls: list[tuple] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def events(self, name: str) -> list:
        return [args[0] for n, args in self.calls if n == name]

    async def on_open(self):
        self.calls.append(("open", ()))

    async def on_close(self, code, reason):
        self.calls.append(("close", (code, reason)))

    async def on_error(self, message):
        self.calls.append(("error", (message,)))

    async def on_message(self, payload):
        self.calls.append(("message", (payload,)))

    async def on_hello(self, event):
        self.calls.append(("hello", (event,)))

    async def on_chat(self, event):
        self.calls.append(("chat", (event,)))

    async def on_gift(self, event):
        self.calls.append(("gift", (event,)))

    async def on_pk(self, event):
        self.calls.append(("pk", (event,)))

    async def on_membership(self, event):
        self.calls.append(("membership", (event,)))

    async def on_unknown(self, event):
        self.calls.append(("unknown", (event,)))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not met within timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def connection_config() -> ConnectionConfig:
    return ConnectionConfig(
        url="wss://example.invalid/ws",
        headers={"Origin": "https://www.sugo.com"},
        protocols=["stale-token"],
        room_id="1250911",
        heartbeat_sec=30.0,
    )


@pytest.fixture
def frames() -> CmdFrameBuilders:
    return CmdFrameBuilders(join_cmd=340, send_cmd=301, connect_cmd=100, token="tok", uid="42")


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def make_channel(connection_config, frames, listener):
    """Factory for channels with short timers and a fake connector."""
    channels = []

    def factory(connector: FakeConnector, **kwargs) -> SugoChannel:
        kwargs.setdefault("config", connection_config)
        kwargs.setdefault("frames", frames)
        kwargs.setdefault("listeners", [listener])
        kwargs.setdefault("handshake_grace", GRACE)
        kwargs.setdefault("reconnect_delay", RECONNECT_DELAY)
        channel = SugoChannel(connector=connector, **kwargs)
        channels.append(channel)
        return channel

    return factory
