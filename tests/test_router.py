"""Tests for command-code classification and event fan-out."""

import json

import pytest

from sugobot.channel import ChannelListener, EventKind, classify
from sugobot.channel.router import (
    CMD_KINDS,
    FrameRouter,
    is_handshake_accepted,
    is_reconnect_sentinel,
)
from tests.conftest import RecordingListener


@pytest.mark.parametrize(
    "cmd, kind",
    [
        (338, EventKind.HELLO),
        (301, EventKind.CHAT),
        (311, EventKind.CHAT),
        (320, EventKind.GIFT),
        (322, EventKind.GIFT),
        (330, EventKind.PK),
        (341, EventKind.MEMBERSHIP),
        (0, EventKind.UNKNOWN),
        (-1, EventKind.UNKNOWN),
        (99999, EventKind.UNKNOWN),
        (None, EventKind.UNKNOWN),
    ],
)
def test_classify(cmd, kind):
    assert classify(cmd) is kind


def test_classify_is_deterministic():
    for cmd in list(CMD_KINDS) + list(range(250, 400)):
        assert {classify(cmd) for _ in range(5)} == {classify(cmd)}


@pytest.mark.parametrize(
    "text",
    [
        json.dumps({"result": True}),
        json.dumps({"connected": 1}),
        json.dumps({"ok": True}),
        json.dumps({"type": "WELCOME"}),
        json.dumps({"type": "CONNECTED"}),
        json.dumps({"rc": 0, "msg": "OK"}),
        "connected",
        "Welcome!",
        "ok",
    ],
)
def test_handshake_acceptance_markers(text):
    assert is_handshake_accepted(text) is True


@pytest.mark.parametrize(
    "text",
    [
        json.dumps({"rc": 0}),
        json.dumps({"rc": 1, "msg": "OK"}),
        json.dumps({"result": False, "type": "ERROR"}),
        json.dumps([1, 2, 3]),
        "token expired",
        "",
    ],
)
def test_ambiguous_or_negative_responses_are_not_accepted(text):
    assert is_handshake_accepted(text) is False


@pytest.mark.parametrize("text", ["RECONNECT", '"RECONNECT"', "  reconnect \n", '"Reconnect"'])
def test_reconnect_sentinel(text):
    assert is_reconnect_sentinel(text) is True


@pytest.mark.parametrize("text", ["RECONNECTING", '{"cmd": 1}', "please reconnect"])
def test_not_reconnect_sentinel(text):
    assert is_reconnect_sentinel(text) is False


@pytest.mark.asyncio
async def test_route_dispatches_by_kind():
    listener = RecordingListener()
    router = FrameRouter([listener])

    event = await router.route(json.dumps({"cmd": 330, "data": {"team1": 10}, "rc": 0}))

    assert event.kind is EventKind.PK
    assert event.frame.data == {"team1": 10}
    assert event.frame.rc == 0
    assert listener.names() == ["message", "pk"]


@pytest.mark.asyncio
async def test_route_surfaces_unknown_and_cmdless_frames():
    listener = RecordingListener()
    router = FrameRouter([listener])

    await router.route(json.dumps({"cmd": 777, "data": "?"}))
    await router.route(json.dumps({"type": "PING"}))
    await router.route(json.dumps([1, 2]))

    unknown = listener.events("unknown")
    assert [e.frame.cmd for e in unknown] == [777, None, None]
    assert unknown[2].frame.data == [1, 2]


@pytest.mark.asyncio
async def test_route_plain_text_is_passthrough():
    listener = RecordingListener()
    router = FrameRouter([listener])

    assert await router.route("server says hi") is None
    assert listener.calls == [("message", ("server says hi",))]


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others():
    class Broken(ChannelListener):
        async def on_chat(self, event):
            raise ValueError("boom")

    listener = RecordingListener()
    router = FrameRouter([Broken(), listener])

    await router.route(json.dumps({"cmd": 301}))

    assert len(listener.events("chat")) == 1


@pytest.mark.asyncio
async def test_subscribe_is_idempotent_and_unsubscribe_removes():
    listener = RecordingListener()
    router = FrameRouter()
    router.subscribe(listener)
    router.subscribe(listener)

    await router.route(json.dumps({"cmd": 320}))
    assert len(listener.events("gift")) == 1

    router.unsubscribe(listener)
    await router.route(json.dumps({"cmd": 320}))
    assert len(listener.events("gift")) == 1
