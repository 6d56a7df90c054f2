"""Tests for data models."""

import pytest
from pydantic import ValidationError

from sugobot.channel import ConnectionConfig, CredentialUpdate, WireFrame
from sugobot.models import Config


def test_wire_frame_from_raw():
    frame = WireFrame.from_raw({"cmd": 320, "data": {"gift": "rose"}, "rc": 0, "msg": "OK", "sn": 9})

    assert frame.cmd == 320
    assert frame.data == {"gift": "rose"}
    assert frame.rc == 0
    assert frame.msg == "OK"
    assert frame.sn == 9
    assert frame.to_record() == {"cmd": 320, "data": {"gift": "rose"}, "rc": 0, "msg": "OK", "sn": 9}


def test_wire_frame_ignores_non_numeric_cmd():
    assert WireFrame.from_raw({"cmd": "301"}).cmd is None
    assert WireFrame.from_raw({"cmd": True}).cmd is None
    assert WireFrame.from_raw({}).cmd is None


def test_connection_config_is_frozen():
    config = ConnectionConfig(url="wss://x", room_id="1")

    with pytest.raises(ValidationError):
        config.room_id = "2"


def test_refreshed_replaces_protocols_and_merges_headers():
    config = ConnectionConfig(
        url="wss://x",
        room_id="1",
        headers={"Origin": "o", "Cookie": "old"},
        protocols=["stale"],
    )

    refreshed = config.refreshed(CredentialUpdate(protocols=["fresh"], headers={"Cookie": "new"}))

    assert refreshed is not config
    assert refreshed.protocols == ["fresh"]
    assert refreshed.headers == {"Origin": "o", "Cookie": "new"}
    assert config.protocols == ["stale"]


def test_empty_refresh_keeps_config():
    config = ConnectionConfig(url="wss://x", room_id="1", protocols=["p"])
    assert config.refreshed(CredentialUpdate()) is config


def test_redacted_protocols():
    config = ConnectionConfig(url="wss://x", room_id="1", protocols=["secret-token-value", "v1"])
    assert config.redacted_protocols() == ["secret-t...", "v1"]


def test_config_defaults():
    config = Config()

    assert config.channel.heartbeat_sec == 25.0
    assert config.channel.handshake_grace_sec == 0.5
    assert config.channel.decompress == "auto"
    assert config.frames.connect_cmd is None
    assert config.pacing.min_interval_sec == 20.0
    assert config.tap_dir == "data"


def test_config_rejects_bad_decompress_mode():
    with pytest.raises(ValidationError):
        Config(channel={"decompress": "brotli"})
