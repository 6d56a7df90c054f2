"""Configuration models for sugobot."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ChannelSettings(BaseModel):
    """Where and how to reach the room's real-time channel."""

    url: str = "wss://activity-ws-rpc.voicemaker.media/ws/activity"
    headers: dict[str, str] = Field(default_factory=dict)
    # Explicit subprotocols win; otherwise they are built from token/uid/device
    protocols: list[str] = Field(default_factory=list)
    room_id: str = ""
    token: Optional[str] = None
    uid: Optional[str] = None
    device: dict[str, Any] = Field(default_factory=dict)

    heartbeat_sec: float = 25.0
    decompress: Literal["auto", "none"] = "auto"
    handshake_grace_sec: float = 0.5
    reconnect_delay_sec: float = 1.5
    max_reconnect_attempts: int = 0  # 0 = retry forever

    # Credential refresh endpoint (optional)
    refresh_url: Optional[str] = None


class FrameSettings(BaseModel):
    """Command codes for the default cmd-coded JSON frames."""

    connect_cmd: Optional[int] = None  # None = service needs no CONNECT frame
    join_cmd: int = 340
    send_cmd: int = 301


class PacingSettings(BaseModel):
    """How often the bot may talk."""

    min_interval_sec: float = 20.0
    gift_heat_threshold: int = 3  # Gifts per window that pause the bot
    gift_heat_window_sec: float = 60.0
    lull_threshold_sec: float = 75.0
    lull_check_sec: float = 15.0


class Config(BaseModel):
    """Configuration model."""

    channel: ChannelSettings = Field(default_factory=ChannelSettings)
    frames: FrameSettings = Field(default_factory=FrameSettings)
    pacing: PacingSettings = Field(default_factory=PacingSettings)

    # Wire tap output directory
    tap_dir: str = "data"

    log_level: str = "INFO"
