"""Configuration management and channel wiring."""

import logging
from pathlib import Path
from typing import Iterable, Optional

import yaml

from sugobot.channel import (
    ChannelListener,
    CmdFrameBuilders,
    ConnectionConfig,
    CredentialUpdate,
    SugoChannel,
    build_subprotocols,
    make_refresher,
)
from sugobot.models import Config

logger = logging.getLogger(__name__)


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = Path("config.yaml")

    if not config_path.exists():
        logger.info(f"{config_path} not found, using defaults")
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f)

    return Config(**(data or {}))


def build_connection_config(config: Config) -> ConnectionConfig:
    """Build the first connection attempt's config from settings."""
    channel = config.channel
    protocols = list(channel.protocols) or build_subprotocols(
        channel.token, channel.uid, channel.device
    )

    return ConnectionConfig(
        url=channel.url,
        headers=dict(channel.headers),
        protocols=protocols,
        room_id=channel.room_id,
        heartbeat_sec=channel.heartbeat_sec,
    )


def build_frames(config: Config) -> CmdFrameBuilders:
    """Default cmd-coded frame builders from settings."""
    return CmdFrameBuilders(
        join_cmd=config.frames.join_cmd,
        send_cmd=config.frames.send_cmd,
        connect_cmd=config.frames.connect_cmd,
        token=config.channel.token,
        uid=config.channel.uid,
    )


def build_channel(
    config: Config,
    listeners: Optional[Iterable[ChannelListener]] = None,
) -> SugoChannel:
    """
    Wire a SugoChannel from configuration.

    Args:
        config: Loaded configuration
        listeners: Initial event listeners

    Returns:
        Unconnected SugoChannel
    """
    channel = config.channel
    frames = build_frames(config)

    refresh = None
    if channel.refresh_url:
        fetch = make_refresher(
            channel.refresh_url,
            token=channel.token,
            uid=channel.uid,
            device=channel.device,
            headers=channel.headers,
        )

        async def refresh() -> CredentialUpdate:
            update = await fetch()
            # CONNECT frames carry the token too
            if update.token:
                frames.token = update.token
            return update

    return SugoChannel(
        config=build_connection_config(config),
        frames=frames,
        listeners=listeners,
        refresh=refresh,
        decompress=channel.decompress,
        handshake_grace=channel.handshake_grace_sec,
        reconnect_delay=channel.reconnect_delay_sec,
        max_reconnect_attempts=channel.max_reconnect_attempts,
    )
