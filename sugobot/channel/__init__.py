"""
SUGO real-time channel client with handshake negotiation and reconnection.
"""

from sugobot.channel.transport import SugoChannel
from sugobot.channel.models import (
    ConnectionConfig,
    ConnectionState,
    CredentialUpdate,
    DomainEvent,
    EventKind,
    WireFrame,
)
from sugobot.channel.router import ChannelListener, classify
from sugobot.channel.frames import CmdFrameBuilders, FrameBuilders, build_subprotocols
from sugobot.channel.http import fetch_credentials, make_refresher
from sugobot.channel.exceptions import (
    SugoChannelError,
    ConnectionError,
    ConnectionLostError,
    SocketError,
    AuthenticationError,
    CredentialRefreshError,
)

__all__ = [
    "SugoChannel",
    "ConnectionConfig",
    "ConnectionState",
    "CredentialUpdate",
    "DomainEvent",
    "EventKind",
    "WireFrame",
    "ChannelListener",
    "classify",
    "CmdFrameBuilders",
    "FrameBuilders",
    "build_subprotocols",
    "fetch_credentials",
    "make_refresher",
    "SugoChannelError",
    "ConnectionError",
    "ConnectionLostError",
    "SocketError",
    "AuthenticationError",
    "CredentialRefreshError",
]
