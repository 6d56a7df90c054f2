"""
Wire and event models for the SUGO channel.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionState(str, Enum):
    """Lifecycle of one transport."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_ACK = "awaiting-handshake-ack"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class EventKind(str, Enum):
    """Domain event kinds produced by the router."""

    HELLO = "hello"
    CHAT = "chat"
    GIFT = "gift"
    PK = "pk"
    MEMBERSHIP = "membership"
    UNKNOWN = "unknown"


@dataclass
class WireFrame:
    """A decoded inbound frame."""
    cmd: Optional[int]
    data: Optional[Any] = None
    rc: Optional[int] = None
    msg: Optional[str] = None
    sn: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, data: Dict[str, Any]) -> "WireFrame":
        """
        Build a WireFrame from a parsed JSON object.

        Args:
            data: Parsed JSON dictionary

        Returns:
            WireFrame instance; cmd is None when the frame carries no
            numeric command code
        """
        cmd = data.get("cmd")
        # bool is an int subclass, but never a command code
        if not isinstance(cmd, int) or isinstance(cmd, bool):
            cmd = None

        rc = data.get("rc")
        if not isinstance(rc, int) or isinstance(rc, bool):
            rc = None

        msg = data.get("msg")
        if msg is not None and not isinstance(msg, str):
            msg = str(msg)

        sn = data.get("sn")
        if not isinstance(sn, int) or isinstance(sn, bool):
            sn = None

        return cls(
            cmd=cmd,
            data=data.get("data"),
            rc=rc,
            msg=msg,
            sn=sn,
            raw=data,
        )

    def to_record(self) -> Dict[str, Any]:
        """Flatten the frame for the wire tap."""
        return {
            "cmd": self.cmd,
            "data": self.data,
            "rc": self.rc,
            "msg": self.msg,
            "sn": self.sn,
        }


@dataclass(frozen=True)
class DomainEvent:
    """A classified frame."""
    kind: EventKind
    frame: WireFrame


class ConnectionConfig(BaseModel):
    """Everything needed for one connection attempt.

    Replaced wholesale when credentials are refreshed.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    protocols: List[str] = Field(default_factory=list)
    room_id: str
    heartbeat_sec: float = 25.0

    def redacted_protocols(self) -> List[str]:
        """Protocols safe for logging (first value truncated)."""
        return [
            f"{p[:8]}..." if i == 0 else p
            for i, p in enumerate(self.protocols)
        ]

    def refreshed(self, update: "CredentialUpdate") -> "ConnectionConfig":
        """Return a new config with refreshed credentials applied."""
        changes: Dict[str, Any] = {}
        if update.protocols:
            changes["protocols"] = list(update.protocols)
        if update.headers:
            changes["headers"] = {**self.headers, **update.headers}
        if not changes:
            return self
        return self.model_copy(update=changes)


class CredentialUpdate(BaseModel):
    """Result of a credential refresh."""

    token: Optional[str] = None
    protocols: Optional[List[str]] = None
    headers: Optional[Dict[str, str]] = None
