"""
Outbound frame builders and subprotocol construction.

The exact frame shapes were reverse-engineered and are not known to be
final, so the transport never builds frames itself. It calls whatever
FrameBuilders object it was given; CmdFrameBuilders is the default,
driven by configurable command codes.
"""

import json
from typing import Any, Dict, List, Optional, Protocol, Union
from urllib.parse import quote

Frame = Union[str, bytes]


class FrameBuilders(Protocol):
    """Strategy for the three outbound frame shapes."""

    def connect_frame(self) -> Optional[Frame]:
        """CONNECT/auth frame, or None if the service needs none."""
        ...

    def join_frame(self, room_id: str) -> Frame:
        ...

    def send_frame(self, room_id: str, text: str, seq: int) -> Frame:
        ...


class CmdFrameBuilders:
    """cmd-coded JSON frames, as seen in captured traffic."""

    def __init__(
        self,
        join_cmd: int,
        send_cmd: int,
        connect_cmd: Optional[int] = None,
        token: Optional[str] = None,
        uid: Optional[str] = None,
    ):
        self.join_cmd = join_cmd
        self.send_cmd = send_cmd
        self.connect_cmd = connect_cmd
        self.token = token
        self.uid = uid

    def _dump(self, frame: Dict[str, Any]) -> str:
        return json.dumps(frame, ensure_ascii=False, separators=(",", ":"))

    def connect_frame(self) -> Optional[Frame]:
        if self.connect_cmd is None:
            return None
        return self._dump({
            "cmd": self.connect_cmd,
            "data": {"token": self.token, "uid": self.uid},
        })

    def join_frame(self, room_id: str) -> Frame:
        return self._dump({
            "cmd": self.join_cmd,
            "data": {"room_id": room_id},
        })

    def send_frame(self, room_id: str, text: str, seq: int) -> Frame:
        return self._dump({
            "cmd": self.send_cmd,
            "sn": seq,
            "data": {"room_id": room_id, "message": text},
        })


def build_subprotocols(
    token: Optional[str],
    uid: Optional[str] = None,
    device: Optional[Dict[str, Any]] = None,
) -> List[str]:
    """
    Pack credentials into the WebSocket subprotocol list.

    The token and device/session metadata travel as one URL-encoded
    JSON value so they survive the upgrade request.

    Args:
        token: Auth token
        uid: User ID
        device: Extra device/session metadata

    Returns:
        Ordered subprotocol values (empty when there is no token)
    """
    if not token:
        return []

    payload: Dict[str, Any] = {"token": token}
    if uid:
        payload["uid"] = uid
    if device:
        payload.update(device)

    encoded = quote(json.dumps(payload, separators=(",", ":")), safe="")
    return [encoded]
