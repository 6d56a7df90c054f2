"""
WebSocket connection management for the SUGO channel.
"""

import aiohttp
import asyncio
import logging
from typing import Dict, List, Optional, Union

from sugobot.channel.exceptions import (
    ConnectionError as SugoConnectionError,
    ConnectionLostError,
    SocketError,
)

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]


class SugoWebSocket:
    """
    One physical WebSocket connection and the HTTP session that owns it.

    The transport talks to this adapter only, so tests can substitute a
    fake with the same surface.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._ws = ws
        self._session = session
        self._close_reason = ""

    @classmethod
    async def connect(
        cls,
        url: str,
        headers: Dict[str, str],
        protocols: List[str],
        timeout: float = 10.0,
    ) -> "SugoWebSocket":
        """
        Open the WebSocket with the given headers and subprotocols.

        Args:
            url: wss:// endpoint
            headers: Upgrade request headers (cookies, user agent, ...)
            protocols: Subprotocol values offered to the server
            timeout: Connection timeout in seconds

        Returns:
            Open SugoWebSocket. No handshake frames are exchanged here.

        Raises:
            ConnectionError: If the upgrade fails or times out
        """
        session = aiohttp.ClientSession()
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(
                    url,
                    headers=headers,
                    protocols=tuple(protocols),
                    autoping=True,
                    compress=0,
                ),
                timeout=timeout,
            )
        except aiohttp.ClientError as e:
            await session.close()
            raise SugoConnectionError(f"WebSocket connection failed: {e}")
        except asyncio.TimeoutError:
            await session.close()
            raise SugoConnectionError("Connection timeout")
        except BaseException:
            # Cancelled mid-upgrade (disconnect during reconnect) or worse
            await session.close()
            raise

        return cls(ws=ws, session=session)

    @property
    def protocol(self) -> Optional[str]:
        """Subprotocol the server accepted, if any."""
        return self._ws.protocol

    @property
    def closed(self) -> bool:
        return self._ws.closed

    @property
    def close_code(self) -> int:
        return self._ws.close_code or 1006

    @property
    def close_reason(self) -> str:
        return self._close_reason

    async def send(self, frame: Frame) -> None:
        """Send a text or binary frame."""
        try:
            if isinstance(frame, bytes):
                await self._ws.send_bytes(frame)
            else:
                await self._ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            raise ConnectionLostError(f"Failed to send message: {e}")

    async def ping(self) -> None:
        """Send a protocol-level ping."""
        try:
            await self._ws.ping()
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            raise ConnectionLostError(f"Failed to send ping: {e}")

    async def receive(self) -> Optional[Frame]:
        """
        Receive the next data frame.

        Returns:
            Text or bytes payload, or None once the socket is closed

        Raises:
            SocketError: If the socket reports an error frame
        """
        while True:
            msg = await self._ws.receive()

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data
            elif msg.type == aiohttp.WSMsgType.CLOSE:
                self._close_reason = msg.extra or ""
                logger.debug(f"Close frame received: {msg.data} {self._close_reason}")
            elif msg.type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                return None
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise SocketError(f"WebSocket error: {self._ws.exception()}")
            else:
                logger.debug(f"Ignoring message type: {msg.type}")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the socket and its session."""
        try:
            if not self._ws.closed:
                await self._ws.close(code=code, message=reason.encode())
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")

        try:
            if self._session is not None:
                await self._session.close()
        except Exception as e:
            logger.warning(f"Error closing session: {e}")
