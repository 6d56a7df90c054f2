"""
SUGO channel transport: one resilient WebSocket session at a time.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from sugobot.channel.codec import DECOMPRESS_AUTO, decode_payload
from sugobot.channel.exceptions import SugoChannelError
from sugobot.channel.frames import FrameBuilders
from sugobot.channel.guard import SendGuard
from sugobot.channel.models import ConnectionConfig, ConnectionState, CredentialUpdate
from sugobot.channel.reconnect import ReconnectionPolicy
from sugobot.channel.router import (
    ChannelListener,
    FrameRouter,
    is_handshake_accepted,
    is_reconnect_sentinel,
)
from sugobot.channel.websocket import SugoWebSocket

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]
Connector = Callable[[ConnectionConfig], Awaitable[Any]]
Refresher = Callable[[], Awaitable[CredentialUpdate]]


async def open_websocket(config: ConnectionConfig) -> SugoWebSocket:
    """Default connector: a real aiohttp WebSocket."""
    return await SugoWebSocket.connect(
        url=config.url,
        headers=config.headers,
        protocols=config.protocols,
    )


class SugoChannel:
    """
    Resilient client for the room's real-time channel.

    Owns the socket and the connection state. After the socket opens it
    races a short grace timer against the first inbound frame: the
    service has been seen both greeting first and waiting for the client
    to speak first. Once CONNECT is acknowledged, JOIN is sent exactly
    once and every further frame goes to the router.

    Any close not caused by disconnect() schedules a reconnect after a
    fixed delay. Rejected subprotocols and the server's RECONNECT
    sentinel refresh credentials first.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        frames: FrameBuilders,
        listeners: Optional[Iterable[ChannelListener]] = None,
        refresh: Optional[Refresher] = None,
        decompress: str = DECOMPRESS_AUTO,
        handshake_grace: float = 0.5,
        reconnect_delay: float = 1.5,
        max_reconnect_attempts: int = 0,
        connector: Optional[Connector] = None,
    ):
        """
        Initialize channel.

        Args:
            config: Endpoint, headers, subprotocols, room and heartbeat
            frames: Builders for CONNECT, JOIN and chat frames
            listeners: Initial event listeners
            refresh: Coroutine function returning fresh credentials
            decompress: "auto" or "none"
            handshake_grace: Seconds to wait for a server greeting
            reconnect_delay: Seconds between close and reconnect
            max_reconnect_attempts: Consecutive failed attempts before giving
                up (0 = retry forever)
            connector: Coroutine function opening a socket for a config
        """
        self._config = config
        self._frames = frames
        self._refresh = refresh
        self._decompress = decompress
        self._handshake_grace = handshake_grace
        self._connector = connector or open_websocket

        self._router = FrameRouter(listeners)
        self._guard = SendGuard(lambda: self._state)
        self._reconnection = ReconnectionPolicy(
            delay=reconnect_delay, max_attempts=max_reconnect_attempts
        )

        self._ws: Optional[Any] = None
        self._state = ConnectionState.IDLE
        self._closed_manually = False
        self._refresh_on_close = False
        # Bumped by connect() and disconnect(); stale attempts drop their socket
        self._generation = 0

        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._grace_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        # Statistics
        self._total_reconnects = 0
        self._total_errors = 0

    def subscribe(self, listener: ChannelListener) -> None:
        """Register an event listener."""
        self._router.subscribe(listener)

    async def _log(self, message: str) -> None:
        logger.info(message)
        await self._router.emit("on_log", message)

    async def _error(self, message: str) -> None:
        self._total_errors += 1
        logger.error(message)
        await self._router.emit("on_error", message)

    # Lifecycle

    async def connect(self) -> None:
        """
        Open the socket and start the handshake.

        Never raises: failures surface as error/close events and are
        retried by the reconnect timer.
        """
        if self._state in (
            ConnectionState.CONNECTING,
            ConnectionState.AWAITING_ACK,
            ConnectionState.SUBSCRIBED,
        ):
            await self._log(f"SUGO: connect() ignored, already {self._state.value}")
            return

        self._cancel(self._reconnect_task)
        self._generation += 1
        attempt = self._generation
        self._closed_manually = False
        self._refresh_on_close = False
        self._guard.reset()
        self._state = ConnectionState.CONNECTING

        config = self._config
        await self._log(f"SUGO: connecting {config.url}")
        if config.protocols:
            await self._log(
                f"SUGO: Sending protocols: [{', '.join(config.redacted_protocols())}]"
            )

        try:
            ws = await self._connector(config)
        except SugoChannelError as e:
            if attempt != self._generation:
                return
            await self._error(str(e))
            await self._handle_close(1006, str(e))
            return

        if attempt != self._generation:
            logger.info("SUGO: connect attempt superseded, closing its socket")
            await ws.close(1000, "client-closed")
            return

        self._ws = ws
        negotiated = ws.protocol
        await self._log(f"SUGO: Negotiated protocol: {negotiated or 'none'}")

        if config.protocols and not negotiated:
            await self._log("SUGO: No protocol accepted -> refresh token and retry")
            self._refresh_on_close = True
            await ws.close(1000, "no-protocol")
            await self._handle_close(1000, "no-protocol")
            return

        await self._router.emit("on_open")
        if self._ws is not ws:
            return

        await self._log("SUGO: Protocol accepted, proceeding with handshake")
        self._heartbeat_task = asyncio.create_task(self._heartbeat(ws))
        self._grace_task = asyncio.create_task(self._grace_timer(ws))
        self._reader_task = asyncio.create_task(self._read_loop(ws))

    async def disconnect(self) -> None:
        """
        Close the session for good. Idempotent.

        Cancels every pending timer so nothing fires against the torn
        down session, and suppresses auto-reconnect.
        """
        self._closed_manually = True
        self._refresh_on_close = False
        self._generation += 1

        tasks = [
            self._heartbeat_task,
            self._grace_task,
            self._reconnect_task,
            self._reader_task,
        ]
        self._heartbeat_task = None
        self._grace_task = None
        self._reconnect_task = None
        self._reader_task = None

        ws = self._ws
        self._ws = None
        self._state = ConnectionState.IDLE
        self._guard.reset()

        current = asyncio.current_task()
        for task in tasks:
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if ws is not None:
            await ws.close(1000, "client-closed")
            await self._router.emit("on_close", 1000, "client-closed")
            logger.info("SUGO: disconnected")

    def is_open(self) -> bool:
        """Whether a socket is currently open."""
        return self._ws is not None and not self._ws.closed

    async def send_chat(self, text: str) -> bool:
        """
        Send a chat message to the room.

        Args:
            text: Message text

        Returns:
            True if the frame was written, False if not subscribed or the
            write failed
        """
        ws = self._ws
        if ws is None or ws.closed or not self._guard.can_send():
            logger.info(f"SUGO: NotConnected, dropping chat (state={self._state.value})")
            return False

        seq = self._guard.next_sequence()
        frame = self._frames.send_frame(self._config.room_id, text, seq)
        return await self._write(ws, frame)

    # Socket events

    async def _read_loop(self, ws: Any) -> None:
        while True:
            try:
                payload = await ws.receive()
            except SugoChannelError as e:
                # The close that usually follows drives reconnection
                await self._error(str(e))
                continue

            if payload is None:
                break

            await self._on_payload(ws, payload)
            if self._ws is not ws:
                return

        if self._ws is ws:
            await self._handle_close(ws.close_code, ws.close_reason)

    async def _on_payload(self, ws: Any, payload: Frame) -> None:
        raw = payload if isinstance(payload, bytes) else payload.encode("utf-8")
        await self._router.emit("on_raw", raw)

        text = decode_payload(payload, self._decompress)
        logger.debug(f"WIRE<< {text[:160]}")

        if is_reconnect_sentinel(text):
            await self._log("SUGO: Server requested RECONNECT (likely stale token)")
            self._refresh_on_close = True
            await ws.close(1000, "reconnect-requested")
            return

        if self._state is ConnectionState.CONNECTING:
            # Server spoke first; the grace timer lost the race
            self._cancel(self._grace_task)
            self._grace_task = None
            await self._log("SUGO: Received server hello, sending CONNECT...")
            await self._begin_handshake(ws, "hello-first")

        elif self._state is ConnectionState.AWAITING_ACK:
            if is_handshake_accepted(text):
                await self._log("SUGO: Server accepted CONNECT, sending JOIN...")
                await self._send_join(ws)
            else:
                await self._log("SUGO: Server response unclear, still awaiting CONNECT ack")

        if self._ws is ws:
            await self._router.route(text)

    async def _handle_close(self, code: int, reason: str) -> None:
        self._cancel(self._heartbeat_task)
        self._cancel(self._grace_task)
        self._heartbeat_task = None
        self._grace_task = None
        self._reader_task = None

        self._ws = None
        self._guard.reset()
        self._state = ConnectionState.CLOSED

        refresh = self._refresh_on_close
        self._refresh_on_close = False

        await self._log(f"SUGO: closed {code} {reason}")
        await self._router.emit("on_close", code, reason)

        if not self._closed_manually:
            self._schedule_reconnect(refresh)

    # Handshake

    async def _grace_timer(self, ws: Any) -> None:
        await asyncio.sleep(self._handshake_grace)
        if self._ws is not ws or self._state is not ConnectionState.CONNECTING:
            return
        await self._log("SUGO: No hello received, sending client-first CONNECT...")
        await self._begin_handshake(ws, "client-first")

    async def _begin_handshake(self, ws: Any, path: str) -> None:
        frame = self._frames.connect_frame()
        if frame is None:
            await self._send_join(ws)
            return

        # Claim the stage before writing so a racing frame can't resend CONNECT
        self._state = ConnectionState.AWAITING_ACK
        if await self._write(ws, frame):
            await self._log(f"SUGO: Sent CONNECT ({path} path)")

    async def _send_join(self, ws: Any) -> None:
        if not self._guard.claim_join():
            await self._log("SUGO: JOIN already sent, skipping duplicate")
            return

        frame = self._frames.join_frame(self._config.room_id)
        if await self._write(ws, frame):
            self._state = ConnectionState.SUBSCRIBED
            self._reconnection.reset()
            await self._log("SUGO: Sent JOIN")

    async def _write(self, ws: Any, frame: Frame) -> bool:
        if self._ws is not ws:
            return False
        preview = frame if isinstance(frame, str) else frame.decode("utf-8", "replace")
        logger.debug(f"WIRE>> {preview[:200]}")
        try:
            await ws.send(frame)
        except SugoChannelError as e:
            await self._error(str(e))
            return False
        return True

    # Timers

    async def _heartbeat(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._config.heartbeat_sec)
            try:
                await ws.ping()
            except SugoChannelError as e:
                # Dead sockets are detected by their close event
                logger.debug(f"Heartbeat ping failed: {e}")

    def _schedule_reconnect(self, refresh: bool) -> None:
        self._cancel(self._reconnect_task)
        self._total_reconnects += 1
        self._reconnect_task = asyncio.create_task(self._reconnect(refresh))

    async def _reconnect(self, refresh: bool) -> None:
        if not await self._reconnection.wait_before_reconnect():
            await self._log("SUGO: Giving up on reconnection")
            return
        if self._closed_manually:
            return

        if refresh:
            await self._refresh_credentials()
            if self._closed_manually:
                return

        await self.connect()

    async def _refresh_credentials(self) -> None:
        if self._refresh is None:
            await self._log("SUGO: No credential refresher configured, reusing credentials")
            return

        await self._log("SUGO: Refreshing token before reconnect...")
        try:
            update = await self._refresh()
        except Exception as e:
            # Stale credentials still get a chance
            logger.warning(f"Token refresh failed: {e}", exc_info=True)
            await self._log(f"SUGO: Token refresh failed: {e}")
            return

        self._config = self._config.refreshed(update)
        if update.protocols:
            await self._log(
                f"SUGO: Got fresh protocol: {', '.join(self._config.redacted_protocols())}"
            )

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def config(self) -> ConnectionConfig:
        """Connection config for the next attempt."""
        return self._config

    @property
    def total_reconnects(self) -> int:
        """Get total number of scheduled reconnections."""
        return self._total_reconnects

    @property
    def total_errors(self) -> int:
        """Get total number of errors."""
        return self._total_errors
