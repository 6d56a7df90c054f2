"""Coordinator: feeds room events to behaviors and paces what the bot says."""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Iterable, Optional

from sugobot.channel import ChannelListener, DomainEvent, SugoChannel
from sugobot.models import PacingSettings

logger = logging.getLogger(__name__)

SendFunction = Callable[[str], Awaitable[bool]]


class Behavior:
    """
    Event contract for bot personalities.

    The coordinator calls these hooks; a behavior speaks through the
    paced send function it is bound to.
    """

    name = "behavior"

    def __init__(self) -> None:
        self.enabled = True
        self._send: Optional[SendFunction] = None

    def bind(self, send: SendFunction) -> None:
        self._send = send

    async def say(self, text: str) -> bool:
        """Send through the coordinator; False if unbound, disabled or paced out."""
        if not self.enabled or self._send is None:
            return False
        return await self._send(text)

    async def on_gift(self, event: DomainEvent) -> None:
        pass

    async def on_chat(self, event: DomainEvent) -> None:
        pass

    async def on_pk(self, event: DomainEvent) -> None:
        pass

    async def on_membership(self, event: DomainEvent) -> None:
        pass

    async def on_lull(self) -> None:
        pass


class Pacer:
    """Cooldown and gift-heat policy for outbound bot messages."""

    def __init__(
        self,
        settings: PacingSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._clock = clock
        self._last_sent: Optional[float] = None
        self._gift_times: deque[float] = deque()

    def record_gift(self) -> None:
        self._gift_times.append(self._clock())

    def gift_heat(self) -> int:
        """Number of gifts inside the heat window."""
        cutoff = self._clock() - self.settings.gift_heat_window_sec
        while self._gift_times and self._gift_times[0] <= cutoff:
            self._gift_times.popleft()
        return len(self._gift_times)

    def check(self) -> tuple[bool, str]:
        """
        Decide whether the bot may speak now.

        Returns:
            Tuple of (allowed, reason)
        """
        # Don't talk over a gift rush
        if self.gift_heat() >= self.settings.gift_heat_threshold:
            return (False, "gift_heat")

        if self._last_sent is not None:
            elapsed = self._clock() - self._last_sent
            if elapsed < self.settings.min_interval_sec:
                remaining = self.settings.min_interval_sec - elapsed
                return (False, f"cooldown {remaining:.0f}s")

        return (True, "ok")

    def record_sent(self) -> None:
        self._last_sent = self._clock()


class Coordinator(ChannelListener):
    """Listens to the channel, fans events out to behaviors, paces sends."""

    def __init__(
        self,
        channel: SugoChannel,
        pacing: PacingSettings,
        behaviors: Optional[Iterable[Behavior]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.channel = channel
        self.pacing = pacing
        self.pacer = Pacer(pacing, clock=clock)
        self.behaviors: list[Behavior] = []
        self._clock = clock
        self._last_activity = clock()
        self._lull_task: Optional[asyncio.Task] = None
        self.running = False

        for behavior in behaviors or []:
            self.add_behavior(behavior)

    def add_behavior(self, behavior: Behavior) -> None:
        behavior.bind(self.send)
        self.behaviors.append(behavior)
        logger.debug(f"Registered behavior: {behavior.name}")

    async def start(self) -> None:
        """Subscribe to the channel and start the lull detector."""
        if self.running:
            logger.info("Coordinator already running")
            return

        self.channel.subscribe(self)
        self._last_activity = self._clock()
        self._lull_task = asyncio.create_task(self._lull_loop())
        self.running = True
        logger.info(f"Coordinator started with {len(self.behaviors)} behaviors")

    async def stop(self) -> None:
        if not self.running:
            return

        self.running = False
        if self._lull_task:
            self._lull_task.cancel()
            try:
                await self._lull_task
            except asyncio.CancelledError:
                pass
            self._lull_task = None
        logger.info("Coordinator stopped")

    async def send(self, text: str) -> bool:
        """
        Paced send used by behaviors.

        Returns:
            True if the message went out
        """
        allowed, reason = self.pacer.check()
        if not allowed:
            logger.info(f"[Pacing] Message blocked ({reason})")
            return False

        sent = await self.channel.send_chat(text)
        if sent:
            self.pacer.record_sent()
        return sent

    def _touch(self) -> None:
        self._last_activity = self._clock()

    async def _fan_out(self, hook: str, *args) -> None:
        for behavior in self.behaviors:
            if not behavior.enabled:
                continue
            try:
                await getattr(behavior, hook)(*args)
            except Exception as e:
                logger.error(f"Error in {behavior.name}.{hook}: {e}", exc_info=True)

    async def on_gift(self, event: DomainEvent) -> None:
        self._touch()
        self.pacer.record_gift()
        await self._fan_out("on_gift", event)

    async def on_chat(self, event: DomainEvent) -> None:
        self._touch()
        await self._fan_out("on_chat", event)

    async def on_pk(self, event: DomainEvent) -> None:
        await self._fan_out("on_pk", event)

    async def on_membership(self, event: DomainEvent) -> None:
        await self._fan_out("on_membership", event)

    async def check_lull(self) -> bool:
        """Signal a lull if the room has been quiet too long."""
        quiet_for = self._clock() - self._last_activity
        if quiet_for < self.pacing.lull_threshold_sec:
            return False

        logger.info(f"[Lull] No activity in {quiet_for:.0f}s, signalling behaviors")
        # Reset so one lull doesn't fire every check
        self._touch()
        await self._fan_out("on_lull")
        return True

    async def _lull_loop(self) -> None:
        while True:
            await asyncio.sleep(self.pacing.lull_check_sec)
            await self.check_lull()
