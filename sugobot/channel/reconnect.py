"""
Reconnection policy with a fixed delay.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class ReconnectionPolicy:
    """
    Paces reconnection attempts.

    The service gives no rate-limit signal, so the delay stays fixed
    instead of backing off. Attempts are counted for logging and reset
    once a session subscribes.
    """

    def __init__(self, delay: float = 1.5, max_attempts: int = 0):
        """
        Initialize reconnection policy.

        Args:
            delay: Seconds to wait before each attempt
            max_attempts: Maximum consecutive attempts (0 = unlimited)
        """
        self._delay = delay
        self._max_attempts = max_attempts
        self._attempts = 0

    async def wait_before_reconnect(self) -> bool:
        """
        Wait before the next reconnection attempt.

        Returns:
            True if should retry, False if max attempts exceeded
        """
        self._attempts += 1

        if self._max_attempts > 0 and self._attempts > self._max_attempts:
            logger.error(
                f"Max reconnection attempts ({self._max_attempts}) exceeded"
            )
            return False

        logger.info(
            f"Reconnection attempt {self._attempts}"
            + (f"/{self._max_attempts}" if self._max_attempts > 0 else "")
            + f" in {self._delay:.1f}s"
        )

        await asyncio.sleep(self._delay)
        return True

    def reset(self) -> None:
        """Reset after a successful session."""
        if self._attempts > 0:
            logger.info(
                f"Subscribed after {self._attempts} reconnection attempts, "
                "resetting reconnection state"
            )

        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Get the number of reconnection attempts."""
        return self._attempts

    @property
    def delay(self) -> float:
        """Get the delay between attempts."""
        return self._delay
