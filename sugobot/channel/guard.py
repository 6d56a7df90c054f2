"""
Outbound send guard.
"""

import itertools
import logging
from typing import Callable

from sugobot.channel.models import ConnectionState

logger = logging.getLogger(__name__)


class SendGuard:
    """
    Gates outbound frames against session state.

    Holds the single-flight JOIN flag for the current session and the
    outgoing sequence counter. The counter lives as long as the guard
    (one per transport) and starts at 1; the service rejects large
    numeric ids, so timestamps are not used.
    """

    def __init__(self, state: Callable[[], ConnectionState]):
        """
        Initialize send guard.

        Args:
            state: Callable returning the transport's current state
        """
        self._state = state
        self._joined = False
        self._sequence = itertools.count(1)

    @property
    def joined(self) -> bool:
        """Whether JOIN was already sent in this session."""
        return self._joined

    def claim_join(self) -> bool:
        """
        Claim the JOIN slot for this session.

        Returns:
            True if the caller should send JOIN, False if already sent
        """
        if self._joined:
            logger.info("JOIN already sent, skipping duplicate")
            return False
        self._joined = True
        return True

    def reset(self) -> None:
        """Forget the JOIN of the previous session."""
        self._joined = False

    def can_send(self) -> bool:
        """Chat may only be sent once subscribed."""
        return self._state() is ConnectionState.SUBSCRIBED

    def next_sequence(self) -> int:
        """Next outgoing sequence number."""
        return next(self._sequence)
