"""
Custom exceptions for the SUGO channel client.
"""


class SugoChannelError(Exception):
    """Base exception for all SUGO channel errors."""
    pass


class ConnectionError(SugoChannelError):
    """Failed to open the WebSocket connection."""
    pass


class ConnectionLostError(SugoChannelError):
    """WebSocket connection was lost."""
    pass


class SocketError(SugoChannelError):
    """The socket reported an error frame while open."""
    pass


class CredentialRefreshError(SugoChannelError):
    """Could not obtain fresh credentials before reconnecting."""
    pass


class AuthenticationError(CredentialRefreshError):
    """The refresh endpoint rejected the current credentials (HTTP 401/403)."""
    pass
