"""
HTTP API for refreshing channel credentials.
"""

import aiohttp
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from sugobot.channel.exceptions import AuthenticationError, CredentialRefreshError
from sugobot.channel.frames import build_subprotocols
from sugobot.channel.models import CredentialUpdate

logger = logging.getLogger(__name__)


async def fetch_credentials(
    refresh_url: str,
    token: Optional[str] = None,
    uid: Optional[str] = None,
    device: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> CredentialUpdate:
    """
    Fetch a fresh token and rebuild the subprotocol list from it.

    The endpoint may answer either {"token": ..., "headers": {...}} or
    the same object wrapped in "content".

    Args:
        refresh_url: Token endpoint
        token: Current (possibly stale) token
        uid: User ID
        device: Device/session metadata folded into the subprotocol
        headers: Headers to send with the request

    Returns:
        CredentialUpdate with new protocols and/or headers

    Raises:
        AuthenticationError: If the endpoint rejects the current credentials
        CredentialRefreshError: If no token could be obtained
    """
    params = {}
    if token:
        params["token"] = token
    if uid:
        params["uid"] = uid

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(refresh_url, params=params, headers=headers) as response:
                if response.status in (401, 403):
                    raise AuthenticationError(
                        f"Refresh rejected credentials: HTTP {response.status}"
                    )
                if response.status != 200:
                    raise CredentialRefreshError(
                        f"Failed to refresh token: HTTP {response.status}"
                    )

                data = await response.json(content_type=None)

    except aiohttp.ClientError as e:
        raise CredentialRefreshError(f"Network error: {e}")
    except ValueError as e:
        raise CredentialRefreshError(f"Malformed refresh response: {e}")

    if not isinstance(data, dict):
        raise CredentialRefreshError("Unexpected refresh response")

    content = data.get("content")
    if isinstance(content, dict):
        data = content

    new_token = data.get("token") or data.get("accessToken")
    if not new_token:
        raise CredentialRefreshError("No token in refresh response")

    new_headers = data.get("headers")
    if not isinstance(new_headers, dict):
        new_headers = None

    logger.info("Successfully refreshed channel token")
    return CredentialUpdate(
        token=new_token,
        protocols=build_subprotocols(new_token, uid, device),
        headers=new_headers,
    )


def make_refresher(
    refresh_url: str,
    token: Optional[str] = None,
    uid: Optional[str] = None,
    device: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Callable[[], Awaitable[CredentialUpdate]]:
    """Bind fetch_credentials for the transport, carrying the latest token."""
    current = {"token": token}

    async def refresh() -> CredentialUpdate:
        update = await fetch_credentials(
            refresh_url,
            token=current["token"],
            uid=uid,
            device=device,
            headers=headers,
        )
        current["token"] = update.token
        return update

    return refresh
