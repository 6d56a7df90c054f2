"""
Inbound frame decoding.

The service's compression behaviour is undocumented, so every binary
payload goes through a fallback chain: gzip, zlib, raw deflate, and
finally plain UTF-8. The first stage that yields a complete, valid
UTF-8 document wins.
"""

import gzip
import json
import logging
import zlib
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

DECOMPRESS_AUTO = "auto"
DECOMPRESS_NONE = "none"


def _inflate(data: bytes, wbits: int) -> Optional[bytes]:
    """Inflate a complete deflate stream, or return None."""
    inflater = zlib.decompressobj(wbits)
    try:
        out = inflater.decompress(data)
        out += inflater.flush()
    except zlib.error:
        return None

    # Truncated streams and trailing garbage both mean "not deflate"
    if not inflater.eof or inflater.unused_data:
        return None
    return out


def _gunzip(data: bytes) -> Optional[bytes]:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error):
        return None


def _utf8(data: bytes) -> Optional[str]:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def decode_payload(payload: Union[bytes, str], mode: str = DECOMPRESS_AUTO) -> str:
    """
    Turn a raw inbound payload into text.

    Args:
        payload: Raw frame as received (bytes for binary frames)
        mode: "auto" to try decompression, "none" to treat as text

    Returns:
        Decoded text. Never raises; undecodable bytes are replaced.
    """
    if isinstance(payload, str):
        return payload

    if mode != DECOMPRESS_NONE:
        for name, stage in (
            ("gzip", _gunzip),
            ("zlib", lambda d: _inflate(d, zlib.MAX_WBITS)),
            ("deflate", lambda d: _inflate(d, -zlib.MAX_WBITS)),
        ):
            inflated = stage(payload)
            if inflated is None:
                continue
            text = _utf8(inflated)
            if text is not None:
                logger.debug(f"Decoded {len(payload)} bytes via {name}")
                return text

    text = _utf8(payload)
    if text is not None:
        return text

    logger.debug(f"Payload of {len(payload)} bytes is not UTF-8, replacing bad bytes")
    return payload.decode("utf-8", errors="replace")


def parse_json(text: str) -> Optional[Any]:
    """Parse JSON text, returning None for anything that isn't JSON."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
