"""
Utility functions for the CFP registry API.

Provides hex encoding and time conversion helpers.
"""

import time
from datetime import datetime, timezone
from typing import Union

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = "0x" + "00" * 32


def strip_0x(value: str) -> str:
    """Drop a leading 0x / 0X prefix if present."""
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def add_0x(value: str) -> str:
    """Ensure a hex string carries the 0x prefix."""
    return value if value[:2] in ("0x", "0X") else "0x" + value


def to_hex32(value: Union[bytes, str]) -> str:
    """Render a bytes32 contract value as a lowercase 0x-prefixed string."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex().rjust(64, "0")
    return add_0x(value).lower()


def hex32_to_bytes(value: str) -> bytes:
    """Decode a 0x-prefixed 32-byte hex string for contract calls."""
    return bytes.fromhex(strip_0x(value))


def is_zero_address(address: str) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


def same_address(a: str, b: str) -> bool:
    """Addresses compare case-insensitively."""
    return bool(a) and bool(b) and a.lower() == b.lower()


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def epoch_to_iso(ts_epoch: int) -> str:
    """
    Convert Unix timestamp to an ISO-8601 UTC string with millisecond precision.

    Raises ValueError when the timestamp falls outside years 1..9999.
    """
    try:
        dt = datetime.fromtimestamp(int(ts_epoch), tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"timestamp out of range: {ts_epoch}") from e
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso8601(value: str) -> int:
    """
    Parse an ISO-8601 string to a Unix timestamp.

    A trailing 'Z' is accepted and naive values are taken as UTC.
    Raises ValueError when the string is not a valid instant or the instant
    falls outside years 1..9999 in UTC.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("empty timestamp")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        dt = dt.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError(f"instant out of range: {value}") from e
    return int(dt.timestamp())
