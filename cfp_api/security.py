"""
Security module for the CFP registry API.

Provides input validation, sanitization, and request helpers. Every
validator here runs before any ledger call.
"""

import re
import uuid
from typing import Any, Dict, List, Optional, Type

from .errors import (
    CfpError,
    InvalidAddress,
    InvalidClosingTime,
    InvalidClosingTimeFormat,
    InvalidName,
    InvalidSignature,
)
from .util import now_epoch, parse_iso8601


# ============================================================
# Input Validation
# ============================================================

# Regex patterns for validation
ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')
SIGNATURE_PATTERN = re.compile(r'^0x[0-9a-fA-F]{130}$')
HASH32_PATTERN = re.compile(r'^0x[0-9a-fA-F]{64}$')
LABEL_PATTERN = re.compile(r'^[^.\s]{1,63}$')


def validate_address(value: Any) -> str:
    """
    Validate a 20-byte hex address.

    Returns:
        The address as given

    Raises:
        InvalidAddress: If the value is not 0x followed by 40 hex characters
    """
    if not isinstance(value, str) or not ADDRESS_PATTERN.match(value):
        raise InvalidAddress()
    return value


def validate_signature(value: Any) -> str:
    """
    Validate a 65-byte hex signature (r || s || v).

    Raises:
        InvalidSignature: If the value is not 0x followed by 130 hex characters
    """
    if not isinstance(value, str) or not SIGNATURE_PATTERN.match(value):
        raise InvalidSignature()
    return value


def validate_hash32(value: Any, error: Type[CfpError]) -> str:
    """
    Validate a 32-byte hex identifier (call id or proposal hash).

    Args:
        value: The string to validate
        error: The malformed-input error to raise on failure

    Returns:
        The validated string
    """
    if not isinstance(value, str) or not HASH32_PATTERN.match(value):
        raise error()
    return value


def validate_closing_time(value: Any, now: Optional[int] = None) -> int:
    """
    Validate an ISO-8601 closing time that must lie strictly in the future.

    Args:
        value: ISO-8601 string
        now: Reference Unix time (defaults to the current time)

    Returns:
        The closing time as a Unix timestamp

    Raises:
        InvalidClosingTimeFormat: If the string does not parse
        InvalidClosingTime: If the instant is not after now
    """
    try:
        timestamp = parse_iso8601(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidClosingTimeFormat()

    if now is None:
        now = now_epoch()
    if timestamp <= now:
        raise InvalidClosingTime()
    return timestamp


def validate_label(value: Any) -> str:
    """Validate a single naming label (no dots, no whitespace)."""
    if not isinstance(value, str) or not LABEL_PATTERN.match(value):
        raise InvalidName()
    return value


def validate_name(value: Any) -> str:
    """Validate a dotted name such as 'acme.llamados.cfp'."""
    if not isinstance(value, str) or not value:
        raise InvalidName()
    for label in value.split("."):
        validate_label(label)
    return value


# ============================================================
# Request ID Generation
# ============================================================

def generate_request_id() -> str:
    """Generate a unique request ID for audit trail correlation."""
    return str(uuid.uuid4())


# ============================================================
# Rate Limiting Helpers
# ============================================================

def extract_client_id(headers: Dict[str, str], client_host: Optional[str] = None) -> str:
    """
    Extract a client identifier from request headers for rate limiting.
    Falls back to the peer address, then to a default.
    """
    api_key = headers.get("x-api-key", "")
    if api_key:
        return f"api:{api_key[:8]}"

    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"

    if client_host:
        return f"ip:{client_host}"

    return "anonymous"


# ============================================================
# Audit Logging Helpers
# ============================================================

def mask_signature(signature: Optional[str]) -> str:
    """Keep only the edges of a signature for log lines."""
    if not isinstance(signature, str) or len(signature) <= 14:
        return "[REDACTED]"
    return signature[:10] + "..." + signature[-4:]


def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by masking sensitive fields.

    Args:
        data: The data to sanitize
        sensitive_fields: List of field names to mask

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = ["signature", "mnemonic", "private_key", "secret", "password", "token"]

    result = {}
    for key, value in data.items():
        if key in sensitive_fields:
            result[key] = mask_signature(value) if key == "signature" else "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result
