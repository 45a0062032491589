"""Webhook credential primitives.

Provides HMAC signature generation and the comparisons used by the auth
strategies. Digest and credential comparisons never short-circuit on the
first differing byte.
"""

import hashlib
import hmac
import re

import structlog

logger = structlog.get_logger(__name__)

# Default signature header name and algorithm prefix (GitHub style)
SIGNATURE_HEADER = "x-hub-signature-256"
SIGNATURE_PREFIX = "sha256="

BEARER_PREFIX = "Bearer "

_BEARER_RE = re.compile(r"^bearer ", re.IGNORECASE)


def generate_signature(body: bytes, secret: str) -> str:
    """Compute the hex HMAC-SHA256 of a raw body.

    Args:
        body: Exact raw bytes as received.
        secret: Shared webhook secret.

    Returns:
        Lowercase hex digest.
    """
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def signature_header_value(body: bytes, secret: str) -> str:
    """Build the prefixed signature header value for a body."""
    return f"{SIGNATURE_PREFIX}{generate_signature(body, secret)}"


def create_signature_headers(body: bytes, secret: str) -> dict[str, str]:
    """Create headers a sender would attach to a signed delivery."""
    return {SIGNATURE_HEADER: signature_header_value(body, secret)}


def constant_time_equals(provided: str, expected: str) -> bool:
    """Compare two credentials without leaking the mismatch position.

    A length mismatch returns early; it reveals nothing about the secret.
    Equal-length values go through hmac.compare_digest.

    Args:
        provided: Value supplied by the caller.
        expected: Value derived from the configured secret.

    Returns:
        True if both values are identical.
    """
    provided_bytes = provided.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    if len(provided_bytes) != len(expected_bytes):
        return False
    return hmac.compare_digest(provided_bytes, expected_bytes)


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify a prefixed HMAC-SHA256 signature over a raw body.

    Args:
        body: Exact raw bytes as received.
        signature: Full header value, e.g. "sha256=<hex>".
        secret: Shared webhook secret.

    Returns:
        True if the signature is valid. A missing prefix is never valid
        and no digest is computed for it.
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    expected = signature_header_value(body, secret)
    is_valid = constant_time_equals(signature, expected)
    if not is_valid:
        logger.debug("webhook_signature_invalid", body_length=len(body))
    return is_valid


def strip_bearer(value: str) -> str:
    """Remove one leading case-insensitive "Bearer " prefix.

    Only the exact scheme word followed by a single space is removed;
    surrounding whitespace is kept.
    """
    return _BEARER_RE.sub("", value, count=1)
