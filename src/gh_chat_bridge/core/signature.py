"""Webhook signature verification.

GitHub signs each delivery with HMAC-SHA256 over the raw request body,
keyed by the webhook secret, and sends the hex digest in the
``X-Hub-Signature-256`` header as ``sha256=<hex>``.
"""

from __future__ import annotations

import hashlib
import hmac
from enum import Enum

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


class SignatureStatus(Enum):
    """Outcome of verifying a delivery signature."""

    VALID = "valid"
    INVALID = "invalid"


def compute_signature(body: bytes, secret: str) -> str:
    """Return the ``X-Hub-Signature-256`` header value for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature_header: str | None, secret: str) -> SignatureStatus:
    """Check a delivery signature against the shared secret.

    Never raises: a missing header, a non-hex digest, a digest of the wrong
    length or an empty secret all verify as INVALID.

    Args:
        body: Raw request body exactly as received.
        signature_header: Value of the ``X-Hub-Signature-256`` header, if any.
        secret: Shared webhook secret.

    Returns:
        SignatureStatus.VALID when the signature matches, INVALID otherwise.
    """
    if not signature_header or not secret:
        return SignatureStatus.INVALID

    provided_hex = signature_header.strip()
    if provided_hex.startswith(SIGNATURE_PREFIX):
        provided_hex = provided_hex[len(SIGNATURE_PREFIX) :]

    try:
        provided = bytes.fromhex(provided_hex)
    except ValueError:
        return SignatureStatus.INVALID

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    if hmac.compare_digest(provided, expected):
        return SignatureStatus.VALID
    return SignatureStatus.INVALID
