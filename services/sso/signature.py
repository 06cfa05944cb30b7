"""HMAC verification of the raw ``sso`` parameter."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from core.logging import get_logger

logger = get_logger(__name__)

_DIGEST = hashlib.sha256


def sign_payload(raw: str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``raw``, as computed by the identity provider."""
    return hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), _DIGEST).hexdigest()


def validate_signature(raw: Optional[str], signature: Optional[str], secret: Optional[str]) -> bool:
    """Return True when ``signature`` is the HMAC of the encoded ``raw`` parameter.

    Never raises on malformed input; an unconfigured secret always fails closed.
    """
    if not secret:
        logger.error("SSO secret is not configured; rejecting signed payload.")
        return False
    if not raw or not signature:
        return False
    expected = sign_payload(raw, secret)
    try:
        return hmac.compare_digest(expected, signature)
    except TypeError:
        # compare_digest refuses non-ASCII str input.
        return False


__all__ = ["sign_payload", "validate_signature"]
