"""Decoding of the provider's base64 query-string payload."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, unquote, urlencode

_USERNAME_DISALLOWED = re.compile(r"[^a-z0-9_-]", re.IGNORECASE | re.ASCII)
_REQUIRED_FIELDS: Tuple[str, ...] = ("nonce", "email", "username")


class PayloadDecodeError(ValueError):
    """Raised when the signed parameter cannot be turned into a payload."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class SsoPayload:
    nonce: str
    email: str
    username: str
    avatar_url: Optional[str] = None
    original_url: Optional[str] = None
    roles: Tuple[str, ...] = ()


def sanitize_username(value: str) -> str:
    """Strip every character outside ``[A-Za-z0-9_-]``."""
    return _USERNAME_DISALLOWED.sub("", value or "")


def _split_roles(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _optional(fields: Mapping[str, str], key: str) -> Optional[str]:
    value = fields.get(key)
    return value if value else None


def parse_payload_fields(raw: str) -> Dict[str, str]:
    """Return the key/value mapping carried by ``raw`` without validating it."""
    try:
        decoded = base64.b64decode(unquote(raw or ""), validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise PayloadDecodeError("sso.payload_not_base64", "SSO payload is not valid base64.") from exc
    # dict() keeps the last value of repeated keys.
    return dict(parse_qsl(decoded, keep_blank_values=True))


def decode_payload(raw: str) -> SsoPayload:
    """Decode an already-verified ``sso`` parameter into an :class:`SsoPayload`."""
    fields = parse_payload_fields(raw)
    missing = [key for key in _REQUIRED_FIELDS if not (fields.get(key) or "").strip()]
    if missing:
        raise PayloadDecodeError(
            "sso.payload_missing_field",
            f"SSO payload is missing required fields: {', '.join(missing)}.",
        )
    username = sanitize_username(fields["username"])
    if not username:
        raise PayloadDecodeError("sso.payload_invalid_username", "SSO username is empty after sanitization.")
    return SsoPayload(
        nonce=fields["nonce"],
        email=fields["email"],
        username=username,
        avatar_url=_optional(fields, "avatarUrl"),
        original_url=_optional(fields, "originalUrl"),
        roles=_split_roles(fields.get("roles")),
    )


def encode_payload(fields: Mapping[str, object]) -> str:
    """Build the provider-side encoding: query string, then base64.

    Sequence values (``roles``) are joined with commas. ``None`` values are skipped.
    """
    pairs = []
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, Sequence) and not isinstance(value, str):
            value = ",".join(str(item) for item in value)
        pairs.append((key, str(value)))
    return base64.b64encode(urlencode(pairs).encode("utf-8")).decode("ascii")


__all__ = [
    "PayloadDecodeError",
    "SsoPayload",
    "decode_payload",
    "encode_payload",
    "parse_payload_fields",
    "sanitize_username",
]
