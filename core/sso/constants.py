"""Centralized constants for the signed-payload SSO flow."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Literal

DirectoryBackend = Literal["sql", "http"]

SUPPORTED_DIRECTORY_BACKENDS: FrozenSet[DirectoryBackend] = frozenset(["sql", "http"])
DEFAULT_DIRECTORY_BACKEND: DirectoryBackend = "sql"

SSO_ERROR_CODE = "auth.sso_invalid"
SSO_ERROR_MESSAGE = "Invalid SSO login. Please contact an administrator."
PROVISIONING_ERROR_REASON = "provisioning error"

NONCE_KEY_PREFIX = "sso:nonce"
ACCESS_TOKEN_COOKIE = "access_token"


class SsoFailure(str, Enum):
    """Internal rejection kinds. Collapsed to one message for clients."""

    SIGNATURE_INVALID = "signature_invalid"
    PAYLOAD_MALFORMED = "payload_malformed"
    NONCE_MISMATCH = "nonce_mismatch"
    PROVISIONING_FAILED = "provisioning_failed"


__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "DEFAULT_DIRECTORY_BACKEND",
    "DirectoryBackend",
    "NONCE_KEY_PREFIX",
    "PROVISIONING_ERROR_REASON",
    "SSO_ERROR_CODE",
    "SSO_ERROR_MESSAGE",
    "SUPPORTED_DIRECTORY_BACKENDS",
    "SsoFailure",
]
