"""SSO-related shared constants."""

from .constants import (
    ACCESS_TOKEN_COOKIE,
    DEFAULT_DIRECTORY_BACKEND,
    DirectoryBackend,
    NONCE_KEY_PREFIX,
    PROVISIONING_ERROR_REASON,
    SSO_ERROR_CODE,
    SSO_ERROR_MESSAGE,
    SUPPORTED_DIRECTORY_BACKENDS,
    SsoFailure,
)

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
