"""Signed-payload single sign-on: verification, replay guard and provisioning."""

from __future__ import annotations

from .binder import AuthSessionBinder, RedirectInstruction
from .config import SsoSettings
from .directory import SystemActor, UserDirectory, UserDirectoryError
from .nonce import InMemoryNonceStore, NonceGuard, NonceStore, RedisNonceStore, nonces_match
from .payload import PayloadDecodeError, SsoPayload, decode_payload, encode_payload, sanitize_username
from .pipeline import SsoAuthorizeResult, SsoLoginOutcome, SsoLoginPipeline, SsoNotConfiguredError
from .provisioning import ProvisioningOutcome, ProvisioningRequest, UserProvisioner
from .signature import sign_payload, validate_signature

__all__ = [
    "AuthSessionBinder",
    "InMemoryNonceStore",
    "NonceGuard",
    "NonceStore",
    "PayloadDecodeError",
    "ProvisioningOutcome",
    "ProvisioningRequest",
    "RedirectInstruction",
    "RedisNonceStore",
    "SsoAuthorizeResult",
    "SsoLoginOutcome",
    "SsoLoginPipeline",
    "SsoNotConfiguredError",
    "SsoPayload",
    "SsoSettings",
    "SystemActor",
    "UserDirectory",
    "UserDirectoryError",
    "UserProvisioner",
    "decode_payload",
    "encode_payload",
    "nonces_match",
    "sanitize_username",
    "sign_payload",
    "validate_signature",
]
