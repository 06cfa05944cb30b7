"""Signature -> nonce -> provisioning -> binding pipeline for the SSO callback."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from core.logging import get_logger
from core.sso.constants import SsoFailure
from services.sso.binder import AuthSessionBinder, RedirectInstruction
from services.sso.nonce import NonceGuard, session_fingerprint
from services.sso.payload import PayloadDecodeError, decode_payload, encode_payload
from services.sso.provisioning import ProvisioningOutcome, ProvisioningRequest, UserProvisioner
from services.sso.signature import sign_payload, validate_signature

logger = get_logger(__name__)


class SsoNotConfiguredError(RuntimeError):
    """Raised when the login leg is requested without a provider URL."""


@dataclass(frozen=True)
class SsoLoginOutcome:
    failure: Optional[SsoFailure] = None
    redirect: Optional[RedirectInstruction] = None
    provisioning: Optional[ProvisioningOutcome] = None

    @property
    def success(self) -> bool:
        return self.failure is None and self.redirect is not None


@dataclass(frozen=True)
class SsoAuthorizeResult:
    authorization_url: str
    expires_in: int


class SsoLoginPipeline:
    """Runs one callback request to a terminal ``Bound`` or ``Rejected`` state.

    Failures come back as values; nothing in here renders a response.
    """

    def __init__(
        self,
        *,
        secret: str,
        nonce_guard: NonceGuard,
        provisioner: UserProvisioner,
        binder: AuthSessionBinder,
        provider_login_url: Optional[str] = None,
        return_url: Optional[str] = None,
        nonce_ttl_seconds: int = 600,
    ):
        self._secret = secret
        self._nonce_guard = nonce_guard
        self._provisioner = provisioner
        self._binder = binder
        self._provider_login_url = provider_login_url
        self._return_url = return_url
        self._nonce_ttl_seconds = nonce_ttl_seconds

    def start(self, session_id: str, *, return_to: Optional[str] = None) -> SsoAuthorizeResult:
        """Issue a fresh session nonce and build the signed provider login URL."""
        if not self._provider_login_url:
            raise SsoNotConfiguredError("SSO_PROVIDER_LOGIN_URL is not configured.")
        nonce = self._nonce_guard.issue(session_id)
        sso = encode_payload({"nonce": nonce, "return_sso_url": self._return_url, "originalUrl": return_to})
        query = urlencode({"sso": sso, "sig": sign_payload(sso, self._secret)})
        separator = "&" if "?" in self._provider_login_url else "?"
        return SsoAuthorizeResult(
            authorization_url=f"{self._provider_login_url}{separator}{query}",
            expires_in=self._nonce_ttl_seconds,
        )

    def _reject(self, failure: SsoFailure, session_id: Optional[str], **extra) -> SsoLoginOutcome:
        logger.warning("SSO login rejected: %s (session=%s).", failure.value, session_fingerprint(session_id))
        return SsoLoginOutcome(failure=failure, **extra)

    def run(self, session_id: Optional[str], sso: Optional[str], sig: Optional[str]) -> SsoLoginOutcome:
        if not validate_signature(sso, sig, self._secret):
            return self._reject(SsoFailure.SIGNATURE_INVALID, session_id)

        try:
            payload = decode_payload(sso or "")
        except PayloadDecodeError as exc:
            logger.info("Signed SSO payload could not be decoded: %s", exc.code)
            return self._reject(SsoFailure.PAYLOAD_MALFORMED, session_id)

        if not self._nonce_guard.consume(session_id, payload.nonce):
            return self._reject(SsoFailure.NONCE_MISMATCH, session_id)

        outcome = self._provisioner.provision(ProvisioningRequest.from_payload(payload))
        if not outcome.ok or outcome.user_id is None:
            return self._reject(SsoFailure.PROVISIONING_FAILED, session_id, provisioning=outcome)

        redirect = self._binder.bind(
            session_id or "",
            identity_email=payload.email,
            user_id=outcome.user_id,
            original_url=payload.original_url,
        )
        logger.info("SSO login bound user %s (%s).", outcome.user_id, outcome.status)
        return SsoLoginOutcome(redirect=redirect, provisioning=outcome)


__all__ = ["SsoAuthorizeResult", "SsoLoginOutcome", "SsoLoginPipeline", "SsoNotConfiguredError"]
