"""Final decision step: which identity to authenticate and where to send it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlsplit

from core.logging import get_logger
from services.sso.nonce import NonceStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class RedirectInstruction:
    identity_email: str
    user_id: str
    target_url: str


class AuthSessionBinder:
    def __init__(
        self,
        store: NonceStore,
        *,
        default_url: str,
        allowed_hosts: Sequence[str] = (),
    ):
        self._store = store
        self._default_url = default_url
        default_host = urlsplit(default_url).netloc.lower()
        self._allowed_hosts = {host.lower() for host in allowed_hosts if host}
        if default_host:
            self._allowed_hosts.add(default_host)

    def resolve_target(self, original_url: Optional[str]) -> str:
        """Use the payload's ``originalUrl`` only when it stays on a trusted host."""
        if not original_url:
            return self._default_url
        parts = urlsplit(original_url)
        if not parts.scheme and not parts.netloc and original_url.startswith("/") and not original_url.startswith("//"):
            return original_url
        if parts.scheme in {"http", "https"} and parts.netloc.lower() in self._allowed_hosts:
            return original_url
        logger.info("Ignoring untrusted SSO return target host '%s'.", parts.netloc)
        return self._default_url

    def bind(
        self,
        session_id: str,
        *,
        identity_email: str,
        user_id: str,
        original_url: Optional[str],
    ) -> RedirectInstruction:
        # NonceGuard already popped it; clearing again keeps this step safe on its own.
        self._store.discard(session_id)
        return RedirectInstruction(
            identity_email=identity_email,
            user_id=user_id,
            target_url=self.resolve_target(original_url),
        )


__all__ = ["AuthSessionBinder", "RedirectInstruction"]
