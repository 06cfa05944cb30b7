"""Runtime settings for the SSO bridge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from core.env import env_bool, env_csv, env_float, env_int, env_str, require_env
from core.sso.constants import (
    DEFAULT_DIRECTORY_BACKEND,
    SUPPORTED_DIRECTORY_BACKENDS,
    DirectoryBackend,
)


@dataclass(frozen=True)
class SsoSettings:
    secret: str
    default_redirect_url: str
    provider_login_url: Optional[str]
    return_url: Optional[str]
    nonce_ttl_seconds: int
    nonce_redis_url: Optional[str]
    session_cookie: str
    cookie_secure: bool
    allowed_redirect_hosts: Tuple[str, ...]
    directory_backend: DirectoryBackend
    user_api_url: Optional[str]
    user_api_key: Optional[str]
    system_actor_id: str
    user_api_timeout_seconds: float

    @classmethod
    def load(cls) -> "SsoSettings":
        backend = (env_str("SSO_DIRECTORY_BACKEND") or DEFAULT_DIRECTORY_BACKEND).strip().lower()
        if backend not in SUPPORTED_DIRECTORY_BACKENDS:
            raise RuntimeError(f"Unsupported SSO_DIRECTORY_BACKEND '{backend}'. Use one of: sql, http.")
        return cls(
            secret=env_str("SSO_SECRET") or "",
            default_redirect_url=env_str("SSO_DEFAULT_REDIRECT_URL") or "/",
            provider_login_url=env_str("SSO_PROVIDER_LOGIN_URL"),
            return_url=env_str("SSO_RETURN_URL"),
            nonce_ttl_seconds=env_int("SSO_NONCE_TTL_SECONDS", 600, minimum=30),
            nonce_redis_url=env_str("SSO_NONCE_REDIS_URL"),
            session_cookie=env_str("SSO_SESSION_COOKIE") or "sso_session",
            cookie_secure=env_bool("SSO_COOKIE_SECURE", True),
            allowed_redirect_hosts=env_csv("SSO_ALLOWED_REDIRECT_HOSTS"),
            directory_backend=backend,  # type: ignore[arg-type]
            user_api_url=env_str("SSO_USER_API_URL"),
            user_api_key=env_str("SSO_USER_API_KEY"),
            system_actor_id=env_str("SSO_SYSTEM_ACTOR_ID") or "1",
            user_api_timeout_seconds=env_float("SSO_USER_API_TIMEOUT_SECONDS", 10.0, minimum=1.0),
        )

    def require_secret(self) -> str:
        """Fail at startup rather than silently rejecting every login."""
        if not self.secret:
            require_env("SSO_SECRET", context="sso")
        return self.secret

    def validate(self) -> "SsoSettings":
        self.require_secret()
        if self.directory_backend == "http" and not self.user_api_url:
            require_env("SSO_USER_API_URL", context="sso")
        return self


__all__ = ["SsoSettings"]
