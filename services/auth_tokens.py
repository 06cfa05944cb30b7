"""Local session token issuance for identities bound by the SSO callback."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt

from core.env import env_int, env_str, require_env


class AuthTokenError(RuntimeError):
    """Raised when a local session token cannot be verified."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


def require_jwt_secret() -> str:
    """Checked at startup too, so a missing secret never surfaces mid-login."""
    return require_env("AUTH_JWT_SECRET", context="auth")


def _jwt_settings() -> Tuple[str, str, str]:
    return (
        env_str("AUTH_JWT_ALG") or "HS256",
        env_str("AUTH_JWT_ISSUER") or "sso-bridge",
        env_str("AUTH_JWT_AUDIENCE") or "forum",
    )


def access_token_ttl() -> int:
    return env_int("AUTH_ACCESS_TOKEN_TTL_SECONDS", 60 * 60 * 12, minimum=60)


def create_access_token(*, user_id: str, email: str, channel: str = "sso") -> Tuple[str, int]:
    """Issue the JWT that marks the browser as authenticated."""

    algorithm, issuer, audience = _jwt_settings()
    ttl = access_token_ttl()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": audience,
        "iss": issuer,
        "scope": "access",
        "email": email,
        "channel": channel,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, require_jwt_secret(), algorithm=algorithm), ttl


def decode_token(token: str, *, scope: Optional[str] = "access") -> Dict[str, Any]:
    algorithm, issuer, audience = _jwt_settings()
    try:
        payload = jwt.decode(token, require_jwt_secret(), algorithms=[algorithm], audience=audience, issuer=issuer)
    except jwt.ExpiredSignatureError as exc:
        raise AuthTokenError("auth.token_expired", "Session token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthTokenError("auth.token_invalid", "Session token could not be verified.") from exc
    if scope and payload.get("scope") != scope:
        raise AuthTokenError("auth.token_invalid", "Session token scope mismatch.")
    return payload


__all__ = ["AuthTokenError", "access_token_ttl", "create_access_token", "decode_token", "require_jwt_secret"]
