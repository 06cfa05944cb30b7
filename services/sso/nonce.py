"""Per-session nonce storage and single-use consumption."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol, Tuple

import redis

from core.logging import get_logger
from core.sso.constants import NONCE_KEY_PREFIX

logger = get_logger(__name__)

UTC = timezone.utc


def session_fingerprint(session_id: Optional[str]) -> str:
    """Short digest of a session id that is safe to log."""
    if not session_id:
        return "-"
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:12]


class NonceStore(Protocol):
    """Server-side session storage holding at most one nonce per session."""

    def put(self, session_id: str, nonce: str) -> None: ...

    def peek(self, session_id: str) -> Optional[str]: ...

    def pop(self, session_id: str) -> Optional[str]: ...

    def discard(self, session_id: str) -> None: ...


class InMemoryNonceStore:
    """Process-local store for development and tests.

    ``pop`` runs read and clear under one lock so that two concurrent callbacks
    for the same session cannot both observe the nonce.
    """

    def __init__(self, *, ttl_seconds: int):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, datetime]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_locked(self, now: datetime) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def purge_expired(self) -> None:
        """Drop nonces of abandoned logins."""
        with self._lock:
            self._purge_locked(datetime.now(UTC))

    def put(self, session_id: str, nonce: str) -> None:
        now = datetime.now(UTC)
        with self._lock:
            # Every anonymous login adds a session id, so expired ones are swept here.
            self._purge_locked(now)
            self._entries[session_id] = (nonce, now + self._ttl)

    def peek(self, session_id: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            nonce, expires_at = entry
            if datetime.now(UTC) >= expires_at:
                self._entries.pop(session_id, None)
                return None
            return nonce

    def pop(self, session_id: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return None
        nonce, expires_at = entry
        if datetime.now(UTC) >= expires_at:
            return None
        return nonce

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)


class RedisNonceStore:
    """Redis-backed store; TTL is enforced by Redis itself."""

    _KEY_TEMPLATE = NONCE_KEY_PREFIX + ":{session_id}"

    def __init__(self, client: "redis.Redis", *, ttl_seconds: int):
        self._redis = client
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, *, ttl_seconds: int) -> "RedisNonceStore":
        return cls(redis.Redis.from_url(redis_url, decode_responses=False), ttl_seconds=ttl_seconds)

    def _key(self, session_id: str) -> str:
        return self._KEY_TEMPLATE.format(session_id=session_id)

    @staticmethod
    def _text(raw: object) -> Optional[str]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def put(self, session_id: str, nonce: str) -> None:
        self._redis.setex(self._key(session_id), self._ttl_seconds, nonce.encode("utf-8"))

    def peek(self, session_id: str) -> Optional[str]:
        return self._text(self._redis.get(self._key(session_id)))

    def pop(self, session_id: str) -> Optional[str]:
        key = self._key(session_id)
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.get(key)
        pipeline.delete(key)
        raw, _deleted = pipeline.execute()
        return self._text(raw)

    def discard(self, session_id: str) -> None:
        self._redis.delete(self._key(session_id))

    def ping(self) -> Tuple[bool, Optional[str]]:
        try:
            self._redis.ping()
        except redis.RedisError as exc:
            return False, str(exc)
        return True, None


def nonces_match(session_nonce: Optional[str], payload_nonce: Optional[str]) -> bool:
    """True only when a session nonce exists and equals the payload nonce exactly."""
    if not session_nonce or not payload_nonce:
        return False
    return hmac.compare_digest(session_nonce.encode("utf-8"), payload_nonce.encode("utf-8"))


class NonceGuard:
    """Issues and consumes the nonce binding a login attempt to its session."""

    def __init__(self, store: NonceStore):
        self._store = store

    @property
    def store(self) -> NonceStore:
        return self._store

    def issue(self, session_id: str) -> str:
        nonce = secrets.token_urlsafe(16)
        self._store.put(session_id, nonce)
        return nonce

    def consume(self, session_id: Optional[str], payload_nonce: str) -> bool:
        """Clear the session nonce and report whether it matched ``payload_nonce``.

        The stored value is removed whatever the result, so a nonce is usable once.
        """
        if not session_id:
            return False
        session_nonce = self._store.pop(session_id)
        matched = nonces_match(session_nonce, payload_nonce)
        if not matched:
            logger.info(
                "SSO nonce rejected for session %s (stored=%s).",
                session_fingerprint(session_id),
                "present" if session_nonce else "absent",
            )
        return matched


__all__ = [
    "InMemoryNonceStore",
    "NonceGuard",
    "NonceStore",
    "RedisNonceStore",
    "nonces_match",
    "session_fingerprint",
]
