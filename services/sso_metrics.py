"""Prometheus counters for SSO login activity."""

from __future__ import annotations

from typing import Optional

from prometheus_client import Counter

from core.logging import get_logger

logger = get_logger(__name__)

_SSO_LOGIN_COUNTER = Counter(
    "sso_login_total",
    "Count of signed-payload SSO callbacks grouped by result and rejection reason.",
    ("result", "reason"),
)
_SSO_PROVISION_COUNTER = Counter(
    "sso_provision_total",
    "Local account provisioning decisions taken during SSO logins.",
    ("status",),
)


def record_sso_login(success: bool, reason: Optional[str] = None) -> None:
    result = "success" if success else "failure"
    _SSO_LOGIN_COUNTER.labels(result=result, reason=reason or "none").inc()


def record_sso_provisioning(status: str) -> None:
    _SSO_PROVISION_COUNTER.labels(status=status).inc()


__all__ = ["record_sso_login", "record_sso_provisioning"]
