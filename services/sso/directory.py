"""Boundary between the provisioner and the external user store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


class UserDirectoryError(RuntimeError):
    """Raised when the user store returns no usable result."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class SystemActor:
    """Privileged credential used for provisioning calls."""

    user_id: str
    api_key: Optional[str] = None


class UserDirectory(Protocol):
    def find_user_id_by_email(self, email: str, *, actor: SystemActor) -> Optional[str]: ...

    def create_user(
        self,
        *,
        username: str,
        email: str,
        avatar_url: str,
        password: str,
        is_activated: bool,
        actor: SystemActor,
    ) -> str: ...

    def update_user(
        self,
        user_id: str,
        *,
        username: str,
        avatar_url: str,
        group_ids: Sequence[str],
        actor: SystemActor,
    ) -> None: ...


__all__ = ["SystemActor", "UserDirectory", "UserDirectoryError"]
