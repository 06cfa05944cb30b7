"""Create-or-update of the local account behind an SSO identity."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional, Tuple

from core.logging import get_logger
from core.sso.constants import PROVISIONING_ERROR_REASON
from services.sso.directory import SystemActor, UserDirectory, UserDirectoryError
from services.sso.payload import SsoPayload

logger = get_logger(__name__)

ProvisioningStatus = Literal["created", "updated", "failed"]

_GENERATED_PASSWORD_BYTES = 24


@dataclass(frozen=True)
class ProvisioningRequest:
    email: str
    username: str
    roles: Tuple[str, ...] = ()
    avatar_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: SsoPayload) -> "ProvisioningRequest":
        return cls(
            email=payload.email,
            username=payload.username,
            roles=payload.roles,
            avatar_url=payload.avatar_url,
        )


@dataclass(frozen=True)
class ProvisioningOutcome:
    status: ProvisioningStatus
    user_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    @classmethod
    def failed(cls, reason: str = PROVISIONING_ERROR_REASON) -> "ProvisioningOutcome":
        return cls(status="failed", reason=reason)


@dataclass
class UserProvisioner:
    """Maps a remote identity onto a local account.

    Both branches end in the same full-overwrite ``update_user`` call, which is what
    makes repeated logins idempotent. Roles map 1:1 to group ids; an empty role list
    leaves group membership untouched.
    """

    directory: UserDirectory
    actor: SystemActor
    password_factory: Optional[Callable[[], str]] = field(default=None, repr=False)

    def _generate_password(self) -> str:
        if self.password_factory is not None:
            return self.password_factory()
        return secrets.token_urlsafe(_GENERATED_PASSWORD_BYTES)

    def _apply_update(self, user_id: str, request: ProvisioningRequest, avatar_url: str) -> None:
        self.directory.update_user(
            user_id,
            username=request.username,
            avatar_url=avatar_url,
            group_ids=list(request.roles),
            actor=self.actor,
        )

    def provision(self, request: ProvisioningRequest) -> ProvisioningOutcome:
        avatar_url = request.avatar_url or ""
        created_id: Optional[str] = None
        try:
            existing_id = self.directory.find_user_id_by_email(request.email, actor=self.actor)
            if existing_id is not None:
                self._apply_update(existing_id, request, avatar_url)
                return ProvisioningOutcome(status="updated", user_id=existing_id)

            created_id = self.directory.create_user(
                username=request.username,
                email=request.email,
                avatar_url=avatar_url,
                password=self._generate_password(),
                is_activated=True,
                actor=self.actor,
            )
            # Group assignment is not accepted on creation; it needs a second call.
            self._apply_update(created_id, request, avatar_url)
            return ProvisioningOutcome(status="created", user_id=created_id)
        except UserDirectoryError as exc:
            if created_id is not None:
                logger.warning(
                    "User %s was created but its profile/group update failed (%s); manual remediation required.",
                    created_id,
                    exc.code,
                )
            else:
                logger.warning("SSO provisioning failed (%s): %s", exc.code, exc)
            return ProvisioningOutcome.failed()


__all__ = ["ProvisioningOutcome", "ProvisioningRequest", "ProvisioningStatus", "UserProvisioner"]
