"""User store backed by the local relational database."""

from __future__ import annotations

from typing import Optional, Sequence

from argon2 import PasswordHasher
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.env import env_int
from core.logging import get_logger
from models.user import Group, User
from services.sso.directory import SystemActor, UserDirectoryError

logger = get_logger(__name__)

_PASSWORD_HASHER = PasswordHasher(
    time_cost=env_int("AUTH_ARGON2_TIME_COST", 3, minimum=1),
    memory_cost=env_int("AUTH_ARGON2_MEMORY_COST", 65536, minimum=8192),
    parallelism=env_int("AUTH_ARGON2_PARALLELISM", 1, minimum=1),
)


class SqlUserDirectory:
    """Each call commits on its own; create and update are separate transactions."""

    def __init__(self, session: Session):
        self.session = session

    def _fail(self, code: str, message: str, exc: Optional[Exception] = None) -> UserDirectoryError:
        self.session.rollback()
        if exc is not None:
            logger.warning("User store operation failed (%s): %s", code, exc)
        return UserDirectoryError(code, message)

    def find_user_id_by_email(self, email: str, *, actor: SystemActor) -> Optional[str]:
        try:
            row = (
                self.session.execute(
                    text('SELECT id, email FROM "users" WHERE email = :email'),
                    {"email": email},
                )
                .mappings()
                .first()
            )
        except SQLAlchemyError as exc:
            raise self._fail("sso.directory_lookup_failed", "User lookup failed.", exc) from exc
        # Guard against case-insensitive collations.
        if not row or row["email"] != email:
            return None
        return str(row["id"])

    def create_user(
        self,
        *,
        username: str,
        email: str,
        avatar_url: str,
        password: str,
        is_activated: bool,
        actor: SystemActor,
    ) -> str:
        user = User(
            username=username,
            email=email,
            avatar_url=avatar_url,
            password_hash=_PASSWORD_HASHER.hash(password),
            is_activated=is_activated,
        )
        try:
            self.session.add(user)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail("sso.directory_create_failed", "User could not be created.", exc) from exc
        logger.info("Provisioned user %s on behalf of actor %s.", user.id, actor.user_id)
        return str(user.id)

    def update_user(
        self,
        user_id: str,
        *,
        username: str,
        avatar_url: str,
        group_ids: Sequence[str],
        actor: SystemActor,
    ) -> None:
        try:
            result = self.session.execute(
                text('UPDATE "users" SET username = :username, avatar_url = :avatar_url WHERE id = :id'),
                {"username": username, "avatar_url": avatar_url, "id": int(user_id)},
            )
            if result.rowcount == 0:
                raise self._fail("sso.directory_user_missing", "User to update does not exist.")
            if group_ids:
                self._replace_groups(int(user_id), group_ids)
            self.session.commit()
        except UserDirectoryError:
            raise
        except (SQLAlchemyError, ValueError) as exc:
            raise self._fail("sso.directory_update_failed", "User could not be updated.", exc) from exc

    def _replace_groups(self, user_id: int, group_ids: Sequence[str]) -> None:
        wanted = list(dict.fromkeys(group_ids))
        known = set(self.session.execute(select(Group.id).where(Group.id.in_(wanted))).scalars())
        unknown = [group_id for group_id in wanted if group_id not in known]
        if unknown:
            raise self._fail("sso.directory_unknown_group", f"Unknown groups: {', '.join(unknown)}.")
        self.session.execute(text("DELETE FROM group_user WHERE user_id = :user_id"), {"user_id": user_id})
        for group_id in wanted:
            self.session.execute(
                text("INSERT INTO group_user (user_id, group_id) VALUES (:user_id, :group_id)"),
                {"user_id": user_id, "group_id": group_id},
            )


__all__ = ["SqlUserDirectory"]
