"""SQLAlchemy models for locally provisioned users and their groups."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from database import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(150), unique=True, nullable=False)
    avatar_url = Column(Text, nullable=False, default="")
    password_hash = Column(String(255), nullable=False)
    is_activated = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User id={self.id!r} username={self.username!r}>"


class Group(Base):
    """Role bucket; ids are the role strings carried by the SSO payload."""

    __tablename__ = "groups"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)


class GroupUser(Base):
    __tablename__ = "group_user"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    group_id = Column(String(64), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
