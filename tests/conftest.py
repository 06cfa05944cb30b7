import os
from typing import Callable, Dict, Generator, List, Mapping, Optional, Sequence, Tuple

import pytest

os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])
os.environ.setdefault("SSO_SECRET", "test-shared-secret")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SSO_COOKIE_SECURE", "0")
# Keep argon2 cheap for the generated-password hashing in tests.
os.environ.setdefault("AUTH_ARGON2_TIME_COST", "1")
os.environ.setdefault("AUTH_ARGON2_MEMORY_COST", "8192")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from database import Base  # noqa: E402
from models.user import Group, GroupUser, User  # noqa: E402
from services.sso.directory import SystemActor, UserDirectoryError  # noqa: E402
from services.sso.nonce import InMemoryNonceStore  # noqa: E402
from services.sso.payload import encode_payload  # noqa: E402
from services.sso.config import SsoSettings  # noqa: E402
from services.sso.signature import sign_payload  # noqa: E402

TEST_SECRET = os.environ["SSO_SECRET"]
_TABLES = [User.__table__, Group.__table__, GroupUser.__table__]


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=_TABLES)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=_TABLES)
        engine.dispose()


@pytest.fixture()
def seeded_groups(db_session: Session) -> List[str]:
    groups = [Group(id="1", name="Admins"), Group(id="2", name="Members"), Group(id="3", name="Mods")]
    db_session.add_all(groups)
    db_session.commit()
    return [group.id for group in groups]


@pytest.fixture()
def nonce_store() -> InMemoryNonceStore:
    return InMemoryNonceStore(ttl_seconds=600)


@pytest.fixture()
def system_actor() -> SystemActor:
    return SystemActor(user_id="1", api_key="system-key")


class FakeUserDirectory:
    """Records every call and keeps users in a dict keyed by exact email."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Dict[str, object]]] = []
        self.users: Dict[str, Dict[str, object]] = {}
        self.fail_on: set = set()
        self._next_id = 100

    def add_user(self, email: str, *, username: str = "existing", groups: Sequence[str] = ()) -> str:
        user_id = str(self._next_id)
        self._next_id += 1
        self.users[user_id] = {"email": email, "username": username, "avatar_url": "", "groups": list(groups)}
        return user_id

    def find_user_id_by_email(self, email: str, *, actor: SystemActor) -> Optional[str]:
        self.calls.append(("find", {"email": email, "actor": actor}))
        if "find" in self.fail_on:
            raise UserDirectoryError("fake.find", "lookup failed")
        for user_id, record in self.users.items():
            if record["email"] == email:
                return user_id
        return None

    def create_user(self, *, username, email, avatar_url, password, is_activated, actor) -> str:
        self.calls.append(
            (
                "create",
                {
                    "username": username,
                    "email": email,
                    "avatar_url": avatar_url,
                    "password": password,
                    "is_activated": is_activated,
                    "actor": actor,
                },
            )
        )
        if "create" in self.fail_on:
            raise UserDirectoryError("fake.create", "create failed")
        return self.add_user(email, username=username)

    def update_user(self, user_id, *, username, avatar_url, group_ids, actor) -> None:
        self.calls.append(
            ("update", {"user_id": user_id, "username": username, "avatar_url": avatar_url, "group_ids": list(group_ids), "actor": actor})
        )
        if "update" in self.fail_on:
            raise UserDirectoryError("fake.update", "update failed")
        record = self.users[user_id]
        record["username"] = username
        record["avatar_url"] = avatar_url
        if group_ids:
            record["groups"] = list(group_ids)

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


@pytest.fixture()
def fake_directory() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture()
def signed_payload() -> Callable[..., Tuple[str, str]]:
    """Simulate the identity provider: encode the fields and sign them."""

    def _build(fields: Mapping[str, object], *, secret: str = TEST_SECRET) -> Tuple[str, str]:
        sso = encode_payload(fields)
        return sso, sign_payload(sso, secret)

    return _build


@pytest.fixture()
def make_sso_settings() -> Callable[..., SsoSettings]:
    """Settings for router tests; cookies are not Secure so TestClient keeps them."""

    def _build(**overrides) -> SsoSettings:
        values = dict(
            secret=TEST_SECRET,
            default_redirect_url="https://forum.example.com/",
            provider_login_url="https://idp.example.com/sso",
            return_url="http://testserver/api/v1/auth/sso/callback",
            nonce_ttl_seconds=600,
            nonce_redis_url=None,
            session_cookie="sso_session",
            cookie_secure=False,
            allowed_redirect_hosts=(),
            directory_backend="sql",
            user_api_url=None,
            user_api_key=None,
            system_actor_id="1",
            user_api_timeout_seconds=5.0,
        )
        values.update(overrides)
        return SsoSettings(**values)

    return _build
