import os
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

load_dotenv()


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


def database_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("TEST_DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL or TEST_DATABASE_URL must be set for the SQL user store.")
    return url


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Build the engine on first use so the HTTP backend never needs a database."""
    url = database_url()
    engine_kwargs = {}
    if url.lower().startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url:
            engine_kwargs["poolclass"] = StaticPool
    return create_engine(url, **engine_kwargs)


@lru_cache(maxsize=1)
def _session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def open_session() -> Session:
    return _session_factory()()


def reset_engine() -> None:
    """Drop the cached engine, e.g. after DATABASE_URL changed."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    _session_factory.cache_clear()
    get_engine.cache_clear()


def create_schema() -> None:
    """Create user/group tables when they are missing."""
    import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())

