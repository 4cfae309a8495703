from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shipment_sync.models import Base


def make_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Engine for `database_url`; in-memory SQLite shares one connection."""
    if database_url == "sqlite://" or (database_url.startswith("sqlite") and ":memory:" in database_url):
        return create_engine(
            database_url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo, future=True, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_models(engine: Engine) -> None:
    Base.metadata.create_all(engine)
