# shop_engagement/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shop_engagement.core.config import settings

Base = declarative_base()


def build_engine(database_url: str | None = None) -> Engine:
    url = database_url or settings.DATABASE_URL
    # SQLite requires special connect args for multi-thread access.
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
