from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from giftdraw.db.models import Base

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def init_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(
        database_url, pool_pre_ping=True, future=True, connect_args=connect_args
    )
    SessionLocal.configure(bind=engine)
    return engine


def init_schema(engine) -> None:
    """Create missing tables. Production deployments run the Alembic revision instead."""
    Base.metadata.create_all(engine)


def _ensure_initialized() -> None:
    if SessionLocal.kw.get("bind") is None:
        raise RuntimeError("Database engine not initialized. Call init_engine() before use.")


@contextmanager
def get_session():
    _ensure_initialized()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
