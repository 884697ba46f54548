from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from uniadmin.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Main DB dependency: one session per request, passed explicitly to services and engines.

    Read routes attach a `ViewScope` to `Session.info["view_scope"]`; the
    `do_orm_execute` listener in `uniadmin.db.filters` narrows SELECTs with it.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
