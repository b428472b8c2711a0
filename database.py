import logging
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings
from errors import InternalError

logger = logging.getLogger(__name__)

# Declarative base shared by every ORM model in models.py
Base = declarative_base()


def make_engine(url: str, **kwargs) -> Engine:
    # SQLite connections are used from FastAPI's threadpool, so allow that
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine) -> None:
    """Create the users, tasks and user_sessions tables if they are missing."""
    # Importing the models registers their tables (and relations) on Base
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind)
    logger.info("Database schema ready (%s)", bind.url.render_as_string(hide_password=True))


# FastAPI dependency: one session per request, always closed afterwards
def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit(db: Session) -> None:
    """Commit the unit of work, turning store failures into InternalError."""
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database commit failed")
        raise InternalError() from exc
