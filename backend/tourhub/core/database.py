from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from tourhub.core.config import settings


def _connect_args() -> dict[str, Any]:
    if settings.is_sqlite:
        return {
            "check_same_thread": False,
            "timeout": settings.DB_LOCK_TIMEOUT_MS / 1000,
        }
    # PostgreSQL: bound lock waits and statement time.
    return {
        "options": (
            f"-c lock_timeout={settings.DB_LOCK_TIMEOUT_MS} "
            f"-c statement_timeout={settings.DB_LOCK_TIMEOUT_MS * 2}"
        )
    }


engine = create_engine(
    settings.APP_DATABASE_DSN, connect_args=_connect_args(), echo=settings.DEBUG
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables."""
    import tourhub.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
