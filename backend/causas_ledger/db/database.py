from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from causas_ledger.core.config import settings


def _engine_kwargs() -> dict:
    if settings.is_sqlite:
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    **_engine_kwargs(),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables. Runs on application startup."""
    from causas_ledger.db import models  # noqa: F401  (registers tables)

    Base.metadata.create_all(bind=engine)
