"""Database session management with connection pooling"""

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from salary_advance.config import settings
from salary_advance.infrastructure.database.models import Base

# Pool sized for one pipeline worker plus ad-hoc reads; recycle hourly
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=5,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create any missing tables"""
    Base.metadata.create_all(bind=engine)


def get_db() -> Iterator[Session]:
    """Yield a session and close it when the caller is done"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
