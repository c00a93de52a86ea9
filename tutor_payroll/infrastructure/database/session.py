"""Database session management with connection pooling"""

from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from tutor_payroll.config import settings
from tutor_payroll.infrastructure.database.repositories import CompensationRepository

# Connection pool sized for batch fan-out (one session per instructor computation)
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    pool_size=max(10, settings.batch_concurrency),
    max_overflow=10,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def repository_scope_factory(session_factory: Callable[[], Session]):
    """Build a store scope: each call opens a fresh session wrapped in a repository"""

    @contextmanager
    def scope() -> Iterator[CompensationRepository]:
        db = session_factory()
        try:
            yield CompensationRepository(db)
        finally:
            db.close()

    return scope
