"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets a session
from get_db(); background jobs open their own through SessionLocal.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from ledger_engine.config import get_settings

settings = get_settings()

# SQLite connections are shared across the request threadpool and the
# scheduler thread.
connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

# pool_pre_ping=True tests connections before using them, which
# handles a database restart or a stale pooled connection.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# autocommit=False: the Transaction Engine decides when an atomic
# unit commits. autoflush=False: SQL is only sent on explicit flush
# or commit, so a failed invariant check never leaks a partial UPDATE.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    """Create any missing tables for every registered model."""
    # Import for side effect: registers all models on Base.metadata
    import ledger_engine.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    """
    Provide a database session for a single request.

    The try/finally guarantees the session is closed even when
    the endpoint raises, so pooled connections never leak.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
