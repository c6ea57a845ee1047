# alapio/infra/database.py

import logging
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from alapio.config import settings
from alapio.models.base import Base

logger = logging.getLogger(__name__)

# =========================
# ENGINE CONFIGURATION
# =========================

def build_engine(database_url: str = None, echo: bool = None) -> Engine:
    """
    Create an engine for the configured database.

    SQLite URLs get thread-sharing enabled (the gateway runs store calls on a
    worker thread pool); ":memory:" databases additionally share one
    connection so every session sees the same tables.
    """
    database_url = database_url or settings.database_url
    echo = settings.sql_echo if echo is None else echo

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        echo=echo,
    )

# =========================
# SESSION CONFIGURATION
# =========================

def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# =========================
# DATABASE FUNCTIONS
# =========================

def get_db(request: Request):
    """
    FastAPI dependency to provide a DB session to routes.
    Usage:
        def my_route(db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(session_factory: sessionmaker):
    """
    Context manager for standalone DB operations (used by the realtime gateway).
    Usage:
        with db_session(factory) as db:
            user = db.query(User).first()
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine):
    """Create all tables based on registered models."""
    # Import models here to register them with Base
    from alapio.models.user import User  # noqa: F401
    from alapio.models.message import Message  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables ready")


def drop_db(engine: Engine):
    from alapio.models.user import User  # noqa: F401
    from alapio.models.message import Message  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    logger.warning("⚠️ All tables dropped")


def check_connection(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False
