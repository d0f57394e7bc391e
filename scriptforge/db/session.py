from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from scriptforge.config import settings

# Base class for models
Base = declarative_base()


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Sync engine; pool sizing only applies to server databases.

    SQLite connections are shared with worker threads (writes run through
    ``asyncio.to_thread``); an in-memory database keeps a single connection.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url:
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(
        database_url,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        echo=echo,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata
    import scriptforge.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


# Default engine/session factory (no connection is opened until first use)
sync_engine = make_engine(settings.database_url, echo=settings.log_sql)
SessionLocal = make_session_factory(sync_engine)


@contextmanager
def get_sync_db(session_factory: sessionmaker = SessionLocal) -> Session:
    """Context manager for getting a sync database session."""
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
