from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from rentalhub.config import settings

database_url = settings.database_url

# SQLAlchemy QueuePool settings are process-local. Keep them conservative to
# reduce contention when environments share a database user.
POOL_LIMITS = {
    "pool_size": (1, 8),
    "max_overflow": (0, 8),
    "pool_timeout": (2, 30),
    "pool_recycle": (300, 7200),
}


def _bounded(name: str, value: int) -> int:
    minimum, maximum = POOL_LIMITS[name]
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


def is_sqlite_url(url: str) -> bool:
    return str(url).strip().lower().startswith("sqlite")


runtime_db_pool_settings = {
    "database_backend": "sqlite" if is_sqlite_url(database_url) else "server",
    "pool_size": None,
    "max_overflow": None,
    "pool_timeout": None,
    "pool_recycle": None,
}

# SQLite does not support the QueuePool arguments used in production.
if is_sqlite_url(database_url):
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args={
            "check_same_thread": False,
            "timeout": settings.persistence_timeout_seconds,
        },
    )
else:
    runtime_db_pool_settings.update(
        {
            "pool_size": _bounded("pool_size", settings.db_pool_size),
            "max_overflow": _bounded("max_overflow", settings.db_max_overflow),
            # Checkout waits are part of the persistence timeout budget.
            "pool_timeout": _bounded(
                "pool_timeout", min(settings.db_pool_timeout, settings.persistence_timeout_seconds)
            ),
            "pool_recycle": _bounded("pool_recycle", settings.db_pool_recycle),
        }
    )

    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=runtime_db_pool_settings["pool_size"],
        max_overflow=runtime_db_pool_settings["max_overflow"],
        pool_recycle=runtime_db_pool_settings["pool_recycle"],
        pool_timeout=runtime_db_pool_settings["pool_timeout"],
        connect_args={"connect_timeout": settings.persistence_timeout_seconds},
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def get_db():
    """Context manager for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_session():
    """Get a database session directly (caller responsible for closing)"""
    return SessionLocal()


def init_db() -> None:
    """Create all tables registered on Base.metadata."""
    from rentalhub import models  # noqa: F401  # ensure models are registered

    Base.metadata.create_all(bind=engine)


def get_runtime_db_pool_settings() -> dict:
    return dict(runtime_db_pool_settings)
