"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from casepay.config import get_settings

settings = get_settings()

# Seconds a SQLite writer waits for a concurrent writer's lock
SQLITE_BUSY_TIMEOUT = 30


def _enable_sqlite_foreign_keys(dbapi_connection, _record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str, echo: bool = False):
    """Engine for `url`. SQLite files get their directory created, a busy
    timeout for concurrent writers and foreign key enforcement."""
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    path = url.replace("sqlite:///", "")
    if path and path != ":memory:":
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    sqlite_engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},  # Shared across request threads
        echo=echo,
    )
    event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
    return sqlite_engine


engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables. Called once at application startup."""
    from casepay.models import case as _case_model           # noqa: F401
    from casepay.models import payment as _payment_model     # noqa: F401
    from casepay.models import audit as _audit_model         # noqa: F401
    from casepay.models import sequence as _sequence_model   # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
