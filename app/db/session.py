"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from app.core.config import settings
from app.db.base import Base
import app.models  # noqa: F401  (register models on Base.metadata)


def build_engine_kwargs(database_url: str) -> dict:
    """
    Engine options that bound every store call

    - PostgreSQL: connect timeout, pool checkout timeout and a server-side statement_timeout
    - SQLite: busy timeout so a locked database fails instead of hanging
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.DB_CONNECT_TIMEOUT,
            },
        }

    connect_args = {"connect_timeout": settings.DB_CONNECT_TIMEOUT}
    if url.get_backend_name() == "postgresql":
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
    return {
        "pool_pre_ping": True,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "connect_args": connect_args,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    **build_engine_kwargs(settings.DATABASE_URL)
)

# Create all tables automatically on startup for SQLite
if "sqlite" in settings.DATABASE_URL:
    Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
