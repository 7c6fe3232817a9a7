from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from cardmatch.config import DATABASE_URL

_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def create_db_engine(url: str = DATABASE_URL) -> Engine:
    """
    Create an engine for url.

    SQLite connections are shared with FastAPI's worker threads, and an
    in-memory SQLite database is pinned to one connection so every session
    sees the same catalog.
    """
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in _IN_MEMORY_URLS:
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


engine = create_db_engine()

# Create session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()
