# src/infrastructure/db/session.py

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config import DATABASE_URL


# -----------------------------
# Engine
# -----------------------------
def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads.
        pool_kwargs = {"poolclass": StaticPool} if url in ("sqlite://", "sqlite:///:memory:") else {}
        return create_engine(
            url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            **pool_kwargs,
        )
    return create_engine(
        url,
        echo=False,
        future=True,
        pool_pre_ping=True,
    )


engine: Engine = build_engine(DATABASE_URL)


# -----------------------------
# Base Class for Models
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Session Factory
# -----------------------------
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


# -----------------------------
# Context Manager (Non-FastAPI usage)
# -----------------------------
@contextmanager
def get_db_session(factory: sessionmaker = SessionLocal):
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
