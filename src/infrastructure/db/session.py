# src/infrastructure/db/session.py

from contextlib import contextmanager
import os
import socket

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config import settings


# -----------------------------
# Database URL
# -----------------------------
def _reachable(host: str, port: int) -> bool:
    try:
        with socket.create_connection((host, port), timeout=0.5):
            return True
    except OSError:
        return False


def _postgres_url() -> str:
    # Some local Postgres installs listen on 5433.
    port = next(
        (candidate for candidate in (5432, 5433) if _reachable(settings.DB_HOST, candidate)),
        5432,
    )
    return (
        f"postgresql+psycopg2://{settings.DB_USER}:{settings.DB_PASSWORD}"
        f"@{settings.DB_HOST}:{port}/{settings.DB_NAME}"
    )


def resolve_database_url() -> str:
    return os.getenv("DATABASE_URL") or _postgres_url()


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"future": True, "pool_pre_ping": True}
    # In-memory databases live on a single shared connection.
    return {
        "future": True,
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }


DATABASE_URL = resolve_database_url()

engine: Engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))


class Base(DeclarativeBase):
    pass


SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    autoflush=False,
    expire_on_commit=False,
)


@contextmanager
def get_db_session():
    """Transactional session for scripts and jobs outside a request."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
