"""SQL-backed key-value store (SQLite locally, any SQLAlchemy URL otherwise)."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import DateTime, String, Text, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for store tables."""


class KeyValueEntry(Base):
    """One persisted collection, stored as JSON text under its key."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def create_store_engine(database_url: str) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite."""
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


class SqlKeyValueStore:
    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        if engine is None:
            if database_url is None:
                raise ValueError("SqlKeyValueStore needs a database_url or an engine")
            engine = create_store_engine(database_url)
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        Base.metadata.create_all(engine)
        logger.debug(f"SQL key-value store ready: {engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, key: str) -> str | None:
        with self._session() as session:
            return session.execute(select(KeyValueEntry.value).where(KeyValueEntry.key == key)).scalar_one_or_none()

    def set(self, key: str, value: str) -> None:
        with self._session() as session:
            session.merge(KeyValueEntry(key=key, value=value, updated_at=datetime.now(UTC)))

    def delete(self, key: str) -> None:
        with self._session() as session:
            session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
