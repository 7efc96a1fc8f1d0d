"""
SQL persistence gateway.

Stores session records in a single ``session_records`` table: a few indexed
columns for filtering plus the full serialized record as JSON. SQLite by
default; any SQLAlchemy URL works.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import JSON, BigInteger, Float, Index, Integer, String, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from neurotrack.core.errors import PersistenceError


class Base(DeclarativeBase):
    pass


class SessionRecord(Base):
    """One finalized session and its analysis report."""

    __tablename__ = "session_records"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    activity_id: Mapped[str] = mapped_column(String(128), nullable=False)
    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_time: Mapped[Optional[int]] = mapped_column(BigInteger)
    status: Mapped[str] = mapped_column(String(16), default="completed")
    difficulty: Mapped[str] = mapped_column(String(16), default="easy")
    accuracy: Mapped[int] = mapped_column(Integer, default=0)
    overall_score: Mapped[float] = mapped_column(Float, default=0.0)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (Index("idx_session_records_user_start", "user_id", "start_time"),)

    def __repr__(self) -> str:
        return f"<SessionRecord {self.session_id} user={self.user_id} activity={self.activity_id}>"


def _engine_for(database_url: str, echo: bool = False):
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so the in-memory database outlives each session
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


class SqlPersistenceGateway:
    """SQLAlchemy-backed gateway."""

    def __init__(self, database_url: str = "sqlite:///neurotrack.db", echo: bool = False):
        self.database_url = database_url
        self.engine = _engine_for(database_url, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        self.init_db()

    def init_db(self) -> None:
        """Create tables if missing."""
        Base.metadata.create_all(bind=self.engine)
        logger.debug(f"Session tables ready on {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    def save_session(self, record: dict[str, Any]) -> None:
        report = record.get("report") or {}
        row = SessionRecord(
            session_id=str(record["session_id"]),
            user_id=str(record["user_id"]),
            activity_id=str(record["activity_id"]),
            start_time=int(record.get("start_time") or 0),
            end_time=record.get("end_time"),
            status=str(record.get("status", "completed")),
            difficulty=str(record.get("difficulty", "easy")),
            accuracy=int(record.get("accuracy") or 0),
            overall_score=float(report.get("overall_score") or 0.0),
            payload=record,
        )
        try:
            with self.session_scope() as session:
                session.merge(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store session {row.session_id}: {e}") from e
        logger.debug(f"Session {row.session_id} stored")

    def load_recent_sessions(self, user_id: str, since_ms: int = 0, limit: int = 50) -> list[dict[str, Any]]:
        stmt = (
            select(SessionRecord.payload)
            .where(SessionRecord.user_id == user_id, SessionRecord.start_time >= since_ms)
            .order_by(SessionRecord.start_time.desc())
            .limit(limit)
        )
        try:
            with self.session_scope() as session:
                payloads = list(session.scalars(stmt))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load sessions for {user_id}: {e}") from e
        payloads.reverse()
        return payloads

    def dispose(self) -> None:
        self.engine.dispose()
