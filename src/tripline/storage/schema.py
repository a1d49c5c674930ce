"""SQLAlchemy ORM schema for persistent execution bookkeeping."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all Tripline ORM models."""

    pass


class ExecutionRow(Base):
    """Last execution of one node for one target."""

    __tablename__ = "executions"

    node_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    target_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    last_execution_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MetaRow(Base):
    """Key-value metadata about the bookkeeping database (schema version)."""

    __tablename__ = "_tripline_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
