"""SQLAlchemy ORM models for the planning key-value store."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for ORM models."""


class KeyValueModel(Base):
    """One entry of the planning web key-value store."""

    __tablename__ = "planning_web_key_value_store"

    key: Mapped[str] = mapped_column(
        "planning_web_kv_key", String(255), primary_key=True
    )
    value: Mapped[str | None] = mapped_column(
        "planning_web_kv_value", Text, nullable=True
    )
