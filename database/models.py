"""
SQLAlchemy ORM models for installed shops and pending OAuth states.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class Shop(Base):
    """One row per installed shop; ``access_token`` is Fernet ciphertext when encryption is on."""

    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop = Column(String(255), unique=True, nullable=False)
    access_token = Column(Text, nullable=False)
    scope = Column(Text)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class OAuthState(Base):
    """A pending authorization, consumed by the first callback that presents it."""

    __tablename__ = "oauth_states"

    state = Column(String(128), primary_key=True)
    shop = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_oauth_states_created_at", "created_at"),)
