"""SQLAlchemy models for conversations, settings, memory and remote servers.

Uses String(36) UUIDs and no database-level foreign key constraints so the
same schema runs on SQLite and PostgreSQL. Referential integrity (cascade on
conversation delete, ownership checks) is enforced in the repository layer.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase

DEFAULT_CONVERSATION_TITLE = "New Chat"
MESSAGE_ROLES = ("system", "user", "assistant", "tool")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _uuid_default():
    return str(uuid.uuid4())


def _now_utc():
    return datetime.now(timezone.utc)


class ConversationRecord(Base):
    """A conversation owned by one user."""

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False, default=DEFAULT_CONVERSATION_TITLE)
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc, nullable=False)

    __table_args__ = (
        Index("ix_conversations_user_updated", "user_id", "updated_at"),
    )


class MessageRecord(Base):
    """A single message within a conversation.

    ``sequence_number`` is a per-conversation insertion counter; ordering by it
    keeps messages written within the same clock tick in insertion order.
    """

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    conversation_id = Column(String(36), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)
    sequence_number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence_number", name="uq_message_sequence"),
    )


class SettingRecord(Base):
    """One stored user setting; absent keys fall back to defaults."""

    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    key = Column(String(64), nullable=False)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "key", name="uq_setting_user_key"),
    )


class MemoryFactRecord(Base):
    """A remembered fact about a user."""

    __tablename__ = "memory_facts"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    user_id = Column(String(255), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc, nullable=False)


class RemoteServerRecord(Base):
    """A user-configured remote MCP tool server."""

    __tablename__ = "remote_servers"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    user_id = Column(String(255), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    url = Column(Text, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    auth_type = Column(String(20), nullable=False, default="none")
    auth_data = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc, nullable=False)
