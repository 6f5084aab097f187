"""Persistence module using SQLAlchemy with SQLite/PostgreSQL."""

from .conversation_repository import ConversationRepository
from .database import get_engine, get_session_factory, init_database, reset_engine
from .memory_repository import MemoryLimitError, MemoryRepository, SaveStatus
from .models import (
    DEFAULT_CONVERSATION_TITLE,
    Base,
    ConversationRecord,
    MemoryFactRecord,
    MessageRecord,
    RemoteServerRecord,
    SettingRecord,
)
from .remote_server_repository import RemoteServerRepository
from .settings_repository import SettingsRepository

__all__ = [
    "get_engine",
    "get_session_factory",
    "init_database",
    "reset_engine",
    "ConversationRepository",
    "MemoryRepository",
    "MemoryLimitError",
    "SaveStatus",
    "SettingsRepository",
    "RemoteServerRepository",
    "Base",
    "ConversationRecord",
    "MessageRecord",
    "SettingRecord",
    "MemoryFactRecord",
    "RemoteServerRecord",
    "DEFAULT_CONVERSATION_TITLE",
]
