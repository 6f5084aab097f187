"""Repository for conversation and message persistence.

Every read and write is scoped to the owning user. Referential integrity is
enforced here rather than via database FK constraints: deleting a
conversation deletes its messages in the same transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.orm import Session, sessionmaker

from neochat.domain.errors import NotFoundError, ValidationError

from .models import DEFAULT_CONVERSATION_TITLE, MESSAGE_ROLES, ConversationRecord, MessageRecord

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 500


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _conversation_to_dict(conv: ConversationRecord) -> Dict[str, Any]:
    return {
        "id": conv.id,
        "title": conv.title,
        "created_at": _iso(conv.created_at),
        "updated_at": _iso(conv.updated_at),
    }


def _message_to_dict(msg: MessageRecord) -> Dict[str, Any]:
    return {
        "id": msg.id,
        "role": msg.role,
        "content": msg.content or "",
        "created_at": _iso(msg.created_at),
    }


class ConversationRepository:
    """Handles conversation CRUD and the ordered message log."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _get_session(self) -> Session:
        return self._session_factory()

    @staticmethod
    def _owned(session: Session, conversation_id: str, user_id: str) -> Optional[ConversationRecord]:
        return session.query(ConversationRecord).filter(
            ConversationRecord.id == conversation_id,
            ConversationRecord.user_id == user_id,
        ).first()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------
    def create_conversation(self, user_id: str, title: Optional[str] = None) -> Dict[str, Any]:
        title = (title or "").strip()[:TITLE_MAX_CHARS] or DEFAULT_CONVERSATION_TITLE
        with self._get_session() as session:
            conv = ConversationRecord(user_id=user_id, title=title)
            session.add(conv)
            session.commit()
            return _conversation_to_dict(conv)

    def get_conversation(self, conversation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the conversation if it exists and belongs to ``user_id``."""
        with self._get_session() as session:
            conv = self._owned(session, conversation_id, user_id)
            return _conversation_to_dict(conv) if conv else None

    def list_conversations(self, user_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        """List conversations for a user, most recently updated first."""
        with self._get_session() as session:
            conversations = session.query(ConversationRecord).filter(
                ConversationRecord.user_id == user_id
            ).order_by(desc(ConversationRecord.updated_at)).limit(limit).all()

            results = []
            for conv in conversations:
                last = session.query(MessageRecord).filter(
                    MessageRecord.conversation_id == conv.id,
                ).order_by(desc(MessageRecord.sequence_number)).first()
                entry = _conversation_to_dict(conv)
                entry["last_message"] = last.content if last else None
                results.append(entry)
            return results

    def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> bool:
        title = (title or "").strip()[:TITLE_MAX_CHARS]
        if not title:
            raise ValidationError("Title required")
        with self._get_session() as session:
            conv = self._owned(session, conversation_id, user_id)
            if not conv:
                return False
            conv.title = title
            conv.updated_at = datetime.now(timezone.utc)
            session.commit()
            return True

    def set_generated_title(self, conversation_id: str, title: str) -> bool:
        """Apply an auto-generated title unless the user already renamed the conversation."""
        with self._get_session() as session:
            conv = session.get(ConversationRecord, conversation_id)
            if not conv or conv.title != DEFAULT_CONVERSATION_TITLE:
                return False
            conv.title = title[:TITLE_MAX_CHARS]
            session.commit()
            return True

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Delete a conversation and all its messages."""
        with self._get_session() as session:
            conv = self._owned(session, conversation_id, user_id)
            if not conv:
                return False
            session.execute(
                delete(MessageRecord).where(MessageRecord.conversation_id == conversation_id)
            )
            session.delete(conv)
            session.commit()
            logger.info("Deleted conversation %s", conversation_id)
            return True

    def touch_conversation(self, conversation_id: str) -> None:
        with self._get_session() as session:
            conv = session.get(ConversationRecord, conversation_id)
            if conv:
                conv.updated_at = datetime.now(timezone.utc)
                session.commit()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def add_message(self, conversation_id: str, role: str, content: str) -> Dict[str, Any]:
        """Append a message; its sequence number is one past the current maximum."""
        if role not in MESSAGE_ROLES:
            raise ValidationError(f"Invalid message role: {role}")
        with self._get_session() as session:
            current_max = session.execute(
                select(func.max(MessageRecord.sequence_number)).where(
                    MessageRecord.conversation_id == conversation_id
                )
            ).scalar()
            record = MessageRecord(
                conversation_id=conversation_id,
                role=role,
                content=content or "",
                sequence_number=(current_max + 1) if current_max is not None else 0,
            )
            session.add(record)
            conv = session.get(ConversationRecord, conversation_id)
            if conv:
                conv.updated_at = datetime.now(timezone.utc)
            session.commit()
            return _message_to_dict(record)

    def count_messages(self, conversation_id: str) -> int:
        with self._get_session() as session:
            return session.execute(
                select(func.count()).select_from(MessageRecord).where(
                    MessageRecord.conversation_id == conversation_id
                )
            ).scalar() or 0

    def list_messages(self, conversation_id: str, user_id: str) -> List[Dict[str, Any]]:
        """All messages of an owned conversation in order; NotFoundError otherwise."""
        with self._get_session() as session:
            if not self._owned(session, conversation_id, user_id):
                raise NotFoundError("Conversation not found")
            msgs = session.query(MessageRecord).filter(
                MessageRecord.conversation_id == conversation_id,
            ).order_by(MessageRecord.sequence_number).all()
            return [_message_to_dict(m) for m in msgs]

    def recent_messages(self, conversation_id: str, limit: int) -> List[Dict[str, Any]]:
        """The most recent ``limit`` messages, returned oldest first."""
        with self._get_session() as session:
            msgs = session.query(MessageRecord).filter(
                MessageRecord.conversation_id == conversation_id,
            ).order_by(desc(MessageRecord.sequence_number)).limit(limit).all()
            return [_message_to_dict(m) for m in reversed(msgs)]

    def truncate_from_message(self, conversation_id: str, user_id: str, message_id: str) -> int:
        """Delete a user message and everything after it.

        The caller re-sends the edited text through the chat endpoint.

        Returns:
            Number of deleted messages.
        """
        with self._get_session() as session:
            if not self._owned(session, conversation_id, user_id):
                raise NotFoundError("Conversation not found")
            msg = session.query(MessageRecord).filter(
                MessageRecord.id == message_id,
                MessageRecord.conversation_id == conversation_id,
            ).first()
            if not msg:
                raise NotFoundError("Message not found")
            if msg.role != "user":
                raise ValidationError("Only user messages can be edited")

            result = session.execute(
                delete(MessageRecord).where(
                    MessageRecord.conversation_id == conversation_id,
                    MessageRecord.sequence_number >= msg.sequence_number,
                )
            )
            conv = session.get(ConversationRecord, conversation_id)
            conv.updated_at = datetime.now(timezone.utc)
            session.commit()
            return result.rowcount or 0
