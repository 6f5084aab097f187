"""Repository for per-user memory facts.

Facts are deduplicated case-insensitively at insert time and capped per user.
Both the ``memory_save`` tool, background auto-memory and the manual memory
routes go through ``add_fact`` so the same rules apply everywhere.
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, desc, func, select
from sqlalchemy.orm import Session, sessionmaker

from neochat.domain.errors import ValidationError

from .models import MemoryFactRecord

logger = logging.getLogger(__name__)


class SaveStatus(str, enum.Enum):
    SAVED = "saved"
    DUPLICATE = "duplicate"


def _fact_to_dict(fact: MemoryFactRecord) -> Dict[str, Any]:
    return {
        "id": fact.id,
        "content": fact.content,
        "created_at": fact.created_at.isoformat() if fact.created_at else None,
        "updated_at": fact.updated_at.isoformat() if fact.updated_at else None,
    }


class MemoryLimitError(ValidationError):
    """The user already stores the maximum number of facts."""
    pass


class MemoryRepository:
    """Stores and recalls memory facts."""

    def __init__(self, session_factory: sessionmaker, fact_limit: int = 500, max_chars: int = 1000):
        self._session_factory = session_factory
        self.fact_limit = fact_limit
        self.max_chars = max_chars

    def _get_session(self) -> Session:
        return self._session_factory()

    def _validate_content(self, content: Optional[str]) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Content required")
        if len(content) > self.max_chars:
            raise ValidationError(f"Memory fact too long (max {self.max_chars} chars)")
        return content

    def list_facts(self, user_id: str) -> List[Dict[str, Any]]:
        """All facts for a user, most recently updated first."""
        with self._get_session() as session:
            facts = session.query(MemoryFactRecord).filter(
                MemoryFactRecord.user_id == user_id
            ).order_by(desc(MemoryFactRecord.updated_at), desc(MemoryFactRecord.created_at)).all()
            return [_fact_to_dict(f) for f in facts]

    def count_facts(self, user_id: str) -> int:
        with self._get_session() as session:
            return session.execute(
                select(func.count()).select_from(MemoryFactRecord).where(
                    MemoryFactRecord.user_id == user_id
                )
            ).scalar() or 0

    def add_fact(self, user_id: str, content: Optional[str]) -> Tuple[SaveStatus, Dict[str, Any]]:
        """Insert a fact unless an identical one (ignoring case) already exists.

        Raises:
            ValidationError: empty or over-long content.
            MemoryLimitError: the per-user cap is reached.
        """
        content = self._validate_content(content)
        folded = content.casefold()
        with self._get_session() as session:
            existing = session.query(MemoryFactRecord).filter(
                MemoryFactRecord.user_id == user_id
            ).all()
            for fact in existing:
                if fact.content.casefold() == folded:
                    return SaveStatus.DUPLICATE, _fact_to_dict(fact)

            if len(existing) >= self.fact_limit:
                raise MemoryLimitError(
                    f"Memory limit reached ({self.fact_limit} facts max). Delete some facts first."
                )

            fact = MemoryFactRecord(user_id=user_id, content=content)
            session.add(fact)
            session.commit()
            return SaveStatus.SAVED, _fact_to_dict(fact)

    def update_fact(self, user_id: str, fact_id: str, content: Optional[str]) -> bool:
        content = self._validate_content(content)
        with self._get_session() as session:
            fact = session.query(MemoryFactRecord).filter(
                MemoryFactRecord.id == fact_id,
                MemoryFactRecord.user_id == user_id,
            ).first()
            if not fact:
                return False
            fact.content = content
            fact.updated_at = datetime.now(timezone.utc)
            session.commit()
            return True

    def delete_fact(self, user_id: str, fact_id: str) -> bool:
        with self._get_session() as session:
            result = session.execute(
                delete(MemoryFactRecord).where(
                    MemoryFactRecord.id == fact_id,
                    MemoryFactRecord.user_id == user_id,
                )
            )
            session.commit()
            return bool(result.rowcount)

    def clear_facts(self, user_id: str) -> int:
        with self._get_session() as session:
            result = session.execute(
                delete(MemoryFactRecord).where(MemoryFactRecord.user_id == user_id)
            )
            session.commit()
            logger.info("Cleared %d memory facts", result.rowcount or 0)
            return result.rowcount or 0
