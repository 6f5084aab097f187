"""Repository for user-configured remote MCP servers."""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from neochat.domain.errors import ValidationError

from .models import RemoteServerRecord

logger = logging.getLogger(__name__)

AUTH_TYPES = ("none", "token", "oauth")


def server_to_dict(server: RemoteServerRecord, include_auth: bool = False) -> Dict[str, Any]:
    data = {
        "id": server.id,
        "name": server.name,
        "url": server.url,
        "enabled": bool(server.enabled),
        "auth_type": server.auth_type or "none",
        "created_at": server.created_at.isoformat() if server.created_at else None,
    }
    if include_auth:
        data["auth_data"] = server.auth_data
    return data


def encode_auth_data(token: Optional[str]) -> Optional[str]:
    token = (token or "").strip()
    return json.dumps({"token": token}) if token else None


class RemoteServerRepository:
    """CRUD for remote servers; list order is creation order."""

    def __init__(self, session_factory: sessionmaker, name_max_chars: int = 120):
        self._session_factory = session_factory
        self.name_max_chars = name_max_chars

    def _get_session(self) -> Session:
        return self._session_factory()

    def _owned(self, session: Session, server_id: str, user_id: str) -> Optional[RemoteServerRecord]:
        return session.query(RemoteServerRecord).filter(
            RemoteServerRecord.id == server_id,
            RemoteServerRecord.user_id == user_id,
        ).first()

    def list_servers(self, user_id: str) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            rows = session.query(RemoteServerRecord).filter(
                RemoteServerRecord.user_id == user_id
            ).order_by(RemoteServerRecord.created_at, RemoteServerRecord.id).all()
            return [server_to_dict(r) for r in rows]

    def list_enabled(self, user_id: str) -> List[Dict[str, Any]]:
        """Enabled servers including their auth payload, in creation order."""
        with self._get_session() as session:
            rows = session.query(RemoteServerRecord).filter(
                RemoteServerRecord.user_id == user_id,
                RemoteServerRecord.enabled.is_(True),
            ).order_by(RemoteServerRecord.created_at, RemoteServerRecord.id).all()
            return [server_to_dict(r, include_auth=True) for r in rows]

    def get_server(self, server_id: str, user_id: str, include_auth: bool = False) -> Optional[Dict[str, Any]]:
        with self._get_session() as session:
            row = self._owned(session, server_id, user_id)
            return server_to_dict(row, include_auth=include_auth) if row else None

    def create_server(
        self,
        user_id: str,
        name: str,
        url: str,
        auth_type: str = "none",
        auth_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        name = (name or "").strip()[: self.name_max_chars]
        if not name:
            raise ValidationError("name is required")
        if auth_type not in AUTH_TYPES:
            raise ValidationError(f"Unsupported auth_type: {auth_type}")
        with self._get_session() as session:
            row = RemoteServerRecord(
                user_id=user_id,
                name=name,
                url=url.strip(),
                auth_type=auth_type,
                auth_data=encode_auth_data(auth_token),
            )
            session.add(row)
            session.commit()
            return server_to_dict(row)

    def update_server(self, server_id: str, user_id: str, **changes: Any) -> Optional[Dict[str, Any]]:
        """Apply name/url/enabled/auth changes; returns None when not owned."""
        with self._get_session() as session:
            row = self._owned(session, server_id, user_id)
            if not row:
                return None
            if changes.get("name") is not None:
                name = str(changes["name"]).strip()[: self.name_max_chars]
                if not name:
                    raise ValidationError("name is required")
                row.name = name
            if changes.get("url") is not None:
                row.url = str(changes["url"]).strip()
            if changes.get("enabled") is not None:
                row.enabled = bool(changes["enabled"])
            if changes.get("auth_type") is not None:
                if changes["auth_type"] not in AUTH_TYPES:
                    raise ValidationError(f"Unsupported auth_type: {changes['auth_type']}")
                row.auth_type = changes["auth_type"]
            if "auth_token" in changes and changes["auth_token"] is not None:
                row.auth_data = encode_auth_data(changes["auth_token"])
            session.commit()
            return server_to_dict(row)

    def delete_server(self, server_id: str, user_id: str) -> bool:
        with self._get_session() as session:
            row = self._owned(session, server_id, user_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True
