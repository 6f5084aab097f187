"""Repository for sparse per-user settings."""

import logging
from typing import Dict, Mapping

from sqlalchemy.orm import Session, sessionmaker

from neochat.modules.config.user_settings import SETTING_DEFAULTS, SETTING_KEYS, SETTING_MAX_LENGTHS

from .models import SettingRecord

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Key/value settings over the fixed key set in ``SETTING_KEYS``."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _get_session(self) -> Session:
        return self._session_factory()

    def get_stored(self, user_id: str) -> Dict[str, str]:
        """Only the keys the user has explicitly stored."""
        with self._get_session() as session:
            rows = session.query(SettingRecord).filter(SettingRecord.user_id == user_id).all()
            return {row.key: row.value for row in rows if row.key in SETTING_KEYS}

    def get_effective(self, user_id: str) -> Dict[str, str]:
        """Defaults overlaid with stored values."""
        return {**SETTING_DEFAULTS, **self.get_stored(user_id)}

    def update(self, user_id: str, values: Mapping[str, object]) -> Dict[str, str]:
        """Upsert known keys; unknown keys and over-long values are skipped.

        Returns:
            The key/value pairs that were written.
        """
        written: Dict[str, str] = {}
        with self._get_session() as session:
            existing = {
                row.key: row
                for row in session.query(SettingRecord).filter(SettingRecord.user_id == user_id).all()
            }
            for key, raw in values.items():
                if key not in SETTING_KEYS or raw is None:
                    continue
                value = str(raw)
                max_len = SETTING_MAX_LENGTHS.get(key)
                if max_len is not None and len(value) > max_len:
                    logger.info("Skipping setting %s: value exceeds %d chars", key, max_len)
                    continue
                row = existing.get(key)
                if row is None:
                    session.add(SettingRecord(user_id=user_id, key=key, value=value))
                else:
                    row.value = value
                written[key] = value
            session.commit()
        return written
