"""
Durable Cache - Key/value store backed by the cache_entries table
"""
import json
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...exceptions import CacheUnavailableError
from ...extensions import db, db_lock
from ...models import CacheEntry
from ...utils.logger import get_logger

logger = get_logger('cache')


class DurableCache:
    """JSON values keyed by string, surviving process restarts.

    Database failures surface as CacheUnavailableError so the caller can fail
    the affected listing without touching other keys.
    """

    def __init__(self, app):
        self._app = app

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key is absent or unreadable."""
        with db_lock, self._app.app_context():
            try:
                entry = db.session.get(CacheEntry, key)
            except SQLAlchemyError as e:
                db.session.rollback()
                raise CacheUnavailableError(f"Cache read failed for {key}: {e}") from e
            if entry is None:
                return None
            try:
                return entry.get_value()
            except (json.JSONDecodeError, TypeError):
                logger.warning(f"[DurableCache] Corrupt value for {key}, ignoring")
                return None

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        encoded = json.dumps(value, ensure_ascii=False, default=str)
        with db_lock, self._app.app_context():
            try:
                entry = db.session.get(CacheEntry, key)
                if entry is None:
                    db.session.add(CacheEntry(key=key, value=encoded))
                else:
                    entry.value = encoded
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                raise CacheUnavailableError(f"Cache write failed for {key}: {e}") from e
