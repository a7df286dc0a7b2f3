"""
Key-value stores behind the persistent geocode cache.

``SqlKeyValueStore`` keeps entries in the ``geocode_cache`` table;
``InMemoryKeyValueStore`` is a dict with the same contract, for tests and for
running without a database. Both raise ``StorageFullError`` when a write does
not fit and ``StorageUnavailableError`` when the backend cannot be used.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from geotrail.db.database import GeocodeCacheDB, SessionLocal
from geotrail.geocoding.errors import StorageFullError, StorageUnavailableError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._data: Dict[str, str] = {}

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        if key not in self._data and self.max_entries is not None and len(self._data) >= self.max_entries:
            raise StorageFullError(f"Store is full ({self.max_entries} entries)")
        self._data[key] = value

    def remove(self, key):
        self._data.pop(key, None)

    def keys(self, prefix=""):
        return [key for key in self._data if key.startswith(prefix)]


class SqlKeyValueStore(KeyValueStore):
    def __init__(self, session_factory=None, max_entries: Optional[int] = None):
        self.session_factory = session_factory or SessionLocal
        self.max_entries = max_entries

    def get(self, key):
        try:
            with self.session_factory() as db:
                row = db.get(GeocodeCacheDB, key)
                return row.value if row else None
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Could not read {key}: {e}") from e

    def set(self, key, value):
        try:
            with self.session_factory() as db:
                existing = db.get(GeocodeCacheDB, key)
                if existing:
                    existing.value = value
                else:
                    if self.max_entries is not None and db.query(GeocodeCacheDB).count() >= self.max_entries:
                        raise StorageFullError(f"Store is full ({self.max_entries} entries)")
                    db.add(GeocodeCacheDB(key=key, value=value))
                db.commit()
        except OperationalError as e:
            # SQLite reports SQLITE_FULL as "database or disk is full"
            if "full" in str(e).lower():
                raise StorageFullError(f"Could not write {key}: {e}") from e
            raise StorageUnavailableError(f"Could not write {key}: {e}") from e
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Could not write {key}: {e}") from e

    def remove(self, key):
        try:
            with self.session_factory() as db:
                db.query(GeocodeCacheDB).filter(GeocodeCacheDB.key == key).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Could not remove {key}: {e}") from e

    def keys(self, prefix=""):
        try:
            with self.session_factory() as db:
                query = db.query(GeocodeCacheDB.key)
                if prefix:
                    query = query.filter(GeocodeCacheDB.key.startswith(prefix, autoescape=True))
                return [row.key for row in query.all()]
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Could not list keys: {e}") from e
