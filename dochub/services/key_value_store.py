"""String-keyed store persisting serialized collections in the database"""

from typing import Dict, Optional, Tuple
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from dochub.errors import TransportError
from dochub.database import DatabaseService
from dochub.models.entities import utc_now
from dochub.models.storage_entry import StorageEntry
from dochub.utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueStore:
    """Text values under string keys, shared by every process using the same database.

    Each write bumps the key's revision and records which store instance wrote
    it, so a watcher can tell its own writes from writes made elsewhere.
    """

    def __init__(self, database: DatabaseService, prefix: str = "", writer_id: Optional[str] = None):
        self.database = database
        self.prefix = prefix
        self.writer_id = writer_id or str(uuid4())

    def _physical_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text for ``key`` or None"""
        try:
            with self.database.get_session() as session:
                entry = session.get(StorageEntry, self._physical_key(key))
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise TransportError(f"Failed to read {key} from store: {e}") from e

    def set_item(self, key: str, value: str) -> int:
        """Store ``value`` under ``key`` and return the new revision"""
        physical_key = self._physical_key(key)
        try:
            with self.database.get_session() as session:
                entry = session.get(StorageEntry, physical_key)
                if entry is None:
                    entry = StorageEntry(key=physical_key, value=value, revision=1, writer_id=self.writer_id)
                else:
                    entry.value = value
                    entry.revision += 1
                    entry.writer_id = self.writer_id
                    entry.updated_at = utc_now()
                session.add(entry)
                session.commit()
                logger.debug(f"Stored {physical_key} at revision {entry.revision} ({len(value)} chars)")
                return entry.revision
        except SQLAlchemyError as e:
            logger.error(f"Failed to write {physical_key}: {e}")
            raise TransportError(f"Failed to write {key} to store: {e}") from e

    def remove_item(self, key: str) -> bool:
        """Delete ``key``; returns False if it was not present"""
        physical_key = self._physical_key(key)
        try:
            with self.database.get_session() as session:
                entry = session.get(StorageEntry, physical_key)
                if entry is None:
                    return False
                session.delete(entry)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise TransportError(f"Failed to remove {key} from store: {e}") from e

    def revisions(self) -> Dict[str, Tuple[int, str]]:
        """Map each key under this prefix to (revision, writer_id)"""
        try:
            with self.database.get_session() as session:
                rows = session.exec(
                    select(StorageEntry.key, StorageEntry.revision, StorageEntry.writer_id).where(
                        StorageEntry.key.startswith(self.prefix, autoescape=True)
                    )
                ).all()
        except SQLAlchemyError as e:
            raise TransportError(f"Failed to read store revisions: {e}") from e

        return {key[len(self.prefix):]: (revision, writer_id) for key, revision, writer_id in rows}
