"""Key-value storage entry model"""

from datetime import datetime
from sqlmodel import SQLModel, Field

from dochub.models.entities import utc_now


class StorageEntry(SQLModel, table=True):
    """One serialized collection in the local key-value store"""

    __tablename__ = "storage_entries"

    key: str = Field(primary_key=True)
    value: str  # JSON text
    # Bumped on every write; other processes compare it to detect changes
    revision: int = Field(default=1)
    writer_id: str = Field(index=True)  # Id of the store instance that wrote last
    updated_at: datetime = Field(default_factory=utc_now)
