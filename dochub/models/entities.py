"""Entity models for documents, folders, comments, download events and co-ops

Attributes are snake_case. The local key-value store persists records with
camelCase keys, the remote REST backend speaks snake_case; both shapes are
accepted on input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class FileType(str, Enum):
    PDF = "pdf"
    EXCEL = "excel"
    PYTHON = "python"
    JAVA = "java"
    POWERPOINT = "powerpoint"
    OTHER = "other"


class CoopStatus(str, Enum):
    CURRENT = "current"
    PAST = "past"


class TimeRange(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class EntityModel(BaseModel):
    """Base model with camelCase storage aliases"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_storage(self) -> Dict[str, Any]:
        """Serialize for the local key-value store (camelCase keys)"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for the remote REST backend (snake_case keys)"""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_record(cls, data: Dict[str, Any]):
        """Build from either a stored (camelCase) or wire (snake_case) record"""
        return cls.model_validate(data)


class Document(EntityModel):
    """Metadata for one uploaded file"""

    id: str
    title: str
    course: str
    professor: str
    file_type: FileType = FileType.OTHER
    file_name: str
    uploaded_at: UtcDatetime
    downloads: int = Field(default=0, ge=0)
    folder_id: Optional[str] = None  # None means unfiled


class FolderDocumentCreate(EntityModel):
    """Document fields supplied when batch-adding to a folder"""

    title: str
    course: str
    professor: str
    file_type: FileType = FileType.OTHER
    file_name: str
    uploaded_at: UtcDatetime = Field(default_factory=utc_now)


class DocumentCreate(FolderDocumentCreate):
    """Document fields supplied on upload (id and downloads are assigned)"""

    folder_id: Optional[str] = None


class Folder(EntityModel):
    """A named collection of documents"""

    id: str
    name: str
    description: str = ""
    course: str
    professor: str
    created_at: UtcDatetime
    document_count: int = Field(default=0, ge=0)


class FolderCreate(EntityModel):
    name: str
    description: str = ""
    course: str
    professor: str


class Comment(EntityModel):
    """Free-text feedback on a document"""

    id: str
    document_id: str
    author: str
    content: str
    created_at: UtcDatetime


class DownloadEvent(EntityModel):
    """Append-only record of one download"""

    document_id: str
    timestamp: UtcDatetime


class Coop(EntityModel):
    """A brother's co-op or internship entry"""

    id: str
    brother_name: str
    company: str
    position: str
    semester: str  # "Season Year", e.g. "Fall 2024"
    status: CoopStatus = CoopStatus.CURRENT
    notes: Optional[str] = None
    created_at: UtcDatetime


class CoopCreate(EntityModel):
    brother_name: str
    company: str
    position: str
    semester: str
    status: CoopStatus = CoopStatus.CURRENT
    notes: Optional[str] = None


class CoopUpdate(EntityModel):
    """Partial co-op update; unset fields are left untouched"""

    brother_name: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    semester: Optional[str] = None
    status: Optional[CoopStatus] = None
    notes: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly set by the caller, keyed by attribute name"""
        return self.model_dump(exclude_unset=True)
