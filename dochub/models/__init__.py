"""Models module"""

from dochub.models.entities import (
    Comment,
    Coop,
    CoopCreate,
    CoopStatus,
    CoopUpdate,
    Document,
    DocumentCreate,
    DownloadEvent,
    FileType,
    Folder,
    FolderCreate,
    FolderDocumentCreate,
    TimeRange,
)
from dochub.models.analytics import Analytics
from dochub.models.storage_entry import StorageEntry

__all__ = [
    "Analytics",
    "Comment",
    "Coop",
    "CoopCreate",
    "CoopStatus",
    "CoopUpdate",
    "Document",
    "DocumentCreate",
    "DownloadEvent",
    "FileType",
    "Folder",
    "FolderCreate",
    "FolderDocumentCreate",
    "StorageEntry",
    "TimeRange",
]
