"""Data access contract shared by the local and remote backends"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from dochub.models.analytics import Analytics
from dochub.models.entities import (
    Comment,
    Coop,
    CoopCreate,
    CoopUpdate,
    Document,
    DocumentCreate,
    DownloadEvent,
    Folder,
    FolderCreate,
    FolderDocumentCreate,
    TimeRange,
)

# Logical collection keys carried by change notifications
DOCUMENTS_KEY = "documents"
DOWNLOADS_KEY = "downloads"
COMMENTS_KEY = "comments"
FOLDERS_KEY = "folders"
COOPS_KEY = "coops"

ALL_KEYS = (DOCUMENTS_KEY, DOWNLOADS_KEY, COMMENTS_KEY, FOLDERS_KEY, COOPS_KEY)


class DatabaseAPI(ABC):
    """CRUD over the entity collections plus the analytics query.

    Every "get many" operation returns records newest-first, except
    ``get_download_events`` which returns the append log oldest-first.
    Failures surface as ``dochub.errors.DataAccessError`` subclasses.
    """

    # Documents

    @abstractmethod
    async def get_documents(self) -> List[Document]: ...

    @abstractmethod
    async def get_document(self, document_id: str) -> Optional[Document]: ...

    @abstractmethod
    async def add_document(self, doc: DocumentCreate) -> Document: ...

    @abstractmethod
    async def increment_download(self, document_id: str) -> None:
        """Bump the counter and log a download event; unknown ids are a silent no-op"""

    @abstractmethod
    async def get_download_events(self) -> List[DownloadEvent]: ...

    # Folders

    @abstractmethod
    async def get_folders(self) -> List[Folder]: ...

    @abstractmethod
    async def get_folder(self, folder_id: str) -> Optional[Folder]: ...

    @abstractmethod
    async def add_folder(self, folder: FolderCreate) -> Folder: ...

    @abstractmethod
    async def delete_folder(self, folder_id: str) -> None:
        """Remove the folder and every document filed in it"""

    @abstractmethod
    async def get_folder_documents(self, folder_id: str) -> List[Document]: ...

    @abstractmethod
    async def add_documents_to_folder(
        self, folder_id: str, docs: Sequence[FolderDocumentCreate]
    ) -> List[Document]: ...

    # Comments

    @abstractmethod
    async def get_comments(self, document_id: Optional[str] = None) -> List[Comment]: ...

    @abstractmethod
    async def add_comment(self, document_id: str, author: str, content: str) -> Comment: ...

    @abstractmethod
    async def delete_comment(self, comment_id: str) -> None: ...

    # Co-ops

    @abstractmethod
    async def get_coops(self) -> List[Coop]: ...

    @abstractmethod
    async def get_coop(self, coop_id: str) -> Optional[Coop]: ...

    @abstractmethod
    async def add_coop(self, data: CoopCreate) -> Coop: ...

    @abstractmethod
    async def update_coop(self, coop_id: str, changes: CoopUpdate) -> Coop:
        """Apply a partial update; raises NotFoundError if the co-op is absent"""

    @abstractmethod
    async def delete_coop(self, coop_id: str) -> None: ...

    # Analytics

    @abstractmethod
    async def get_analytics(self, time_range: TimeRange = TimeRange.MONTH) -> Analytics: ...

    async def close(self):
        """Release backend resources"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


def clean_author(author: Optional[str]) -> str:
    """Trimmed author name, "Anonymous" when blank"""
    return (author or "").strip() or "Anonymous"
