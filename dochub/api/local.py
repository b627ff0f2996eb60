"""Local backend: collections serialized as JSON in the shared key-value store"""

import json
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Type
from uuid import uuid4

from pydantic import ValidationError

from dochub.api.base import (
    COMMENTS_KEY,
    COOPS_KEY,
    DOCUMENTS_KEY,
    DOWNLOADS_KEY,
    FOLDERS_KEY,
    DatabaseAPI,
    clean_author,
)
from dochub.errors import NotFoundError, SerializationError, TransportError
from dochub.models.analytics import Analytics
from dochub.models.entities import (
    Comment,
    Coop,
    CoopCreate,
    CoopUpdate,
    Document,
    DocumentCreate,
    DownloadEvent,
    EntityModel,
    Folder,
    FolderCreate,
    FolderDocumentCreate,
    TimeRange,
    utc_now,
)
from dochub.services.analytics import compute_analytics
from dochub.services.key_value_store import KeyValueStore
from dochub.services.notifications import ChangeNotifier
from dochub.utils.logger import get_logger

logger = get_logger(__name__)

COLLECTION_MODELS: Dict[str, Type[EntityModel]] = {
    DOCUMENTS_KEY: Document,
    DOWNLOADS_KEY: DownloadEvent,
    COMMENTS_KEY: Comment,
    FOLDERS_KEY: Folder,
    COOPS_KEY: Coop,
}

QUARANTINE_SUFFIX = ".corrupt"


def parse_collection(raw: str, model: Type[EntityModel]) -> list:
    """Parse a stored JSON array into models; raises SerializationError"""
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise SerializationError(f"Stored value is not JSON: {e}") from e
    if not isinstance(data, list):
        raise SerializationError(f"Stored value is a {type(data).__name__}, expected a list")
    try:
        return [model.from_record(record) for record in data]
    except ValidationError as e:
        raise SerializationError(f"Stored record does not match {model.__name__}: {e}") from e


class LocalStorageAPI(DatabaseAPI):
    """Data access over a KeyValueStore.

    Every mutation reads the whole collection, changes it in memory and writes
    it back, then notifies observers with the collection key. Reads fall back
    to an empty collection when the stored value is unreadable; writes never
    silently discard data (a corrupt value is copied aside before it is
    replaced).
    """

    def __init__(
        self,
        store: KeyValueStore,
        notifier: Optional[ChangeNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
        close_database: bool = False,
    ):
        self.store = store
        self.notifier = notifier or ChangeNotifier()
        self.clock = clock
        self._close_database = close_database

    async def close(self):
        """Dispose the database engine when this backend created it"""
        if self._close_database:
            self.store.database.close()

    # Collection I/O

    def read_collection(self, key: str) -> list:
        """Lenient read: unreadable data is logged and treated as empty"""
        try:
            raw = self.store.get_item(key)
        except TransportError as e:
            logger.error(f"Error reading {key} from store: {e}")
            return []
        if raw is None:
            return []
        try:
            return parse_collection(raw, COLLECTION_MODELS[key])
        except SerializationError as e:
            logger.error(f"Error parsing {key} from store: {e}")
            return []

    def read_for_write(self, key: str) -> list:
        """Strict read used before a write; store failures propagate"""
        raw = self.store.get_item(key)
        if raw is None:
            return []
        try:
            return parse_collection(raw, COLLECTION_MODELS[key])
        except SerializationError as e:
            quarantine_key = f"{key}{QUARANTINE_SUFFIX}"
            logger.error(f"Corrupt {key} collection moved to {quarantine_key} before write: {e}")
            self.store.set_item(quarantine_key, raw)
            return []

    async def write_collection(self, key: str, records: Sequence[EntityModel]):
        """Persist a whole collection and notify observers"""
        self.store.set_item(key, json.dumps([record.to_storage() for record in records]))
        await self.notifier.notify(key)

    # Documents

    async def get_documents(self) -> List[Document]:
        return self.read_collection(DOCUMENTS_KEY)

    async def get_document(self, document_id: str) -> Optional[Document]:
        return next((d for d in self.read_collection(DOCUMENTS_KEY) if d.id == document_id), None)

    async def add_document(self, doc: DocumentCreate) -> Document:
        if doc.folder_id:
            # Filed uploads go through the folder so its count stays in step
            return (await self.add_documents_to_folder(doc.folder_id, [doc]))[0]

        documents = self.read_for_write(DOCUMENTS_KEY)
        new_doc = Document(id=str(uuid4()), downloads=0, **doc.model_dump())
        documents.insert(0, new_doc)
        await self.write_collection(DOCUMENTS_KEY, documents)
        logger.info(f"Added document {new_doc.id} ({new_doc.file_name})")
        return new_doc

    async def increment_download(self, document_id: str) -> None:
        documents = self.read_for_write(DOCUMENTS_KEY)
        doc = next((d for d in documents if d.id == document_id), None)
        if doc is None:
            logger.debug(f"Download for unknown document {document_id} ignored")
            return

        doc.downloads += 1
        await self.write_collection(DOCUMENTS_KEY, documents)

        events = self.read_for_write(DOWNLOADS_KEY)
        events.append(DownloadEvent(document_id=document_id, timestamp=self.clock()))
        await self.write_collection(DOWNLOADS_KEY, events)

    async def get_download_events(self) -> List[DownloadEvent]:
        return self.read_collection(DOWNLOADS_KEY)

    # Folders

    async def get_folders(self) -> List[Folder]:
        return self.read_collection(FOLDERS_KEY)

    async def get_folder(self, folder_id: str) -> Optional[Folder]:
        return next((f for f in self.read_collection(FOLDERS_KEY) if f.id == folder_id), None)

    async def add_folder(self, folder: FolderCreate) -> Folder:
        folders = self.read_for_write(FOLDERS_KEY)
        new_folder = Folder(
            id=str(uuid4()),
            document_count=0,
            created_at=self.clock(),
            **folder.model_dump(),
        )
        folders.insert(0, new_folder)
        await self.write_collection(FOLDERS_KEY, folders)
        logger.info(f"Created folder {new_folder.id} ({new_folder.name})")
        return new_folder

    async def delete_folder(self, folder_id: str) -> None:
        # Folder record goes first: if a later write fails, the leftover
        # documents are orphans and reconciliation finishes the cascade
        folders = self.read_for_write(FOLDERS_KEY)
        kept_folders = [f for f in folders if f.id != folder_id]
        if len(kept_folders) != len(folders):
            await self.write_collection(FOLDERS_KEY, kept_folders)

        documents = self.read_for_write(DOCUMENTS_KEY)
        kept = [d for d in documents if d.folder_id != folder_id]
        removed_ids = {d.id for d in documents if d.folder_id == folder_id}
        if removed_ids:
            await self.write_collection(DOCUMENTS_KEY, kept)

            comments = self.read_for_write(COMMENTS_KEY)
            kept_comments = [c for c in comments if c.document_id not in removed_ids]
            if len(kept_comments) != len(comments):
                await self.write_collection(COMMENTS_KEY, kept_comments)

        logger.info(f"Deleted folder {folder_id} with {len(removed_ids)} documents")

    async def get_folder_documents(self, folder_id: str) -> List[Document]:
        return [d for d in self.read_collection(DOCUMENTS_KEY) if d.folder_id == folder_id]

    async def add_documents_to_folder(
        self, folder_id: str, docs: Sequence[FolderDocumentCreate]
    ) -> List[Document]:
        folders = self.read_for_write(FOLDERS_KEY)
        folder = next((f for f in folders if f.id == folder_id), None)
        if folder is None:
            raise NotFoundError("Folder", folder_id)
        if not docs:
            return []

        new_docs = [
            Document(id=str(uuid4()), downloads=0, folder_id=folder_id, **doc.model_dump(exclude={"folder_id"}))
            for doc in docs
        ]
        documents = self.read_for_write(DOCUMENTS_KEY)
        documents[:0] = new_docs
        await self.write_collection(DOCUMENTS_KEY, documents)

        # Count follows the documents; reconciliation repairs it if this write fails
        folder.document_count += len(new_docs)
        await self.write_collection(FOLDERS_KEY, folders)

        logger.info(f"Added {len(new_docs)} documents to folder {folder_id}")
        return new_docs

    # Comments

    async def get_comments(self, document_id: Optional[str] = None) -> List[Comment]:
        comments = self.read_collection(COMMENTS_KEY)
        if document_id:
            return [c for c in comments if c.document_id == document_id]
        return comments

    async def add_comment(self, document_id: str, author: str, content: str) -> Comment:
        comments = self.read_for_write(COMMENTS_KEY)
        comment = Comment(
            id=str(uuid4()),
            document_id=document_id,
            author=clean_author(author),
            content=content.strip(),
            created_at=self.clock(),
        )
        comments.insert(0, comment)
        await self.write_collection(COMMENTS_KEY, comments)
        return comment

    async def delete_comment(self, comment_id: str) -> None:
        comments = self.read_for_write(COMMENTS_KEY)
        kept = [c for c in comments if c.id != comment_id]
        if len(kept) != len(comments):
            await self.write_collection(COMMENTS_KEY, kept)

    # Co-ops

    async def get_coops(self) -> List[Coop]:
        return self.read_collection(COOPS_KEY)

    async def get_coop(self, coop_id: str) -> Optional[Coop]:
        return next((c for c in self.read_collection(COOPS_KEY) if c.id == coop_id), None)

    async def add_coop(self, data: CoopCreate) -> Coop:
        coops = self.read_for_write(COOPS_KEY)
        coop = Coop(id=str(uuid4()), created_at=self.clock(), **data.model_dump())
        coops.insert(0, coop)
        await self.write_collection(COOPS_KEY, coops)
        logger.info(f"Added co-op {coop.id} at {coop.company}")
        return coop

    async def update_coop(self, coop_id: str, changes: CoopUpdate) -> Coop:
        coops = self.read_for_write(COOPS_KEY)
        for index, coop in enumerate(coops):
            if coop.id == coop_id:
                updated = coop.model_copy(update=changes.changes())
                coops[index] = updated
                await self.write_collection(COOPS_KEY, coops)
                return updated
        raise NotFoundError("Coop", coop_id)

    async def delete_coop(self, coop_id: str) -> None:
        coops = self.read_for_write(COOPS_KEY)
        kept = [c for c in coops if c.id != coop_id]
        if len(kept) != len(coops):
            await self.write_collection(COOPS_KEY, kept)

    # Analytics

    async def get_analytics(self, time_range: TimeRange = TimeRange.MONTH) -> Analytics:
        return compute_analytics(
            self.read_collection(DOCUMENTS_KEY),
            self.read_collection(DOWNLOADS_KEY),
            time_range,
            now=self.clock(),
        )
