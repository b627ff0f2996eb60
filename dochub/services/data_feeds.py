"""Observable views over the data access API

A feed holds the latest snapshot of one query and re-runs it whenever a
collection it depends on changes, whether the write came from this process
or (through the storage watcher) from another one.
"""

from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

from dochub.api.base import COMMENTS_KEY, COOPS_KEY, DOCUMENTS_KEY, FOLDERS_KEY, DatabaseAPI
from dochub.errors import DataAccessError
from dochub.models.analytics import Analytics
from dochub.models.entities import (
    Comment,
    Coop,
    CoopCreate,
    CoopUpdate,
    Document,
    DocumentCreate,
    Folder,
    FolderCreate,
    FolderDocumentCreate,
    TimeRange,
)
from dochub.services.coop_grouping import CompanyGroup, group_coops_by_company
from dochub.services.notifications import ChangeEvent, ChangeNotifier
from dochub.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DataFeed(Generic[T]):
    """
    Base class for feeds.

    Subclasses set ``keys`` (None means every collection) and implement
    ``fetch`` and ``empty_state``. Read failures leave an empty state and set
    ``error``; failures from the mutating helpers propagate to the caller.
    """

    keys: Optional[Tuple[str, ...]] = None

    def __init__(self, api: DatabaseAPI, notifier: Optional[ChangeNotifier] = None):
        self.api = api
        self.notifier = notifier or getattr(api, "notifier", None) or ChangeNotifier()
        self.state: T = self.empty_state()
        self.loading = False
        self.error: Optional[Exception] = None
        self._unsubscribe = None
        self._request_id = 0

    async def fetch(self) -> T:
        raise NotImplementedError

    def empty_state(self) -> T:
        raise NotImplementedError

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    async def refresh(self) -> T:
        """Re-run the query; results of superseded or stopped requests are dropped"""
        self._request_id += 1
        request_id = self._request_id
        self.loading = True
        try:
            result = await self.fetch()
            error = None
        except DataAccessError as e:
            logger.error(f"{type(self).__name__} failed to load: {e}")
            result, error = self.empty_state(), e
        finally:
            if request_id == self._request_id:
                self.loading = False

        if request_id == self._request_id:
            self.state = result
            self.error = error
        return self.state

    async def start(self) -> T:
        """Subscribe to change notifications and load the initial state"""
        if self._unsubscribe is None:
            self._unsubscribe = self.notifier.subscribe(self._on_change, keys=self.keys)
        return await self.refresh()

    def stop(self):
        """Unsubscribe; any request still in flight is ignored when it finishes"""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._request_id += 1
        self.loading = False

    async def _on_change(self, event: ChangeEvent):
        logger.debug(f"{type(self).__name__} refreshing after {event.origin} change to {event.key}")
        await self.refresh()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.stop()


class DocumentsFeed(DataFeed[List[Document]]):
    keys = (DOCUMENTS_KEY,)

    async def fetch(self) -> List[Document]:
        return await self.api.get_documents()

    def empty_state(self) -> List[Document]:
        return []

    async def upload(self, doc: DocumentCreate) -> Document:
        return await self.api.add_document(doc)

    async def track_download(self, document_id: str):
        await self.api.increment_download(document_id)


class FoldersFeed(DataFeed[List[Folder]]):
    keys = (FOLDERS_KEY,)

    async def fetch(self) -> List[Folder]:
        return await self.api.get_folders()

    def empty_state(self) -> List[Folder]:
        return []

    async def create_folder(self, folder: FolderCreate) -> Folder:
        return await self.api.add_folder(folder)

    async def delete_folder(self, folder_id: str):
        await self.api.delete_folder(folder_id)


class FolderDocumentsFeed(DataFeed[List[Document]]):
    keys = (DOCUMENTS_KEY, FOLDERS_KEY)

    def __init__(self, api: DatabaseAPI, folder_id: str, notifier: Optional[ChangeNotifier] = None):
        self.folder_id = folder_id
        super().__init__(api, notifier)

    async def fetch(self) -> List[Document]:
        return await self.api.get_folder_documents(self.folder_id)

    def empty_state(self) -> List[Document]:
        return []

    async def add_documents(self, docs: Sequence[FolderDocumentCreate]) -> List[Document]:
        return await self.api.add_documents_to_folder(self.folder_id, docs)

    async def delete_folder(self):
        await self.api.delete_folder(self.folder_id)


class CommentsFeed(DataFeed[List[Comment]]):
    keys = (COMMENTS_KEY,)

    def __init__(self, api: DatabaseAPI, document_id: str, notifier: Optional[ChangeNotifier] = None):
        self.document_id = document_id
        super().__init__(api, notifier)

    async def fetch(self) -> List[Comment]:
        return await self.api.get_comments(self.document_id)

    def empty_state(self) -> List[Comment]:
        return []

    async def add_comment(self, author: str, content: str) -> Comment:
        return await self.api.add_comment(self.document_id, author, content)

    async def delete_comment(self, comment_id: str):
        await self.api.delete_comment(comment_id)


class CoopsFeed(DataFeed[List[Coop]]):
    keys = (COOPS_KEY,)

    async def fetch(self) -> List[Coop]:
        return await self.api.get_coops()

    def empty_state(self) -> List[Coop]:
        return []

    @property
    def groups(self) -> List[CompanyGroup]:
        return group_coops_by_company(self.state)

    async def add_coop(self, data: CoopCreate) -> Coop:
        return await self.api.add_coop(data)

    async def update_coop(self, coop_id: str, changes: CoopUpdate) -> Coop:
        return await self.api.update_coop(coop_id, changes)

    async def delete_coop(self, coop_id: str):
        await self.api.delete_coop(coop_id)


class AnalyticsFeed(DataFeed[Analytics]):
    # Analytics depends on documents and downloads, but any write may matter
    keys = None

    def __init__(
        self,
        api: DatabaseAPI,
        time_range: Any = TimeRange.MONTH,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self.time_range = TimeRange(time_range)
        super().__init__(api, notifier)

    async def fetch(self) -> Analytics:
        return await self.api.get_analytics(self.time_range)

    def empty_state(self) -> Analytics:
        return Analytics(time_range=self.time_range)

    async def set_time_range(self, time_range: Any) -> Analytics:
        self.time_range = TimeRange(time_range)
        return await self.refresh()


__all__ = [
    "AnalyticsFeed",
    "CommentsFeed",
    "CoopsFeed",
    "DataFeed",
    "DocumentsFeed",
    "FolderDocumentsFeed",
    "FoldersFeed",
]
