"""Remote backend: REST API with snake_case JSON payloads"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Type

import aiohttp
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
from dochub.models.analytics import (
    ActivityItem,
    Analytics,
    CourseCount,
    DocumentTypeSlice,
    DownloadBucket,
    ProfessorRanking,
    UploadBucket,
)
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
from dochub.services.analytics import TYPE_COLORS
from dochub.services.notifications import ChangeNotifier
from dochub.utils.logger import get_logger

logger = get_logger(__name__)


def _from_wire(model: Type[EntityModel], item: Any):
    try:
        return model.from_record(item)
    except ValidationError as e:
        raise SerializationError(f"Unexpected {model.__name__} payload: {e}") from e


def _document_from_wire(item: Dict[str, Any]) -> Document:
    # Fresh rows come back with downloads = null
    return _from_wire(Document, {**item, "downloads": item.get("downloads") or 0})


def _folder_from_wire(item: Dict[str, Any]) -> Folder:
    return _from_wire(
        Folder,
        {**item, "description": item.get("description") or "", "document_count": item.get("document_count") or 0},
    )


def _items(payload: Any) -> List[Dict[str, Any]]:
    """Unwrap a list envelope ({"items": [...]})"""
    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        raise SerializationError("List response is missing its items array")
    return payload["items"]


def analytics_from_wire(data: Dict[str, Any], time_range: TimeRange) -> Analytics:
    """Map the pre-aggregated analytics payload onto the Analytics model"""
    try:
        return Analytics(
            total_documents=data.get("total_documents") or 0,
            total_downloads=data.get("total_downloads") or 0,
            window_downloads=data.get("window_downloads") or 0,
            unique_courses=data.get("unique_courses") or 0,
            unique_professors=data.get("unique_professors") or 0,
            uploads_over_time=[
                UploadBucket(period=item["period"], uploads=item["count"])
                for item in data.get("uploads_over_time") or []
            ],
            course_distribution=[
                CourseCount(course=item["course"], documents=item["count"])
                for item in data.get("course_distribution") or []
            ],
            document_types=[
                DocumentTypeSlice(
                    name=item["file_type"][:1].upper() + item["file_type"][1:],
                    value=item["count"],
                    fill=TYPE_COLORS.get(item["file_type"], TYPE_COLORS["other"]),
                )
                for item in data.get("document_types") or []
            ],
            top_professors=[
                ProfessorRanking(name=item["professor"], course=item.get("course") or "", documents=item["count"])
                for item in data.get("top_professors") or []
            ],
            download_trends=[
                DownloadBucket(period=item["period"], downloads=item["count"])
                for item in data.get("download_trends") or []
            ],
            recent_activity=[
                ActivityItem(
                    type=item["activity_type"],
                    document=item["document_title"],
                    time=item["time_ago"],
                    timestamp=item["timestamp"],
                )
                for item in data.get("recent_activity") or []
            ],
            time_range=time_range,
        )
    except (KeyError, TypeError, ValidationError) as e:
        raise SerializationError(f"Unexpected analytics payload: {e}") from e


class RemoteAPI(DatabaseAPI):
    """
    Data access through a REST service that owns the data.

    List endpoints answer ``{"items": [...]}``, write endpoints answer the
    created or updated entity and deletes answer an empty body. Non-2xx
    responses, connection failures and timeouts raise TransportError; nothing
    is retried. Same-process observers are notified after each successful
    write; the server is the source of truth for everyone else.
    """

    def __init__(
        self,
        base_url: str,
        notifier: Optional[ChangeNotifier] = None,
        timeout: int = 30,
        token: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.notifier = notifier or ChangeNotifier()
        self.timeout = timeout
        self.token = token
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers,
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close HTTP session"""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Any] = None,
        params: Optional[Dict[str, str]] = None,
        missing_ok: bool = False,
        missing: Any = None,
    ) -> Any:
        """
        Perform one HTTP call and decode the JSON body

        Args:
            method: HTTP method
            endpoint: Path below the base URL, e.g. "/documents"
            payload: JSON body
            params: Query parameters
            missing_ok: Return `missing` on 404 instead of raising
            missing: Value returned for a 404 when missing_ok is set

        Returns:
            Decoded JSON, or None for an empty body
        """
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"
        try:
            async with session.request(method, url, json=payload, params=params) as response:
                if response.status == 404 and missing_ok:
                    return missing
                if response.status >= 400:
                    error_text = await response.text()
                    logger.error(f"Remote API error: {method} {endpoint} -> {response.status} {error_text[:200]}")
                    raise TransportError(
                        f"Remote API error: {response.status} {response.reason}",
                        status=response.status,
                    )
                text = await response.text()
        except asyncio.TimeoutError as e:
            logger.error(f"Remote API timeout: {method} {endpoint}")
            raise TransportError(f"Remote API timed out: {method} {endpoint}") from e
        except aiohttp.ClientError as e:
            logger.error(f"Remote API unreachable: {method} {endpoint}: {e}")
            raise TransportError(f"Remote API unreachable: {e}") from e

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise SerializationError(f"Remote API returned invalid JSON for {endpoint}") from e

    async def _delete(self, endpoint: str) -> bool:
        """DELETE one record; False when the server did not have it"""
        return await self._request("DELETE", endpoint, missing_ok=True, missing=False) is not False

    # Documents

    async def get_documents(self) -> List[Document]:
        data = await self._request("GET", "/documents")
        return [_document_from_wire(item) for item in _items(data)]

    async def get_document(self, document_id: str) -> Optional[Document]:
        data = await self._request("GET", f"/documents/{document_id}", missing_ok=True)
        return _document_from_wire(data) if data else None

    async def add_document(self, doc: DocumentCreate) -> Document:
        if doc.folder_id:
            # Filed uploads go through the folder endpoint, which maintains its count
            return (await self.add_documents_to_folder(doc.folder_id, [doc]))[0]

        result = await self._request("POST", "/documents", payload=doc.to_wire())
        created = _document_from_wire({**result, "downloads": 0})
        await self.notifier.notify(DOCUMENTS_KEY)
        return created

    async def increment_download(self, document_id: str) -> None:
        # Counter first, so an unknown id records no event
        result = await self._request(
            "PUT", f"/documents/{document_id}/increment-download", missing_ok=True
        )
        if result is None and await self.get_document(document_id) is None:
            logger.debug(f"Download for unknown document {document_id} ignored")
            return
        await self.notifier.notify(DOCUMENTS_KEY)

        event = DownloadEvent(document_id=document_id, timestamp=utc_now())
        await self._request("POST", "/downloads", payload=event.to_wire())
        await self.notifier.notify(DOWNLOADS_KEY)

    async def get_download_events(self) -> List[DownloadEvent]:
        data = await self._request("GET", "/downloads")
        return [_from_wire(DownloadEvent, item) for item in _items(data)]

    # Folders

    async def get_folders(self) -> List[Folder]:
        data = await self._request("GET", "/folders")
        return [_folder_from_wire(item) for item in _items(data)]

    async def get_folder(self, folder_id: str) -> Optional[Folder]:
        data = await self._request("GET", f"/folders/{folder_id}", missing_ok=True)
        return _folder_from_wire(data) if data else None

    async def add_folder(self, folder: FolderCreate) -> Folder:
        result = await self._request("POST", "/folders", payload=folder.to_wire())
        created = _folder_from_wire(result)
        await self.notifier.notify(FOLDERS_KEY)
        return created

    async def delete_folder(self, folder_id: str) -> None:
        # The server cascades to the folder's documents
        if await self._delete(f"/folders/{folder_id}"):
            await self.notifier.notify(FOLDERS_KEY)
            await self.notifier.notify(DOCUMENTS_KEY)

    async def get_folder_documents(self, folder_id: str) -> List[Document]:
        data = await self._request("GET", f"/folders/{folder_id}/documents")
        return [_document_from_wire(item) for item in _items(data)]

    async def add_documents_to_folder(
        self, folder_id: str, docs: Sequence[FolderDocumentCreate]
    ) -> List[Document]:
        if not docs:
            if await self.get_folder(folder_id) is None:
                raise NotFoundError("Folder", folder_id)
            return []

        payload = {"items": [doc.to_wire() for doc in docs]}
        result = await self._request("POST", f"/folders/{folder_id}/documents", payload=payload, missing_ok=True)
        if result is None:
            raise NotFoundError("Folder", folder_id)
        created = [_document_from_wire({**item, "folder_id": folder_id}) for item in _items(result)]
        await self.notifier.notify(DOCUMENTS_KEY)
        await self.notifier.notify(FOLDERS_KEY)
        return created

    # Comments

    async def get_comments(self, document_id: Optional[str] = None) -> List[Comment]:
        params = {"document_id": document_id} if document_id else None
        data = await self._request("GET", "/comments", params=params)
        return [_from_wire(Comment, item) for item in _items(data)]

    async def add_comment(self, document_id: str, author: str, content: str) -> Comment:
        payload = {
            "document_id": document_id,
            "author": clean_author(author),
            "content": content.strip(),
            "created_at": utc_now().isoformat(),
        }
        result = await self._request("POST", "/comments", payload=payload)
        created = _from_wire(Comment, result)
        await self.notifier.notify(COMMENTS_KEY)
        return created

    async def delete_comment(self, comment_id: str) -> None:
        if await self._delete(f"/comments/{comment_id}"):
            await self.notifier.notify(COMMENTS_KEY)

    # Co-ops

    async def get_coops(self) -> List[Coop]:
        data = await self._request("GET", "/coops")
        return [_from_wire(Coop, item) for item in _items(data)]

    async def get_coop(self, coop_id: str) -> Optional[Coop]:
        data = await self._request("GET", f"/coops/{coop_id}", missing_ok=True)
        return _from_wire(Coop, data) if data else None

    async def add_coop(self, data: CoopCreate) -> Coop:
        result = await self._request("POST", "/coops", payload=data.to_wire())
        created = _from_wire(Coop, result)
        await self.notifier.notify(COOPS_KEY)
        return created

    async def update_coop(self, coop_id: str, changes: CoopUpdate) -> Coop:
        payload = changes.model_dump(mode="json", exclude_unset=True)
        result = await self._request("PUT", f"/coops/{coop_id}", payload=payload, missing_ok=True)
        if result is None:
            raise NotFoundError("Coop", coop_id)
        updated = _from_wire(Coop, result)
        await self.notifier.notify(COOPS_KEY)
        return updated

    async def delete_coop(self, coop_id: str) -> None:
        if await self._delete(f"/coops/{coop_id}"):
            await self.notifier.notify(COOPS_KEY)

    # Analytics

    async def get_analytics(self, time_range: TimeRange = TimeRange.MONTH) -> Analytics:
        time_range = TimeRange(time_range)
        data = await self._request("GET", "/analytics", params={"time_range": time_range.value})
        return analytics_from_wire(data or {}, time_range)
