"""Unit tests for the local storage backend"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from dochub.api.local import LocalStorageAPI
from dochub.errors import NotFoundError, TransportError
from dochub.models.analytics import CourseCount
from dochub.models.entities import (
    CoopCreate,
    CoopStatus,
    CoopUpdate,
    DocumentCreate,
    FileType,
    FolderCreate,
    FolderDocumentCreate,
)

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_doc(title="Lab 1", course="CS2000", professor="Dr. Smith", **kwargs) -> DocumentCreate:
    return DocumentCreate(
        title=title,
        course=course,
        professor=professor,
        file_type=kwargs.pop("file_type", FileType.PDF),
        file_name=kwargs.pop("file_name", f"{title}.pdf"),
        **kwargs,
    )


def folder_doc(title: str) -> FolderDocumentCreate:
    return FolderDocumentCreate(
        title=title, course="CS2000", professor="Dr. Smith", file_type=FileType.PDF, file_name=f"{title}.pdf"
    )


def make_coop(company="Acme", status=CoopStatus.CURRENT, semester="Fall 2024", name="Sam") -> CoopCreate:
    return CoopCreate(brother_name=name, company=company, position="Engineer", semester=semester, status=status)


@pytest.fixture
def fixed_api(store, notifier) -> LocalStorageAPI:
    return LocalStorageAPI(store, notifier=notifier, clock=lambda: FIXED_NOW)


def raw_collections(store):
    return {key: store.get_item(key) for key in ("documents", "downloads", "comments", "folders", "coops")}


class TestDocuments:
    """Test document operations"""

    @pytest.mark.asyncio
    async def test_add_document_assigns_id_and_zero_downloads(self, api):
        doc = await api.add_document(make_doc())

        assert doc.id
        assert doc.downloads == 0
        assert doc.folder_id is None
        assert await api.get_document(doc.id) == doc

    @pytest.mark.asyncio
    async def test_documents_are_newest_first(self, api):
        first = await api.add_document(make_doc("First"))
        second = await api.add_document(make_doc("Second"))

        documents = await api.get_documents()

        assert [d.id for d in documents] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_records_are_stored_with_camel_case_keys(self, api, store):
        await api.add_document(make_doc())

        stored = json.loads(store.get_item("documents"))

        assert set(stored[0]) >= {"id", "title", "fileType", "fileName", "uploadedAt", "downloads"}
        assert "file_type" not in stored[0]
        # physical key carries the prefix
        assert store.revisions()["documents"][0] == 1

    @pytest.mark.asyncio
    async def test_reads_existing_camel_case_data(self, api, store):
        store.set_item(
            "documents",
            json.dumps([
                {
                    "id": "1712345678901",
                    "title": "Midterm Review",
                    "course": "CS3500",
                    "professor": "Dr. Lee",
                    "fileType": "pdf",
                    "fileName": "midterm.pdf",
                    "uploadedAt": "2024-03-05T14:30:00.000Z",
                    "downloads": 4,
                }
            ]),
        )

        documents = await api.get_documents()

        assert len(documents) == 1
        assert documents[0].file_type == FileType.PDF
        assert documents[0].downloads == 4
        assert documents[0].uploaded_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing_document_returns_none(self, api):
        assert await api.get_document("missing") is None


class TestDownloads:
    """Test download tracking"""

    @pytest.mark.asyncio
    async def test_increment_download_three_times(self, api):
        doc = await api.add_document(make_doc())

        for _ in range(3):
            await api.increment_download(doc.id)

        assert (await api.get_document(doc.id)).downloads == 3
        events = await api.get_download_events()
        assert [e.document_id for e in events] == [doc.id] * 3

    @pytest.mark.asyncio
    async def test_increment_download_touches_only_target(self, api):
        target = await api.add_document(make_doc("Target"))
        other = await api.add_document(make_doc("Other"))

        await api.increment_download(target.id)

        assert (await api.get_document(target.id)).downloads == 1
        assert (await api.get_document(other.id)).downloads == 0
        assert len(await api.get_download_events()) == 1

    @pytest.mark.asyncio
    async def test_increment_download_unknown_id_changes_nothing(self, api, store):
        await api.add_document(make_doc())
        before = raw_collections(store)

        await api.increment_download("does-not-exist")

        assert raw_collections(store) == before

    @pytest.mark.asyncio
    async def test_download_events_are_oldest_first(self, store, notifier):
        times = iter([FIXED_NOW, FIXED_NOW + timedelta(minutes=1)])
        api = LocalStorageAPI(store, notifier=notifier, clock=lambda: next(times))
        a = await api.add_document(make_doc("A", uploaded_at=FIXED_NOW))
        b = await api.add_document(make_doc("B", uploaded_at=FIXED_NOW))

        await api.increment_download(a.id)
        await api.increment_download(b.id)

        events = await api.get_download_events()
        assert [e.document_id for e in events] == [a.id, b.id]
        assert events[0].timestamp < events[1].timestamp


class TestFolders:
    """Test folder operations"""

    @pytest.mark.asyncio
    async def test_batch_add_updates_document_count(self, api):
        folder = await api.add_folder(FolderCreate(name="Labs", course="CS2000", professor="Dr. Smith"))

        added = await api.add_documents_to_folder(folder.id, [folder_doc("1"), folder_doc("2"), folder_doc("3")])

        assert len(added) == 3
        assert all(d.folder_id == folder.id and d.downloads == 0 for d in added)
        assert (await api.get_folder(folder.id)).document_count == 3
        assert len(await api.get_folder_documents(folder.id)) == 3

    @pytest.mark.asyncio
    async def test_folder_count_matches_documents_after_batches(self, api):
        folder = await api.add_folder(FolderCreate(name="Labs", course="CS2000", professor="Dr. Smith"))
        await api.add_documents_to_folder(folder.id, [folder_doc("1")])
        await api.add_documents_to_folder(folder.id, [folder_doc("2"), folder_doc("3")])
        await api.add_document(make_doc("Loose"))

        documents = await api.get_documents()
        folder = await api.get_folder(folder.id)
        assert folder.document_count == len([d for d in documents if d.folder_id == folder.id]) == 3

    @pytest.mark.asyncio
    async def test_batch_add_to_missing_folder_writes_nothing(self, api, store):
        before = raw_collections(store)

        with pytest.raises(NotFoundError) as exc_info:
            await api.add_documents_to_folder("missing", [folder_doc("1")])

        assert "missing" in str(exc_info.value)
        assert raw_collections(store) == before

    @pytest.mark.asyncio
    async def test_batch_add_empty_list(self, api):
        folder = await api.add_folder(FolderCreate(name="Labs", course="CS2000", professor="Dr. Smith"))

        assert await api.add_documents_to_folder(folder.id, []) == []
        assert (await api.get_folder(folder.id)).document_count == 0

    @pytest.mark.asyncio
    async def test_filed_upload_counts_toward_folder(self, api):
        folder = await api.add_folder(FolderCreate(name="Labs", course="CS2000", professor="Dr. Smith"))

        doc = await api.add_document(make_doc(folder_id=folder.id))

        assert doc.folder_id == folder.id
        assert doc.downloads == 0
        assert (await api.get_folder(folder.id)).document_count == 1
        assert [d.id for d in await api.get_folder_documents(folder.id)] == [doc.id]

    @pytest.mark.asyncio
    async def test_filed_upload_to_missing_folder_writes_nothing(self, api, store, notifier):
        events = []
        notifier.subscribe(events.append)
        before = raw_collections(store)

        with pytest.raises(NotFoundError):
            await api.add_document(make_doc(folder_id="typo"))

        assert raw_collections(store) == before
        assert events == []

    @pytest.mark.asyncio
    async def test_folders_are_newest_first(self, api):
        first = await api.add_folder(FolderCreate(name="A", course="CS1", professor="P"))
        second = await api.add_folder(FolderCreate(name="B", course="CS2", professor="P"))

        assert [f.id for f in await api.get_folders()] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_delete_folder_cascades_to_its_documents_only(self, api):
        labs = await api.add_folder(FolderCreate(name="Labs", course="CS2000", professor="Dr. Smith"))
        notes = await api.add_folder(FolderCreate(name="Notes", course="CS2000", professor="Dr. Smith"))
        await api.add_documents_to_folder(labs.id, [folder_doc("1"), folder_doc("2")])
        kept_in_folder = await api.add_documents_to_folder(notes.id, [folder_doc("3")])
        loose = await api.add_document(make_doc("Loose"))

        await api.delete_folder(labs.id)

        assert await api.get_folder(labs.id) is None
        remaining = {d.id for d in await api.get_documents()}
        assert remaining == {kept_in_folder[0].id, loose.id}
        assert (await api.get_folder(notes.id)).document_count == 1

    @pytest.mark.asyncio
    async def test_delete_folder_removes_comments_on_its_documents(self, api):
        folder = await api.add_folder(FolderCreate(name="Labs", course="CS2000", professor="Dr. Smith"))
        [doc] = await api.add_documents_to_folder(folder.id, [folder_doc("1")])
        loose = await api.add_document(make_doc("Loose"))
        await api.add_comment(doc.id, "Ana", "great")
        kept = await api.add_comment(loose.id, "Ana", "also great")

        await api.delete_folder(folder.id)

        assert [c.id for c in await api.get_comments()] == [kept.id]

    @pytest.mark.asyncio
    async def test_delete_missing_folder_is_noop(self, api, store):
        await api.add_document(make_doc())
        before = raw_collections(store)

        await api.delete_folder("missing")

        assert raw_collections(store) == before


class TestComments:
    """Test comment operations"""

    @pytest.mark.asyncio
    async def test_blank_author_becomes_anonymous(self, api):
        doc = await api.add_document(make_doc())

        comment = await api.add_comment(doc.id, "", "hello")

        assert comment.author == "Anonymous"
        assert comment.content == "hello"
        assert (await api.get_comments(doc.id))[0] == comment

    @pytest.mark.asyncio
    async def test_author_and_content_are_trimmed(self, api):
        comment = await api.add_comment("doc-1", "  Ana  ", "  nice notes \n")

        assert comment.author == "Ana"
        assert comment.content == "nice notes"

    @pytest.mark.asyncio
    async def test_comments_filtered_by_document_and_newest_first(self, api):
        first = await api.add_comment("doc-1", "Ana", "one")
        await api.add_comment("doc-2", "Ana", "other")
        second = await api.add_comment("doc-1", "Ben", "two")

        assert [c.id for c in await api.get_comments("doc-1")] == [second.id, first.id]
        assert len(await api.get_comments()) == 3

    @pytest.mark.asyncio
    async def test_delete_comment(self, api):
        comment = await api.add_comment("doc-1", "Ana", "one")

        await api.delete_comment(comment.id)
        await api.delete_comment(comment.id)

        assert await api.get_comments() == []


class TestCoops:
    """Test co-op operations"""

    @pytest.mark.asyncio
    async def test_add_and_get_coop(self, fixed_api):
        coop = await fixed_api.add_coop(make_coop())

        assert coop.created_at == FIXED_NOW
        assert await fixed_api.get_coop(coop.id) == coop
        assert await fixed_api.get_coop("missing") is None

    @pytest.mark.asyncio
    async def test_update_coop_is_partial(self, api):
        coop = await api.add_coop(make_coop())

        updated = await api.update_coop(coop.id, CoopUpdate(status=CoopStatus.PAST))

        assert updated.status == CoopStatus.PAST
        assert updated.company == "Acme"
        assert updated.semester == "Fall 2024"
        assert (await api.get_coop(coop.id)).status == CoopStatus.PAST

    @pytest.mark.asyncio
    async def test_update_missing_coop_raises(self, api):
        with pytest.raises(NotFoundError):
            await api.update_coop("missing", CoopUpdate(company="Initech"))

    @pytest.mark.asyncio
    async def test_delete_coop(self, api):
        coop = await api.add_coop(make_coop())
        other = await api.add_coop(make_coop(company="Initech"))

        await api.delete_coop(coop.id)
        await api.delete_coop("missing")

        assert [c.id for c in await api.get_coops()] == [other.id]

    @pytest.mark.asyncio
    async def test_coops_are_newest_first(self, api):
        first = await api.add_coop(make_coop())
        second = await api.add_coop(make_coop(company="Initech"))

        assert [c.id for c in await api.get_coops()] == [second.id, first.id]


class TestAnalytics:
    """Test analytics through the backend"""

    @pytest.mark.asyncio
    async def test_new_document_shows_up_in_week_analytics(self, api):
        await api.add_document(make_doc(course="CS2000"))

        analytics = await api.get_analytics("week")

        assert analytics.total_documents == 1
        assert analytics.course_distribution == [CourseCount(course="CS2000", documents=1)]

    @pytest.mark.asyncio
    async def test_repeated_queries_are_identical(self, fixed_api):
        doc = await fixed_api.add_document(make_doc(uploaded_at=FIXED_NOW - timedelta(days=2)))
        await fixed_api.increment_download(doc.id)

        first = await fixed_api.get_analytics("month")
        second = await fixed_api.get_analytics("month")

        assert first == second

    @pytest.mark.asyncio
    async def test_empty_year_is_all_zero(self, fixed_api):
        analytics = await fixed_api.get_analytics("year")

        assert analytics.total_documents == 0
        assert analytics.total_downloads == 0
        assert analytics.unique_courses == 0
        assert analytics.unique_professors == 0
        assert len(analytics.uploads_over_time) == 12
        assert all(b.uploads == 0 for b in analytics.uploads_over_time)
        assert len(analytics.download_trends) == 12
        assert analytics.course_distribution == []
        assert analytics.document_types == []
        assert analytics.top_professors == []
        assert analytics.recent_activity == []


class TestNotifications:
    """Test change notification from writes"""

    @pytest.mark.asyncio
    async def test_writes_notify_with_logical_keys(self, api, notifier):
        events = []
        notifier.subscribe(events.append)

        doc = await api.add_document(make_doc())
        await api.increment_download(doc.id)
        await api.add_comment(doc.id, "Ana", "hi")

        assert [e.key for e in events] == ["documents", "documents", "downloads", "comments"]
        assert all(e.origin == "local" for e in events)

    @pytest.mark.asyncio
    async def test_failed_write_does_not_notify(self, api, notifier, store):
        events = []
        notifier.subscribe(events.append)

        with patch.object(store, "set_item", side_effect=TransportError("disk full")):
            with pytest.raises(TransportError):
                await api.add_document(make_doc())

        assert events == []


class TestCorruptData:
    """Test handling of unreadable stored data"""

    @pytest.mark.asyncio
    async def test_corrupt_collection_reads_as_empty(self, api, store):
        store.set_item("documents", "{not json")

        assert await api.get_documents() == []

    @pytest.mark.asyncio
    async def test_wrong_shape_reads_as_empty(self, api, store):
        store.set_item("folders", json.dumps({"id": "1"}))

        assert await api.get_folders() == []

    @pytest.mark.asyncio
    async def test_write_quarantines_corrupt_value(self, api, store):
        store.set_item("documents", "{not json")

        doc = await api.add_document(make_doc())

        assert store.get_item("documents.corrupt") == "{not json"
        assert [d.id for d in await api.get_documents()] == [doc.id]

    @pytest.mark.asyncio
    async def test_store_read_failure_on_write_propagates(self, api, store):
        with patch.object(store, "get_item", side_effect=TransportError("locked")):
            with pytest.raises(TransportError):
                await api.add_comment("doc-1", "Ana", "hi")

    @pytest.mark.asyncio
    async def test_store_read_failure_on_read_is_empty(self, api, store):
        with patch.object(store, "get_item", side_effect=TransportError("locked")):
            assert await api.get_comments() == []
