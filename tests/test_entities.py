"""Unit tests for entity models"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from dochub.models.entities import Coop, CoopStatus, CoopUpdate, Document, FileType


def test_storage_and_wire_shapes():
    doc = Document(
        id="1",
        title="Lab 1",
        course="CS2000",
        professor="Dr. Smith",
        file_type=FileType.EXCEL,
        file_name="lab1.xlsx",
        uploaded_at=datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc),
        folder_id="f1",
    )

    assert doc.to_storage()["folderId"] == "f1"
    assert doc.to_storage()["fileType"] == "excel"
    assert doc.to_wire()["folder_id"] == "f1"
    assert Document.from_record(doc.to_storage()) == doc
    assert Document.from_record(doc.to_wire()) == doc


def test_unfiled_document_omits_folder_id():
    doc = Document(
        id="1", title="t", course="c", professor="p", file_name="a.pdf", uploaded_at=datetime.now(timezone.utc)
    )

    assert "folderId" not in doc.to_storage()
    assert doc.file_type == FileType.OTHER


def test_timestamps_are_normalized_to_utc():
    naive = Document.from_record(
        {"id": "1", "title": "t", "course": "c", "professor": "p", "fileName": "a", "uploadedAt": "2024-03-05T10:00:00"}
    )
    offset = Document.from_record(
        {"id": "1", "title": "t", "course": "c", "professor": "p", "fileName": "a", "uploadedAt": "2024-03-05T10:00:00+02:00"}
    )

    assert naive.uploaded_at.utcoffset() == timedelta(0)
    assert offset.uploaded_at == datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc)
    assert offset.uploaded_at.utcoffset() == timedelta(0)


def test_numeric_ids_are_read_as_strings():
    coop = Coop.from_record(
        {
            "id": 1712345678901,
            "brotherName": "Sam",
            "company": "Acme",
            "position": "Engineer",
            "semester": "Fall 2024",
            "status": "past",
            "createdAt": "2024-03-05T10:00:00Z",
        }
    )

    assert coop.id == "1712345678901"
    assert coop.status == CoopStatus.PAST


def test_negative_downloads_rejected():
    with pytest.raises(ValidationError):
        Document(
            id="1", title="t", course="c", professor="p", file_name="a", uploaded_at=datetime.now(timezone.utc), downloads=-1
        )


def test_coop_update_changes_only_set_fields():
    assert CoopUpdate(notes=None, company="Initech").changes() == {"notes": None, "company": "Initech"}
    assert CoopUpdate().changes() == {}
