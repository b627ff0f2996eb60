"""Upload preparation, search and course summaries over document snapshots"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from dochub.api.base import DatabaseAPI
from dochub.errors import ValidationFailure
from dochub.models.entities import (
    Document,
    DocumentCreate,
    FileType,
    Folder,
    FolderCreate,
    FolderDocumentCreate,
)
from dochub.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_EXTENSIONS = (".pdf", ".xlsx", ".xls", ".py", ".java", ".pptx", ".ppt", ".doc", ".docx", ".txt")

EXTENSION_TYPES = {
    "pdf": FileType.PDF,
    "xlsx": FileType.EXCEL,
    "xls": FileType.EXCEL,
    "py": FileType.PYTHON,
    "java": FileType.JAVA,
    "pptx": FileType.POWERPOINT,
    "ppt": FileType.POWERPOINT,
}


@dataclass
class UploadedFile:
    """The parts of an uploaded file the catalog cares about"""

    name: str
    size: int = 0


@dataclass
class CourseSummary:
    course: str
    documents: int = 0
    downloads: int = 0
    professors: List[str] = field(default_factory=list)


@dataclass
class CollectionResult:
    folder: Folder
    documents: List[Document]
    skipped: List[str]


def _extension(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def file_type_for(file_name: str) -> FileType:
    """Classify a file by its last extension"""
    return EXTENSION_TYPES.get(_extension(file_name).lstrip("."), FileType.OTHER)


def title_from_file_name(file_name: str) -> str:
    return os.path.splitext(file_name)[0]


def is_allowed_file(file_name: str) -> bool:
    return _extension(file_name) in ALLOWED_EXTENSIONS


def _require(**values: Optional[str]):
    missing = [name for name, value in values.items() if not (value or "").strip()]
    if missing:
        raise ValidationFailure(f"Missing required field(s): {', '.join(missing)}")


def build_document(
    file: Optional[UploadedFile],
    course: str,
    professor: str,
    title: Optional[str] = None,
    folder_id: Optional[str] = None,
) -> DocumentCreate:
    """
    Turn an upload form into document fields.

    Raises:
        ValidationFailure: a field is blank, no file was given, or the file
            type is not accepted
    """
    if file is None:
        raise ValidationFailure("No file selected")
    _require(course=course, professor=professor)
    if not is_allowed_file(file.name):
        raise ValidationFailure(f"Unsupported file type: {file.name}")

    return DocumentCreate(
        title=(title or "").strip() or title_from_file_name(file.name),
        course=course.strip(),
        professor=professor.strip(),
        file_type=file_type_for(file.name),
        file_name=file.name,
        folder_id=folder_id,
    )


async def create_collection(
    api: DatabaseAPI, folder: FolderCreate, files: Sequence[UploadedFile]
) -> CollectionResult:
    """
    Create a folder and file every supported upload into it.

    Unsupported files are skipped and reported back by name. Nothing is
    written when no supported file remains.
    """
    _require(name=folder.name, course=folder.course, professor=folder.professor)

    accepted = [f for f in files if is_allowed_file(f.name)]
    skipped = [f.name for f in files if not is_allowed_file(f.name)]
    if skipped:
        logger.info(f"{len(skipped)} file(s) skipped - unsupported format")
    if not accepted:
        raise ValidationFailure("Add at least one supported file")

    created_folder = await api.add_folder(folder)
    documents = await api.add_documents_to_folder(
        created_folder.id,
        [
            FolderDocumentCreate(
                title=title_from_file_name(f.name),
                course=folder.course,
                professor=folder.professor,
                file_type=file_type_for(f.name),
                file_name=f.name,
            )
            for f in accepted
        ],
    )
    return CollectionResult(folder=created_folder, documents=documents, skipped=skipped)


def _matches(query: str, *fields: Optional[str]) -> bool:
    return any(query in (value or "").lower() for value in fields)


def search_documents(documents: Sequence[Document], query: str) -> List[Document]:
    query = query.strip().lower()
    if not query:
        return list(documents)
    return [d for d in documents if _matches(query, d.title, d.course, d.professor)]


def search_folders(folders: Sequence[Folder], query: str) -> List[Folder]:
    query = query.strip().lower()
    if not query:
        return list(folders)
    return [f for f in folders if _matches(query, f.name, f.course, f.professor, f.description)]


def unfiled_documents(documents: Sequence[Document]) -> List[Document]:
    return [d for d in documents if not d.folder_id]


def course_summaries(documents: Sequence[Document]) -> List[CourseSummary]:
    """Per-course totals, most documents first"""
    summaries: Dict[str, CourseSummary] = {}
    for doc in documents:
        summary = summaries.setdefault(doc.course, CourseSummary(course=doc.course))
        summary.documents += 1
        summary.downloads += doc.downloads
        if doc.professor not in summary.professors:
            summary.professors.append(doc.professor)

    for summary in summaries.values():
        summary.professors.sort()
    return sorted(summaries.values(), key=lambda s: s.documents, reverse=True)
