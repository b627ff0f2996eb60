"""Repairs cross-collection references in the local store"""

from dataclasses import asdict, dataclass

from dochub.api.base import COMMENTS_KEY, DOCUMENTS_KEY, FOLDERS_KEY, DatabaseAPI
from dochub.api.local import LocalStorageAPI
from dochub.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ReconciliationReport:
    orphan_documents_removed: int = 0
    folder_counts_fixed: int = 0
    orphan_comments_removed: int = 0

    @property
    def changed(self) -> bool:
        return any(asdict(self).values())


async def reconcile(api: DatabaseAPI) -> ReconciliationReport:
    """
    Finish interrupted cascades and recompute folder counts.

    1. Documents filed under a folder that no longer exists are removed.
    2. Every folder's document_count is recomputed from the documents.
    3. Comments on documents that no longer exist are removed.

    The remote backend keeps its own integrity, so only the local backend is
    touched. Store failures propagate.
    """
    report = ReconciliationReport()
    if not isinstance(api, LocalStorageAPI):
        logger.debug(f"Reconciliation skipped for {type(api).__name__}")
        return report

    folders = api.read_for_write(FOLDERS_KEY)
    folder_ids = {f.id for f in folders}

    documents = api.read_for_write(DOCUMENTS_KEY)
    kept_documents = [d for d in documents if d.folder_id is None or d.folder_id in folder_ids]
    report.orphan_documents_removed = len(documents) - len(kept_documents)
    if report.orphan_documents_removed:
        await api.write_collection(DOCUMENTS_KEY, kept_documents)

    counts = {}
    for doc in kept_documents:
        if doc.folder_id:
            counts[doc.folder_id] = counts.get(doc.folder_id, 0) + 1
    for folder in folders:
        actual = counts.get(folder.id, 0)
        if folder.document_count != actual:
            folder.document_count = actual
            report.folder_counts_fixed += 1
    if report.folder_counts_fixed:
        await api.write_collection(FOLDERS_KEY, folders)

    document_ids = {d.id for d in kept_documents}
    comments = api.read_for_write(COMMENTS_KEY)
    kept_comments = [c for c in comments if c.document_id in document_ids]
    report.orphan_comments_removed = len(comments) - len(kept_comments)
    if report.orphan_comments_removed:
        await api.write_collection(COMMENTS_KEY, kept_comments)

    if report.changed:
        logger.warning(f"Reconciliation repaired local data: {asdict(report)}")
    else:
        logger.debug("Reconciliation found nothing to repair")
    return report
