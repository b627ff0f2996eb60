"""Detects writes made to the shared store by other processes"""

from typing import Dict, Optional, Tuple

from dochub.api.local import QUARANTINE_SUFFIX
from dochub.errors import TransportError
from dochub.services.key_value_store import KeyValueStore
from dochub.services.notifications import ChangeNotifier, ORIGIN_STORAGE
from dochub.utils.logger import get_logger

logger = get_logger(__name__)


class StorageWatcher:
    """Polls key revisions and notifies observers about foreign writes.

    Writes made through ``store`` itself are skipped, since the backend already
    notified same-process observers when it made them. Removed keys are
    reported too. Quarantine copies of corrupt values are not collections and
    are never reported. Nothing is guaranteed about the order of concurrent writes
    from different processes; observers are only told to re-fetch.
    """

    def __init__(self, store: KeyValueStore, notifier: ChangeNotifier):
        self.store = store
        self.notifier = notifier
        self._seen: Optional[Dict[str, int]] = None

    def _revisions(self) -> Dict[str, Tuple[int, str]]:
        return {
            key: entry
            for key, entry in self.store.revisions().items()
            if not key.endswith(QUARANTINE_SUFFIX)
        }

    def prime(self):
        """Record current revisions without notifying"""
        self._seen = {key: revision for key, (revision, _) in self._revisions().items()}

    async def poll(self) -> int:
        """Check for foreign writes once; returns how many keys were reported"""
        if self._seen is None:
            try:
                self.prime()
            except TransportError as e:
                logger.error(f"Storage watcher could not read revisions: {e}")
            return 0

        try:
            current = self._revisions()
        except TransportError as e:
            logger.error(f"Storage watcher could not read revisions: {e}")
            return 0

        changed = []
        for key, (revision, writer_id) in current.items():
            if self._seen.get(key) == revision:
                continue
            self._seen[key] = revision
            if writer_id != self.store.writer_id:
                changed.append(key)

        for key in list(self._seen):
            if key not in current:
                del self._seen[key]
                changed.append(key)

        for key in changed:
            logger.debug(f"Foreign write detected for {key}")
            await self.notifier.notify(key, origin=ORIGIN_STORAGE)

        return len(changed)
