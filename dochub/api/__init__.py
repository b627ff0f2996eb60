"""Data access backends and backend selection"""

from typing import Optional

from dochub.api.base import ALL_KEYS, DatabaseAPI
from dochub.api.local import LocalStorageAPI
from dochub.api.remote import RemoteAPI
from dochub.config import Settings, settings
from dochub.database import DatabaseService
from dochub.services.key_value_store import KeyValueStore
from dochub.services.notifications import ChangeNotifier
from dochub.utils.logger import get_logger

logger = get_logger(__name__)

__all__ = [
    "ALL_KEYS",
    "DatabaseAPI",
    "LocalStorageAPI",
    "RemoteAPI",
    "create_api",
]


def create_api(
    config: Optional[Settings] = None,
    database: Optional[DatabaseService] = None,
    notifier: Optional[ChangeNotifier] = None,
) -> DatabaseAPI:
    """
    Build the backend selected by ``config.storage_backend``.

    Args:
        config: Settings to read; defaults to the global settings
        database: Initialized database for the local backend. When omitted one
            is created from ``config.database_url`` and closed with the API.
        notifier: Observer registry shared with feeds and the storage watcher

    Returns:
        A LocalStorageAPI or RemoteAPI instance
    """
    config = config or settings
    notifier = notifier or ChangeNotifier()

    if config.storage_backend == "remote":
        logger.debug(f"Using remote backend at {config.remote_api_url}")
        return RemoteAPI(
            config.remote_api_url,
            notifier=notifier,
            timeout=config.remote_timeout,
            token=config.remote_api_token,
        )

    close_database = database is None
    if database is None:
        database = DatabaseService(config.database_url)
        database.initialize()
    store = KeyValueStore(database, prefix=config.storage_key_prefix)
    logger.debug(f"Using local backend with key prefix {config.storage_key_prefix!r}")
    return LocalStorageAPI(store, notifier=notifier, close_database=close_database)
