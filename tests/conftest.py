"""Pytest configuration and shared fixtures"""

import os
from typing import Generator

import pytest

from dochub.api.local import LocalStorageAPI
from dochub.database import DatabaseService
from dochub.services.key_value_store import KeyValueStore
from dochub.services.notifications import ChangeNotifier


@pytest.fixture(autouse=True)
def reset_env_vars() -> Generator[None, None, None]:
    """Reset environment variables before each test"""
    # Store original env vars
    original_env = os.environ.copy()

    # Clear DocHub-related env vars
    dochub_vars = [
        "ENVIRONMENT",
        "NODE_ENV",
        "LOG_LEVEL",
        "DATABASE_URL",
        "STORAGE_BACKEND",
        "STORAGE_KEY_PREFIX",
        "STORAGE_WATCH_ENABLED",
        "STORAGE_WATCH_INTERVAL",
        "REMOTE_API_URL",
        "VITE_ORACLE_APEX_URL",
        "REMOTE_API_TOKEN",
        "REMOTE_TIMEOUT",
        "RECONCILE_ON_STARTUP",
        "RECONCILE_INTERVAL_MINUTES",
        "DEFAULT_TIME_RANGE",
    ]

    for var in dochub_vars:
        os.environ.pop(var, None)

    yield

    # Restore original env vars
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def database_path(tmp_path) -> str:
    return str(tmp_path / "dochub.db")


@pytest.fixture
def database(database_path) -> Generator[DatabaseService, None, None]:
    """File-backed SQLite database, so several stores can share it"""
    service = DatabaseService(f"sqlite:///{database_path}")
    service.initialize()
    yield service
    service.close()


@pytest.fixture
def store(database) -> KeyValueStore:
    return KeyValueStore(database, prefix="dtd_")


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def api(store, notifier) -> LocalStorageAPI:
    return LocalStorageAPI(store, notifier=notifier)
