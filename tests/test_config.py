"""Unit tests for configuration"""

import os

import pytest

from dochub.config import Settings


def test_defaults():
    """Test the default local configuration"""
    settings = Settings(_env_file=None)

    assert settings.environment == "production"
    assert settings.log_level == "error"
    assert settings.database_url == "sqlite:///./data/dochub.db"
    assert settings.storage_backend == "local"
    assert settings.storage_key_prefix == "dtd_"
    assert settings.storage_watch_enabled is True
    assert settings.storage_watch_interval == 2.0
    assert settings.remote_api_url == "http://localhost:8080/ords/api"
    assert settings.remote_api_token is None
    assert settings.remote_timeout == 30
    assert settings.reconcile_on_startup is True
    assert settings.reconcile_interval_minutes == 0
    assert settings.default_time_range == "month"


def test_production_forces_error_level_without_log_level():
    os.environ["ENVIRONMENT"] = "production"

    settings = Settings(_env_file=None, log_level="debug")

    assert settings.log_level == "error"


def test_explicit_log_level_is_kept():
    os.environ["ENVIRONMENT"] = "development"
    os.environ["LOG_LEVEL"] = "debug"

    settings = Settings(_env_file=None)

    assert settings.log_level == "debug"


def test_node_env_maps_to_environment():
    os.environ["NODE_ENV"] = "development"

    settings = Settings(_env_file=None)

    assert settings.environment == "development"


def test_legacy_remote_url_variable():
    os.environ["VITE_ORACLE_APEX_URL"] = "https://apex.example.com/ords/dtd"

    settings = Settings(_env_file=None)

    assert settings.remote_api_url == "https://apex.example.com/ords/dtd"


def test_backend_choice_is_normalized():
    os.environ["STORAGE_BACKEND"] = "  REMOTE "

    settings = Settings(_env_file=None)

    assert settings.storage_backend == "remote"


def test_invalid_backend_rejected():
    os.environ["STORAGE_BACKEND"] = "indexeddb"

    with pytest.raises(ValueError) as exc_info:
        Settings(_env_file=None)

    assert "storage_backend" in str(exc_info.value)


def test_invalid_time_range_rejected():
    os.environ["DEFAULT_TIME_RANGE"] = "decade"

    with pytest.raises(ValueError) as exc_info:
        Settings(_env_file=None)

    assert "default_time_range" in str(exc_info.value)


def test_remote_backend_requires_url():
    os.environ["STORAGE_BACKEND"] = "remote"
    os.environ["REMOTE_API_URL"] = ""

    with pytest.raises(ValueError) as exc_info:
        Settings(_env_file=None)

    assert "remote_api_url" in str(exc_info.value)


def test_empty_token_is_none():
    os.environ["REMOTE_API_TOKEN"] = ""

    settings = Settings(_env_file=None)

    assert settings.remote_api_token is None
