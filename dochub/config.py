"""Configuration management using pydantic-settings"""

import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, model_validator, field_validator
from typing import Optional

VALID_BACKENDS = ["local", "remote"]
VALID_TIME_RANGES = ["week", "month", "year"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Configuration
    environment: str = Field(default="production", validation_alias=AliasChoices("environment", "NODE_ENV"))
    log_level: str = Field(default="error", description="Log level: debug, info, warning, error (default: error for production)")

    # Database Configuration
    database_url: str = "sqlite:///./data/dochub.db"

    # Storage Backend Configuration
    storage_backend: str = Field(default="local", description="Active data backend: local or remote")
    storage_key_prefix: str = Field(default="dtd_", description="Prefix for keys in the local key-value store")
    storage_watch_enabled: bool = Field(default=True, description="Poll the local store for writes made by other processes")
    storage_watch_interval: float = Field(default=2.0, description="Seconds between cross-process change polls")

    # Remote REST Backend Configuration
    # VITE_ORACLE_APEX_URL is honoured for deployments carried over from the web client
    remote_api_url: str = Field(
        default="http://localhost:8080/ords/api",
        validation_alias=AliasChoices("remote_api_url", "VITE_ORACLE_APEX_URL"),
        description="Base URL of the remote REST backend",
    )
    remote_api_token: Optional[str] = Field(default=None, description="Bearer token for the remote backend (optional)")
    remote_timeout: int = Field(default=30, description="Remote request timeout in seconds")

    # Maintenance Configuration
    reconcile_on_startup: bool = Field(default=True, description="Repair folder counts and orphans at startup")
    reconcile_interval_minutes: int = Field(default=0, description="Periodic reconciliation interval (0 = disabled)")

    # Analytics Configuration
    default_time_range: str = Field(default="month", description="Default analytics window: week, month or year")

    @model_validator(mode="after")
    def set_environment_defaults(self) -> "Settings":
        """Set environment-specific defaults for log level"""
        if self.environment == "production" and not os.getenv("LOG_LEVEL"):
            # Default to error in production if not explicitly set
            self.log_level = "error"
        return self

    @field_validator("storage_backend", "default_time_range", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        """Lower-case and strip enumerated string settings"""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("remote_api_token", mode="before")
    @classmethod
    def empty_token_is_none(cls, v):
        """Convert empty string to None for remote_api_token"""
        if v == "" or v is None:
            return None
        return v

    @model_validator(mode="after")
    def validate_backend(self) -> "Settings":
        """Validate backend selection and remote configuration"""
        if self.storage_backend not in VALID_BACKENDS:
            raise ValueError(
                f"Invalid storage_backend: {self.storage_backend}. Valid values: {VALID_BACKENDS}"
            )
        if self.default_time_range not in VALID_TIME_RANGES:
            raise ValueError(
                f"Invalid default_time_range: {self.default_time_range}. Valid values: {VALID_TIME_RANGES}"
            )
        if self.storage_backend == "remote" and not self.remote_api_url.strip():
            raise ValueError("remote_api_url is required when storage_backend is 'remote'")
        return self


# Global settings instance
settings = Settings()
