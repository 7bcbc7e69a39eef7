"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

These are process settings. The offload settings themselves (credentials,
bucket, endpoint...) live in the option store and can change at runtime;
the S3_* values here only seed an empty store.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Media Offload API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Host uploads
    upload_root: str = Field(
        default="./uploads",
        description="Local directory the host application stores uploads in"
    )
    upload_base_url: str = Field(
        default="http://localhost:8000/uploads",
        description="Public URL that serves upload_root"
    )

    # Offload settings persistence
    options_file: Optional[str] = Field(
        default=None,
        description="JSON file for offload settings. In-memory when unset."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory object storage instead of S3. Enables local dev without a bucket."
    )

    # Seeds for an empty option store
    s3_access_key: str = Field(default="", description="Initial storage access key")
    s3_secret_key: str = Field(default="", description="Initial storage secret key")
    s3_bucket: str = Field(default="", description="Initial bucket name")
    s3_region: str = Field(default="", description="Initial region (us-east-1 when empty)")
    s3_endpoint: str = Field(
        default="",
        description="Initial custom endpoint, e.g. http://localstack:4566. Empty for AWS S3."
    )
    s3_use_path_style: bool = Field(default=False, description="Initial path-style flag")
    s3_base_prefix: str = Field(default="", description="Initial key prefix")
    s3_delete_local: bool = Field(default=False, description="Initial delete-local flag")

    # Application Behavior
    sync_batch_size: int = Field(
        default=100,
        description="Default batch size hint for sync runs. Advisory only."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def upload_root_path(self) -> str:
        """Absolute upload root, so keys never depend on the working directory."""
        return os.path.abspath(self.upload_root)

    @property
    def option_seeds(self) -> dict[str, object]:
        """S3_* values keyed by option name."""
        return {
            "access_key": self.s3_access_key,
            "secret_key": self.s3_secret_key,
            "bucket": self.s3_bucket,
            "region": self.s3_region,
            "endpoint": self.s3_endpoint,
            "use_path_style": self.s3_use_path_style or None,
            "base_prefix": self.s3_base_prefix,
            "delete_local": self.s3_delete_local or None,
        }

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required process settings are present.

        Returns list of missing required fields. Storage credentials are not
        checked here because they may be saved later through the API.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")
        if not self.upload_root:
            missing.append("UPLOAD_ROOT")
        if not self.upload_base_url:
            missing.append("UPLOAD_BASE_URL")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
