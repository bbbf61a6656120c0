"""Runtime configuration for DocScope.

All values come from ``DOCSCOPE_``-prefixed environment variables (or a
``.env`` file), are parsed once at startup, and are passed explicitly to
each service object.
"""

from functools import lru_cache
from typing import Annotated, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings parsed from the environment."""

    # Authorization scope
    root_folder_id: Annotated[
        str,
        Field(min_length=1, description="Identifier of the authorized root folder"),
    ]
    max_depth: Annotated[int, Field(default=3, ge=0, description="Scope closure depth cap")]
    max_nodes: Annotated[int, Field(default=100, ge=1, description="Scope closure size cap")]

    # Store access
    access_token: Optional[SecretStr] = Field(
        default=None,
        description="Bearer token for the store; acquisition and refresh happen elsewhere",
    )
    api_base_url: str = "https://www.googleapis.com/drive/v3"
    sheets_api_base_url: str = "https://sheets.googleapis.com/v4"
    request_timeout_seconds: Annotated[float, Field(default=30.0, gt=0)]
    retry_attempts: Annotated[int, Field(default=3, ge=1)]
    retry_delay_seconds: Annotated[float, Field(default=1.0, ge=0)]

    # Extraction limits
    max_document_size_mb: Annotated[
        float,
        Field(default=20, gt=0, description="Ceiling for PDF and workbook parsing"),
    ]
    parse_timeout_seconds: Annotated[float, Field(default=120.0, gt=0)]
    chunk_size_bytes: Annotated[int, Field(default=10 * MB, ge=1)]

    # Result cache
    cache_max_size_mb: Annotated[float, Field(default=100, gt=0)]
    cache_ttl_minutes: Annotated[float, Field(default=30, gt=0)]
    cache_cleanup_interval_seconds: Annotated[float, Field(default=300, ge=0)]

    model_config = SettingsConfigDict(
        env_prefix="DOCSCOPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    @property
    def max_document_size_bytes(self) -> int:
        return int(self.max_document_size_mb * MB)

    @property
    def cache_max_size_bytes(self) -> int:
        return int(self.cache_max_size_mb * MB)

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_minutes * 60


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""
    return Settings()
