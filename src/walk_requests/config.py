"""Application settings."""

from enum import StrEnum

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RepositoryBackend(StrEnum):
    """Available persistence adapters for walk requests."""

    IN_MEMORY = "in_memory"
    POSTGRES = "postgres"
    MONGODB = "mongodb"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Walk Requests"
    api_prefix: str = "/apis"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"
    user_id_header: str = "X-User-Id"
    repository_backend: RepositoryBackend = RepositoryBackend.IN_MEMORY
    postgres_dsn: str | None = None
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10
    mongodb_url: str | None = None
    mongodb_database: str = "walk"
    default_page_size: int = 20
    max_page_size: int = 100

    @model_validator(mode="after")
    def validate_repository_settings(self) -> "Settings":
        """Ensure backend-specific settings are valid."""

        if self.repository_backend == RepositoryBackend.POSTGRES and not self.postgres_dsn:
            raise ValueError(
                "WALK_REQUESTS_POSTGRES_DSN is required when "
                "WALK_REQUESTS_REPOSITORY_BACKEND=postgres."
            )
        if self.repository_backend == RepositoryBackend.MONGODB and not self.mongodb_url:
            raise ValueError(
                "WALK_REQUESTS_MONGODB_URL is required when "
                "WALK_REQUESTS_REPOSITORY_BACKEND=mongodb."
            )
        if self.postgres_pool_min_size < 1:
            raise ValueError("WALK_REQUESTS_POSTGRES_POOL_MIN_SIZE must be >= 1.")
        if self.postgres_pool_max_size < self.postgres_pool_min_size:
            raise ValueError(
                "WALK_REQUESTS_POSTGRES_POOL_MAX_SIZE must be >= "
                "WALK_REQUESTS_POSTGRES_POOL_MIN_SIZE."
            )
        if self.default_page_size < 1:
            raise ValueError("WALK_REQUESTS_DEFAULT_PAGE_SIZE must be >= 1.")
        if self.max_page_size < self.default_page_size:
            raise ValueError(
                "WALK_REQUESTS_MAX_PAGE_SIZE must be >= WALK_REQUESTS_DEFAULT_PAGE_SIZE."
            )
        if not self.user_id_header.strip():
            raise ValueError("WALK_REQUESTS_USER_ID_HEADER must not be empty.")
        return self

    model_config = SettingsConfigDict(env_prefix="WALK_REQUESTS_", extra="ignore")


__all__ = ["RepositoryBackend", "Settings"]
