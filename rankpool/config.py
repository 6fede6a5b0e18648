"""
Configuration settings for the ranking pressure service.

Uses Pydantic Settings to load environment variables for database connections,
logging, the connection pool, the chunked fetch pipeline and pressure-run
defaults. Every tunable constant of the pipeline lives here so that components
receive it at construction time instead of reading module globals.
"""
from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Any, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("rankings", alias="DB_NAME")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    service_name: str = Field("ranking-python", alias="SERVICE_NAME")
    api_host: str = Field("0.0.0.0", alias="API_HOST")
    api_port: int = Field(8080, alias="API_PORT")
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"], alias="CORS_ORIGINS"
    )

    # Score store
    store_backend: Literal["postgres", "memory"] = Field("postgres", alias="STORE_BACKEND")
    memory_store_users: int = Field(500, alias="MEMORY_STORE_USERS")
    memory_store_seed: int = Field(42, alias="MEMORY_STORE_SEED")

    # Connection pool
    pool_capacity: int = Field(10, alias="POOL_CAPACITY", gt=0)
    pool_acquire_timeout_seconds: float = Field(5.0, alias="POOL_ACQUIRE_TIMEOUT_SECONDS", gt=0)

    # Chunked fetch pipeline
    chunk_size: int = Field(10, alias="CHUNK_SIZE", gt=0)
    high_chunk_warning_threshold: int = Field(20, alias="HIGH_CHUNK_WARNING_THRESHOLD")
    delay_nominal_seconds: float = Field(0.002, alias="DELAY_NOMINAL_SECONDS", ge=0)
    delay_elevated_seconds: float = Field(0.005, alias="DELAY_ELEVATED_SECONDS", ge=0)
    delay_escalation_seconds: float = Field(0.002, alias="DELAY_ESCALATION_SECONDS", ge=0)
    delay_elevated_chunks: int = Field(10, alias="DELAY_ELEVATED_CHUNKS")
    delay_runaway_chunks: int = Field(19, alias="DELAY_RUNAWAY_CHUNKS")
    user_id_typo: str = Field("대이터독", alias="USER_ID_TYPO")
    user_id_correction: str = Field("데이터독", alias="USER_ID_CORRECTION")

    # Pressure run defaults
    pressure_concurrency: int = Field(40, alias="PRESSURE_CONCURRENCY", gt=0)
    pressure_requests: int = Field(40, alias="PRESSURE_REQUESTS", gt=0)
    pressure_limit: int = Field(200, alias="PRESSURE_LIMIT", ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        """Accept `CORS_ORIGINS=a,b` as well as a JSON list."""
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def dsn(self) -> str:
        """Compose a libpq connection string from the database fields."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
