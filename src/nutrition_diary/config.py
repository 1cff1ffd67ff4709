"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MEMORY_BACKEND = "memory"
SUPABASE_BACKEND = "supabase"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    store_backend: str = MEMORY_BACKEND
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    documents_table: str = "documents"
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def resolve_backend(raw: str | None) -> str:
    """Normalize the configured store backend name."""
    cleaned = (raw or "").strip().lower()
    if cleaned in {"", MEMORY_BACKEND, "in-memory", "inmemory"}:
        return MEMORY_BACKEND
    if cleaned == SUPABASE_BACKEND:
        return SUPABASE_BACKEND
    raise ValueError(f"Unknown store backend: {raw}")
