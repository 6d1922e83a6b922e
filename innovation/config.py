from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _resolve_home() -> Path:
    override = os.getenv("INNOVATION_HOME", "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).parent


def _resolve_db_path() -> Path:
    override = os.getenv("INNOVATION_DB_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return _resolve_home() / "data" / "innovation.db"


class Settings(BaseModel):
    home: Path = Field(default_factory=_resolve_home)
    database_path: Path = Field(default_factory=_resolve_db_path)

    environment: str = Field(default_factory=lambda: os.getenv("INNOVATION_ENV", "development"))
    session_secret: str = Field(
        default_factory=lambda: os.getenv("INNOVATION_SESSION_SECRET", "change-me-in-production"),
    )
    session_max_age_seconds: int = 24 * 60 * 60

    host: str = Field(default_factory=lambda: os.getenv("INNOVATION_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("INNOVATION_PORT", "8001")))
    log_level: str = Field(default_factory=lambda: os.getenv("INNOVATION_LOG_LEVEL", "INFO"))

    llm_provider: str = Field(default_factory=lambda: os.getenv("LLM_PROVIDER", "gemini"))
    llm_model: str = Field(default_factory=lambda: os.getenv("LLM_MODEL", ""))

    max_upload_bytes: int = 5 * 1024 * 1024
    max_import_chars: int = 50_000

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return Settings()
