from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent / ".env"),
        extra="ignore",
    )

    # ── App ─────────────────────────────────────
    APP_NAME: str = "WCAG Analyzer"
    LOG_LEVEL: str = "INFO"

    # ── OpenAI ──────────────────────────────────
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_MODEL_CHAT: str = "gpt-4o-mini"
    OPENAI_MODEL_VISION: str = "gpt-4o-mini"
    OPENAI_ASSISTANT_ID: Optional[str] = None
    OPENAI_TIMEOUT: float = 60.0  # seconds, per provider call

    # ── Assistant run polling ───────────────────
    ASSISTANT_POLL_INTERVAL: float = 1.0  # seconds
    ASSISTANT_MAX_WAIT: float = 120.0  # seconds

    # ── Analysis ────────────────────────────────
    MAX_IMAGE_DESCRIPTIONS: int = 10

    # ── Blob storage (optional PDF archive) ─────
    BLOB_STORAGE_DIR: Optional[str] = None
    BLOB_CONTAINER: str = "uploads"


@lru_cache
def get_settings() -> Settings:
    return Settings()
