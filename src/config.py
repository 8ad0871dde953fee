from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Order Approval Service"
    DATABASE_URL: str = "sqlite:///./orders.db"

    # Almacenamiento de artefactos (PDF originales y firmados)
    STORAGE_DIR: str = "storage"
    STORAGE_BUCKET: str = "documents"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    CACHE_CONTROL: str = "3600"
    MAX_PDF_SIZE_MB: int = 10
    FETCH_TIMEOUT_SECONDS: float = 10.0

    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    LOG_LEVEL: str = "INFO"
    SEED_DEMO_USERS: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def max_pdf_size(self) -> int:
        return self.MAX_PDF_SIZE_MB * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
