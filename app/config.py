from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- backend (authoritative REST API) ---
    BACKEND_BASE_URL: str = "http://localhost:8080"
    BACKEND_API_PREFIX: str = "/api"
    BACKEND_TIMEOUT_SECONDS: float = 10.0

    # --- conflict pre-check ---
    CONFLICT_CHECK_DEBOUNCE_MS: int = 500

    # --- logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "precheck.log"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # --- admin console ---
    FRONTEND_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @property
    def backend_api_url(self) -> str:
        return self.BACKEND_BASE_URL.rstrip("/") + "/" + self.BACKEND_API_PREFIX.strip("/")


settings = Settings()
