from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "unitrack-client"
    VERSION: str = "1.0.0"

    # Backend API
    API_BASE_URL: str = "http://localhost:3000/api"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Paging defaults observed on the backend endpoints
    COURSES_PER_PAGE: int = 8
    COURSES_FETCH_LIMIT: int = 1000
    STUDENTS_PAGE_SIZE: int = 20
    SESSIONS_PAGE_SIZE: int = 20
    SHARE_REQUESTS_PAGE_SIZE: int = 10
    FAQ_PAGE_SIZE: int = 100

    # Deduplicated concurrent requests wait at most this long for the leader
    COALESCE_WAIT_SECONDS: float = 10.0

    # Local key-value storage
    STORAGE_PATH: str = ".unitrack/storage.json"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None
    LOG_JSON: bool = False
    LOG_ROTATION: str = "10 MB"
    LOG_RETENTION: str = "7 days"

    @field_validator("API_BASE_URL", mode="before")
    def normalize_base_url(cls, v: str) -> str:
        v = str(v).strip().rstrip("/")
        if v and "://" not in v:
            return f"http://{v}"
        return v

    @field_validator("COURSES_PER_PAGE")
    def positive_page_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("COURSES_PER_PAGE must be greater than zero")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
