"""Application settings using Pydantic Settings"""
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str

    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    CSV_MAX_UPLOAD_MB: int = 10
    IMPORT_PREVIEW_ROWS: int = 5
    IMPORT_MAX_WORKERS: int = 1
    IMPORT_REQUIRE_MAPPED_FIELDS: bool = False
    IMPORT_SESSION_TTL_MINUTES: int = 60

    IMPORT_API_BASE_URL: str = ""
    IMPORT_API_TIMEOUT_SECONDS: Optional[float] = None

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["dev", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of: {allowed}")
        return v

    @field_validator("IMPORT_MAX_WORKERS", "IMPORT_PREVIEW_ROWS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"

    @property
    def csv_max_upload_bytes(self) -> int:
        return self.CSV_MAX_UPLOAD_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
