# Every field can be overridden through the environment or a .env file.
#
# Example:
# APP_NAME=School Admin Console
# DATA_DIR=./data
# STORAGE_BACKEND=file
# ADMIN_EMAIL=admin@school.com
# ADMIN_PASSWORD=admin123
# CORRUPT_STATE_POLICY=reseed
# LOG_LEVEL=INFO
# BACKEND_CORS_ORIGINS=http://localhost:5173,http://localhost:3000

import json
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ADMIN_EMAIL = "admin@school.com"
DEFAULT_ADMIN_PASSWORD = "admin123"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "School Admin Console"

    # Profile directory; each profile keeps its own isolated dataset
    DATA_DIR: str = "./data"
    STORAGE_BACKEND: Literal["file", "memory"] = "file"

    ADMIN_EMAIL: str = DEFAULT_ADMIN_EMAIL
    ADMIN_PASSWORD: str = DEFAULT_ADMIN_PASSWORD
    SESSION_MARKER: str = "mock-jwt-token"

    CORRUPT_STATE_POLICY: Literal["reseed", "raise"] = "reseed"

    LOG_LEVEL: str = "INFO"

    # Comma-separated or JSON list
    BACKEND_CORS_ORIGINS: str = "*"

    PORT: int = 8000

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str) -> str:
        return str(v).upper()

    @property
    def cors_origins(self) -> List[str]:
        raw = self.BACKEND_CORS_ORIGINS.strip()
        if not raw:
            return ["*"]
        if raw.startswith("["):
            return [str(i) for i in json.loads(raw)]
        return [i.strip() for i in raw.split(",") if i.strip()]

    @property
    def uses_default_credentials(self) -> bool:
        return (
            self.ADMIN_EMAIL == DEFAULT_ADMIN_EMAIL
            and self.ADMIN_PASSWORD == DEFAULT_ADMIN_PASSWORD
        )


def get_settings() -> Settings:
    return Settings()
