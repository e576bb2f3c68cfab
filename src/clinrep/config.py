from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "ClinRep Repertory Service"
    ENV: str = "development"
    DEBUG: bool = True

    # Self-hosted OOREP instance (local repertories, materia medica)
    OOREP_API_URL: str = "http://localhost:9000"
    OOREP_ENABLED: bool = False

    # oorep.com (remote repertories behind the cookie session)
    OOREP_REMOTE_URL: str = "https://www.oorep.com"
    OOREP_SESSION_TTL_SECONDS: int = 20 * 60
    OOREP_HANDSHAKE_PATH: str = "/api/available_remedies"
    OOREP_USER_AGENT: str = BROWSER_USER_AGENT

    HTTP_TIMEOUT_SECONDS: float = 30.0
    REMEDY_CACHE_SECONDS: int = 60 * 60

    SHEET_TIMEZONE: str = "Asia/Kolkata"
    SHEET_TOP_N: int = 20

    @field_validator("OOREP_API_URL", "OOREP_REMOTE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("OOREP URLs must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("OOREP_HANDSHAKE_PATH")
    @classmethod
    def validate_handshake_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("OOREP_HANDSHAKE_PATH must be an absolute path")
        return v

    @field_validator("OOREP_SESSION_TTL_SECONDS", "SHEET_TOP_N")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
