"""Application settings loaded from environment variables (and .env)."""
import json
from pathlib import Path
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Property-Importer"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    cors_origins: List[str] = ["*"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./properties.db"

    # Empty disables the X-API-Key check on the import endpoint.
    api_key: str = ""

    # Vendor feed
    feed_url: str = "https://zoho.nordstern.ae/property_finder.xml"
    feed_timeout: float = 10.0
    feed_user_agent: str = "PropertyImporter/2.0"

    # Import
    upsert_chunk_size: int = 200
    import_results_limit: int = 100

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("database_url must use an async driver (postgresql+asyncpg or sqlite+aiosqlite)")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("feed_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("feed_timeout must be greater than zero")
        return v

    @field_validator("upsert_chunk_size", "import_results_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v


settings = Settings()
