"""Application settings and configuration helpers."""
from functools import lru_cache
import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseModel):
    """Runtime configuration loaded from environment variables."""

    database_url: str = Field(
        default="sqlite+aiosqlite:///./hris.db", alias="DATABASE_URL"
    )
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    subscriber_queue_size: int = Field(default=100, alias="SUBSCRIBER_QUEUE_SIZE")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


def _split_origins(raw: str | None) -> list[str]:
    if not raw:
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    defaults = Settings.model_fields
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults["database_url"].default),
        host=os.getenv("HOST", defaults["host"].default),
        port=int(os.getenv("PORT", defaults["port"].default)),
        upload_dir=os.getenv("UPLOAD_DIR", defaults["upload_dir"].default),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS")),
        log_level=os.getenv("LOG_LEVEL", defaults["log_level"].default),
        subscriber_queue_size=int(
            os.getenv("SUBSCRIBER_QUEUE_SIZE", defaults["subscriber_queue_size"].default)
        ),
    )
