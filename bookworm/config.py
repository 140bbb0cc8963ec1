"""
Configuration management for Bookworm Sync.
Loaded from environment variables, with a .env file as fallback.
"""

import os
import secrets
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from bookworm.sync.models import Owner

load_dotenv()


class SyncConfig(BaseModel):
    """Configuration for the sync service."""

    # Remote store settings
    sync_url: str = Field(
        default="https://bookwormfood.com/sync.html",
        description="URL of the remote store sync endpoint"
    )
    photos_base_url: str = Field(
        default="https://bookwormfood.com/",
        description="Base URL user photos are served from"
    )

    # Metadata settings
    google_books_url: str = Field(
        default="https://www.googleapis.com/books/v1",
        description="Google Books API URL"
    )

    # Owner used by scheduled syncs
    id_token: Optional[str] = Field(default=None, description="ID token of the signed-in user")
    owner_id: Optional[str] = Field(default=None, description="Opaque owner ID for photo URLs")
    owner_email: Optional[str] = Field(default=None, description="Verified owner email")

    # Sync settings
    sync_interval_minutes: int = Field(
        default=0,
        description="Background sync interval in minutes, 0 to sync only on request"
    )
    request_timeout: int = Field(default=30, description="HTTP request timeout in seconds")

    # Application settings
    database_url: str = Field(
        default="sqlite:///data/bookworm.db",
        description="Database connection URL"
    )
    secret_key: str = Field(
        default_factory=lambda: os.getenv("SECRET_KEY", secrets.token_hex(32)),
        description="Secret key for Flask sessions"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    port: int = Field(default=5000, description="HTTP port")


def get_config_from_env() -> SyncConfig:
    """Load configuration from environment variables."""
    return SyncConfig(
        sync_url=os.getenv("BOOKWORM_SYNC_URL", "https://bookwormfood.com/sync.html"),
        photos_base_url=os.getenv("PHOTOS_BASE_URL", "https://bookwormfood.com/"),
        google_books_url=os.getenv("GOOGLE_BOOKS_URL", "https://www.googleapis.com/books/v1"),
        id_token=os.getenv("BOOKWORM_ID_TOKEN") or None,
        owner_id=os.getenv("BOOKWORM_OWNER_ID") or None,
        owner_email=os.getenv("BOOKWORM_OWNER_EMAIL") or None,
        sync_interval_minutes=int(os.getenv("SYNC_INTERVAL_MINUTES", "0")),
        request_timeout=int(os.getenv("REQUEST_TIMEOUT", "30")),
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/bookworm.db"),
        secret_key=os.getenv("SECRET_KEY", secrets.token_hex(32)),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        port=int(os.getenv("PORT", "5000")),
    )


def is_configured(config: SyncConfig) -> bool:
    """Check if there is an owner to run background syncs for."""
    return bool(config.id_token)


def owner_from_config(config: SyncConfig) -> Optional[Owner]:
    """The owner background syncs run as, or None if not configured."""
    if not is_configured(config):
        return None

    return Owner(
        id_token=config.id_token,
        owner_id=config.owner_id,
        email=config.owner_email,
    )
