"""Build the store and activity provider named by ``Settings``."""

from __future__ import annotations

import logging
from datetime import tzinfo

from wearlog.config import Settings
from wearlog.engine.adapters import get_provider
from wearlog.engine.base import ActivityProvider
from wearlog.services.postgres_store import PostgresStore
from wearlog.services.sqlite_store import SQLiteStore
from wearlog.services.store import Store

logger = logging.getLogger("wearlog.db")

_SQLITE_PREFIX = "sqlite:///"
_POSTGRES_PREFIXES = ("postgresql://", "postgres://")


def create_store(settings: Settings) -> Store:
    """Build (but do not open) the store named by ``settings.database_url``.

    Raises:
        ValueError: If the URL scheme is not recognised.
    """
    url = settings.database_url
    if url == ":memory:":
        return SQLiteStore(":memory:")
    if url.startswith(_SQLITE_PREFIX):
        path = url[len(_SQLITE_PREFIX):] or ":memory:"
        logger.info("Using SQLite store at %s", path)
        return SQLiteStore(path)
    if url.startswith(_POSTGRES_PREFIXES):
        logger.info("Using PostgreSQL store")
        return PostgresStore(url)
    raise ValueError(f"Unsupported database_url scheme: {url!r}")


def create_provider(settings: Settings, tz: tzinfo) -> ActivityProvider:
    """Instantiate the activity provider selected by ``settings.activity_provider``.

    Raises:
        KeyError:   Unknown provider slug.
        ValueError: The provider's required setting is missing.
    """
    source_id = settings.activity_provider
    provider_cls = get_provider(source_id)

    if source_id == "http":
        if not settings.activity_provider_url:
            raise ValueError("activity_provider_url is required for the http provider")
        provider = provider_cls(
            settings.activity_provider_url, token=settings.activity_provider_token
        )
    elif source_id == "apple_health":
        if not settings.activity_export_path:
            raise ValueError("activity_export_path is required for the apple_health provider")
        provider = provider_cls.from_file(settings.activity_export_path, tz)
    else:
        provider = provider_cls()

    logger.info("Activity provider: %s", provider.SOURCE_ID)
    return provider
