"""Configuration helpers for MongoDB connections used by db_core.

Applications can create a new ``MongoSettings`` instance at startup and assign
it to ``db_core.settings`` before the first call to ``get_db`` to override the
defaults. If not overridden, the defaults below are used.
"""
from loguru import logger
import os

from pydantic import BaseModel, Field


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class MongoSettings(BaseModel):
    """Basic MongoDB configuration that domain apps can extend if needed."""

    uri: str = Field(
        default_factory=lambda: os.getenv("MONGO_URI", "mongodb://localhost:27017")
    )
    db_name: str = Field(default_factory=lambda: os.getenv("MONGO_DB_NAME", "kanban"))
    # Multi-document transactions need a replica set or sharded cluster.
    transactions: bool = Field(default_factory=lambda: _env_flag("MONGO_TRANSACTIONS"))


def _default_settings() -> "MongoSettings":
    """Provide a factory to keep settings override logic simple in the future."""

    return MongoSettings()


settings: MongoSettings = _default_settings()
logger.info(
    "MongoSettings initialized with uri={uri} db_name={db_name} transactions={tx}",
    uri=settings.uri,
    db_name=settings.db_name,
    tx=settings.transactions,
)
