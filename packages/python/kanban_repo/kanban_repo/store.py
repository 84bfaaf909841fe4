"""Collection access shared by the kanban repository modules."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from db_core import get_db
from loguru import logger
from pymongo.errors import PyMongoError

from .errors import PersistenceError

BOARDS = "boards"
LISTS = "lists"
CARDS = "cards"
CHECKLISTS = "checklists"
ACTIVITIES = "activities"
COMMENTS = "comments"


def collection(name: str):
    return get_db()[name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@asynccontextmanager
async def mongo_errors(action: str) -> AsyncIterator[None]:
    """Translate driver failures into ``PersistenceError``."""

    try:
        yield
    except PyMongoError as exc:
        logger.error("MongoDB failure while {action}: {error}", action=action, error=exc)
        raise PersistenceError(f"Database failure while {action}") from exc
