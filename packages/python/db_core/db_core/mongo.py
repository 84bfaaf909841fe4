"""Async MongoDB helpers built on top of Motor.

Only generic utilities live here; domain repositories import these helpers and
build their own repositories and schemas on top."""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)

from .settings import settings


@lru_cache
def get_mongo_client() -> AsyncIOMotorClient:
    """Return a cached Motor client configured via ``db_core.settings``."""

    return AsyncIOMotorClient(settings.uri)


def get_db() -> AsyncIOMotorDatabase:
    """Return the main application database defined by ``settings.db_name``."""

    client = get_mongo_client()
    return client[settings.db_name]


@asynccontextmanager
async def transaction() -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
    """
    Yield a session with an open transaction, or ``None`` when transactions
    are disabled.

    Callers pass the yielded value as ``session=`` to every collection call so
    the same code runs against standalone servers and replica sets. The
    transaction commits when the block exits normally and aborts on error.
    """

    if not settings.transactions:
        yield None
        return

    client = get_mongo_client()
    async with await client.start_session() as session:
        async with session.start_transaction():
            yield session


async def ping() -> dict[str, Any]:
    """Run a simple ``ping`` command against the configured MongoDB server."""

    db = get_db()
    await db.command("ping")
    return {"ok": True}
