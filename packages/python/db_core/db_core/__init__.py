"""Minimal MongoDB helpers shared across domain repositories.

Example usage in a domain repository:

    from db_core import get_db, transaction

    async def rename_board(board_id: str, title: str):
        async with transaction() as session:
            await get_db()["boards"].update_one(
                {"_id": board_id}, {"$set": {"title": title}}, session=session
            )
"""

from .settings import MongoSettings, settings
from .mongo import get_mongo_client, get_db, ping, transaction
from .typing import MongoDocument

__all__ = [
    "MongoSettings",
    "MongoDocument",
    "settings",
    "get_mongo_client",
    "get_db",
    "ping",
    "transaction",
]
