"""Append-only activity log attached to boards."""

from __future__ import annotations

from typing import List, Optional
from uuid import uuid4

from db_core import MongoDocument

from .models import Activity
from .store import ACTIVITIES, collection, mongo_errors, utcnow


def _doc_to_model(doc: MongoDocument) -> Activity:
    return Activity(
        id=str(doc["_id"]),
        board_id=doc["board_id"],
        card_id=doc.get("card_id"),
        action=doc["action"],
        created_at=doc["created_at"],
    )


async def record_activity(board_id: str, action: str, card_id: Optional[str] = None) -> Activity:
    doc = {
        "_id": uuid4().hex,
        "board_id": board_id,
        "card_id": card_id,
        "action": action,
        "created_at": utcnow(),
    }
    async with mongo_errors("recording activity"):
        await collection(ACTIVITIES).insert_one(doc)
    return _doc_to_model(doc)


async def list_activities(board_id: Optional[str] = None, card_id: Optional[str] = None) -> List[Activity]:
    """Return activities of a board, of a card, or both filters combined; newest first."""

    query = {}
    if board_id is not None:
        query["board_id"] = board_id
    if card_id is not None:
        query["card_id"] = card_id
    if not query:
        raise ValueError("list_activities needs a board_id or a card_id")
    async with mongo_errors("listing activities"):
        cursor = collection(ACTIVITIES).find(query).sort("created_at", -1)
        docs = [doc async for doc in cursor]
    return [_doc_to_model(doc) for doc in docs]
