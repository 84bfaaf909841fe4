"""Comments left on cards."""

from __future__ import annotations

from typing import List
from uuid import uuid4

from .activities import record_activity
from .errors import NotFoundError
from .models import Comment
from .store import CARDS, COMMENTS, collection, mongo_errors, utcnow


def _doc_to_model(doc: dict) -> Comment:
    return Comment(
        id=str(doc["_id"]),
        card_id=doc["card_id"],
        text=doc["text"],
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
    )


async def _card(card_id: str) -> dict:
    async with mongo_errors(f"loading card {card_id}"):
        card = await collection(CARDS).find_one({"_id": card_id})
    if not card:
        raise NotFoundError(f"Card {card_id} not found")
    return card


async def _fetch(comment_id: str) -> dict:
    async with mongo_errors(f"loading comment {comment_id}"):
        doc = await collection(COMMENTS).find_one({"_id": comment_id})
    if not doc:
        raise NotFoundError(f"Comment {comment_id} not found")
    return doc


async def create_comment(card_id: str, text: str) -> Comment:
    card = await _card(card_id)
    now = utcnow()
    doc = {"_id": uuid4().hex, "card_id": card_id, "text": text, "created_at": now, "updated_at": now}
    async with mongo_errors("creating comment"):
        await collection(COMMENTS).insert_one(doc)
    await record_activity(card["board_id"], f'commented on card "{card["title"]}"', card_id=card_id)
    return _doc_to_model(doc)


async def get_comments(card_id: str) -> List[Comment]:
    """Return the card's comments, oldest first."""

    await _card(card_id)
    async with mongo_errors(f"listing comments of card {card_id}"):
        cursor = collection(COMMENTS).find({"card_id": card_id}).sort("created_at", 1)
        docs = [doc async for doc in cursor]
    return [_doc_to_model(doc) for doc in docs]


async def update_comment(comment_id: str, text: str) -> Comment:
    await _fetch(comment_id)
    async with mongo_errors(f"updating comment {comment_id}"):
        await collection(COMMENTS).update_one(
            {"_id": comment_id}, {"$set": {"text": text, "updated_at": utcnow()}}
        )
    return _doc_to_model(await _fetch(comment_id))


async def delete_comment(comment_id: str) -> None:
    await _fetch(comment_id)
    async with mongo_errors(f"deleting comment {comment_id}"):
        await collection(COMMENTS).delete_one({"_id": comment_id})
