"""Checklists attached to cards, with densely ordered embedded items."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from loguru import logger

from . import ordering
from .config import settings
from .errors import ConcurrentModificationError, NotFoundError
from .models import Checklist, ChecklistItem
from .store import CARDS, CHECKLISTS, collection, mongo_errors, utcnow

ItemsEdit = Callable[[List[dict]], List[dict]]


def _doc_to_model(doc: dict) -> Checklist:
    items = sorted(doc.get("items") or [], key=lambda item: ordering.sort_key(item, "id"))
    return Checklist(
        id=str(doc["_id"]),
        card_id=doc["card_id"],
        board_id=doc["board_id"],
        title=doc["title"],
        items=[ChecklistItem(**item) for item in items],
        is_completed=bool(doc.get("is_completed", False)),
        order_version=int(doc.get("order_version", 0)),
    )


def _completed(items: List[dict]) -> bool:
    return bool(items) and all(item.get("is_completed") for item in items)


def _renumber(items: List[dict], ids: List[str]) -> List[dict]:
    by_id = {item["id"]: item for item in items}
    positions = ordering.assign_positions(ids)
    ordering.check_dense(positions.values())
    return [{**by_id[item_id], "position": positions[item_id]} for item_id in ids]


async def _fetch(checklist_id: str) -> dict:
    async with mongo_errors(f"loading checklist {checklist_id}"):
        doc = await collection(CHECKLISTS).find_one({"_id": checklist_id})
    if not doc:
        raise NotFoundError(f"Checklist {checklist_id} not found")
    return doc


async def _edit_items(checklist_id: str, edit: ItemsEdit, action: str) -> Checklist:
    """
    Apply ``edit`` to the checklist's items with a compare-and-swap on
    ``order_version``; a concurrent edit makes us re-read and try again.
    """

    retries = settings.reorder_retries
    for number in range(1, retries + 1):
        doc = await _fetch(checklist_id)
        version = doc.get("order_version")
        items = edit(sorted(doc.get("items") or [], key=lambda item: ordering.sort_key(item, "id")))
        expected = {"$exists": False} if version is None else version
        async with mongo_errors(action):
            result = await collection(CHECKLISTS).update_one(
                {"_id": checklist_id, "order_version": expected},
                {
                    "$set": {"items": items, "is_completed": _completed(items), "updated_at": utcnow()},
                    "$inc": {"order_version": 1},
                },
            )
        if result.matched_count:
            return await get_checklist(checklist_id)
        logger.warning(
            "Checklist {checklist} changed while {action} (attempt {n}/{total})",
            checklist=checklist_id,
            action=action,
            n=number,
            total=retries,
        )
    raise ConcurrentModificationError(f"Gave up {action} after {retries} attempts")


async def create_checklist(card_id: str, title: str) -> Checklist:
    async with mongo_errors(f"loading card {card_id}"):
        card = await collection(CARDS).find_one({"_id": card_id})
    if not card:
        raise NotFoundError(f"Card {card_id} not found")
    now = utcnow()
    doc = {
        "_id": uuid4().hex,
        "card_id": card_id,
        "board_id": card["board_id"],
        "title": title,
        "items": [],
        "is_completed": False,
        "order_version": 0,
        "created_at": now,
        "updated_at": now,
    }
    async with mongo_errors("creating checklist"):
        await collection(CHECKLISTS).insert_one(doc)
    return _doc_to_model(doc)


async def get_checklists(card_id: str) -> List[Checklist]:
    async with mongo_errors(f"listing checklists of card {card_id}"):
        cursor = collection(CHECKLISTS).find({"card_id": card_id}).sort("created_at", 1)
        docs = [doc async for doc in cursor]
    return [_doc_to_model(doc) for doc in docs]


async def get_checklist(checklist_id: str) -> Checklist:
    return _doc_to_model(await _fetch(checklist_id))


async def update_checklist(checklist_id: str, title: Optional[str] = None) -> Checklist:
    await _fetch(checklist_id)
    fields: dict = {"updated_at": utcnow()}
    if title is not None:
        fields["title"] = title
    async with mongo_errors(f"updating checklist {checklist_id}"):
        await collection(CHECKLISTS).update_one({"_id": checklist_id}, {"$set": fields})
    return await get_checklist(checklist_id)


async def delete_checklist(checklist_id: str) -> None:
    await _fetch(checklist_id)
    async with mongo_errors(f"deleting checklist {checklist_id}"):
        await collection(CHECKLISTS).delete_one({"_id": checklist_id})


async def add_checklist_item(checklist_id: str, text: str) -> Checklist:
    new_id = uuid4().hex

    def edit(items: List[dict]) -> List[dict]:
        ids = ordering.insert([item["id"] for item in items], new_id, len(items))
        fresh = {"id": new_id, "text": text, "is_completed": False, "position": len(items)}
        return _renumber(items + [fresh], ids)

    return await _edit_items(checklist_id, edit, f"adding item to checklist {checklist_id}")


def _require_item(items: List[dict], item_id: str) -> None:
    if not any(item["id"] == item_id for item in items):
        raise NotFoundError(f"Checklist item {item_id} not found")


async def toggle_checklist_item(checklist_id: str, item_id: str) -> Checklist:
    def edit(items: List[dict]) -> List[dict]:
        _require_item(items, item_id)
        return [
            {**item, "is_completed": not item.get("is_completed", False)} if item["id"] == item_id else item
            for item in items
        ]

    return await _edit_items(checklist_id, edit, f"toggling item {item_id}")


async def delete_checklist_item(checklist_id: str, item_id: str) -> Checklist:
    def edit(items: List[dict]) -> List[dict]:
        _require_item(items, item_id)
        ids = ordering.remove([item["id"] for item in items], item_id)
        return _renumber(items, ids)

    return await _edit_items(checklist_id, edit, f"deleting item {item_id}")


async def move_checklist_item(checklist_id: str, item_id: str, position: int) -> Checklist:
    def edit(items: List[dict]) -> List[dict]:
        _require_item(items, item_id)
        ids = ordering.reorder([item["id"] for item in items], item_id, position)
        return _renumber(items, ids)

    return await _edit_items(checklist_id, edit, f"moving item {item_id}")


async def checklists_by_card(card_ids: Iterable[str]) -> Dict[str, List[Checklist]]:
    """Group the checklists of ``card_ids`` by card, oldest first."""

    grouped: Dict[str, List[Checklist]] = {card_id: [] for card_id in card_ids}
    if not grouped:
        return grouped
    async with mongo_errors("listing checklists of cards"):
        cursor = collection(CHECKLISTS).find({"card_id": {"$in": list(grouped)}}).sort("created_at", 1)
        docs = [doc async for doc in cursor]
    for doc in docs:
        grouped[doc["card_id"]].append(_doc_to_model(doc))
    return grouped
