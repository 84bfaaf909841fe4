"""Async persistence layer for boards, lists and cards."""

from __future__ import annotations

from typing import List, Optional
from uuid import uuid4

from loguru import logger

from .activities import record_activity
from .checklists import checklists_by_card
from .errors import NotFoundError
from .models import (
    Board,
    BoardCreate,
    BoardList,
    BoardUpdate,
    Card,
    CardMoveResult,
    CardUpdate,
    CardWithChecklists,
    ListWithCardDetails,
    ListWithCards,
)
from .reindexer import cards_reindexer, lists_reindexer
from .store import ACTIVITIES, BOARDS, CARDS, CHECKLISTS, COMMENTS, LISTS, collection, mongo_errors, utcnow


def _board_to_model(doc: dict) -> Board:
    return Board(
        id=str(doc["_id"]),
        title=doc["title"],
        description=doc.get("description"),
        order_version=int(doc.get("order_version", 0)),
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


def _list_to_model(doc: dict) -> BoardList:
    return BoardList(
        id=str(doc["_id"]),
        board_id=doc["board_id"],
        title=doc["title"],
        position=int(doc.get("position", 0)),
        order_version=int(doc.get("order_version", 0)),
    )


def _card_to_model(doc: dict) -> Card:
    return Card(
        id=str(doc["_id"]),
        board_id=doc["board_id"],
        list_id=doc["list_id"],
        title=doc["title"],
        description=doc.get("description"),
        labels=list(doc.get("labels") or []),
        due_date=doc.get("due_date"),
        position=int(doc.get("position", 0)),
    )


def _with_cards(list_doc: dict, card_docs: List[dict]) -> ListWithCards:
    base = _list_to_model(list_doc)
    return ListWithCards(**base.model_dump(), cards=[_card_to_model(doc) for doc in card_docs])


async def _with_card_details(list_doc: dict, card_docs: List[dict]) -> ListWithCardDetails:
    checklists = await checklists_by_card(doc["_id"] for doc in card_docs)
    cards = [
        CardWithChecklists(**_card_to_model(doc).model_dump(), checklists=checklists[doc["_id"]])
        for doc in card_docs
    ]
    return ListWithCardDetails(**_list_to_model(list_doc).model_dump(), cards=cards)


async def _delete_card_satellites(card_ids: List[str]) -> None:
    if not card_ids:
        return
    await collection(CHECKLISTS).delete_many({"card_id": {"$in": card_ids}})
    await collection(COMMENTS).delete_many({"card_id": {"$in": card_ids}})


async def _fetch(name: str, label: str, item_id: str) -> dict:
    async with mongo_errors(f"loading {label.lower()} {item_id}"):
        doc = await collection(name).find_one({"_id": item_id})
    if not doc:
        raise NotFoundError(f"{label} {item_id} not found")
    return doc


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


async def create_board(payload: BoardCreate) -> Board:
    now = utcnow()
    doc = {
        "_id": uuid4().hex,
        "title": payload.title,
        "description": payload.description,
        "order_version": 0,
        "created_at": now,
        "updated_at": now,
    }
    async with mongo_errors("creating board"):
        await collection(BOARDS).insert_one(doc)
    await record_activity(doc["_id"], f'created board "{payload.title}"')
    return _board_to_model(doc)


async def list_boards() -> List[Board]:
    async with mongo_errors("listing boards"):
        cursor = collection(BOARDS).find({}).sort("created_at", 1)
        docs = [doc async for doc in cursor]
    return [_board_to_model(doc) for doc in docs]


async def get_board(board_id: str) -> Board:
    return _board_to_model(await _fetch(BOARDS, "Board", board_id))


async def update_board(board_id: str, payload: BoardUpdate) -> Board:
    await _fetch(BOARDS, "Board", board_id)
    fields = payload.model_dump(exclude_unset=True)
    fields["updated_at"] = utcnow()
    async with mongo_errors(f"updating board {board_id}"):
        await collection(BOARDS).update_one({"_id": board_id}, {"$set": fields})
    return await get_board(board_id)


async def delete_board(board_id: str) -> None:
    """Delete a board together with its lists, cards, their satellites and activities."""

    await _fetch(BOARDS, "Board", board_id)
    async with mongo_errors(f"deleting board {board_id}"):
        # Satellites follow their card, which may have arrived from another board.
        card_ids = [doc["_id"] async for doc in collection(CARDS).find({"board_id": board_id})]
        await _delete_card_satellites(card_ids)
        await collection(CARDS).delete_many({"board_id": board_id})
        await collection(LISTS).delete_many({"board_id": board_id})
        await collection(ACTIVITIES).delete_many({"board_id": board_id})
        await collection(BOARDS).delete_one({"_id": board_id})
    logger.info("Deleted board {board}", board=board_id)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


async def get_lists(board_id: str) -> List[BoardList]:
    docs = await lists_reindexer.items(board_id)
    return [_list_to_model(doc) for doc in docs]


async def get_list(list_id: str) -> BoardList:
    return _list_to_model(await _fetch(LISTS, "List", list_id))


async def get_list_with_cards(list_id: str) -> ListWithCards:
    list_doc = await _fetch(LISTS, "List", list_id)
    card_docs = await cards_reindexer.items(list_id)
    return _with_cards(list_doc, card_docs)


async def create_list(board_id: str, title: str, position: Optional[int] = None) -> BoardList:
    """Create a list at the end of the board, or at ``position`` when given."""

    doc = await lists_reindexer.insert(
        board_id,
        {"_id": uuid4().hex, "title": title, "order_version": 0, "created_at": utcnow()},
        position=position,
    )
    await record_activity(board_id, f'added list "{title}"')
    return _list_to_model(doc)


async def update_list(list_id: str, title: str) -> BoardList:
    await _fetch(LISTS, "List", list_id)
    async with mongo_errors(f"updating list {list_id}"):
        await collection(LISTS).update_one(
            {"_id": list_id}, {"$set": {"title": title, "updated_at": utcnow()}}
        )
    return await get_list(list_id)


async def delete_list(list_id: str) -> List[BoardList]:
    """
    Delete a list and its cards; the remaining lists close the gap.

    The list goes first, while its card group is locked, so a failed removal
    leaves the cards in place and no card can be moved into a deleted list.
    """

    list_doc = await _fetch(LISTS, "List", list_id)
    board_id = list_doc["board_id"]
    async with cards_reindexer.hold_group(list_id):
        survivors = await lists_reindexer.remove(board_id, list_id)
        async with mongo_errors(f"deleting cards of list {list_id}"):
            card_ids = [doc["_id"] async for doc in collection(CARDS).find({"list_id": list_id})]
            await _delete_card_satellites(card_ids)
            await collection(CARDS).delete_many({"list_id": list_id})
    await record_activity(board_id, f'deleted list "{list_doc["title"]}"')
    return [_list_to_model(doc) for doc in survivors]


async def update_list_position(list_id: str, position: int) -> List[BoardList]:
    """Move a list to ``position`` within its board and return all of the board's lists."""

    list_doc = await _fetch(LISTS, "List", list_id)
    board_id = list_doc["board_id"]
    docs = await lists_reindexer.reorder_within_group(board_id, list_id, position)
    await record_activity(board_id, f'moved list "{list_doc["title"]}" to position {position}')
    return [_list_to_model(doc) for doc in docs]


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


async def get_cards(list_id: str) -> List[Card]:
    docs = await cards_reindexer.items(list_id)
    return [_card_to_model(doc) for doc in docs]


async def get_card(card_id: str) -> Card:
    return _card_to_model(await _fetch(CARDS, "Card", card_id))


async def create_card(
    list_id: str,
    title: str,
    description: Optional[str] = None,
    labels: Optional[List[str]] = None,
    position: Optional[int] = None,
) -> Card:
    now = utcnow()
    doc = await cards_reindexer.insert(
        list_id,
        {
            "_id": uuid4().hex,
            "title": title,
            "description": description,
            "labels": list(labels or []),
            "due_date": None,
            "created_at": now,
            "updated_at": now,
        },
        position=position,
    )
    await record_activity(doc["board_id"], f'added card "{title}"', card_id=doc["_id"])
    return _card_to_model(doc)


async def update_card(card_id: str, payload: CardUpdate) -> Card:
    """Update a card's payload; ``position`` and ``list_id`` are left alone."""

    await _fetch(CARDS, "Card", card_id)
    fields = payload.model_dump(exclude_unset=True)
    fields["updated_at"] = utcnow()
    async with mongo_errors(f"updating card {card_id}"):
        await collection(CARDS).update_one({"_id": card_id}, {"$set": fields})
    return await get_card(card_id)


async def delete_card(card_id: str) -> List[Card]:
    """Delete a card with its checklists and comments; the remaining cards close the gap."""

    card_doc = await _fetch(CARDS, "Card", card_id)
    survivors = await cards_reindexer.remove(card_doc["list_id"], card_id)
    async with mongo_errors(f"deleting checklists and comments of card {card_id}"):
        await _delete_card_satellites([card_id])
    await record_activity(card_doc["board_id"], f'deleted card "{card_doc["title"]}"', card_id=card_id)
    return [_card_to_model(doc) for doc in survivors]


async def update_card_position(card_id: str, list_id: str, position: int) -> List[Card]:
    """Move a card to ``position`` inside ``list_id`` and return that list's cards."""

    docs = await cards_reindexer.reorder_within_group(list_id, card_id, position)
    moved = next(doc for doc in docs if doc["_id"] == card_id)
    await record_activity(moved["board_id"], f'moved card "{moved["title"]}" to position {position}', card_id=card_id)
    return [_card_to_model(doc) for doc in docs]


async def move_card_to_list(card_id: str, new_list_id: str, position: int) -> CardMoveResult:
    """Move a card into ``new_list_id`` at ``position``; both lists are reindexed."""

    card_doc = await _fetch(CARDS, "Card", card_id)
    old_list_id = card_doc["list_id"]
    source_docs, target_docs = await cards_reindexer.move_to_group(
        card_id, old_list_id, new_list_id, position
    )
    source_list = await _fetch(LISTS, "List", old_list_id)
    target_list = await _fetch(LISTS, "List", new_list_id)
    if target_list["board_id"] != card_doc["board_id"]:
        async with mongo_errors(f"moving checklists of card {card_id}"):
            await collection(CHECKLISTS).update_many(
                {"card_id": card_id}, {"$set": {"board_id": target_list["board_id"]}}
            )
    await record_activity(
        target_list["board_id"],
        f'moved card "{card_doc["title"]}" from "{source_list["title"]}" to "{target_list["title"]}"',
        card_id=card_id,
    )
    return CardMoveResult(
        source=await _with_card_details(source_list, source_docs),
        destination=await _with_card_details(target_list, target_docs),
    )
