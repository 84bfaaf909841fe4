"""Dense ``position`` maintenance for sibling documents stored in MongoDB.

A ``Reindexer`` owns one kind of ordered item (lists inside boards, cards
inside lists). Each operation reads the whole sibling group, computes the new
dense order with :mod:`kanban_repo.ordering` and writes back only the
positions that changed.

Three layers keep concurrent moves from interleaving:

* an in-process ``asyncio.Lock`` per group (:mod:`kanban_repo.locks`);
* a claim on the group document before any write: a compare-and-swap on
  ``order_version`` that also sets a ``reindexing`` marker, cleared once the
  writes are done. Writers in other processes that see the marker, or whose
  compare-and-swap fails, start again from a fresh read. A marker older than
  ``KANBAN_REORDER_LEASE_SECONDS`` is left by a dead writer and may be taken
  over;
* a MongoDB transaction around each attempt when ``MONGO_TRANSACTIONS`` is on.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar
from uuid import uuid4

from db_core import transaction
from db_core.typing import MutableMongoDocument as Doc
from loguru import logger
from pymongo.errors import PyMongoError

from . import ordering
from .config import settings
from .errors import ConcurrentModificationError, NotFoundError, PersistenceError
from .locks import GroupLockRegistry, group_locks
from .store import BOARDS, CARDS, LISTS, collection, mongo_errors, utcnow

T = TypeVar("T")


@dataclass(frozen=True)
class OrderedCollection:
    """Where an ordered item lives and which document groups it."""

    name: str
    group_field: str
    group_collection: str
    label: str
    group_label: str
    # Fields copied from the group document onto an item that joins it.
    inherited_fields: Tuple[str, ...] = ()


LISTS_IN_BOARD = OrderedCollection(
    name=LISTS,
    group_field="board_id",
    group_collection=BOARDS,
    label="List",
    group_label="Board",
)

CARDS_IN_LIST = OrderedCollection(
    name=CARDS,
    group_field="list_id",
    group_collection=LISTS,
    label="Card",
    group_label="List",
    inherited_fields=("board_id",),
)


class _ClaimLost(Exception):
    """Another writer holds the group, or its ``order_version`` moved since our read."""


def _lease_cutoff():
    return utcnow() - timedelta(seconds=settings.reorder_lease_seconds)


def _held_by_other(group: Doc) -> bool:
    if not group.get("reindexing"):
        return False
    since = group.get("reindexing_at")
    if since is None:
        return True
    # Motor hands back naive UTC datetimes unless the client is tz-aware.
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since >= _lease_cutoff()


def _ordered(docs: List[Doc], positions: Mapping[Any, int], extra: Optional[Doc] = None) -> List[Doc]:
    result = []
    for doc in docs:
        if doc["_id"] not in positions:
            continue
        updated = {**doc, "position": positions[doc["_id"]]}
        if extra and doc["_id"] == extra["_id"]:
            updated.update(extra)
        result.append(updated)
    result.sort(key=lambda doc: doc["position"])
    return result


class Reindexer:
    def __init__(self, spec: OrderedCollection, locks: GroupLockRegistry = group_locks) -> None:
        self.spec = spec
        self._locks = locks

    def _lock_key(self, group_id: str) -> str:
        return f"{self.spec.group_collection}:{group_id}"

    def hold_group(self, group_id: str):
        """Hold this process's lock on ``group_id``; other reindexes of it wait."""

        return self._locks.hold(self._lock_key(group_id))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load_group(self, group_id: str, session) -> Doc:
        doc = await collection(self.spec.group_collection).find_one({"_id": group_id}, session=session)
        if not doc:
            raise NotFoundError(f"{self.spec.group_label} {group_id} not found")
        return doc

    async def _load_items(self, group_id: str, session) -> List[Doc]:
        cursor = collection(self.spec.name).find(
            {self.spec.group_field: group_id}, session=session
        ).sort([("position", 1), ("_id", 1)])
        docs = [doc async for doc in cursor]
        docs.sort(key=ordering.sort_key)
        return docs

    async def items(self, group_id: str) -> List[Doc]:
        """Return the group's items ordered by position."""

        async with mongo_errors(f"loading {self.spec.label.lower()}s of {group_id}"):
            await self._load_group(group_id, None)
            return await self._load_items(group_id, None)

    async def _load_free_group(self, group_id: str, session) -> Doc:
        group = await self._load_group(group_id, session)
        if _held_by_other(group):
            raise _ClaimLost(group_id)
        return group

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _claim(self, group: Doc, token: str, session) -> None:
        version = group.get("order_version")
        expected = {"$exists": False} if version is None else version
        result = await collection(self.spec.group_collection).update_one(
            {
                "_id": group["_id"],
                "order_version": expected,
                "$or": [
                    {"reindexing": {"$exists": False}},
                    {"reindexing_at": {"$lt": _lease_cutoff()}},
                ],
            },
            {
                "$inc": {"order_version": 1},
                "$set": {"reindexing": token, "reindexing_at": utcnow()},
            },
            session=session,
        )
        if result.matched_count == 0:
            raise _ClaimLost(group["_id"])

    async def _release(self, group_id: str, token: str, session) -> None:
        await collection(self.spec.group_collection).update_one(
            {"_id": group_id, "reindexing": token},
            {"$unset": {"reindexing": "", "reindexing_at": ""}},
            session=session,
        )

    @asynccontextmanager
    async def _claimed(self, groups: Sequence[Doc], session) -> AsyncIterator[None]:
        """
        Claim every group in ``groups`` for the duration of the block.

        A claim lost half-way releases the groups already taken. If the block
        itself fails, the markers stay until their lease runs out.
        """

        token = uuid4().hex
        taken: List[str] = []
        try:
            for group in groups:
                await self._claim(group, token, session)
                taken.append(group["_id"])
        except _ClaimLost:
            for group_id in taken:
                await self._release(group_id, token, session)
            raise
        yield
        for group_id in taken:
            await self._release(group_id, token, session)

    async def _write_positions(
        self,
        changes: Mapping[Any, int],
        session,
        extra: Optional[Doc] = None,
    ) -> None:
        now = utcnow()
        items = collection(self.spec.name)
        for item_id, position in changes.items():
            fields: Doc = {"position": position, "updated_at": now}
            if extra and item_id == extra["_id"]:
                fields.update({k: v for k, v in extra.items() if k != "_id"})
            await items.update_one({"_id": item_id}, {"$set": fields}, session=session)

    async def _run(self, action: str, attempt: Callable[[Any], Awaitable[T]]) -> T:
        retries = settings.reorder_retries
        for number in range(1, retries + 1):
            try:
                async with transaction() as session:
                    return await attempt(session)
            except _ClaimLost as exc:
                logger.warning(
                    "Lost order claim on {group} while {action} (attempt {n}/{total})",
                    group=exc.args[0],
                    action=action,
                    n=number,
                    total=retries,
                )
                if number < retries:
                    await asyncio.sleep(settings.reorder_backoff_seconds * number)
            except PyMongoError as exc:
                if exc.has_error_label("TransientTransactionError"):
                    logger.warning(
                        "Transient transaction error while {action} (attempt {n}/{total}): {error}",
                        action=action,
                        n=number,
                        total=retries,
                        error=exc,
                    )
                    continue
                logger.error("MongoDB failure while {action}: {error}", action=action, error=exc)
                raise PersistenceError(f"Database failure while {action}") from exc
        raise ConcurrentModificationError(
            f"Gave up {action} after {retries} attempts; the group kept changing"
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def reorder_within_group(self, group_id: str, item_id: str, new_position: int) -> List[Doc]:
        """Move ``item_id`` to ``new_position`` among its siblings and return the group."""

        async def attempt(session) -> List[Doc]:
            group = await self._load_free_group(group_id, session)
            docs = await self._load_items(group_id, session)
            ids = ordering.ordered_ids(docs)
            if item_id not in ids:
                raise NotFoundError(
                    f"{self.spec.label} {item_id} not found in {self.spec.group_label.lower()} {group_id}"
                )
            positions = ordering.assign_positions(ordering.reorder(ids, item_id, new_position))
            ordering.check_dense(positions.values())
            changes = ordering.changed_positions(docs, positions)
            if changes:
                async with self._claimed([group], session):
                    await self._write_positions(changes, session)
            logger.debug(
                "Reordered {label} {item} to {position} in {group} ({n} writes)",
                label=self.spec.label.lower(),
                item=item_id,
                position=positions[item_id],
                group=group_id,
                n=len(changes),
            )
            return _ordered(docs, positions)

        async with self._locks.hold(self._lock_key(group_id)):
            return await self._run(f"reordering {self.spec.label.lower()} {item_id}", attempt)

    async def move_to_group(
        self,
        item_id: str,
        from_group_id: str,
        to_group_id: str,
        new_position: int,
    ) -> Tuple[List[Doc], List[Doc]]:
        """
        Move ``item_id`` into another group at ``new_position``.

        Returns ``(source_items, destination_items)``, both densely ordered.
        Moving within the same group is a plain reorder.
        """

        if from_group_id == to_group_id:
            items = await self.reorder_within_group(from_group_id, item_id, new_position)
            return items, items

        async def attempt(session) -> Tuple[List[Doc], List[Doc]]:
            source = await self._load_free_group(from_group_id, session)
            target = await self._load_free_group(to_group_id, session)
            source_docs = await self._load_items(from_group_id, session)
            target_docs = await self._load_items(to_group_id, session)

            source_ids = ordering.ordered_ids(source_docs)
            if item_id not in source_ids:
                raise NotFoundError(
                    f"{self.spec.label} {item_id} not found in {self.spec.group_label.lower()} {from_group_id}"
                )
            moved = next(doc for doc in source_docs if doc["_id"] == item_id)
            relocation: Doc = {"_id": item_id, self.spec.group_field: to_group_id}
            for field in self.spec.inherited_fields:
                relocation[field] = target.get(field)

            source_positions = ordering.assign_positions(ordering.remove(source_ids, item_id))
            target_positions = ordering.assign_positions(
                ordering.insert(ordering.ordered_ids(target_docs), item_id, new_position)
            )
            ordering.check_dense(source_positions.values())
            ordering.check_dense(target_positions.values())

            source_changes = ordering.changed_positions(source_docs, source_positions)
            target_changes = ordering.changed_positions(target_docs, target_positions)

            async with self._claimed([source, target], session):
                await self._write_positions(source_changes, session)
                await self._write_positions(target_changes, session, extra=relocation)

            logger.debug(
                "Moved {label} {item} from {source} to {target} at {position}",
                label=self.spec.label.lower(),
                item=item_id,
                source=from_group_id,
                target=to_group_id,
                position=target_positions[item_id],
            )
            return (
                _ordered(source_docs, source_positions),
                _ordered(target_docs + [moved], target_positions, extra=relocation),
            )

        async with self._locks.hold_many(self._lock_key(from_group_id), self._lock_key(to_group_id)):
            return await self._run(f"moving {self.spec.label.lower()} {item_id}", attempt)

    async def insert(self, group_id: str, doc: Doc, position: Optional[int] = None) -> Doc:
        """Insert a new item at ``position`` (default: last) and shift its followers."""

        async def attempt(session) -> Doc:
            group = await self._load_free_group(group_id, session)
            docs = await self._load_items(group_id, session)
            ids = ordering.ordered_ids(docs)
            index = len(ids) if position is None else position
            positions = ordering.assign_positions(ordering.insert(ids, doc["_id"], index))
            ordering.check_dense(positions.values())
            changes = ordering.changed_positions(docs, positions)
            changes.pop(doc["_id"], None)

            new_doc = {**doc, self.spec.group_field: group_id, "position": positions[doc["_id"]]}
            for field in self.spec.inherited_fields:
                new_doc[field] = group.get(field)

            async with self._claimed([group], session):
                await collection(self.spec.name).insert_one(dict(new_doc), session=session)
                await self._write_positions(changes, session)
            return new_doc

        async with self._locks.hold(self._lock_key(group_id)):
            return await self._run(f"inserting {self.spec.label.lower()} {doc['_id']}", attempt)

    async def remove(self, group_id: str, item_id: str) -> List[Doc]:
        """Delete ``item_id`` and close the gap it leaves; returns the survivors."""

        async def attempt(session) -> List[Doc]:
            group = await self._load_free_group(group_id, session)
            docs = await self._load_items(group_id, session)
            positions = ordering.assign_positions(ordering.remove(ordering.ordered_ids(docs), item_id))
            ordering.check_dense(positions.values())
            changes = ordering.changed_positions(docs, positions)

            async with self._claimed([group], session):
                await collection(self.spec.name).delete_one({"_id": item_id}, session=session)
                await self._write_positions(changes, session)
            return _ordered(docs, positions)

        async with self._locks.hold(self._lock_key(group_id)):
            return await self._run(f"removing {self.spec.label.lower()} {item_id}", attempt)


lists_reindexer = Reindexer(LISTS_IN_BOARD)
cards_reindexer = Reindexer(CARDS_IN_LIST)
