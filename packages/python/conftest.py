"""Shared fixtures: an in-memory stand-in for the Motor collections we use."""

import copy
from types import SimpleNamespace

import pytest
from pymongo.errors import DuplicateKeyError

import db_core
from kanban_repo import config, store
from kanban_repo.locks import group_locks


def _matches(doc, query):
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(_matches(doc, branch) for branch in cond):
                return False
            continue
        value = doc.get(key)
        if isinstance(cond, dict) and any(op.startswith("$") for op in cond):
            for op, arg in cond.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$nin" and value in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
                if op == "$exists" and (key in doc) != bool(arg):
                    return False
                if op == "$lt" and (value is None or not value < arg):
                    return False
        elif value != cond:
            return False
    return True


def _apply_update(doc, update):
    for key, value in update.get("$set", {}).items():
        doc[key] = copy.deepcopy(value)
    for key, value in update.get("$inc", {}).items():
        doc[key] = doc.get(key, 0) + value
    for key in update.get("$unset", {}):
        doc.pop(key, None)
    for key, value in update.get("$push", {}).items():
        doc.setdefault(key, []).append(copy.deepcopy(value))
    for key, value in update.get("$pull", {}).items():
        doc[key] = [item for item in doc.get(key, []) if item != value]


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._sort = []
        self._limit = None

    def sort(self, key_or_list, direction=None):
        if isinstance(key_or_list, (list, tuple)):
            self._sort = list(key_or_list)
        else:
            self._sort = [(key_or_list, direction or 1)]
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _results(self):
        docs = list(self._docs)
        for key, direction in reversed(self._sort):
            docs.sort(
                key=lambda d: (d.get(key) is not None, d.get(key) if d.get(key) is not None else 0),
                reverse=direction == -1,
            )
        if self._limit:
            docs = docs[: self._limit]
        return [copy.deepcopy(doc) for doc in docs]

    async def to_list(self, length=None):
        docs = self._results()
        return docs if length is None else docs[:length]

    def __aiter__(self):
        self._iter = iter(self._results())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = {}

    def _matching(self, query):
        return [doc for doc in self.docs.values() if _matches(doc, query)]

    def find(self, query=None, *args, session=None, **kwargs):
        return FakeCursor(self._matching(query))

    async def find_one(self, query=None, *args, session=None, **kwargs):
        found = self._matching(query)
        return copy.deepcopy(found[0]) if found else None

    async def count_documents(self, query, session=None):
        return len(self._matching(query))

    async def insert_one(self, doc, session=None):
        if doc["_id"] in self.docs:
            raise DuplicateKeyError(f"duplicate _id {doc['_id']}")
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, update, upsert=False, session=None):
        found = self._matching(query)
        if not found:
            return SimpleNamespace(matched_count=0, modified_count=0)
        _apply_update(found[0], update)
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def update_many(self, query, update, session=None):
        found = self._matching(query)
        for doc in found:
            _apply_update(doc, update)
        return SimpleNamespace(matched_count=len(found), modified_count=len(found))

    async def delete_one(self, query, session=None):
        found = self._matching(query)
        if found:
            del self.docs[found[0]["_id"]]
        return SimpleNamespace(deleted_count=len(found[:1]))

    async def delete_many(self, query, session=None):
        found = self._matching(query)
        for doc in found:
            del self.docs[doc["_id"]]
        return SimpleNamespace(deleted_count=len(found))


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, name):
        return {"ok": 1}


@pytest.fixture()
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(store, "get_db", lambda: db)
    monkeypatch.setattr(db_core.mongo, "get_db", lambda: db)
    monkeypatch.setattr(db_core.settings, "transactions", False)
    monkeypatch.setattr(config.settings, "reorder_backoff_seconds", 0)
    group_locks.clear()
    yield db
    group_locks.clear()
