"""
Pytest Fixtures
===============

Shared fixtures for the query pipeline tests: an in-memory stand-in for the
parts of pymongo the services touch, a chat model with canned replies and a
controllable clock.
"""

import copy
import json
import time
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from langchain_core.messages import AIMessage

from querygenie.agents.mongodb_agent import QueryGenieAgent
from querygenie.services.db_service import QueryExecutor
from querygenie.services.history_service import HistoryService
from querygenie.services.schema_service import SchemaCache, SchemaService
from querygenie.services.translator import QueryTranslator

_COMPARISONS = {
    "$gt": lambda a, b: a is not None and a > b,
    "$gte": lambda a, b: a is not None and a >= b,
    "$lt": lambda a, b: a is not None and a < b,
    "$lte": lambda a, b: a is not None and a <= b,
    "$ne": lambda a, b: a != b,
    "$in": lambda a, b: a in b,
}


def matches(doc: Dict[str, Any], query_filter: Optional[Dict[str, Any]]) -> bool:
    """Equality and simple comparison operators, enough for the tests."""
    for key, condition in (query_filter or {}).items():
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(op.startswith("$") for op in condition):
            for op, operand in condition.items():
                if not _COMPARISONS[op](value, operand):
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self.closed = False

    def limit(self, count: int) -> "FakeCursor":
        if count:
            self._docs = self._docs[:count]
        return self

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._docs = sorted(self._docs, key=lambda doc: doc.get(key), reverse=direction < 0)
        return self

    def close(self) -> None:
        self.closed = True

    def __iter__(self):
        return iter(self._docs)


class FakeCollection:
    def __init__(self, name: str, docs: Optional[List[Dict[str, Any]]] = None):
        self.name = name
        self.docs: List[Dict[str, Any]] = docs if docs is not None else []
        self.calls: List[tuple] = []
        self.cursors: List[FakeCursor] = []
        self.fail_writes = False
        self.write_delay = 0.0

    def _matching(self, query_filter) -> List[Dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self.docs if matches(doc, query_filter)]

    def find(self, query_filter=None, projection=None) -> FakeCursor:
        self.calls.append(("find", query_filter, projection))
        return FakeCursor(self._matching(query_filter))

    def find_one(self, query_filter=None, projection=None, sort=None):
        self.calls.append(("find_one", query_filter, projection))
        docs = self._matching(query_filter)
        for key, direction in reversed(sort or []):
            docs.sort(key=lambda doc: doc.get(key), reverse=direction < 0)
        return docs[0] if docs else None

    def count_documents(self, query_filter) -> int:
        self.calls.append(("count_documents", query_filter))
        return len(self._matching(query_filter))

    def aggregate(self, pipeline) -> FakeCursor:
        self.calls.append(("aggregate", pipeline))
        docs = self._matching({})
        for stage in pipeline:
            if "$match" in stage:
                docs = [doc for doc in docs if matches(doc, stage["$match"])]
            elif "$limit" in stage:
                docs = docs[:stage["$limit"]]
            elif "$count" in stage:
                docs = [{stage["$count"]: len(docs)}]
        cursor = FakeCursor(docs)
        self.cursors.append(cursor)
        return cursor

    def _slow_write(self) -> None:
        if self.write_delay:
            time.sleep(self.write_delay)

    def insert_one(self, doc: Dict[str, Any]):
        self._slow_write()
        if self.fail_writes:
            raise RuntimeError("write failed")
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    def update_one(self, query_filter, update, upsert=False):
        self._slow_write()
        if self.fail_writes:
            raise RuntimeError("write failed")
        target = next((doc for doc in self.docs if matches(doc, query_filter)), None)
        if target is None:
            if not upsert:
                return SimpleNamespace(matched_count=0)
            target = {"_id": ObjectId()}
            self.docs.append(target)
        target.update(copy.deepcopy(update.get("$set", {})))
        for key, amount in update.get("$inc", {}).items():
            target[key] = target.get(key, 0) + amount
        return SimpleNamespace(matched_count=1)

    def delete_many(self, query_filter):
        kept = [doc for doc in self.docs if not matches(doc, query_filter)]
        deleted = len(self.docs) - len(kept)
        self.docs[:] = kept
        return SimpleNamespace(deleted_count=deleted)


class FakeDatabase:
    def __init__(self, name: str, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.name = name
        self._collections: Dict[str, FakeCollection] = {}
        self._listed = set()
        for collection_name, docs in (collections or {}).items():
            self._collections[collection_name] = FakeCollection(collection_name, docs)
            self._listed.add(collection_name)

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]

    def list_collection_names(self) -> List[str]:
        # Like MongoDB, collections only exist once created or written to
        return [name for name, collection in self._collections.items()
                if name in self._listed or collection.docs]

    def command(self, name: str):
        return {"ok": 1}


class FakeMongoClient:
    def __init__(self, databases: Dict[str, Dict[str, List[Dict[str, Any]]]]):
        self.databases = {name: FakeDatabase(name, colls) for name, colls in databases.items()}
        self.fail_listing = False
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    @property
    def admin(self) -> FakeDatabase:
        return self["admin"]

    def list_database_names(self) -> List[str]:
        if self.fail_listing:
            raise ConnectionError("cluster unreachable")
        return list(self.databases)

    def close(self) -> None:
        self.closed = True


class FakeLLM:
    """Chat model returning canned replies in order; Exception replies are raised."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[list] = []

    def invoke(self, messages):
        self.calls.append(messages)
        if not self.responses:
            raise AssertionError("FakeLLM has no more responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            response = json.dumps(response)
        return AIMessage(content=response)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_users(count: int) -> List[Dict[str, Any]]:
    return [
        {"_id": ObjectId(), "name": f"user{i}", "age": 20 + i % 50, "active": i % 2 == 0}
        for i in range(count)
    ]


@pytest.fixture
def fake_client() -> FakeMongoClient:
    """A cluster with two user databases and the usual system databases."""
    return FakeMongoClient({
        "shop": {
            "users": make_users(120),
            "orders": [
                {"_id": ObjectId(), "item": "book", "qty": 2, "total": 30.5},
                {"_id": ObjectId(), "item": "pen", "qty": 10, "total": 12.0},
                {"_id": ObjectId(), "item": "lamp", "qty": 1, "total": 45.0},
            ],
            "archive": [],
            "system.views": [{"_id": "v"}],
        },
        "analytics": {
            "events": [{"_id": ObjectId(), "type": "click", "tags": ["a", "b"], "meta": {"x": 1}}],
        },
        "admin": {"system.users": [{"_id": "admin.root"}]},
        "local": {"startup_log": [{"_id": "host"}]},
        "config": {"system.sessions": []},
    })


@pytest.fixture
def fake_db(fake_client: FakeMongoClient) -> FakeDatabase:
    return fake_client["shop"]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def schema_service(fake_client, fake_db, fake_clock) -> SchemaService:
    return SchemaService(fake_client, fake_db, cache=SchemaCache(ttl_seconds=300, clock=fake_clock))


@pytest.fixture
def executor(fake_client, fake_db) -> QueryExecutor:
    return QueryExecutor(fake_client, fake_db, max_documents=100, max_result_size=10000)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def translator(fake_llm, schema_service) -> QueryTranslator:
    return QueryTranslator(
        fake_llm,
        {"provider": "fake", "model": "fake-model"},
        introspection_source=schema_service,
    )


@pytest.fixture
def agent(fake_client, fake_db, schema_service, translator, executor) -> QueryGenieAgent:
    return QueryGenieAgent(
        schema_service,
        translator,
        executor,
        history=HistoryService(fake_db, save_timeout=5.0),
        history_enabled=True,
        client=fake_client,
    )
