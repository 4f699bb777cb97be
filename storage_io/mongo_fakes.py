"""
In-process stand-ins for the few pymongo calls the storage layer makes.

Used by the unit tests so they run without a MongoDB server. Documents go
through a BSON encode/decode on the way in, so anything the driver would
reject or reshape (tuples become lists) is rejected or reshaped here too.
"""
import copy
import threading
import time
from typing import Any, Dict, List, Optional

import bson
from bson import ObjectId
from pymongo.common import validate_ok_for_replace
from pymongo.errors import InvalidName
from pymongo.results import UpdateResult


def _as_bson(doc: Dict[str, Any]) -> Dict[str, Any]:
    return bson.decode(bson.encode(doc))


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for k, v in query.items():
        if k not in doc:
            return False
        # only $eq is understood, anything else is compared literally
        if isinstance(v, dict) and list(v) == ["$eq"]:
            v = v["$eq"]
        if doc[k] != v:
            return False
    return True


class FakeCollection:
    def __init__(self, database: "FakeDatabase", name: str):
        if not name:
            raise InvalidName("collection names cannot be empty")
        self.database = database
        self.name = name
        self._docs: List[Dict[str, Any]] = []
        # set to an exception instance to make the next calls fail
        self.fail_with: Optional[Exception] = None
        self.calls: List[str] = []
        self.queries: List[Dict[str, Any]] = []

    def _check_failure(self, op: str, query: Dict[str, Any]):
        self.calls.append(op)
        self.queries.append(query)
        if self.fail_with is not None:
            raise self.fail_with
        _as_bson(query)

    def replace_one(self, query: Dict[str, Any], replacement: Dict[str, Any], upsert: bool = False) -> UpdateResult:
        validate_ok_for_replace(replacement)
        self._check_failure("replace_one", query)
        new_doc = _as_bson(replacement)
        for i, doc in enumerate(self._docs):
            if _matches(doc, query):
                new_doc["_id"] = doc["_id"]
                modified = 1 if new_doc != doc else 0
                self._docs[i] = new_doc
                return UpdateResult({"n": 1, "nModified": modified, "ok": 1.0}, True)
        if not upsert:
            return UpdateResult({"n": 0, "nModified": 0, "ok": 1.0}, True)
        oid = new_doc.setdefault("_id", ObjectId())
        self._docs.append(new_doc)
        return UpdateResult({"n": 1, "nModified": 0, "upserted": oid, "ok": 1.0}, True)

    def find_one(self, query: Optional[Dict[str, Any]] = None, projection: Optional[Dict[str, Any]] = None):
        query = query or {}
        self._check_failure("find_one", query)
        for doc in self._docs:
            if _matches(doc, query):
                found = copy.deepcopy(doc)
                if projection == {"_id": True}:
                    return {"_id": found["_id"]}
                if projection and projection.get("_id") is False:
                    found.pop("_id", None)
                return found
        return None

    def count_documents(self, query: Dict[str, Any]) -> int:
        self._check_failure("count_documents", query)
        return sum(1 for doc in self._docs if _matches(doc, query))

    def drop(self):
        self._docs.clear()


class FakeDatabase:
    def __init__(self, client: "FakeMongoClient", name: str):
        if not name:
            raise InvalidName("database name cannot be empty")
        self.client = client
        self.name = name
        self._collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(self, name)
        return self._collections[name]


class FakeMongoClient:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.closed = False
        self._databases: Dict[str, FakeDatabase] = {}

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self._databases:
            self._databases[name] = FakeDatabase(self, name)
        return self._databases[name]

    def close(self):
        self.closed = True


class FakeClientFactory:
    """
    Drop-in for pymongo.MongoClient as a ConnectionRegistry client_factory.

    Records every client it builds. delay widens the window between a call
    and its return, fail_with makes construction raise.
    """

    def __init__(self, delay: float = 0.0, fail_with: Optional[Exception] = None):
        self.delay = delay
        self.fail_with = fail_with
        self.clients: List[FakeMongoClient] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.clients)

    def __call__(self, **kwargs) -> FakeMongoClient:
        if self.fail_with is not None:
            raise self.fail_with
        if self.delay:
            time.sleep(self.delay)
        client = FakeMongoClient(**kwargs)
        with self._lock:
            self.clients.append(client)
        return client
